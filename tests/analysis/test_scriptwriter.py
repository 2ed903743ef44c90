from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from analysis.services.scriptwriter import LLMTranscriptWriter, ScriptWriterError
from ingestion.models.domain import Story
from llm.client.openai_client import OpenAIClient
from llm.settings import reset_llm_settings_cache


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    reset_llm_settings_cache()
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("LLM_MODEL", "gpt-4o-mini")
    monkeypatch.setenv("LLM_RETRY_MAX_ATTEMPTS", "1")
    yield
    reset_llm_settings_cache()


STORY = Story(
    id="1-a",
    headline="Agents ship",
    summary="s",
    link="https://ex.com/a",
    source="https://ex.com/",
    date_added=datetime(2025, 3, 10, tzinfo=timezone.utc),
)


def _client(data: Any) -> OpenAIClient:
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "choices": [{"message": {"content": json.dumps(data)}}],
            "usage": {"prompt_tokens": 100, "completion_tokens": 200},
            "model": "gpt-4o-mini",
        }

    return OpenAIClient.from_env(provider=provider)


def test_write_returns_draft():
    draft = LLMTranscriptWriter(
        _client(
            {
                "intro": "Host AF34D here.",
                "segments": [{"headline": "Agents ship", "content": "Agents shipped."}],
                "outro": "See you tomorrow.",
            }
        )
    ).write([STORY], max_chars=8000)
    assert draft.segments[0].transition is None
    assert draft.char_count() > 0


def test_invalid_output_raises():
    with pytest.raises(ScriptWriterError):
        LLMTranscriptWriter(_client({"intro": "only intro"})).write([STORY], max_chars=8000)
