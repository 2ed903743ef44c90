"""Podcast script generation."""

from __future__ import annotations

from typing import Sequence

from pydantic import ValidationError

from analysis.prompts.templates import build_transcript_messages
from ingestion.models.domain import Story, TranscriptDraft
from llm.client.openai_client import LLMError, OpenAIClient

DEFAULT_SHOW_NAME = "Agentuity Daily"


class ScriptWriterError(Exception):
    """대본 생성 실패."""


class LLMTranscriptWriter:
    def __init__(self, client: OpenAIClient, *, show_name: str = DEFAULT_SHOW_NAME) -> None:
        self._client = client
        self._show_name = show_name

    def write(self, stories: Sequence[Story], *, max_chars: int) -> TranscriptDraft:
        messages = build_transcript_messages(stories, show_name=self._show_name, max_chars=max_chars)
        try:
            completion = self._client.complete_json(messages)
            return TranscriptDraft.model_validate(completion.data)
        except (LLMError, ValidationError) as exc:
            raise ScriptWriterError(f"transcript generation failed: {exc}") from exc
