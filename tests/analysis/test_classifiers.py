from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict

import pytest

from analysis.services.classifiers import ClassifierFailure, LLMRelevanceClassifier, LLMSimilarityClassifier
from ingestion.models.domain import Article, Story
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


def _client(content: Any) -> OpenAIClient:
    def provider(_: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "choices": [{"message": {"content": content if isinstance(content, str) else json.dumps(content)}}],
            "usage": {"prompt_tokens": 50, "completion_tokens": 20},
            "model": "gpt-4o-mini",
        }

    return OpenAIClient.from_env(provider=provider)


ARTICLE = Article(headline="Agents ship", summary="An agent framework", link="https://ex.com/a", source="https://ex.com/")
CANDIDATE = Story(
    id="1-x",
    headline="Agents shipped",
    summary="Same news",
    link="https://ex.com/old",
    source="https://ex.com/",
    date_added=datetime(2025, 3, 9, tzinfo=timezone.utc),
    edited=True,
    published=True,
    date_published=datetime(2025, 3, 9, tzinfo=timezone.utc),
)


def test_relevance_accepts_camel_case_output():
    check = LLMRelevanceClassifier(_client({"isRelevant": True, "confidence": 0.8, "reason": "LLMs"})).classify(ARTICLE)
    assert check.is_relevant and check.confidence == 0.8


def test_relevance_schema_violation_is_classifier_failure():
    with pytest.raises(ClassifierFailure):
        LLMRelevanceClassifier(_client({"is_relevant": True, "confidence": 3})).classify(ARTICLE)


def test_relevance_llm_error_is_classifier_failure():
    with pytest.raises(ClassifierFailure):
        LLMRelevanceClassifier(_client("still not json")).classify(ARTICLE)


def test_similarity_keeps_valid_index_and_drops_out_of_range():
    ok = LLMSimilarityClassifier(
        _client({"is_similar": True, "confidence": 0.9, "similar_to_index": 1, "reason": "same"})
    ).classify(ARTICLE, [CANDIDATE])
    assert ok.is_similar and ok.similar_to_index == 1

    bad = LLMSimilarityClassifier(
        _client({"is_similar": True, "confidence": 0.9, "similar_to_index": 7, "reason": "same"})
    ).classify(ARTICLE, [CANDIDATE])
    assert bad.is_similar and bad.similar_to_index is None
