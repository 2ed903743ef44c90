"""LLM-backed relevance/similarity classifiers used by the filter stage."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from pydantic import ValidationError

from analysis.models.domain import RelevanceCheck, SimilarityCheck
from analysis.prompts.templates import build_relevance_messages, build_similarity_messages
from ingestion.models.domain import Article, Story, utcnow
from ingestion.utils.logging import get_logger
from llm.client.openai_client import LLMError, OpenAIClient

logger = get_logger(__name__)

# Short JSON answers; no need for the default completion budget.
CLASSIFIER_MAX_TOKENS = 300


class ClassifierFailure(Exception):
    """분류 호출 실패(LLM/전송/스키마 오류 포함). 해당 기사만 건너뛴다."""


class LLMRelevanceClassifier:
    def __init__(self, client: OpenAIClient) -> None:
        self._client = client

    def classify(self, article: Article) -> RelevanceCheck:
        messages = build_relevance_messages(article)
        try:
            completion = self._client.complete_json(messages, max_tokens=CLASSIFIER_MAX_TOKENS)
            result = RelevanceCheck.model_validate(completion.data)
        except (LLMError, ValidationError) as exc:
            raise ClassifierFailure(f"relevance check failed for {article.link}: {exc}") from exc
        logger.debug(
            "classifier.relevance",
            extra={"link": article.link, "is_relevant": result.is_relevant, "confidence": result.confidence},
        )
        return result


class LLMSimilarityClassifier:
    def __init__(self, client: OpenAIClient) -> None:
        self._client = client

    def classify(
        self,
        article: Article,
        candidates: Sequence[Story],
        *,
        date: Optional[datetime] = None,
    ) -> SimilarityCheck:
        messages = build_similarity_messages(article, candidates, date=date or utcnow())
        try:
            completion = self._client.complete_json(messages, max_tokens=CLASSIFIER_MAX_TOKENS)
            result = SimilarityCheck.model_validate(completion.data)
        except (LLMError, ValidationError) as exc:
            raise ClassifierFailure(f"similarity check failed for {article.link}: {exc}") from exc
        if result.similar_to_index is not None and not 1 <= result.similar_to_index <= len(candidates):
            # out-of-range pointer is informational only; the verdict still stands
            result = result.model_copy(update={"similar_to_index": None})
        logger.debug(
            "classifier.similarity",
            extra={"link": article.link, "is_similar": result.is_similar, "confidence": result.confidence},
        )
        return result
