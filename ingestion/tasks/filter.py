"""Celery tasks for the filter stage."""

from __future__ import annotations

import uuid
from typing import Callable, List, Optional, Sequence

from celery import shared_task

from analysis.services.classifiers import LLMRelevanceClassifier, LLMSimilarityClassifier
from ingestion.models.domain import Article
from ingestion.services.filter import FilterEngine, FilterResult
from ingestion.settings import Settings, get_settings
from ingestion.utils.logging import get_logger
from llm.client.openai_client import OpenAIClient, ProviderFn
from storage.session import open_stores
from storage.stories import StoryStore

# Provider factory injection point for tests (returns provider fn or None for real OpenAI)
PROVIDER_FACTORY: Callable[[], Optional[ProviderFn]] | None = None


def build_filter_engine(
    store: StoryStore,
    *,
    client: Optional[OpenAIClient] = None,
    settings: Settings | None = None,
) -> FilterEngine:
    config = settings or get_settings()
    if client is None:
        provider = PROVIDER_FACTORY() if PROVIDER_FACTORY else None
        client = OpenAIClient.from_env(provider=provider)
    return FilterEngine(
        store,
        LLMRelevanceClassifier(client),
        LLMSimilarityClassifier(client),
        relevance_threshold=config.filter_relevance_threshold,
        similarity_threshold=config.filter_similarity_threshold,
        corpus_days=config.filter_corpus_days,
        corpus_limit=config.filter_corpus_limit,
    )


def filter_core(engine: FilterEngine, articles: Sequence[Article]) -> FilterResult:
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    logger.info("filter.start", extra={"trace_id": trace_id, "articles": len(articles)})
    result = engine.run(articles)
    logger.info("filter.done", extra={"trace_id": trace_id, **result.as_dict()})
    return result


@shared_task(name="ingestion.tasks.filter.filter_todays_research")
def filter_todays_research() -> dict:  # pragma: no cover - wrapper
    stores = open_stores()
    articles: List[Article] = stores.research.get_today() or []
    return filter_core(build_filter_engine(stores.stories), articles).as_dict()
