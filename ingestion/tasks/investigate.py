"""Celery tasks for the research (scrape) stage."""

from __future__ import annotations

import uuid
from typing import Callable, List, Optional, Sequence

from celery import shared_task

from ingestion.connectors.base import BaseConnector, ConnectorError, TransientError
from ingestion.connectors.firecrawl import FirecrawlConnector
from ingestion.models.domain import Article
from ingestion.settings import get_settings
from ingestion.utils.logging import get_logger
from storage.research import ResearchStore
from storage.session import open_stores

# Connector factory is kept pluggable for tests; it must return an object with .fetch(source).
CONNECTOR_FACTORY: Callable[[str], BaseConnector] | None = None


def _get_connector(source: str) -> BaseConnector:
    if CONNECTOR_FACTORY is not None:
        return CONNECTOR_FACTORY(source)
    return FirecrawlConnector()


def investigate_core(research: ResearchStore, *, sources: Optional[Sequence[str]] = None) -> List[Article]:
    """Scrape ``sources`` (or the configured list) and snapshot the result.

    Without explicit sources, today's snapshot is reused when one exists.
    A failing source is logged and skipped.
    """
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    dynamic = sources is not None
    if not dynamic:
        cached = research.get_today()
        if cached is not None:
            logger.info("investigate.cached", extra={"trace_id": trace_id, "articles": len(cached)})
            return cached
        sources = get_settings().research_sources

    assert sources is not None
    logger.info("investigate.start", extra={"trace_id": trace_id, "sources": len(sources), "dynamic": dynamic})
    articles: List[Article] = []
    seen: set[str] = set()
    for source in sources:
        connector = _get_connector(source)
        try:
            fetched = connector.fetch(source)
        except ConnectorError as exc:
            logger.warning(
                "investigate.source_failed",
                extra={
                    "trace_id": trace_id,
                    "source": source,
                    "transient": isinstance(exc, TransientError),
                    "error": str(exc),
                },
            )
            continue
        for article in fetched:
            if article.link in seen:
                continue
            seen.add(article.link)
            articles.append(article)
        logger.info("investigate.source_done", extra={"trace_id": trace_id, "source": source, "articles": len(fetched)})

    if articles:
        research.save(articles, source=", ".join(sources))
    else:
        logger.info("investigate.no_articles", extra={"trace_id": trace_id})
    return articles


@shared_task(name="ingestion.tasks.investigate.investigate_sources")
def investigate_sources(sources: Optional[List[str]] = None) -> int:  # pragma: no cover - wrapper
    return len(investigate_core(open_stores().research, sources=sources))
