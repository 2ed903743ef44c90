"""Connector abstraction, errors, and helpers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

from pydantic import ValidationError

from ingestion.models.domain import Article
from ingestion.utils.logging import get_logger

logger = get_logger(__name__)


class ConnectorError(Exception):
    """Base connector error."""


class TransientError(ConnectorError):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(ConnectorError):
    """Non-retryable error (e.g., 4xx semantics)."""


def absolute_link(source: str, link: str) -> str:
    """Resolve a relative story link against the page it was scraped from."""
    return urljoin(source, link.strip())


def _str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v]


class BaseConnector(ABC):
    """Abstract connector interface with retry and normalization hooks."""

    source_type: str

    def fetch(self, source: str, *, max_attempts: int = 3) -> List[Article]:
        attempts = 0
        last_error: Optional[Exception] = None
        while attempts < max_attempts:
            attempts += 1
            try:
                raw = self._fetch_raw(source)
                return self._normalize_and_dedupe(source, raw)
            except TransientError as exc:  # retry
                last_error = exc
                if attempts >= max_attempts:
                    raise
            except PermanentError:
                raise
        assert last_error is not None
        raise last_error

    @abstractmethod
    def _fetch_raw(self, source: str) -> List[Dict[str, Any]]:
        """Return a list of raw item dicts from the upstream."""

    def _normalize_and_dedupe(self, source: str, items: Iterable[Dict[str, Any]]) -> List[Article]:
        seen: set[str] = set()
        normalized: List[Article] = []
        now = datetime.now(timezone.utc)
        for item in items:
            try:
                article = self._normalize_item(source, item, now)
            except ValidationError as exc:
                logger.info(
                    "connector.item_dropped",
                    extra={"source": source, "error": str(exc)[:256]},
                )
                continue
            if article.link in seen:
                continue
            seen.add(article.link)
            normalized.append(article)
        return normalized

    def _normalize_item(self, source: str, item: Dict[str, Any], found_at: datetime) -> Article:
        headline = str(item.get("headline") or item.get("title") or "").strip()
        summary = str(item.get("summary") or item.get("description") or "").strip()
        link = str(item.get("link") or item.get("url") or "").strip()
        posted = item.get("date_posted") or item.get("published")
        return Article(
            headline=headline,
            summary=summary,
            link=absolute_link(source, link) if link else "",
            source=source,
            date_found=found_at,
            content=item.get("content"),
            images=[absolute_link(source, i) for i in _str_list(item.get("images"))],
            date_posted=str(posted) if posted else None,
            body=item.get("body"),
        )
