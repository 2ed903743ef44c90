"""Date-keyed research snapshots with a bounded TTL.

Snapshots are a cache: the backend expires them after ``ttl_days``.
`clear_old` is a manual maintenance pass for backends that do not honor TTLs.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence

from pydantic import ValidationError

from ingestion.models.domain import Article, ResearchMetadata, ResearchSnapshot, utcnow
from ingestion.utils.logging import get_logger
from storage.kv import KeyValueBackend

logger = get_logger(__name__)

DEFAULT_TTL_DAYS = 14


def _day(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class ResearchStore:
    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        namespace: str = "research",
        ttl_days: int = DEFAULT_TTL_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._ns = namespace
        self._ttl_days = ttl_days
        self._clock = clock

    def save(self, articles: Sequence[Article], source: str) -> ResearchSnapshot:
        """Store today's snapshot, replacing any earlier one for the same day."""
        now = self._clock()
        snapshot = ResearchSnapshot(
            articles=list(articles),
            metadata=ResearchMetadata(last_updated=now, source=source),
        )
        self._backend.set(
            self._ns,
            _day(now).isoformat(),
            snapshot.model_dump_json(by_alias=True),
            ttl_seconds=self._ttl_days * 24 * 60 * 60,
        )
        logger.info(
            "research.saved",
            extra={"date_key": _day(now).isoformat(), "articles": len(snapshot.articles), "source": source},
        )
        return snapshot

    def get_snapshot(self, day: date | datetime) -> Optional[ResearchSnapshot]:
        key = _day(day).isoformat()
        raw = self._backend.get(self._ns, key)
        if raw is None:
            return None
        try:
            return ResearchSnapshot.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("research.invalid_snapshot", extra={"date_key": key, "error": str(exc)[:256]})
            return None

    def get_by_date(self, day: date | datetime) -> Optional[List[Article]]:
        """Articles captured on ``day``; None when no snapshot exists."""
        snapshot = self.get_snapshot(day)
        return list(snapshot.articles) if snapshot is not None else None

    def get_today(self) -> Optional[List[Article]]:
        return self.get_by_date(self._clock())

    def get_range(self, days: int) -> List[Article]:
        """Articles from today and the ``days - 1`` previous days, newest first."""
        today = _day(self._clock())
        articles: List[Article] = []
        for offset in range(max(days, 0)):
            articles.extend(self.get_by_date(today - timedelta(days=offset)) or [])
        return sorted(articles, key=lambda a: a.date_found, reverse=True)

    def clear_old(self, days_to_keep: int = DEFAULT_TTL_DAYS, *, scan_days: int = 60) -> int:
        """Delete snapshots older than ``days_to_keep``, scanning back ``scan_days``.

        The backend cannot list keys, so candidate date keys are enumerated.
        Returns the number of deleted snapshots.
        """
        today = _day(self._clock())
        deleted = 0
        for offset in range(days_to_keep + 1, scan_days + 1):
            key = (today - timedelta(days=offset)).isoformat()
            if self._backend.exists(self._ns, key):
                self._backend.delete(self._ns, key)
                deleted += 1
        logger.info("research.cleared", extra={"deleted": deleted, "days_to_keep": days_to_keep})
        return deleted
