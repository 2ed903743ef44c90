"""Daily podcast transcript generation.

One transcript per creation date. An existing transcript for today is
returned unchanged unless ``override`` is set.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Protocol, Sequence

from ingestion.models.domain import PodcastTranscript, Story, TranscriptDraft, utcnow
from ingestion.utils.logging import get_logger
from storage.podcast import PodcastStore
from storage.stories import StoryStore

logger = get_logger(__name__)

STATUS_CREATED = "created"
STATUS_EXISTING = "existing"
STATUS_NO_STORIES = "no_stories"


class TranscriptWriter(Protocol):
    def write(self, stories: Sequence[Story], *, max_chars: int) -> TranscriptDraft: ...  # noqa: D401


@dataclass(frozen=True)
class PodcastResult:
    status: str
    transcript: Optional[PodcastTranscript] = None
    story_count: int = 0

    @property
    def created(self) -> bool:
        return self.status == STATUS_CREATED


class PodcastEditor:
    def __init__(
        self,
        stories: StoryStore,
        podcasts: PodcastStore,
        writer: TranscriptWriter,
        *,
        max_chars: int = 8000,
        lookback_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._stories = stories
        self._podcasts = podcasts
        self._writer = writer
        self._max_chars = max_chars
        self._lookback = timedelta(hours=lookback_hours)
        self._clock = clock

    def generate(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        *,
        override: bool = False,
    ) -> PodcastResult:
        now = self._clock()
        end = end or now
        start = start or end - self._lookback

        existing = self._podcasts.get_by_date(now)
        if existing is not None and not override:
            logger.info("podcast.exists", extra={"date_key": existing.date_key})
            return PodcastResult(STATUS_EXISTING, existing, len(existing.stories))

        stories = self._stories.get_published_between(start, end)
        if not stories:
            logger.info("podcast.no_stories", extra={"start": start.isoformat(), "end": end.isoformat()})
            return PodcastResult(STATUS_NO_STORIES)

        draft = self._writer.write(stories, max_chars=self._max_chars)
        chars = draft.char_count()
        if chars > self._max_chars:
            logger.warning("podcast.too_long", extra={"chars": chars, "max_chars": self._max_chars})
        transcript = self._podcasts.save(draft, stories)
        logger.info(
            "podcast.created",
            extra={"date_key": transcript.date_key, "stories": len(stories), "chars": chars, "override": override},
        )
        return PodcastResult(STATUS_CREATED, transcript, len(stories))
