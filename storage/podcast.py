"""One podcast transcript per creation date.

The key is the UTC date the transcript was created, not the date range of the
stories it covers.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Sequence

from pydantic import ValidationError

from ingestion.models.domain import (
    PodcastTranscript,
    Story,
    TranscriptDraft,
    TranscriptStory,
    utcnow,
)
from ingestion.utils.logging import get_logger
from storage.errors import AudioAlreadyAttachedError, NotFoundError
from storage.kv import KeyValueBackend

logger = get_logger(__name__)


def _day(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class PodcastStore:
    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        namespace: str = "podcast",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._ns = namespace
        self._clock = clock

    def save(self, draft: TranscriptDraft, stories: Sequence[Story]) -> PodcastTranscript:
        """Persist ``draft`` under today's key, replacing any transcript stored there."""
        now = self._clock()
        transcript = PodcastTranscript(
            **draft.model_dump(include={"intro", "segments", "outro"}),
            stories=[
                TranscriptStory(
                    headline=s.headline,
                    summary=s.summary,
                    link=s.link,
                    date_published=s.date_published,
                )
                for s in stories
            ],
            date_created=now,
        )
        self._backend.set(self._ns, transcript.date_key, transcript.model_dump_json())
        logger.info(
            "podcast.saved",
            extra={"date_key": transcript.date_key, "segments": len(transcript.segments), "stories": len(stories)},
        )
        return transcript

    def get_by_date(self, day: date | datetime) -> Optional[PodcastTranscript]:
        key = _day(day).isoformat()
        raw = self._backend.get(self._ns, key)
        if raw is None:
            return None
        try:
            return PodcastTranscript.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("podcast.invalid_transcript", extra={"date_key": key, "error": str(exc)[:256]})
            return None

    def get_latest(self) -> Optional[PodcastTranscript]:
        return self.get_by_date(self._clock())

    def get_last_n_days(self, days: int) -> List[PodcastTranscript]:
        today = _day(self._clock())
        found: List[PodcastTranscript] = []
        for offset in range(max(days, 0)):
            transcript = self.get_by_date(today - timedelta(days=offset))
            if transcript is not None:
                found.append(transcript)
        return sorted(found, key=lambda t: t.date_created, reverse=True)

    def update_audio_url(self, day: date | datetime, audio_url: str) -> PodcastTranscript:
        """Attach the hosted audio URL once.

        Raises NotFoundError when no transcript exists for ``day`` and
        AudioAlreadyAttachedError when a different URL is already set.
        """
        transcript = self.get_by_date(day)
        if transcript is None:
            raise NotFoundError(f"no podcast transcript for {_day(day).isoformat()}")
        if transcript.audio_url == audio_url:
            return transcript
        if transcript.audio_url:
            raise AudioAlreadyAttachedError(
                f"transcript {transcript.date_key} already has audio: {transcript.audio_url}"
            )
        updated = transcript.model_copy(update={"audio_url": audio_url})
        self._backend.set(self._ns, updated.date_key, updated.model_dump_json())
        logger.info("podcast.audio_attached", extra={"date_key": updated.date_key, "audio_url": audio_url})
        return updated
