"""Story persistence with hand-maintained indexes over a key-value backend.

Key layout inside the ``stories`` namespace:

- ``story:<id>``               JSON record
- ``link_to_id:<quoted link>`` id of the single story for a link
- ``date:<YYYY-MM-DD>``        set of ids added on that UTC day
- ``published``                set of published ids
- ``unpublished``              set of unpublished ids

The backend has no multi-key transaction. Writes go record first, indexes
next and the link mapping last, so a crash mid-way leaves at worst an
unreachable record or an index entry without a record. Readers drop such ids
and log ``stories.dangling_index``.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple
from urllib.parse import quote

from pydantic import ValidationError

from ingestion.models.domain import Story, StoryEdit, StoryInput, utcnow
from ingestion.utils.logging import get_logger
from storage.errors import DuplicateLinkError, NotFoundError, StorageInconsistency
from storage.kv import KeyValueBackend

PUBLISHED_KEY = "published"
UNPUBLISHED_KEY = "unpublished"

logger = get_logger(__name__)


def _story_key(story_id: str) -> str:
    return f"story:{story_id}"


def _link_key(link: str) -> str:
    return f"link_to_id:{quote(link, safe='')}"


def _date_key(day: date) -> str:
    return f"date:{day.isoformat()}"


def _as_day(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date() if value.tzinfo is None else value.astimezone(timezone.utc).date()
    return value


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)


def days_in_range(start: date | datetime, end: date | datetime) -> List[date]:
    """Every calendar day in [start, end], inclusive. Empty when start > end."""
    first, last = _as_day(start), _as_day(end)
    days: List[date] = []
    current = first
    while current <= last:
        days.append(current)
        current += timedelta(days=1)
    return days


class StoryStore:
    """Owns story records, the link→id map and every status/date index."""

    def __init__(
        self,
        backend: KeyValueBackend,
        *,
        namespace: str = "stories",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._ns = namespace
        self._clock = clock

    # -- writes -----------------------------------------------------------

    def add(self, story: StoryInput) -> str:
        """Persist a new story and index it. Raises DuplicateLinkError for a known link."""
        link_key = _link_key(story.link)
        if self._backend.exists(self._ns, link_key):
            raise DuplicateLinkError(story.link)

        story_id = self._generate_id()
        record = Story.model_validate({**story.model_dump(), "id": story_id})
        self._write(record)
        self._backend.sadd(self._ns, _date_key(record.date_added.date()), story_id)
        status_key = PUBLISHED_KEY if record.published else UNPUBLISHED_KEY
        self._backend.sadd(self._ns, status_key, story_id)
        self._backend.set(self._ns, link_key, story_id)
        logger.info(
            "stories.added",
            extra={"story_id": story_id, "link": record.link, "date_key": record.date_key},
        )
        return story_id

    def mark_edited(self, link: str, edit: StoryEdit) -> Story:
        """Apply enhancement fields and set ``edited``. Raises NotFoundError."""
        _, story = self._resolve(link)
        updates = {
            "edited": True,
            "body": edit.body,
            "tags": list(edit.tags),
        }
        if edit.headline:
            updates["headline"] = edit.headline.strip()
        if edit.summary:
            updates["summary"] = edit.summary.strip()
        if edit.images is not None:
            updates["images"] = list(edit.images)
        updated = story.model_copy(update=updates)
        self._write(updated)
        logger.info("stories.edited", extra={"story_id": story.id, "link": link})
        return updated

    def mark_published(self, link: str) -> Optional[Story]:
        """Publish an edited story. First call wins; later calls leave the record as is.

        Returns None when there is nothing to publish (unknown link or an
        unedited story).
        """
        try:
            story_id, story = self._resolve(link)
        except NotFoundError:
            logger.info("stories.publish_skipped", extra={"link": link, "reason": "not_found"})
            return None

        if story.published:
            # re-assert index membership in case an earlier call stopped midway
            self._move_to_published(story_id)
            logger.info("stories.publish_skipped", extra={"link": link, "reason": "already_published"})
            return story
        if not story.edited:
            logger.warning("stories.publish_skipped", extra={"link": link, "reason": "not_edited"})
            return None

        published = story.model_copy(update={"published": True, "date_published": self._clock()})
        self._write(published)
        self._move_to_published(story_id)
        logger.info("stories.published", extra={"story_id": story_id, "link": link})
        return published

    # -- reads ------------------------------------------------------------

    def exists(self, link: str) -> bool:
        return self._backend.exists(self._ns, _link_key(link))

    def get_by_link(self, link: str) -> Story:
        """Return the story for ``link``. Raises NotFoundError."""
        _, story = self._resolve(link)
        return story

    def get(self, link: str) -> Optional[Story]:
        try:
            return self.get_by_link(link)
        except NotFoundError:
            return None

    def query_by_date_range(
        self,
        start: date | datetime,
        end: date | datetime,
        *,
        published_only: bool = False,
        unpublished_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[Story]:
        """Stories added on any UTC day in [start, end], newest first.

        Sorted by ``date_published`` when ``published_only`` else by
        ``date_added``; ``limit`` keeps the newest entries.
        """
        if published_only and unpublished_only:
            raise ValueError("published_only and unpublished_only are mutually exclusive")

        ids: set[str] = set()
        for day in days_in_range(start, end):
            ids |= self._backend.smembers(self._ns, _date_key(day))

        if published_only:
            ids &= self._backend.smembers(self._ns, PUBLISHED_KEY)
        elif unpublished_only:
            ids &= self._backend.smembers(self._ns, UNPUBLISHED_KEY)

        stories = self._load_many(ids)
        if published_only:
            stories = [s for s in stories if s.published]
            stories.sort(key=lambda s: s.date_published or s.date_added, reverse=True)
        else:
            if unpublished_only:
                stories = [s for s in stories if not s.published]
            stories.sort(key=lambda s: s.date_added, reverse=True)

        if limit is not None and limit > 0:
            stories = stories[:limit]
        return stories

    def get_published_between(self, start: datetime, end: datetime) -> List[Story]:
        """Published stories whose ``date_published`` lies in [start, end], newest first.

        Unlike ``query_by_date_range`` this ignores the day a story was added.
        """
        start, end = _as_utc(start), _as_utc(end)
        stories = [
            s
            for s in self._load_status(PUBLISHED_KEY)
            if s.published and s.date_published is not None and start <= s.date_published <= end
        ]
        stories.sort(key=lambda s: s.date_published, reverse=True)
        return stories

    def get_last_n_days(self, days: int, **options) -> List[Story]:
        end = self._clock()
        return self.query_by_date_range(end - timedelta(days=days), end, **options)

    def get_unpublished(self) -> List[Story]:
        stories = [s for s in self._load_status(UNPUBLISHED_KEY) if not s.published]
        return _newest_first(stories)

    def get_unedited_unpublished(self) -> List[Story]:
        return [s for s in self.get_unpublished() if not s.edited]

    def get_edited_unpublished(self) -> List[Story]:
        return [s for s in self.get_unpublished() if s.edited]

    def get_published(self) -> List[Story]:
        stories = [s for s in self._load_status(PUBLISHED_KEY) if s.published]
        return _newest_first(stories)

    # -- internals --------------------------------------------------------

    def _generate_id(self) -> str:
        millis = int(self._clock().timestamp() * 1000)
        return f"{millis}-{uuid.uuid4().hex[:9]}"

    def _write(self, story: Story) -> None:
        self._backend.set(self._ns, _story_key(story.id), story.model_dump_json())

    def _move_to_published(self, story_id: str) -> None:
        self._backend.srem(self._ns, UNPUBLISHED_KEY, story_id)
        self._backend.sadd(self._ns, PUBLISHED_KEY, story_id)

    def _resolve(self, link: str) -> Tuple[str, Story]:
        story_id = self._backend.get(self._ns, _link_key(link))
        if story_id is None:
            raise NotFoundError(f"no story for link: {link}")
        raw = self._backend.get(self._ns, _story_key(story_id))
        story = self._decode(story_id, raw)
        if story is None:
            raise StorageInconsistency(f"link index points at missing story {story_id}: {link}")
        return story_id, story

    def _load_status(self, status_key: str) -> List[Story]:
        return self._load_many(self._backend.smembers(self._ns, status_key))

    def _load_many(self, ids: Iterable[str]) -> List[Story]:
        ordered = sorted(ids)
        if not ordered:
            return []
        raws = self._backend.mget(self._ns, [_story_key(i) for i in ordered])
        stories: List[Story] = []
        for story_id, raw in zip(ordered, raws):
            story = self._decode(story_id, raw)
            if story is not None:
                stories.append(story)
        return stories

    def _decode(self, story_id: str, raw: Optional[str]) -> Optional[Story]:
        if raw is None:
            logger.warning("stories.dangling_index", extra={"story_id": story_id})
            return None
        try:
            return Story.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "stories.invalid_record",
                extra={"story_id": story_id, "error": str(exc)[:256]},
            )
            return None


def _newest_first(stories: List[Story]) -> List[Story]:
    return sorted(stories, key=lambda s: s.date_added, reverse=True)
