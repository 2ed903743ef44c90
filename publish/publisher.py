"""Publish step: move every edited, unpublished story to published."""

from __future__ import annotations

from typing import List

from ingestion.utils.logging import get_logger
from storage.stories import StoryStore

logger = get_logger(__name__)


def publish_edited_stories(store: StoryStore) -> List[str]:
    """Publish edited stories; returns the links that were published by this call."""
    pending = store.get_edited_unpublished()
    if not pending:
        logger.info("publish.no_stories")
        return []
    published: List[str] = []
    for story in pending:
        result = store.mark_published(story.link)
        if result is not None and result.published:
            published.append(story.link)
    logger.info("publish.done", extra={"published": len(published), "pending": len(pending)})
    return published
