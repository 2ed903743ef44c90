"""Celery tasks for the editing (enhancement) stage."""

from __future__ import annotations

import time
import uuid
from typing import Callable, List, Optional, Sequence

from celery import shared_task

from analysis.services.enhancer import EnhancementError, StoryEnhancer
from ingestion.connectors.firecrawl import FirecrawlClient
from ingestion.models.domain import Story
from ingestion.settings import get_settings
from ingestion.utils.logging import get_logger
from llm.client.openai_client import OpenAIClient, ProviderFn
from storage.errors import NotFoundError
from storage.session import open_stores
from storage.stories import StoryStore

# Provider factory injection point for tests (returns provider fn or None for real OpenAI)
PROVIDER_FACTORY: Callable[[], Optional[ProviderFn]] | None = None


def build_enhancer() -> StoryEnhancer:
    provider = PROVIDER_FACTORY() if PROVIDER_FACTORY else None
    return StoryEnhancer(FirecrawlClient.from_env(), OpenAIClient.from_env(provider=provider))


def enhance_core(
    store: StoryStore,
    enhancer: StoryEnhancer,
    *,
    stories: Optional[Sequence[Story]] = None,
    max_stories: int = 10,
    delay_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> List[str]:
    """Enhance unedited stories and mark them edited. Returns the edited links.

    A story that fails to enhance is logged and left unedited for the next run.
    """
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    candidates = list(stories) if stories is not None else store.get_unedited_unpublished()
    todo = [s for s in candidates if not s.edited][:max_stories]
    if not todo:
        logger.info("enhance.no_stories", extra={"trace_id": trace_id})
        return []

    logger.info(
        "enhance.start",
        extra={"trace_id": trace_id, "stories": len(todo), "skipped_over_cap": max(len(candidates) - len(todo), 0)},
    )
    edited: List[str] = []
    for index, story in enumerate(todo):
        if index and delay_seconds:
            sleep(delay_seconds)
        try:
            edit = enhancer.enhance(story)
            store.mark_edited(story.link, edit)
        except EnhancementError as exc:
            logger.warning("enhance.failed", extra={"trace_id": trace_id, "link": story.link, "error": str(exc)})
            continue
        except NotFoundError as exc:
            logger.warning("enhance.missing_story", extra={"trace_id": trace_id, "link": story.link, "error": str(exc)})
            continue
        edited.append(story.link)

    logger.info("enhance.done", extra={"trace_id": trace_id, "edited": len(edited), "attempted": len(todo)})
    return edited


@shared_task(name="analysis.tasks.enhance.enhance_unedited_stories")
def enhance_unedited_stories() -> List[str]:  # pragma: no cover - thin wrapper
    settings = get_settings()
    return enhance_core(
        open_stores().stories,
        build_enhancer(),
        max_stories=settings.editor_max_stories,
        delay_seconds=settings.editor_delay_seconds,
    )
