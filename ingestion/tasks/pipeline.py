"""Daily editorial pipeline: research → filter → edit → publish → podcast → voice → notify."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from celery import shared_task

from analysis.services.enhancer import StoryEnhancer
from analysis.services.scriptwriter import LLMTranscriptWriter
from analysis.tasks.enhance import enhance_core
from ingestion.connectors.firecrawl import FirecrawlClient
from ingestion.services.filter import FilterEngine
from ingestion.settings import Settings, get_settings
from ingestion.tasks.filter import build_filter_engine
from ingestion.tasks.investigate import investigate_core
from ingestion.utils.logging import get_logger
from llm.client.openai_client import OpenAIClient, ProviderFn
from publish.notifier import NotificationError, SlackNotifier
from publish.podcast_editor import PodcastEditor
from publish.publisher import publish_edited_stories
from publish.settings import PublishSettings, get_publish_settings
from publish.voice import PodcastVoice, VoicingError
from storage.errors import StorageError
from storage.session import Stores, open_stores

# Provider factory injection point for tests (returns provider fn or None for real OpenAI)
PROVIDER_FACTORY: Callable[[], Optional[ProviderFn]] | None = None


@dataclass
class PipelineDeps:
    stores: Stores
    filter_engine: FilterEngine
    enhancer: StoryEnhancer
    podcast_editor: PodcastEditor
    voice: Optional[PodcastVoice] = None
    notifier: Optional[SlackNotifier] = None
    editor_max_stories: int = 10
    editor_delay_seconds: float = 0.0
    sleep: Callable[[float], None] = field(default=time.sleep)


def build_default_deps(
    settings: Settings | None = None,
    publish_settings: PublishSettings | None = None,
) -> PipelineDeps:
    config = settings or get_settings()
    pub = publish_settings or get_publish_settings()
    logger = get_logger(__name__)

    stores = open_stores(config)
    provider = PROVIDER_FACTORY() if PROVIDER_FACTORY else None
    client = OpenAIClient.from_env(provider=provider)
    try:
        voice: Optional[PodcastVoice] = PodcastVoice.from_settings(stores.podcast, pub)
    except VoicingError as exc:
        logger.warning("pipeline.voice_disabled", extra={"reason": str(exc)})
        voice = None

    return PipelineDeps(
        stores=stores,
        filter_engine=build_filter_engine(stores.stories, client=client, settings=config),
        enhancer=StoryEnhancer(FirecrawlClient.from_env(), client),
        podcast_editor=PodcastEditor(
            stores.stories,
            stores.podcast,
            LLMTranscriptWriter(client, show_name=pub.podcast_show_name),
            max_chars=pub.podcast_max_chars,
            lookback_hours=pub.podcast_lookback_hours,
        ),
        voice=voice,
        notifier=SlackNotifier.from_settings(pub),
        editor_max_stories=config.editor_max_stories,
        editor_delay_seconds=config.editor_delay_seconds,
    )


def run_pipeline(
    deps: PipelineDeps,
    *,
    sources: Optional[Sequence[str]] = None,
    override_podcast: bool = False,
) -> Dict[str, Any]:
    """Run every stage once and return a summary.

    Research, filter, edit, publish and podcast failures propagate. Voicing
    and notification failures are logged and reported in ``errors``.
    """
    logger = get_logger(__name__)
    trace_id = str(uuid.uuid4())
    report: Dict[str, Any] = {"trace_id": trace_id}
    errors: List[str] = []
    logger.info("pipeline.start", extra={"trace_id": trace_id})

    articles = investigate_core(deps.stores.research, sources=sources)
    report["articles"] = len(articles)

    filtered = deps.filter_engine.run(articles)
    report["filter"] = filtered.as_dict()

    edited = enhance_core(
        deps.stores.stories,
        deps.enhancer,
        max_stories=deps.editor_max_stories,
        delay_seconds=deps.editor_delay_seconds,
        sleep=deps.sleep,
    )
    report["edited"] = len(edited)

    published = publish_edited_stories(deps.stores.stories)
    report["published"] = len(published)

    podcast = deps.podcast_editor.generate(override=override_podcast)
    report["podcast"] = podcast.status
    report["audio_url"] = podcast.transcript.audio_url if podcast.transcript else None

    if podcast.transcript is not None and deps.voice is not None:
        try:
            voiced = deps.voice.voice(podcast.transcript)
            report["audio_url"] = voiced.audio_url
        except (VoicingError, StorageError) as exc:
            logger.warning("pipeline.voice_failed", extra={"trace_id": trace_id, "error": str(exc)})
            errors.append(f"voice: {exc}")

    report["notified"] = False
    if podcast.created and deps.notifier is not None:
        assert podcast.transcript is not None
        try:
            deps.notifier.post_podcast(podcast.transcript, report["audio_url"])
            report["notified"] = True
        except NotificationError as exc:
            logger.warning("pipeline.notify_failed", extra={"trace_id": trace_id, "error": str(exc)})
            errors.append(f"notify: {exc}")

    report["errors"] = errors
    logger.info("pipeline.done", extra=report)
    return report


@shared_task(
    name="ingestion.tasks.pipeline.run_daily_pipeline",
    queue="ingestion.pipeline",
)
def run_daily_pipeline(override_podcast: bool = False) -> Dict[str, Any]:  # pragma: no cover - thin wrapper
    return run_pipeline(build_default_deps(), override_podcast=override_podcast)
