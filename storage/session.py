"""Memoized backend and store handles for tasks."""

from __future__ import annotations

from dataclasses import dataclass

from ingestion.settings import Settings, get_settings
from storage.kv import KeyValueBackend, build_backend
from storage.podcast import PodcastStore
from storage.research import ResearchStore
from storage.stories import StoryStore

_BACKEND: KeyValueBackend | None = None
_CURRENT_KEY: tuple[str, str] | None = None


@dataclass(frozen=True)
class Stores:
    stories: StoryStore
    research: ResearchStore
    podcast: PodcastStore


def get_backend(settings: Settings | None = None) -> KeyValueBackend:
    """Return a memoized backend; reconnects when the Redis URL or prefix changes."""
    global _BACKEND, _CURRENT_KEY

    config = settings or get_settings()
    key = (config.redis_url, config.store_key_prefix)
    if _BACKEND is None or _CURRENT_KEY != key:
        _BACKEND = build_backend(config.redis_url, prefix=config.store_key_prefix)
        _CURRENT_KEY = key
    return _BACKEND


def set_backend(backend: KeyValueBackend | None) -> None:
    """Install a backend directly (tests, local runs). ``None`` resets the memo."""
    global _BACKEND, _CURRENT_KEY

    _BACKEND = backend
    _CURRENT_KEY = None
    if backend is not None:
        config = get_settings()
        _CURRENT_KEY = (config.redis_url, config.store_key_prefix)


def open_stores(settings: Settings | None = None, *, backend: KeyValueBackend | None = None) -> Stores:
    config = settings or get_settings()
    kv = backend or get_backend(config)
    return Stores(
        stories=StoryStore(kv),
        research=ResearchStore(kv, ttl_days=config.research_ttl_days),
        podcast=PodcastStore(kv),
    )
