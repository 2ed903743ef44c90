"""Key-value backed stores for stories, research snapshots and podcast transcripts."""

from .errors import (  # noqa: F401
    AudioAlreadyAttachedError,
    DuplicateLinkError,
    NotFoundError,
    StorageError,
    StorageInconsistency,
)
from .kv import InMemoryBackend, KeyValueBackend, RedisBackend, build_backend  # noqa: F401
from .podcast import PodcastStore  # noqa: F401
from .research import ResearchStore  # noqa: F401
from .stories import StoryStore  # noqa: F401

__all__ = [
    "AudioAlreadyAttachedError",
    "DuplicateLinkError",
    "InMemoryBackend",
    "KeyValueBackend",
    "NotFoundError",
    "PodcastStore",
    "RedisBackend",
    "ResearchStore",
    "StorageError",
    "StorageInconsistency",
    "StoryStore",
    "build_backend",
]
