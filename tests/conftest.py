from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


class FakeClock:
    """Controllable UTC clock shared by stores under test."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def backend():
    from storage.kv import InMemoryBackend

    return InMemoryBackend()


@pytest.fixture
def base_env(monkeypatch):
    from ingestion.settings import reset_settings_cache
    from llm.settings import reset_llm_settings_cache
    from publish.settings import reset_publish_settings_cache

    monkeypatch.setenv("REDIS_URL", "redis://localhost:6379/0")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-test")
    reset_settings_cache()
    reset_llm_settings_cache()
    reset_publish_settings_cache()
    yield
    reset_settings_cache()
    reset_llm_settings_cache()
    reset_publish_settings_cache()
