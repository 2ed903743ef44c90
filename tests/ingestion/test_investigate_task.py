from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from ingestion.connectors.base import BaseConnector, TransientError
from ingestion.connectors.firecrawl import FirecrawlConnector
from ingestion.tasks import investigate as investigate_mod
from storage.research import ResearchStore


@pytest.fixture(autouse=True)
def _env(monkeypatch, base_env):
    monkeypatch.setenv("RESEARCH_SOURCES", json.dumps(["https://one.example/", "https://two.example/"]))
    from ingestion.settings import reset_settings_cache

    reset_settings_cache()
    yield
    investigate_mod.CONNECTOR_FACTORY = None


class _FailingConnector(BaseConnector):
    source_type = "web"

    def _fetch_raw(self, source: str) -> List[Dict[str, Any]]:
        raise TransientError("rate limited")


def _install_factory(items_by_source: Dict[str, List[Dict[str, Any]]], failing: tuple = ()):
    def factory(source: str) -> BaseConnector:
        if source in failing:
            return _FailingConnector()
        return FirecrawlConnector(provider=lambda s: items_by_source.get(s, []))

    investigate_mod.CONNECTOR_FACTORY = factory


def test_investigate_scrapes_configured_sources_and_saves_snapshot(backend, clock):
    research = ResearchStore(backend, clock=clock)
    _install_factory(
        {
            "https://one.example/": [{"headline": "A", "summary": "", "link": "/a"}],
            "https://two.example/": [{"headline": "B", "summary": "", "link": "https://two.example/b"}],
        }
    )

    articles = investigate_mod.investigate_core(research)

    assert [a.link for a in articles] == ["https://one.example/a", "https://two.example/b"]
    assert [a.link for a in research.get_today()] == ["https://one.example/a", "https://two.example/b"]


def test_investigate_reuses_todays_snapshot(backend, clock):
    research = ResearchStore(backend, clock=clock)
    _install_factory({"https://one.example/": [{"headline": "A", "summary": "", "link": "/a"}]})
    investigate_mod.investigate_core(research)

    def _boom(source: str):
        raise AssertionError("should not scrape")

    investigate_mod.CONNECTOR_FACTORY = _boom
    cached = investigate_mod.investigate_core(research)
    assert [a.link for a in cached] == ["https://one.example/a"]


def test_dynamic_sources_bypass_cache_and_skip_failures(backend, clock):
    research = ResearchStore(backend, clock=clock)
    research.save([], source="earlier")
    _install_factory(
        {"https://ok.example/": [{"headline": "C", "summary": "", "link": "/c"}]},
        failing=("https://down.example/",),
    )

    articles = investigate_mod.investigate_core(research, sources=["https://down.example/", "https://ok.example/"])

    assert [a.link for a in articles] == ["https://ok.example/c"]


def test_no_articles_does_not_write_snapshot(backend, clock):
    research = ResearchStore(backend, clock=clock)
    _install_factory({})
    assert investigate_mod.investigate_core(research) == []
    assert research.get_today() is None
