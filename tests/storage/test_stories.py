from __future__ import annotations

from datetime import date, timedelta

import pytest

from ingestion.models.domain import StoryEdit, StoryInput
from storage.errors import DuplicateLinkError, NotFoundError, StorageInconsistency
from storage.stories import StoryStore, days_in_range


def _input(link: str, clock, **kwargs) -> StoryInput:
    data = {
        "headline": f"Headline {link}",
        "summary": "summary",
        "link": link,
        "source": "https://news.ycombinator.com/",
        "date_added": clock(),
    }
    data.update(kwargs)
    return StoryInput(**data)


@pytest.fixture
def store(backend, clock) -> StoryStore:
    return StoryStore(backend, clock=clock)


def test_add_assigns_id_and_indexes_unpublished(store, clock):
    story_id = store.add(_input("https://ex.com/a", clock))
    story = store.get_by_link("https://ex.com/a")
    assert story.id == story_id
    assert not story.edited and not story.published
    assert [s.link for s in store.get_unedited_unpublished()] == ["https://ex.com/a"]
    assert store.exists("https://ex.com/a")
    assert not store.exists("https://ex.com/missing")


def test_second_add_with_same_link_fails_and_keeps_original(store, clock):
    store.add(_input("https://ex.com/a", clock, headline="first"))
    with pytest.raises(DuplicateLinkError):
        store.add(_input("https://ex.com/a", clock, headline="second"))
    assert store.get_by_link("https://ex.com/a").headline == "first"
    assert len(store.get_unpublished()) == 1


def test_get_by_link_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.get_by_link("https://ex.com/nope")
    assert store.get("https://ex.com/nope") is None


def test_mark_edited_applies_fields(store, clock):
    store.add(_input("https://ex.com/a", clock))
    edited = store.mark_edited(
        "https://ex.com/a",
        StoryEdit(body="# Body", tags=["llm"], headline="Better headline", images=["https://ex.com/i.png"]),
    )
    assert edited.edited
    assert edited.headline == "Better headline"
    assert edited.summary == "summary"
    assert store.get_by_link("https://ex.com/a").tags == ["llm"]
    assert [s.link for s in store.get_edited_unpublished()] == ["https://ex.com/a"]
    assert store.get_unedited_unpublished() == []


def test_mark_edited_missing_raises(store):
    with pytest.raises(NotFoundError):
        store.mark_edited("https://ex.com/nope", StoryEdit(body="x"))


def test_publish_is_idempotent_first_call_wins(store, clock):
    store.add(_input("https://ex.com/a", clock))
    store.mark_edited("https://ex.com/a", StoryEdit(body="b"))
    first = store.mark_published("https://ex.com/a")
    assert first is not None and first.published
    published_at = first.date_published

    clock.advance(hours=2)
    second = store.mark_published("https://ex.com/a")
    assert second is not None
    assert second.date_published == published_at
    assert [s.link for s in store.get_published()] == ["https://ex.com/a"]
    assert store.get_unpublished() == []


def test_publish_missing_or_unedited_is_noop(store, clock):
    assert store.mark_published("https://ex.com/nope") is None
    store.add(_input("https://ex.com/a", clock))
    assert store.mark_published("https://ex.com/a") is None
    assert not store.get_by_link("https://ex.com/a").published


def test_status_never_goes_backwards(store, clock):
    store.add(_input("https://ex.com/a", clock))
    store.mark_edited("https://ex.com/a", StoryEdit(body="b"))
    store.mark_published("https://ex.com/a")
    again = store.mark_edited("https://ex.com/a", StoryEdit(body="rewritten"))
    assert again.edited and again.published
    assert store.get_by_link("https://ex.com/a").published


def test_date_range_includes_day_and_excludes_later_days(store, clock):
    store.add(_input("https://ex.com/a", clock))
    day = clock().date()
    assert [s.link for s in store.query_by_date_range(day, day)] == ["https://ex.com/a"]
    assert store.query_by_date_range(day + timedelta(days=1), day + timedelta(days=5)) == []


def test_date_range_unions_days_sorts_and_limits(store, clock):
    store.add(_input("https://ex.com/old", clock))
    clock.advance(days=1)
    store.add(_input("https://ex.com/mid", clock))
    clock.advance(days=1)
    store.add(_input("https://ex.com/new", clock))
    start = clock().date() - timedelta(days=2)
    links = [s.link for s in store.query_by_date_range(start, clock())]
    assert links == ["https://ex.com/new", "https://ex.com/mid", "https://ex.com/old"]
    limited = store.query_by_date_range(start, clock(), limit=2)
    assert [s.link for s in limited] == ["https://ex.com/new", "https://ex.com/mid"]


def test_date_range_published_only_sorts_by_publication(store, clock):
    store.add(_input("https://ex.com/a", clock))
    store.add(_input("https://ex.com/b", clock))
    store.add(_input("https://ex.com/c", clock))
    for link in ("https://ex.com/b", "https://ex.com/a"):
        store.mark_edited(link, StoryEdit(body="x"))
        clock.advance(minutes=5)
        store.mark_published(link)
    day = clock().date()
    published = store.query_by_date_range(day, day, published_only=True)
    assert [s.link for s in published] == ["https://ex.com/a", "https://ex.com/b"]
    unpublished = store.query_by_date_range(day, day, unpublished_only=True)
    assert [s.link for s in unpublished] == ["https://ex.com/c"]
    with pytest.raises(ValueError):
        store.query_by_date_range(day, day, published_only=True, unpublished_only=True)


def test_published_between_uses_publication_time(store, clock):
    added_at = clock()
    store.add(_input("https://ex.com/old", clock))
    store.add(_input("https://ex.com/fresh", clock))
    store.mark_edited("https://ex.com/old", StoryEdit(body="x"))
    store.mark_published("https://ex.com/old")
    clock.advance(days=3)
    store.mark_edited("https://ex.com/fresh", StoryEdit(body="x"))
    store.mark_published("https://ex.com/fresh")

    window = store.get_published_between(clock() - timedelta(hours=24), clock())
    assert [s.link for s in window] == ["https://ex.com/fresh"]
    assert store.query_by_date_range(clock(), clock(), published_only=True) == []
    assert len(store.get_published_between(added_at, clock())) == 2


def test_dangling_index_entries_are_dropped(store, backend, clock):
    story_id = store.add(_input("https://ex.com/a", clock))
    backend.sadd("stories", "unpublished", "ghost-id")
    backend.sadd("stories", f"date:{clock().date().isoformat()}", "ghost-id")
    assert [s.id for s in store.get_unpublished()] == [story_id]
    assert [s.id for s in store.query_by_date_range(clock(), clock())] == [story_id]


def test_link_pointing_at_missing_record_is_inconsistency(store, backend, clock):
    story_id = store.add(_input("https://ex.com/a", clock))
    backend.delete("stories", f"story:{story_id}")
    with pytest.raises(StorageInconsistency):
        store.get_by_link("https://ex.com/a")
    assert store.mark_published("https://ex.com/a") is None


def test_days_in_range_inclusive():
    assert days_in_range(date(2025, 1, 30), date(2025, 2, 1)) == [
        date(2025, 1, 30),
        date(2025, 1, 31),
        date(2025, 2, 1),
    ]
    assert days_in_range(date(2025, 2, 2), date(2025, 2, 1)) == []
