from __future__ import annotations

import json

import pytest

from ingestion.models.domain import Story, TranscriptDraft
from publish.notifier import NotificationError, SlackNotifier, build_podcast_message
from publish.settings import PublishSettings
from storage.podcast import PodcastStore

WEBHOOK = "https://hooks.slack.com/services/T/B/X"


def _transcript(backend, clock):
    story = Story(
        id="1-a",
        headline="Agents ship",
        summary="s",
        link="https://ex.com/a",
        source="https://ex.com/",
        date_added=clock(),
        edited=True,
        published=True,
        date_published=clock(),
    )
    return PodcastStore(backend, clock=clock).save(TranscriptDraft(intro="Today: agents.", outro="Bye."), [story])


def test_message_lists_stories_and_audio(backend, clock):
    message = build_podcast_message(_transcript(backend, clock), "https://cdn/p.mp3", show_name="Daily AI")
    text = message["blocks"][0]["text"]["text"]
    assert message["text"] == "Daily AI for 2025-03-10"
    assert "<https://ex.com/a|Agents ship>" in text
    assert "<https://cdn/p.mp3|Listen to the episode>" in text


def test_post_podcast_sends_webhook(httpx_mock, backend, clock):
    httpx_mock.add_response(method="POST", url=WEBHOOK, text="ok")
    SlackNotifier(WEBHOOK).post_podcast(_transcript(backend, clock), "https://cdn/p.mp3")
    payload = json.loads(httpx_mock.get_requests()[0].content)
    assert "Agentuity Daily" in payload["text"]


def test_post_podcast_error_raises(httpx_mock, backend, clock):
    httpx_mock.add_response(method="POST", url=WEBHOOK, status_code=404, text="no_service")
    with pytest.raises(NotificationError):
        SlackNotifier(WEBHOOK).post_podcast(_transcript(backend, clock))


def test_from_settings_without_webhook_is_none():
    assert SlackNotifier.from_settings(PublishSettings(slack_webhook_url=None)) is None
    notifier = SlackNotifier.from_settings(PublishSettings(slack_webhook_url=WEBHOOK))
    assert notifier is not None and notifier.webhook_url == WEBHOOK
