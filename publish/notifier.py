from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from ingestion.models.domain import PodcastTranscript
from ingestion.utils.logging import get_logger
from publish.settings import PublishSettings, get_publish_settings

logger = get_logger(__name__)

MAX_LISTED_STORIES = 10


class NotificationError(Exception):
    """Slack 알림 전송 실패."""


def build_podcast_message(transcript: PodcastTranscript, audio_url: Optional[str], *, show_name: str) -> Dict[str, Any]:
    title = f"{show_name} for {transcript.date_key}"
    lines: List[str] = [f"*{title}*", transcript.intro]
    if transcript.stories:
        lines.append("")
        lines.append("*Stories covered*")
        for story in transcript.stories[:MAX_LISTED_STORIES]:
            lines.append(f"• <{story.link}|{story.headline}>")
    if audio_url:
        lines.append("")
        lines.append(f":headphones: <{audio_url}|Listen to the episode>")
    text = "\n".join(lines)
    return {
        "text": title,
        "blocks": [{"type": "section", "text": {"type": "mrkdwn", "text": text}}],
    }


@dataclass(frozen=True)
class SlackNotifier:
    webhook_url: str
    show_name: str = "Agentuity Daily"
    timeout_seconds: float = 10.0

    @classmethod
    def from_settings(cls, settings: PublishSettings | None = None) -> Optional["SlackNotifier"]:
        """Return None when no webhook is configured."""
        config = settings or get_publish_settings()
        if config.slack_webhook_url is None:
            return None
        return cls(
            webhook_url=config.slack_webhook_url.get_secret_value(),
            show_name=config.podcast_show_name,
            timeout_seconds=float(config.slack_timeout_seconds),
        )

    def post_podcast(self, transcript: PodcastTranscript, audio_url: Optional[str] = None) -> None:
        payload = build_podcast_message(transcript, audio_url or transcript.audio_url, show_name=self.show_name)
        try:
            resp = httpx.post(self.webhook_url, json=payload, timeout=self.timeout_seconds)
        except httpx.HTTPError as exc:
            raise NotificationError(f"Slack 호출 오류: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationError(f"Slack webhook error: {resp.status_code} {resp.text[:256]}")
        logger.info("notify.slack_posted", extra={"date_key": transcript.date_key})
