"""Firecrawl-backed scraping (provider-injected for tests/offline)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from ingestion.settings import get_settings

from .base import BaseConnector, PermanentError, TransientError

ProviderFn = Callable[[str], List[Dict[str, Any]]]

STORY_EXTRACT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "stories": {
            "type": "array",
            "description": "The latest trending news on AI, agents, LLMs, etc.",
            "items": {
                "type": "object",
                "properties": {
                    "headline": {"type": "string", "description": "Story or post headline"},
                    "summary": {"type": "string", "description": "A summary of the story or post"},
                    "body": {"type": "string", "description": "The body of the story or post"},
                    "link": {"type": "string", "description": "A link to the post or story"},
                    "images": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Images from the story or post",
                    },
                    "date_posted": {
                        "type": "string",
                        "description": "The date the story or post was published",
                    },
                },
                "required": ["headline", "summary", "link"],
            },
        }
    },
    "required": ["stories"],
}


def build_extract_prompt(source: str) -> str:
    return (
        "You are an investigative news reporter looking for the latest trending news on AI: "
        "LLMs, agents and other AI related topics.\n"
        f"The site you are researching is {source}. Return the AI related stories or posts on "
        "the page with headline, summary, link, date_posted (YYYY-MM-DD), body and images.\n"
        "The summary is what you find interesting about the story: short, concise and written "
        "for the audience of this site. The body is the full text of the story as markdown, "
        "if available. Images must be absolute URLs.\n"
        f"If a story link is not absolute, prepend {source} to make it absolute."
    )


@dataclass(frozen=True)
class ScrapedPage:
    markdown: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def images(self) -> List[str]:
        found: List[str] = []
        for key in ("ogImage", "og:image"):
            value = self.metadata.get(key)
            if isinstance(value, str) and value and value not in found:
                found.append(value)
        return found


class FirecrawlClient:
    """Minimal Firecrawl REST client (`/scrape` with markdown or JSON extraction)."""

    def __init__(
        self,
        api_key: str,
        *,
        endpoint: str = "https://api.firecrawl.dev/v1",
        timeout_seconds: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout_seconds

    @classmethod
    def from_env(cls) -> "FirecrawlClient":
        cfg = get_settings()
        if not cfg.firecrawl_api_key:
            raise PermanentError("FIRECRAWL_API_KEY가 설정되지 않았습니다.")
        return cls(
            cfg.firecrawl_api_key.get_secret_value(),
            endpoint=cfg.firecrawl_endpoint,
            timeout_seconds=float(cfg.firecrawl_timeout_seconds),
        )

    def _scrape(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = httpx.post(
                f"{self._endpoint}/scrape",
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransientError("Firecrawl 타임아웃") from exc
        except httpx.HTTPError as exc:
            raise TransientError("Firecrawl 호출 오류") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientError(f"Firecrawl 일시 오류: {resp.status_code}")
        if resp.status_code >= 400:
            raise PermanentError(f"Firecrawl 오류: {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            # gateway/CDN pages come back as 200 HTML
            raise TransientError("Firecrawl 응답이 JSON이 아닙니다.") from exc
        if not isinstance(body, dict):
            raise PermanentError("Firecrawl 응답 형식 오류")
        if not body.get("success", False):
            raise PermanentError(f"Firecrawl 실패 응답: {body.get('error')}")
        return body.get("data") or {}

    def extract(self, url: str, *, prompt: str, schema: Dict[str, Any]) -> Dict[str, Any]:
        data = self._scrape(
            {
                "url": url,
                "formats": ["json"],
                "jsonOptions": {"prompt": prompt, "schema": schema},
            }
        )
        return data.get("json") or {}

    def scrape_markdown(self, url: str) -> ScrapedPage:
        data = self._scrape({"url": url, "formats": ["markdown"]})
        return ScrapedPage(markdown=data.get("markdown") or "", metadata=data.get("metadata") or {})


class FirecrawlConnector(BaseConnector):
    """Extracts AI stories from a source page.

    - provider 주입 시: 오프라인 모드
    - provider 미주입 시: Firecrawl 호출
    """

    source_type = "web"

    def __init__(self, client: Optional[FirecrawlClient] = None, provider: Optional[ProviderFn] = None):
        self._client = client
        self._provider = provider

    def _fetch_raw(self, source: str) -> List[Dict[str, Any]]:
        if self._provider is not None:
            return self._provider(source)
        client = self._client or FirecrawlClient.from_env()
        data = client.extract(source, prompt=build_extract_prompt(source), schema=STORY_EXTRACT_SCHEMA)
        stories = data.get("stories") or []
        return [s for s in stories if isinstance(s, dict)]
