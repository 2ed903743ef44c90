"""Story enhancement: scrape the source page, then rewrite with the LLM."""

from __future__ import annotations

import json
from typing import List, Protocol

from pydantic import ValidationError

from analysis.models.domain import EnhancedContent
from analysis.prompts.templates import build_enhance_messages, select_template, truncate_content
from ingestion.connectors.base import ConnectorError
from ingestion.connectors.firecrawl import ScrapedPage
from ingestion.models.domain import Story, StoryEdit
from ingestion.utils.logging import get_logger
from llm.client.openai_client import LLMError, OpenAIClient

logger = get_logger(__name__)

# ~25k prompt tokens at ~4 chars/token
MAX_CHARS = 25000 * 4
METADATA_MAX_CHARS = 1000


class EnhancementError(Exception):
    """편집(enhancement) 실패. 해당 기사만 건너뛴다."""


class PageScraper(Protocol):
    def scrape_markdown(self, url: str) -> ScrapedPage: ...  # noqa: D401


class StoryEnhancer:
    def __init__(self, scraper: PageScraper, client: OpenAIClient, *, max_chars: int = MAX_CHARS) -> None:
        self._scraper = scraper
        self._client = client
        self._max_chars = max_chars

    def _scrape(self, story: Story) -> ScrapedPage:
        try:
            return self._scraper.scrape_markdown(story.link)
        except ConnectorError as exc:
            # enhance from headline/summary alone
            logger.warning("enhance.scrape_failed", extra={"link": story.link, "error": str(exc)})
            return ScrapedPage()

    def enhance(self, story: Story) -> StoryEdit:
        page = self._scrape(story)
        content = truncate_content(page.markdown, self._max_chars)
        metadata = json.dumps(page.metadata, ensure_ascii=False, default=str)[:METADATA_MAX_CHARS] if page.metadata else None
        messages = build_enhance_messages(
            story,
            content=content,
            metadata=metadata,
            template=select_template(story.source),
            truncated=content != page.markdown,
        )
        try:
            completion = self._client.complete_json(messages)
            enhanced = EnhancedContent.model_validate(completion.data)
        except (LLMError, ValidationError) as exc:
            raise EnhancementError(f"enhancement failed for {story.link}: {exc}") from exc

        images: List[str] = page.images()
        logger.info(
            "enhance.completed",
            extra={"link": story.link, "tags": len(enhanced.tags), "images": len(images), "cost": completion.cost},
        )
        return StoryEdit(
            headline=enhanced.headline,
            summary=enhanced.summary,
            body=enhanced.body,
            tags=enhanced.tags,
            images=images or None,
        )
