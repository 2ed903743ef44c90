"""Domain records: research articles, stories and podcast transcripts.

All records are persisted as JSON (`model_dump_json`) and validated on the way
back in (`model_validate_json`). Datetimes are normalized to UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _strip_nonempty(value: str) -> str:
    s = value.strip()
    if not s:
        raise ValueError("빈 문자열은 허용되지 않습니다.")
    return s


class Article(BaseModel):
    """Raw scraped article (one research snapshot entry)."""

    model_config = ConfigDict(frozen=True)

    headline: str
    summary: str = ""
    link: str = Field(..., description="배치 내 식별자 역할을 하는 원문 URL")
    source: str = Field(..., description="스크랩한 소스 페이지 URL")
    date_found: datetime = Field(default_factory=utcnow)
    content: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    date_posted: Optional[str] = Field(default=None, description="소스가 표기한 게시일(형식 자유)")
    body: Optional[str] = None

    @field_validator("headline", "link", "source")
    @classmethod
    def _strip(cls, v: str) -> str:
        return _strip_nonempty(v)

    @field_validator("date_found")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class StoryInput(BaseModel):
    """Story fields supplied by the caller; the store assigns the id."""

    headline: str
    summary: str = ""
    link: str
    source: str
    date_added: datetime = Field(default_factory=utcnow)
    edited: bool = False
    published: bool = False
    date_published: Optional[datetime] = None
    body: Optional[str] = None
    tags: Optional[List[str]] = None
    images: Optional[List[str]] = None

    @field_validator("headline", "link", "source")
    @classmethod
    def _strip(cls, v: str) -> str:
        return _strip_nonempty(v)

    @field_validator("date_added", "date_published")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v) if v is not None else None

    @model_validator(mode="after")
    def _published_requires_edit(self):
        if self.published and (self.date_published is None or not self.edited):
            raise ValueError("published story must be edited and carry date_published")
        return self


class Story(StoryInput):
    """Durable story record, unique by link."""

    id: str

    @property
    def date_key(self) -> str:
        return self.date_added.date().isoformat()


class StoryEdit(BaseModel):
    """Enhancement fields applied by `StoryStore.mark_edited`."""

    body: str
    tags: List[str] = Field(default_factory=list)
    headline: Optional[str] = None
    summary: Optional[str] = None
    images: Optional[List[str]] = None


class TranscriptSegment(BaseModel):
    headline: str
    content: str
    transition: Optional[str] = None


class TranscriptDraft(BaseModel):
    """Transcript body produced by the script writer."""

    intro: str
    segments: List[TranscriptSegment] = Field(default_factory=list)
    outro: str

    def char_count(self) -> int:
        return len(self.model_dump_json())


class TranscriptStory(BaseModel):
    """Snapshot of a story covered by a transcript."""

    headline: str
    summary: str
    link: str
    date_published: Optional[datetime] = None


class PodcastTranscript(TranscriptDraft):
    stories: List[TranscriptStory] = Field(default_factory=list)
    date_created: datetime
    audio_url: Optional[str] = None

    @field_validator("date_created")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return _as_utc(v)

    @property
    def date_key(self) -> str:
        return self.date_created.date().isoformat()


class ResearchMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_updated: datetime = Field(..., alias="lastUpdated")
    source: str


class ResearchSnapshot(BaseModel):
    articles: List[Article] = Field(default_factory=list)
    metadata: ResearchMetadata
