"""Configuration models for the research/filter pipeline."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, List, Optional

from pydantic import (
    Field,
    NonNegativeFloat,
    PositiveInt,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RESEARCH_SOURCES: List[str] = [
    "https://news.ycombinator.com/",
    "https://techcrunch.com/latest/",
    "https://openai.com/news/",
    "https://www.anthropic.com/news",
    "https://aisecret.us/",
    "https://www.theneurondaily.com/",
]


class Settings(BaseSettings):
    """파이프라인 환경 설정."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    redis_url: str = Field(..., alias="REDIS_URL", description="스토어 및 Celery 브로커/백엔드 Redis DSN.")
    store_key_prefix: str = Field("newsdesk", alias="STORE_KEY_PREFIX", description="스토어 키 접두사.")
    firecrawl_api_key: Optional[SecretStr] = Field(None, alias="FIRECRAWL_API_KEY", description="Firecrawl 인증 키.")
    firecrawl_endpoint: str = Field(
        "https://api.firecrawl.dev/v1",
        alias="FIRECRAWL_ENDPOINT",
        description="Firecrawl API 베이스 URL",
    )
    firecrawl_timeout_seconds: PositiveInt = Field(120, alias="FIRECRAWL_TIMEOUT_SECONDS", description="Firecrawl 타임아웃(초)")
    research_sources: List[str] = Field(
        default_factory=lambda: list(DEFAULT_RESEARCH_SOURCES),
        alias="RESEARCH_SOURCES",
        description="JSON 배열 형태의 기본 스크랩 대상 URL.",
    )
    research_ttl_days: PositiveInt = Field(14, alias="RESEARCH_TTL_DAYS", description="리서치 스냅샷 보관 기간(일).")
    filter_relevance_threshold: NonNegativeFloat = Field(
        0.6,
        alias="FILTER_RELEVANCE_THRESHOLD",
        description="관련성 신뢰도가 이 값보다 작으면 탈락.",
    )
    filter_similarity_threshold: NonNegativeFloat = Field(
        0.6,
        alias="FILTER_SIMILARITY_THRESHOLD",
        description="유사(중복) 신뢰도가 이 값보다 크면 탈락.",
    )
    filter_corpus_days: PositiveInt = Field(14, alias="FILTER_CORPUS_DAYS", description="유사도 비교 대상 기간(일).")
    filter_corpus_limit: PositiveInt = Field(50, alias="FILTER_CORPUS_LIMIT", description="유사도 비교 대상 최대 기사 수.")
    editor_max_stories: PositiveInt = Field(10, alias="EDITOR_MAX_STORIES", description="한 번에 편집할 최대 기사 수.")
    editor_delay_seconds: NonNegativeFloat = Field(1.0, alias="EDITOR_DELAY_SECONDS", description="기사 간 대기(초).")
    pipeline_schedule_hour_utc: int = Field(
        6,
        alias="PIPELINE_SCHEDULE_HOUR_UTC",
        ge=0,
        le=23,
        description="일일 파이프라인 실행 시각(UTC).",
    )
    structlog_level: str = Field("INFO", alias="STRUCTLOG_LEVEL", description="구조화 로그 레벨.")
    log_json: bool = Field(False, alias="LOG_JSON", description="로그를 JSON 형식으로 출력할지 여부.")
    celery_worker_concurrency: PositiveInt = Field(
        1,
        alias="CELERY_WORKER_CONCURRENCY",
        description="Celery 워커 동시 실행 수 (기본 1: 파이프라인 실행 직렬화).",
    )
    celery_task_soft_time_limit: PositiveInt = Field(
        1800,
        alias="CELERY_TASK_SOFT_TIME_LIMIT",
        description="Celery 태스크 소프트 타임아웃 (초).",
    )

    @field_validator("research_sources", mode="before")
    @classmethod
    def _parse_research_sources(cls, value: Any) -> List[Any]:
        if value in (None, ""):
            return list(DEFAULT_RESEARCH_SOURCES)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except json.JSONDecodeError as exc:
                raise ValueError("RESEARCH_SOURCES는 JSON 배열이어야 합니다.") from exc
            return parsed
        if isinstance(value, list):
            return value
        raise ValueError("RESEARCH_SOURCES는 리스트 형태여야 합니다.")

    @field_validator("research_sources")
    @classmethod
    def _validate_sources(cls, value: List[str]) -> List[str]:
        cleaned: List[str] = []
        for source in value:
            s = source.strip()
            if not s.startswith(("http://", "https://")):
                raise ValueError(f"RESEARCH_SOURCES 항목은 http(s) URL이어야 합니다: {source}")
            if s not in cleaned:
                cleaned.append(s)
        return cleaned

    @field_validator("filter_relevance_threshold", "filter_similarity_threshold")
    @classmethod
    def _validate_threshold(cls, v: float) -> float:
        if v > 1.0:
            raise ValueError("임계값은 0.0~1.0 범위여야 합니다.")
        return v

    @field_validator("redis_url")
    @classmethod
    def _validate_redis_url(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError("REDIS_URL은 유효한 DSN 문자열이어야 합니다.")
        return value


@lru_cache()
def get_settings() -> Settings:
    """환경 변수를 기준으로 Settings 인스턴스를 반환한다."""
    try:
        return Settings()
    except ValidationError as exc:
        raise RuntimeError(f"환경 변수 검증에 실패했습니다: {exc}") from exc


def reset_settings_cache() -> None:
    """Settings LRU 캐시를 초기화한다 (테스트 용도)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
