"""Settings for the OpenAI-backed classification/editing/script stages."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, PositiveFloat, PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Environment-driven configuration for LLM calls."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    openai_api_key: str = Field(..., alias="OPENAI_API_KEY", description="OpenAI API key")
    llm_model: str = Field("gpt-4o", alias="LLM_MODEL", description="OpenAI model name")
    llm_max_tokens: PositiveInt = Field(2048, alias="LLM_MAX_TOKENS", description="Max completion tokens")
    llm_temperature: PositiveFloat = Field(0.3, alias="LLM_TEMPERATURE", description="Sampling temperature")
    llm_cost_limit_usd: PositiveFloat = Field(0.5, alias="LLM_COST_LIMIT_USD", description="Per-request cost cap (USD)")
    llm_request_timeout_seconds: PositiveInt = Field(
        60,
        alias="LLM_REQUEST_TIMEOUT_SECONDS",
        description="HTTP request timeout in seconds",
    )
    llm_retry_max_attempts: PositiveInt = Field(2, alias="LLM_RETRY_MAX_ATTEMPTS", description="Max retry attempts")

    @field_validator("openai_api_key")
    @classmethod
    def _non_empty_api_key(cls, v: str) -> str:
        s = v.strip()
        if not s:
            raise ValueError("OPENAI_API_KEY는 공백일 수 없습니다.")
        return s


@lru_cache()
def get_llm_settings() -> LLMSettings:
    try:
        return LLMSettings()
    except ValidationError as exc:
        raise RuntimeError(f"LLM 설정 검증 실패: {exc}") from exc


def reset_llm_settings_cache() -> None:
    get_llm_settings.cache_clear()  # type: ignore[attr-defined]
