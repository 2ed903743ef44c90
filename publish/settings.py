"""Settings for the podcast/voice/notification stages."""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, PositiveInt, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PublishSettings(BaseSettings):
    """팟캐스트 생성/음성 합성/알림 설정."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    elevenlabs_api_key: Optional[SecretStr] = Field(None, alias="ELEVENLABS_API_KEY", description="ElevenLabs API 키")
    elevenlabs_voice_id: str = Field("nPczCjzI2devNBz1zQrb", alias="ELEVENLABS_VOICE_ID", description="TTS 음성 ID")
    elevenlabs_model_id: str = Field("eleven_multilingual_v2", alias="ELEVENLABS_MODEL_ID", description="TTS 모델 ID")
    elevenlabs_output_format: str = Field("mp3_44100_128", alias="ELEVENLABS_OUTPUT_FORMAT", description="오디오 포맷")
    elevenlabs_timeout_seconds: PositiveInt = Field(120, alias="ELEVENLABS_TIMEOUT_SECONDS", description="TTS 타임아웃(초)")

    r2_account_id: Optional[str] = Field(None, alias="R2_ACCOUNT_ID", description="Cloudflare 계정 ID")
    r2_access_key_id: Optional[str] = Field(None, alias="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[SecretStr] = Field(None, alias="R2_SECRET_ACCESS_KEY")
    r2_bucket_name: Optional[str] = Field(None, alias="R2_BUCKET_NAME")
    r2_public_url: Optional[str] = Field(None, alias="R2_PUBLIC_URL", description="업로드된 오디오의 공개 베이스 URL")

    slack_webhook_url: Optional[SecretStr] = Field(None, alias="SLACK_WEBHOOK_URL", description="팟캐스트 알림용 Slack 웹훅")
    slack_timeout_seconds: PositiveInt = Field(10, alias="SLACK_TIMEOUT_SECONDS")

    podcast_show_name: str = Field("Agentuity Daily", alias="PODCAST_SHOW_NAME", description="팟캐스트 이름")
    podcast_max_chars: PositiveInt = Field(8000, alias="PODCAST_MAX_CHARS", description="대본 최대 글자 수(TTS 한도)")
    podcast_lookback_hours: PositiveInt = Field(24, alias="PODCAST_LOOKBACK_HOURS", description="대본 대상 기사 기간(시간)")
    local_audio_dir: Optional[str] = Field(None, alias="LOCAL_AUDIO_DIR", description="설정 시 오디오를 로컬에도 저장")

    @field_validator("r2_public_url")
    @classmethod
    def _strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        s = v.strip().rstrip("/")
        return s or None

    @property
    def r2_configured(self) -> bool:
        return all(
            (
                self.r2_account_id,
                self.r2_access_key_id,
                self.r2_secret_access_key,
                self.r2_bucket_name,
                self.r2_public_url,
            )
        )


@lru_cache()
def get_publish_settings() -> PublishSettings:
    try:
        return PublishSettings()
    except ValidationError as exc:
        raise RuntimeError(f"Publish 설정 검증 실패: {exc}") from exc


def reset_publish_settings_cache() -> None:
    get_publish_settings.cache_clear()  # type: ignore[attr-defined]
