"""Podcast voicing: text-to-speech (ElevenLabs) and upload (Cloudflare R2)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx

from ingestion.models.domain import PodcastTranscript
from ingestion.utils.logging import get_logger
from publish.settings import PublishSettings, get_publish_settings
from storage.podcast import PodcastStore

logger = get_logger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1/text-to-speech"
PODCAST_KEY_PREFIX = "podcasts"


class VoicingError(Exception):
    """음성 합성/업로드 실패."""


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str) -> bytes: ...  # noqa: D401


class AudioUploader(Protocol):
    def upload(self, filename: str, audio: bytes) -> str: ...  # noqa: D401


def format_transcript_for_voice(transcript: PodcastTranscript) -> str:
    """Flatten a transcript into the text read aloud.

    Segment transitions are dropped after the last segment.
    """
    parts = [f"{transcript.intro}\n\n"]
    last = len(transcript.segments) - 1
    for index, segment in enumerate(transcript.segments):
        parts.append(f"{segment.headline}\n")
        parts.append(f"{segment.content}\n")
        if segment.transition and index < last:
            parts.append(f"{segment.transition}\n\n")
    parts.append(transcript.outro)
    return "".join(parts)


def audio_filename(transcript: PodcastTranscript) -> str:
    return f"podcast-{transcript.date_key}.mp3"


class ElevenLabsSynthesizer:
    def __init__(
        self,
        api_key: str,
        *,
        voice_id: str,
        model_id: str = "eleven_multilingual_v2",
        output_format: str = "mp3_44100_128",
        timeout_seconds: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._voice_id = voice_id
        self._model_id = model_id
        self._output_format = output_format
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings: PublishSettings) -> "ElevenLabsSynthesizer":
        if settings.elevenlabs_api_key is None:
            raise VoicingError("ELEVENLABS_API_KEY가 설정되지 않았습니다.")
        return cls(
            settings.elevenlabs_api_key.get_secret_value(),
            voice_id=settings.elevenlabs_voice_id,
            model_id=settings.elevenlabs_model_id,
            output_format=settings.elevenlabs_output_format,
            timeout_seconds=float(settings.elevenlabs_timeout_seconds),
        )

    def synthesize(self, text: str) -> bytes:
        try:
            resp = httpx.post(
                f"{ELEVENLABS_API_URL}/{self._voice_id}",
                params={"output_format": self._output_format},
                headers={"xi-api-key": self._api_key},
                json={"text": text, "model_id": self._model_id},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise VoicingError(f"ElevenLabs 호출 오류: {exc}") from exc
        if resp.status_code >= 400:
            raise VoicingError(f"ElevenLabs API error: {resp.status_code} {resp.text[:256]}")
        return resp.content


class R2Uploader:
    """Uploads audio to an S3-compatible Cloudflare R2 bucket."""

    def __init__(self, client: Any, *, bucket: str, public_url: str) -> None:
        self._client = client
        self._bucket = bucket
        self._public_url = public_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: PublishSettings) -> "R2Uploader":
        if not settings.r2_configured:
            raise VoicingError("R2 설정(R2_ACCOUNT_ID/R2_ACCESS_KEY_ID/R2_SECRET_ACCESS_KEY/R2_BUCKET_NAME/R2_PUBLIC_URL)이 누락되었습니다.")
        import boto3

        assert settings.r2_secret_access_key is not None
        client = boto3.client(
            "s3",
            endpoint_url=f"https://{settings.r2_account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=settings.r2_access_key_id,
            aws_secret_access_key=settings.r2_secret_access_key.get_secret_value(),
            region_name="auto",
        )
        return cls(client, bucket=str(settings.r2_bucket_name), public_url=str(settings.r2_public_url))

    def upload(self, filename: str, audio: bytes) -> str:
        from botocore.exceptions import BotoCoreError, ClientError

        key = f"{PODCAST_KEY_PREFIX}/{filename}"
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=audio, ContentType="audio/mpeg")
        except (BotoCoreError, ClientError) as exc:
            raise VoicingError(f"Failed to upload to R2: {exc}") from exc
        logger.info("voice.uploaded", extra={"key": key, "bytes": len(audio)})
        return f"{self._public_url}/{key}"


@dataclass(frozen=True)
class VoiceResult:
    audio_url: str
    filename: Optional[str] = None
    created: bool = True


class PodcastVoice:
    def __init__(
        self,
        podcasts: PodcastStore,
        synthesizer: SpeechSynthesizer,
        uploader: AudioUploader,
        *,
        local_dir: Optional[str] = None,
    ) -> None:
        self._podcasts = podcasts
        self._synthesizer = synthesizer
        self._uploader = uploader
        self._local_dir = Path(local_dir) if local_dir else None

    @classmethod
    def from_settings(
        cls,
        podcasts: PodcastStore,
        settings: PublishSettings | None = None,
    ) -> "PodcastVoice":
        config = settings or get_publish_settings()
        return cls(
            podcasts,
            ElevenLabsSynthesizer.from_settings(config),
            R2Uploader.from_settings(config),
            local_dir=config.local_audio_dir,
        )

    def voice(self, transcript: Optional[PodcastTranscript] = None) -> VoiceResult:
        """Synthesize and host audio for ``transcript`` (default: today's).

        Raises VoicingError when there is no transcript or a collaborator fails.
        """
        transcript = transcript or self._podcasts.get_latest()
        if transcript is None:
            raise VoicingError("No transcript found")
        if transcript.audio_url:
            logger.info("voice.already_voiced", extra={"date_key": transcript.date_key})
            return VoiceResult(audio_url=transcript.audio_url, created=False)

        text = format_transcript_for_voice(transcript)
        logger.info("voice.synthesize", extra={"date_key": transcript.date_key, "chars": len(text)})
        audio = self._synthesizer.synthesize(text)
        filename = audio_filename(transcript)
        self._save_locally(filename, audio)
        audio_url = self._uploader.upload(filename, audio)
        self._podcasts.update_audio_url(transcript.date_created, audio_url)
        logger.info("voice.done", extra={"date_key": transcript.date_key, "audio_url": audio_url})
        return VoiceResult(audio_url=audio_url, filename=filename)

    def _save_locally(self, filename: str, audio: bytes) -> None:
        if self._local_dir is None:
            return
        path = self._local_dir / filename
        try:
            self._local_dir.mkdir(parents=True, exist_ok=True)
            path.write_bytes(audio)
        except OSError as exc:
            # local copy is optional; the upload still proceeds
            logger.warning("voice.local_save_failed", extra={"path": str(path), "error": str(exc)})
            return
        logger.info("voice.saved_locally", extra={"path": str(path)})

