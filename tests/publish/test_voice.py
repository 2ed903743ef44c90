from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from ingestion.models.domain import TranscriptDraft, TranscriptSegment
from publish.voice import ElevenLabsSynthesizer, PodcastVoice, R2Uploader, VoicingError, format_transcript_for_voice
from storage.podcast import PodcastStore


def _draft() -> TranscriptDraft:
    return TranscriptDraft(
        intro="Intro.",
        segments=[
            TranscriptSegment(headline="One", content="First.", transition="Meanwhile"),
            TranscriptSegment(headline="Two", content="Second.", transition="Dropped"),
        ],
        outro="Outro.",
    )


class FakeSynth:
    def __init__(self) -> None:
        self.texts: List[str] = []

    def synthesize(self, text: str) -> bytes:
        self.texts.append(text)
        return b"ID3audio"


class FakeUploader:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.uploads: List[str] = []

    def upload(self, filename: str, audio: bytes) -> str:
        if self.fail:
            raise VoicingError("Failed to upload to R2: denied")
        self.uploads.append(filename)
        return f"https://cdn.example/podcasts/{filename}"


def test_format_skips_transition_after_last_segment(backend, clock):
    transcript = PodcastStore(backend, clock=clock).save(_draft(), [])
    assert format_transcript_for_voice(transcript) == (
        "Intro.\n\nOne\nFirst.\nMeanwhile\n\nTwo\nSecond.\nOutro."
    )


def test_voice_synthesizes_uploads_and_attaches(backend, clock, tmp_path: Path):
    podcasts = PodcastStore(backend, clock=clock)
    podcasts.save(_draft(), [])
    synth, uploader = FakeSynth(), FakeUploader()

    result = PodcastVoice(podcasts, synth, uploader, local_dir=str(tmp_path)).voice()

    assert result.filename == "podcast-2025-03-10.mp3"
    assert result.audio_url == "https://cdn.example/podcasts/podcast-2025-03-10.mp3"
    assert podcasts.get_latest().audio_url == result.audio_url
    assert (tmp_path / "podcast-2025-03-10.mp3").read_bytes() == b"ID3audio"


def test_unwritable_local_dir_still_uploads(backend, clock, tmp_path: Path, caplog):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    podcasts = PodcastStore(backend, clock=clock)
    podcasts.save(_draft(), [])
    uploader = FakeUploader()

    with caplog.at_level("WARNING"):
        result = PodcastVoice(podcasts, FakeSynth(), uploader, local_dir=str(blocker / "audio")).voice()

    assert uploader.uploads == ["podcast-2025-03-10.mp3"]
    assert podcasts.get_latest().audio_url == result.audio_url
    assert any(r.getMessage() == "voice.local_save_failed" for r in caplog.records)


def test_voice_skips_when_audio_exists(backend, clock):
    podcasts = PodcastStore(backend, clock=clock)
    podcasts.save(_draft(), [])
    podcasts.update_audio_url(clock(), "https://cdn.example/podcasts/old.mp3")
    synth = FakeSynth()

    result = PodcastVoice(podcasts, synth, FakeUploader()).voice()

    assert not result.created
    assert result.audio_url == "https://cdn.example/podcasts/old.mp3"
    assert synth.texts == []


def test_upload_failure_leaves_transcript_without_audio(backend, clock):
    podcasts = PodcastStore(backend, clock=clock)
    podcasts.save(_draft(), [])
    with pytest.raises(VoicingError):
        PodcastVoice(podcasts, FakeSynth(), FakeUploader(fail=True)).voice()
    assert podcasts.get_latest().audio_url is None


def test_missing_transcript_raises(backend, clock):
    with pytest.raises(VoicingError):
        PodcastVoice(PodcastStore(backend, clock=clock), FakeSynth(), FakeUploader()).voice()


def test_elevenlabs_request_shape(httpx_mock):
    httpx_mock.add_response(
        method="POST",
        url="https://api.elevenlabs.io/v1/text-to-speech/voice-1?output_format=mp3_44100_128",
        content=b"mp3-bytes",
    )
    audio = ElevenLabsSynthesizer("xi-key", voice_id="voice-1").synthesize("hello")
    assert audio == b"mp3-bytes"
    request = httpx_mock.get_requests()[0]
    assert request.headers["xi-api-key"] == "xi-key"


def test_elevenlabs_error_is_voicing_error(httpx_mock):
    httpx_mock.add_response(method="POST", status_code=401, text="unauthorized")
    with pytest.raises(VoicingError):
        ElevenLabsSynthesizer("xi-key", voice_id="voice-1").synthesize("hello")


class FakeS3:
    def __init__(self) -> None:
        self.calls: List[dict] = []

    def put_object(self, **kwargs):
        self.calls.append(kwargs)
        return {}


def test_r2_uploader_puts_under_podcasts_prefix():
    pytest.importorskip("botocore")
    s3 = FakeS3()
    url = R2Uploader(s3, bucket="audio", public_url="https://cdn.example/").upload("podcast-2025-03-10.mp3", b"x")
    assert url == "https://cdn.example/podcasts/podcast-2025-03-10.mp3"
    assert s3.calls[0]["Key"] == "podcasts/podcast-2025-03-10.mp3"
    assert s3.calls[0]["ContentType"] == "audio/mpeg"
