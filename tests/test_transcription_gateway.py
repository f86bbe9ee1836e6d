from pathlib import Path

import pytest

from src.api.errors import (
    BadRequest,
    DecodeError,
    ProviderError,
    TranscoderUnavailable,
    TransientProviderError,
)
from src.api.services.transcription_gateway import TranscriptionGateway, _upload_name
from src.api.settings import APISettings


class ScriptedProvider:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def transcribe(self, path: Path, content_type: str) -> str:
        self.calls.append((path, content_type, path.read_bytes()))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeTranscoder:
    def __init__(self, fail: Exception | None = None):
        self.fail = fail
        self.sources = []

    async def transcode(self, source: Path) -> Path:
        self.sources.append(source)
        if self.fail:
            raise self.fail
        target = source.with_name(f"{source.stem}.transcoded.wav")
        target.write_bytes(b"RIFF-canonical")
        return target


def _make_gateway(tmp_path: Path, provider, transcoder=None, **overrides):
    values = dict(
        data_dir=str(tmp_path),
        transcribe_max_attempts=3,
        transcribe_retry_base_sec=1.0,
        transcribe_retry_cap_sec=8.0,
    )
    values.update(overrides)
    delays = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    gateway = TranscriptionGateway(
        APISettings(**values),
        provider,
        transcoder or FakeTranscoder(),
        sleep=fake_sleep,
    )
    return gateway, delays


def _uploads_empty(tmp_path: Path) -> bool:
    return list((tmp_path / "uploads").iterdir()) == []


@pytest.mark.asyncio
async def test_success_returns_text_and_cleans_up(tmp_path):
    provider = ScriptedProvider("hello world")
    gateway, delays = _make_gateway(tmp_path, provider)
    text = await gateway.transcribe(
        b"x" * 4096, filename="segment_00000.wav", content_type="audio/wav", session_id="s", index=0
    )
    assert text == "hello world"
    assert delays == []
    assert provider.calls[0][0].name == "segment_00000.wav"
    assert _uploads_empty(tmp_path)


@pytest.mark.asyncio
async def test_empty_payload_is_bad_request(tmp_path):
    gateway, _ = _make_gateway(tmp_path, ScriptedProvider())
    with pytest.raises(BadRequest):
        await gateway.transcribe(b"", filename="a.wav")
    with pytest.raises(BadRequest):
        await gateway.transcribe(None)


@pytest.mark.asyncio
async def test_small_payload_is_forwarded_with_warning(tmp_path, caplog):
    provider = ScriptedProvider("tiny")
    gateway, _ = _make_gateway(tmp_path, provider, min_payload_bytes=1024)
    with caplog.at_level("WARNING", logger="chunkscribe.gateway"):
        assert await gateway.transcribe(b"abc", filename="a.wav") == "tiny"
    assert "suspiciously small" in caplog.text


@pytest.mark.asyncio
async def test_transient_failures_retry_with_exponential_backoff(tmp_path):
    provider = ScriptedProvider(
        TransientProviderError("provider unavailable (503)"),
        TransientProviderError("provider unavailable (502)"),
        "recovered",
    )
    gateway, delays = _make_gateway(tmp_path, provider)
    assert await gateway.transcribe(b"x" * 2048, filename="a.wav") == "recovered"
    assert delays == [1.0, 2.0]
    assert len(provider.calls) == 3


@pytest.mark.asyncio
async def test_transient_failures_are_bounded(tmp_path):
    provider = ScriptedProvider(*[TransientProviderError("timeout") for _ in range(5)])
    gateway, delays = _make_gateway(tmp_path, provider)
    with pytest.raises(TransientProviderError) as info:
        await gateway.transcribe(b"x" * 2048, filename="a.wav")
    assert "after 3 attempts" in str(info.value)
    assert info.value.rate_limited is False
    assert len(provider.calls) == 3
    assert delays == [1.0, 2.0]
    assert _uploads_empty(tmp_path)


@pytest.mark.asyncio
async def test_single_attempt_budget_raises_chained_error(tmp_path):
    last = TransientProviderError("429 slow down", rate_limited=True)
    provider = ScriptedProvider(last)
    gateway, delays = _make_gateway(tmp_path, provider, transcribe_max_attempts=1)
    with pytest.raises(TransientProviderError) as info:
        await gateway.transcribe(b"x" * 2048, filename="a.wav")
    assert "after 1 attempts: 429 slow down" in str(info.value)
    assert info.value.rate_limited is True
    assert info.value.__cause__ is last
    assert delays == []


def test_retry_delay_is_capped(tmp_path):
    gateway, _ = _make_gateway(tmp_path, ScriptedProvider())
    assert [gateway.retry_delay(n) for n in (1, 2, 3, 4, 5)] == [1.0, 2.0, 4.0, 8.0, 8.0]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried(tmp_path):
    provider = ScriptedProvider(ProviderError("provider error (400): bad model"))
    gateway, delays = _make_gateway(tmp_path, provider)
    with pytest.raises(ProviderError):
        await gateway.transcribe(b"x" * 2048, filename="a.wav")
    assert len(provider.calls) == 1
    assert delays == []


@pytest.mark.asyncio
async def test_decode_failure_transcodes_once_and_retries_once(tmp_path):
    provider = ScriptedProvider(DecodeError("could not be decoded"), "transcoded text")
    transcoder = FakeTranscoder()
    gateway, _ = _make_gateway(tmp_path, provider, transcoder)
    text = await gateway.transcribe(b"webm-bytes" * 300, filename="segment.webm", content_type="audio/webm")
    assert text == "transcoded text"
    assert len(transcoder.sources) == 1
    assert len(provider.calls) == 2
    converted_path, content_type, data = provider.calls[1]
    assert converted_path.name == "segment.transcoded.wav"
    assert content_type == "audio/wav"
    assert data == b"RIFF-canonical"
    assert _uploads_empty(tmp_path)


@pytest.mark.asyncio
async def test_decode_failure_after_transcoding_is_permanent(tmp_path):
    provider = ScriptedProvider(DecodeError("could not be decoded"), DecodeError("still bad"))
    transcoder = FakeTranscoder()
    gateway, _ = _make_gateway(tmp_path, provider, transcoder)
    with pytest.raises(DecodeError):
        await gateway.transcribe(b"x" * 2048, filename="a.ogg", content_type="audio/ogg")
    assert len(transcoder.sources) == 1
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_missing_transcoder_is_actionable(tmp_path):
    provider = ScriptedProvider(DecodeError("could not be decoded"))
    transcoder = FakeTranscoder(fail=TranscoderUnavailable("install ffmpeg or set FFMPEG_PATH"))
    gateway, _ = _make_gateway(tmp_path, provider, transcoder)
    with pytest.raises(TranscoderUnavailable) as info:
        await gateway.transcribe(b"x" * 2048, filename="a.ogg")
    assert "FFMPEG_PATH" in str(info.value)
    assert _uploads_empty(tmp_path)


@pytest.mark.asyncio
async def test_unexpected_errors_still_clean_up(tmp_path):
    provider = ScriptedProvider(RuntimeError("boom"))
    gateway, _ = _make_gateway(tmp_path, provider)
    with pytest.raises(RuntimeError):
        await gateway.transcribe(b"x" * 2048, filename="a.wav")
    assert _uploads_empty(tmp_path)


def test_upload_name_keeps_extension_or_derives_one():
    assert _upload_name("../../etc/segment_00001.flac", "audio/flac") == "segment_00001.flac"
    assert _upload_name(None, "audio/wav").startswith("segment.")
    assert _upload_name("blob", "audio/wav") in {"blob.wav", "blob.wave"}
