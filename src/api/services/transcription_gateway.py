"""Turn one uploaded audio segment into text."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import shutil
import tempfile
from pathlib import Path
from typing import Awaitable, Callable

from ..errors import BadRequest, DecodeError, GatewayError, TransientProviderError
from ..metrics import PROVIDER_CALLS, TRANSCODE_FALLBACKS
from ..settings import APISettings
from .provider import TranscriptionProvider
from .transcoder import AudioTranscoder

LOGGER = logging.getLogger("chunkscribe.gateway")


class TranscriptionGateway:
    """Authenticated uploads in, recognized text out.

    The gateway is stateless and session-agnostic: ``session_id`` and ``index``
    only label log lines. Transient provider failures are retried with
    exponential backoff; a decode failure triggers exactly one ffmpeg
    transcode followed by exactly one more provider call.
    """

    def __init__(
        self,
        settings: APISettings,
        provider: TranscriptionProvider,
        transcoder: AudioTranscoder,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.provider = provider
        self.transcoder = transcoder
        self._sleep = sleep

    async def transcribe(
        self,
        payload: bytes | None,
        *,
        filename: str | None = None,
        content_type: str | None = None,
        session_id: str | None = None,
        index: int | None = None,
    ) -> str:
        label = f"{session_id or '-'}#{index if index is not None else '-'}"
        if not payload:
            raise BadRequest("Audio payload is missing or empty")
        if len(payload) < self.settings.min_payload_bytes:
            LOGGER.warning(
                "Segment %s is suspiciously small (%d bytes); forwarding anyway",
                label,
                len(payload),
            )

        content_type = content_type or "audio/wav"
        uploads = Path(self.settings.data_dir) / "uploads"
        uploads.mkdir(parents=True, exist_ok=True)
        tmp_dir = Path(tempfile.mkdtemp(prefix="segment_", dir=uploads))
        try:
            source = tmp_dir / _upload_name(filename, content_type)
            source.write_bytes(payload)
            try:
                return await self._call_with_retry(source, content_type, label)
            except DecodeError as exc:
                LOGGER.warning("Segment %s could not be decoded (%s); transcoding", label, exc)
                return await self._transcode_and_retry(source, label)
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    def retry_delay(self, attempt: int) -> float:
        base = self.settings.transcribe_retry_base_sec
        return min(self.settings.transcribe_retry_cap_sec, base * (2 ** (attempt - 1)))

    async def _call_with_retry(self, path: Path, content_type: str, label: str) -> str:
        attempts = max(1, self.settings.transcribe_max_attempts)
        attempt = 0
        while True:
            attempt += 1
            try:
                text = await self.provider.transcribe(path, content_type)
            except GatewayError as error:
                PROVIDER_CALLS.labels(outcome=error.kind).inc()
                if not isinstance(error, TransientProviderError):
                    raise
                if attempt >= attempts:
                    raise TransientProviderError(
                        f"provider still failing after {attempts} attempts: {error.message}",
                        rate_limited=error.rate_limited,
                    ) from error
                delay = self.retry_delay(attempt)
                LOGGER.warning(
                    "Segment %s transient failure (attempt %d/%d): %s; retrying in %.1fs",
                    label,
                    attempt,
                    attempts,
                    error,
                    delay,
                )
                await self._sleep(delay)
                continue
            PROVIDER_CALLS.labels(outcome="success").inc()
            LOGGER.info("Segment %s transcribed on attempt %d", label, attempt)
            return text

    async def _transcode_and_retry(self, source: Path, label: str) -> str:
        try:
            converted = await self.transcoder.transcode(source)
        except Exception:
            TRANSCODE_FALLBACKS.labels(status="transcode_failed").inc()
            raise
        try:
            text = await self.provider.transcribe(converted, "audio/wav")
        except GatewayError as error:
            TRANSCODE_FALLBACKS.labels(status="provider_failed").inc()
            LOGGER.error("Segment %s failed after transcoding: %s", label, error)
            raise
        TRANSCODE_FALLBACKS.labels(status="success").inc()
        LOGGER.info("Segment %s transcribed after transcoding", label)
        return text


def _upload_name(filename: str | None, content_type: str) -> str:
    name = Path(filename or "").name or "segment"
    if not Path(name).suffix:
        suffix = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ".wav"
        name = f"{name}{suffix}"
    return name
