"""OpenAI-backed transcription and summary providers + mock fallback."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from ..errors import (
    ConfigError,
    DecodeError,
    GatewayError,
    ProviderError,
    TransientProviderError,
)
from ..settings import APISettings

LOGGER = logging.getLogger("chunkscribe.provider")

TRANSIENT_STATUSES = {408, 409, 423, 429}
DECODE_MARKERS = (
    "could not be decoded",
    "invalid file format",
    "format is not supported",
    "unsupported file",
    "unrecognized file format",
)


class TranscriptionProvider(Protocol):
    async def transcribe(self, path: Path, content_type: str) -> str: ...


class SummaryProvider(Protocol):
    async def complete(self, instruction: str, transcript: str) -> str: ...


def classify_status(status_code: int, message: str) -> GatewayError:
    """Map a provider HTTP status (and message) onto the gateway taxonomy."""
    lowered = (message or "").lower()
    if status_code == 429:
        return TransientProviderError(f"provider rate limited: {message}", rate_limited=True)
    if status_code in TRANSIENT_STATUSES or status_code >= 500:
        return TransientProviderError(f"provider unavailable ({status_code}): {message}")
    if status_code in {401, 403}:
        return ConfigError(f"provider rejected the configured API key ({status_code})")
    if status_code == 400 and any(marker in lowered for marker in DECODE_MARKERS):
        return DecodeError(f"provider could not decode audio: {message}")
    return ProviderError(f"provider error ({status_code}): {message}")


def classify_exception(exc: Exception) -> GatewayError:
    if isinstance(exc, GatewayError):
        return exc
    if isinstance(exc, openai.APITimeoutError):
        return TransientProviderError("provider request timed out")
    if isinstance(exc, openai.APIConnectionError):
        return TransientProviderError(f"provider connection failed: {exc}")
    if isinstance(exc, openai.APIStatusError):
        return classify_status(exc.status_code, exc.message)
    return ProviderError(str(exc))


class _OpenAIBase:
    def __init__(self, settings: APISettings) -> None:
        self.settings = settings
        self._client: Optional[AsyncOpenAI] = None

    def client(self) -> AsyncOpenAI:
        if not self.settings.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is not configured on the server")
        if self._client is None:
            # The gateway owns retry policy; disable the SDK's own retries.
            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.provider_timeout_sec,
                max_retries=0,
            )
        return self._client


class OpenAITranscriptionProvider(_OpenAIBase):
    async def transcribe(self, path: Path, content_type: str) -> str:
        client = self.client()
        try:
            with path.open("rb") as handle:
                transcript = await client.audio.transcriptions.create(
                    model=self.settings.openai_transcribe_model,
                    file=(path.name, handle, content_type),
                )
        except Exception as exc:
            raise classify_exception(exc) from exc
        return (transcript.text or "").strip()


class OpenAISummaryProvider(_OpenAIBase):
    async def complete(self, instruction: str, transcript: str) -> str:
        client = self.client()
        try:
            response = await client.chat.completions.create(
                model=self.settings.openai_summary_model,
                messages=[
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": transcript},
                ],
            )
        except Exception as exc:
            raise classify_exception(exc) from exc
        return response.choices[0].message.content or ""


class MockTranscriptionProvider:
    async def transcribe(self, path: Path, content_type: str) -> str:
        return f"[mock transcript {path.stat().st_size} bytes]"


class MockSummaryProvider:
    async def complete(self, instruction: str, transcript: str) -> str:
        return f"[mock summary of {len(transcript.split())} words]"


def build_transcription_provider(settings: APISettings) -> TranscriptionProvider:
    if settings.whisper_mock_transcriber:
        LOGGER.warning(
            "Transcription mock mode enabled (set WHISPER_USE_MOCK=0 and "
            "OPENAI_API_KEY to enable real transcription)."
        )
        return MockTranscriptionProvider()
    return OpenAITranscriptionProvider(settings)


def build_summary_provider(settings: APISettings) -> SummaryProvider:
    if settings.whisper_mock_transcriber:
        return MockSummaryProvider()
    return OpenAISummaryProvider(settings)
