"""Single-shot summary of a finished transcript."""

from __future__ import annotations

import logging

from ..errors import BadRequest, GatewayError
from ..metrics import SUMMARY_COUNTER
from ..settings import APISettings
from .provider import SummaryProvider

LOGGER = logging.getLogger("chunkscribe.summary")


class SummaryGateway:
    def __init__(self, settings: APISettings, provider: SummaryProvider) -> None:
        self.settings = settings
        self.provider = provider

    async def summarize(self, transcript: str, prompt: str | None = None) -> str:
        if not transcript or not transcript.strip():
            raise BadRequest("Transcript is empty")
        instruction = (prompt or "").strip() or self.settings.summary_prompt
        try:
            summary = await self.provider.complete(instruction, transcript)
        except GatewayError as error:
            SUMMARY_COUNTER.labels(status="error").inc()
            LOGGER.error("Summary request failed: %s", error)
            raise
        SUMMARY_COUNTER.labels(status="success").inc()
        return summary
