"""Client configuration resolved from ``CHUNKSCRIBE_*`` environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env(name: str, default: str) -> str:
    return os.getenv(f"CHUNKSCRIBE_{name}", default)


@dataclass(slots=True)
class ClientConfig:
    server_url: str = "http://127.0.0.1:3000"
    segment_seconds: float = 60.0
    sample_rate: int = 16000
    channels: int = 1
    container: str = "WAV"
    request_timeout: float = 120.0
    backoff_base: float = 1.0
    backoff_cap: float = 60.0
    max_attempts: int = 5
    log_history: int = 200

    @classmethod
    def from_env(cls) -> "ClientConfig":
        base = cls()
        return cls(
            server_url=_env("SERVER_URL", base.server_url),
            segment_seconds=float(_env("SEGMENT_SECONDS", str(base.segment_seconds))),
            sample_rate=int(_env("SAMPLE_RATE", str(base.sample_rate))),
            channels=int(_env("CHANNELS", str(base.channels))),
            container=_env("CONTAINER", base.container).upper(),
            request_timeout=float(_env("REQUEST_TIMEOUT", str(base.request_timeout))),
            backoff_base=float(_env("BACKOFF_BASE", str(base.backoff_base))),
            backoff_cap=float(_env("BACKOFF_CAP", str(base.backoff_cap))),
            max_attempts=int(_env("MAX_ATTEMPTS", str(base.max_attempts))),
            log_history=int(_env("LOG_HISTORY", str(base.log_history))),
        )


CONFIG = ClientConfig.from_env()
