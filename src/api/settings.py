"""API settings resolved from the environment."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel, Field

DEFAULT_SUMMARY_PROMPT = (
    "Summarize the transcript in proper SOAP note format: "
    "Subjective, Objective, Assessment, Plan."
)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


class APISettings(BaseModel):
    app_name: str = Field(default="chunkscribe gateway")
    version: str = Field(default="1.0.0")
    host: str = Field(default=os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default=int(os.getenv("PORT", "3000")))
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    data_dir: str = Field(default=os.getenv("DATA_DIR", "data"))
    app_password: str | None = Field(default=os.getenv("APP_PASSWORD"))
    trust_proxy: bool = Field(default=_env_flag("TRUST_PROXY"))
    auth_rate_limit: int = Field(default=int(os.getenv("AUTH_RATE_LIMIT", "5")))
    auth_rate_window_sec: float = Field(
        default=float(os.getenv("AUTH_RATE_WINDOW_SEC", "900"))
    )
    openai_api_key: str | None = Field(default=os.getenv("OPENAI_API_KEY"))
    openai_transcribe_model: str = Field(
        default=os.getenv("OPENAI_TRANSCRIBE_MODEL", "whisper-1")
    )
    openai_summary_model: str = Field(
        default=os.getenv("OPENAI_SUMMARY_MODEL", "gpt-4o-mini")
    )
    provider_timeout_sec: float = Field(
        default=float(os.getenv("PROVIDER_TIMEOUT_SEC", "120"))
    )
    transcribe_max_attempts: int = Field(
        default=int(os.getenv("TRANSCRIBE_MAX_ATTEMPTS", "3"))
    )
    transcribe_retry_base_sec: float = Field(
        default=float(os.getenv("TRANSCRIBE_RETRY_BASE_SEC", "1.0"))
    )
    transcribe_retry_cap_sec: float = Field(
        default=float(os.getenv("TRANSCRIBE_RETRY_CAP_SEC", "8.0"))
    )
    min_payload_bytes: int = Field(default=int(os.getenv("MIN_PAYLOAD_BYTES", "1024")))
    ffmpeg_path: str = Field(default=os.getenv("FFMPEG_PATH", "ffmpeg"))
    transcode_sample_rate: int = Field(
        default=int(os.getenv("TRANSCODE_SAMPLE_RATE", "16000"))
    )
    summary_prompt: str = Field(
        default=os.getenv("SUMMARY_PROMPT", DEFAULT_SUMMARY_PROMPT)
    )
    whisper_mock_transcriber: bool = Field(default=_env_flag("WHISPER_USE_MOCK"))


@lru_cache()
def get_settings() -> APISettings:
    return APISettings()
