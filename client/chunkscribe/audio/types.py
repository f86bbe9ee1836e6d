"""Dataclasses shared across audio helpers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class RecordingSession:
    """One continuous recording; scopes segment indices and queue contents."""

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    active: bool = True


@dataclass(frozen=True, slots=True)
class Segment:
    """One fixed-duration slice of captured audio."""

    session_id: str
    index: int
    payload: bytes
    encoding: str = "audio/wav"
    captured_at: datetime = field(default_factory=_utcnow)
    duration_s: float = 0.0

    @property
    def filename(self) -> str:
        suffix = {"audio/flac": "flac", "audio/ogg": "ogg", "audio/mpeg": "mp3"}.get(self.encoding, "wav")
        return f"segment_{self.index:05d}.{suffix}"
