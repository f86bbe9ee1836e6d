"""In-memory ordered transcript for the active recording session."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True, slots=True)
class TranscriptFragment:
    index: int
    text: str
    placeholder: bool = False


class TranscriptStore:
    """Append-only log of segment results keyed by index.

    Callers append in increasing index order; the delivery queue guarantees it.
    """

    def __init__(self) -> None:
        self._fragments: List[TranscriptFragment] = []
        self._lock = threading.Lock()

    def append(self, index: int, text: str) -> None:
        with self._lock:
            self._fragments.append(TranscriptFragment(index, text.strip()))

    def append_placeholder(self, index: int, error: str) -> None:
        marker = f"[segment {index} unavailable: {error}]"
        with self._lock:
            self._fragments.append(TranscriptFragment(index, marker, placeholder=True))

    def fragments(self) -> List[TranscriptFragment]:
        with self._lock:
            return list(self._fragments)

    @property
    def text(self) -> str:
        return " ".join(fragment.text for fragment in self.fragments() if fragment.text)

    def clear(self) -> None:
        with self._lock:
            self._fragments = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._fragments)


__all__ = ["TranscriptFragment", "TranscriptStore"]
