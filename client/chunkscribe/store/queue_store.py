"""Session-scoped FIFO of segments awaiting delivery."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..audio.types import Segment


class SegmentState(str, Enum):
    pending = "pending"
    in_flight = "in_flight"
    awaiting_backoff = "awaiting_backoff"
    done = "done"
    failed = "failed"


@dataclass(slots=True)
class QueueEntry:
    segment: Segment
    attempt: int = 0
    last_error: Optional[str] = None
    state: SegmentState = SegmentState.pending

    @property
    def index(self) -> int:
        return self.segment.index

    @property
    def session_id(self) -> str:
        return self.segment.session_id


class SegmentQueue:
    """Thread-safe FIFO; capture appends while the worker peeks and removes."""

    def __init__(self) -> None:
        self._data: List[QueueEntry] = []
        self._lock = threading.Lock()

    def append(self, segment: Segment) -> QueueEntry:
        entry = QueueEntry(segment)
        with self._lock:
            self._data.append(entry)
        return entry

    def peek(self) -> Optional[QueueEntry]:
        with self._lock:
            return self._data[0] if self._data else None

    def remove(self, entry: QueueEntry) -> bool:
        with self._lock:
            for position, item in enumerate(self._data):
                if item is entry:
                    del self._data[position]
                    return True
        return False

    def list(self) -> List[QueueEntry]:
        with self._lock:
            return list(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
