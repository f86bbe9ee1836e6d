"""Bounded activity log shown by the CLI."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime
from typing import Deque, List

LOGGER = logging.getLogger("chunkscribe.client")


class LogBuffer:
    def __init__(self, max_lines: int = 200) -> None:
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._lock = threading.Lock()

    def add(self, message: str, level: int = logging.INFO) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        with self._lock:
            self._lines.append(f"[{stamp}] {message}")
        LOGGER.log(level, message)

    def get(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def tail(self, count: int = 10) -> List[str]:
        return self.get()[-count:]
