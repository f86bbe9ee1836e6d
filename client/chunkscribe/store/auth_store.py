"""Process-wide credential cache."""

from __future__ import annotations

import threading
from typing import Optional


class AuthState:
    def __init__(self) -> None:
        self._credential: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def authenticated(self) -> bool:
        with self._lock:
            return self._credential is not None

    @property
    def credential(self) -> Optional[str]:
        with self._lock:
            return self._credential

    def set(self, credential: str) -> None:
        with self._lock:
            self._credential = credential

    def clear(self) -> None:
        with self._lock:
            self._credential = None
