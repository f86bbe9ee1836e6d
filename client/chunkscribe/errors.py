"""Client-side failure classes, ordered by how the delivery queue reacts."""

from __future__ import annotations


class ApiError(Exception):
    pass


class AuthError(ApiError):
    """The gateway rejected the credential; delivery halts until it is replaced."""


class PermanentError(ApiError):
    """The segment can never be transcribed; it is skipped with a placeholder."""


BadRequest = PermanentError


class TransientError(ApiError):
    """Worth retrying. Rate-limit errors retry without a ceiling."""

    def __init__(self, message: str, *, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.rate_limited = rate_limited


class NetworkTimeout(TransientError):
    pass


class DeviceError(Exception):
    """The audio input could not be acquired."""
