"""Gateway error taxonomy.

Every error carries the HTTP status it maps to and a ``kind`` string that the
capture client uses to decide between retrying, skipping the segment, or
asking for a new credential.
"""

from __future__ import annotations


class GatewayError(Exception):
    status_code = 500
    kind = "provider"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthError(GatewayError):
    status_code = 401
    kind = "auth"


class ConfigError(GatewayError):
    status_code = 500
    kind = "config"


class TranscoderUnavailable(ConfigError):
    """ffmpeg is missing; no retry of the same segment can succeed."""

    kind = "transcoder"


class BadRequest(GatewayError):
    status_code = 400
    kind = "bad_request"


class RateLimited(GatewayError):
    status_code = 429
    kind = "rate_limited"


class ProviderError(GatewayError):
    """Permanent provider failure: retrying the same payload will not help."""

    status_code = 500
    kind = "provider"


class DecodeError(ProviderError):
    kind = "decode"


class TransientProviderError(GatewayError):
    status_code = 500
    kind = "transient"

    def __init__(self, message: str, *, rate_limited: bool = False) -> None:
        super().__init__(message)
        self.rate_limited = rate_limited
        if rate_limited:
            self.kind = "rate_limited"
