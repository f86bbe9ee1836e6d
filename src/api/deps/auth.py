"""Credential checks shared by every protected route."""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header, Request

from ..errors import AuthError, ConfigError
from ..services.rate_limit import LoginRateLimiter
from ..settings import APISettings, get_settings

LOGGER = logging.getLogger("chunkscribe.auth")

_LIMITER: Optional[LoginRateLimiter] = None


def verify_credential(settings: APISettings, supplied: str | None) -> None:
    """Raise unless ``supplied`` matches the configured shared secret."""
    secret = settings.app_password
    if not secret:
        raise ConfigError("APP_PASSWORD is not configured on the server")
    if not supplied or not hmac.compare_digest(supplied.encode(), secret.encode()):
        raise AuthError("Invalid credential")


def get_login_limiter(settings: APISettings = Depends(get_settings)) -> LoginRateLimiter:
    global _LIMITER
    if _LIMITER is None:
        _LIMITER = LoginRateLimiter(settings.auth_rate_limit, settings.auth_rate_window_sec)
    return _LIMITER


def reset_auth_service_cache() -> None:
    global _LIMITER
    _LIMITER = None


def client_key(request: Request, settings: APISettings) -> str:
    if settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client:
        return request.client.host
    return "unknown"


async def get_api_key(
    x_api_key: str | None = Header(None),
    settings: APISettings = Depends(get_settings),
) -> str:
    verify_credential(settings, x_api_key)
    return x_api_key or ""
