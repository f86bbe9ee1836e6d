"""Credential check endpoint used by the client before recording."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from ..deps.auth import client_key, get_login_limiter, verify_credential
from ..errors import BadRequest, RateLimited
from ..schemas import AuthenticateRequest, AuthenticateResponse
from ..services.rate_limit import LoginRateLimiter
from ..settings import APISettings, get_settings

LOGGER = logging.getLogger("chunkscribe.auth")

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/authenticate", response_model=AuthenticateResponse)
async def authenticate(
    body: AuthenticateRequest,
    request: Request,
    settings: APISettings = Depends(get_settings),
    limiter: LoginRateLimiter = Depends(get_login_limiter),
):
    key = client_key(request, settings)
    if not limiter.hit(key):
        LOGGER.warning("Too many credential attempts from %s", key)
        raise RateLimited("Too many attempts, try again later")
    if not body.credential:
        raise BadRequest("Credential is required")
    verify_credential(settings, body.credential)
    return AuthenticateResponse(success=True)
