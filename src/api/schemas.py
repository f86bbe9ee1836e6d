"""Pydantic schemas for API contracts."""

from __future__ import annotations

from pydantic import BaseModel, Field


class AuthenticateRequest(BaseModel):
    credential: str | None = None


class AuthenticateResponse(BaseModel):
    success: bool = True


class TranscribeResponse(BaseModel):
    text: str
    session_id: str | None = None
    index: int | None = None


class SummarizeRequest(BaseModel):
    transcript: str = ""
    credential: str | None = None
    prompt: str | None = Field(default=None)


class SummaryResponse(BaseModel):
    summary: str


class ErrorResponse(BaseModel):
    error: str
    kind: str


class HealthResponse(BaseModel):
    ok: bool
    provider: str
    transcoder: str
