"""HTTP client helpers for the chunkscribe gateway."""

from __future__ import annotations

from typing import Optional

import httpx

from ..audio.types import Segment
from ..errors import ApiError, AuthError, NetworkTimeout, PermanentError, TransientError

PERMANENT_STATUSES = {400, 404, 413, 415, 422}
PERMANENT_KINDS = {"decode", "provider", "bad_request", "transcoder"}


def _error_body(resp: httpx.Response) -> tuple[str, str]:
    try:
        data = resp.json()
    except ValueError:
        return "", resp.text[-200:]
    if not isinstance(data, dict):
        return "", str(data)[-200:]
    return str(data.get("kind") or ""), str(data.get("error") or data)[-200:]


def classify_response(resp: httpx.Response) -> ApiError:
    """Map a non-2xx gateway response onto the client error taxonomy."""
    status = resp.status_code
    kind, message = _error_body(resp)
    detail = f"{status} {message}".strip()
    if status == 401:
        return AuthError(f"Unauthorized: {message or 'credential rejected'}")
    if status == 429:
        return TransientError(f"Rate limited: {detail}", rate_limited=True)
    if status in PERMANENT_STATUSES:
        return PermanentError(detail)
    if status == 408 or status >= 500:
        if kind in PERMANENT_KINDS:
            return PermanentError(detail)
        return TransientError(detail, rate_limited=kind == "rate_limited")
    return PermanentError(detail)


class ApiClient:
    def __init__(
        self,
        server_url: str,
        *,
        timeout: float = 120.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.server_url = server_url
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def _url(self, path: str) -> str:
        base = self.server_url.rstrip("/")
        if not base:
            raise ApiError("Server URL missing")
        return f"{base}{path}"

    def _post(self, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.post(self._url(path), **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkTimeout(f"Request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Network error: {exc}") from exc

    def authenticate(self, credential: str) -> bool:
        resp = self._post("/api/authenticate", json={"credential": credential})
        if resp.status_code == 200:
            return bool(resp.json().get("success"))
        error = classify_response(resp)
        if isinstance(error, AuthError):
            return False
        raise error

    def transcribe_segment(self, segment: Segment, credential: str) -> str:
        files = {"audio": (segment.filename, segment.payload, segment.encoding)}
        data = {
            "credential": credential,
            "session_id": segment.session_id,
            "index": str(segment.index),
            "encoding": segment.encoding,
        }
        resp = self._post("/api/transcribe", files=files, data=data)
        if resp.status_code != 200:
            raise classify_response(resp)
        try:
            return str(resp.json().get("text", ""))
        except ValueError as exc:
            raise TransientError(f"Invalid response: {exc}") from exc

    def summarize(self, transcript: str, credential: str, prompt: str | None = None) -> str:
        payload = {"transcript": transcript, "credential": credential}
        if prompt:
            payload["prompt"] = prompt
        resp = self._post("/api/summarize", json=payload)
        if resp.status_code != 200:
            raise classify_response(resp)
        return str(resp.json().get("summary", ""))

    def close(self) -> None:
        self._client.close()
