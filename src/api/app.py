"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import GatewayError
from .metrics import instrument_app, router as metrics_router
from .routers import auth, summarize, transcribe
from .schemas import ErrorResponse, HealthResponse
from .services.transcoder import AudioTranscoder
from .settings import APISettings, get_settings

LOGGER = logging.getLogger("chunkscribe.api")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, version=settings.version)

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        if exc.status_code >= 500:
            LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc)
        body = ErrorResponse(error=exc.message, kind=exc.kind)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump())

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz(settings: APISettings = Depends(get_settings)) -> HealthResponse:
        transcoder = AudioTranscoder(settings.ffmpeg_path)
        if settings.whisper_mock_transcriber:
            provider = "mock"
        else:
            provider = "ok" if settings.openai_api_key else "missing_key"
        return HealthResponse(
            ok=True,
            provider=provider,
            transcoder="ok" if transcoder.available() else "missing",
        )

    app.include_router(auth.router)
    app.include_router(transcribe.router)
    app.include_router(summarize.router)
    app.include_router(metrics_router)
    return instrument_app(app)


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.host,
        port=settings.port,
        proxy_headers=settings.trust_proxy,
    )
