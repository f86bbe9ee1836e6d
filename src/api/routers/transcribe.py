"""Transcription endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..deps.auth import verify_credential
from ..schemas import TranscribeResponse
from ..services.provider import TranscriptionProvider, build_transcription_provider
from ..services.transcoder import AudioTranscoder
from ..services.transcription_gateway import TranscriptionGateway
from ..settings import APISettings, get_settings

router = APIRouter(prefix="/api", tags=["transcribe"])


def get_transcription_provider(
    settings: APISettings = Depends(get_settings),
) -> TranscriptionProvider:
    return build_transcription_provider(settings)


def get_transcoder(settings: APISettings = Depends(get_settings)) -> AudioTranscoder:
    return AudioTranscoder(settings.ffmpeg_path, settings.transcode_sample_rate)


def get_gateway(
    settings: APISettings = Depends(get_settings),
    provider: TranscriptionProvider = Depends(get_transcription_provider),
    transcoder: AudioTranscoder = Depends(get_transcoder),
) -> TranscriptionGateway:
    return TranscriptionGateway(settings, provider, transcoder)


@router.post("/transcribe", response_model=TranscribeResponse)
async def transcribe_segment(
    audio: UploadFile | None = File(None),
    credential: str | None = Form(None),
    session_id: str | None = Form(None),
    index: int | None = Form(None),
    encoding: str | None = Form(None),
    settings: APISettings = Depends(get_settings),
    gateway: TranscriptionGateway = Depends(get_gateway),
):
    verify_credential(settings, credential)
    payload = await audio.read() if audio is not None else None
    text = await gateway.transcribe(
        payload,
        filename=audio.filename if audio is not None else None,
        content_type=encoding or (audio.content_type if audio is not None else None),
        session_id=session_id,
        index=index,
    )
    return TranscribeResponse(text=text, session_id=session_id, index=index)
