"""Summary endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps.auth import verify_credential
from ..schemas import SummarizeRequest, SummaryResponse
from ..services.provider import SummaryProvider, build_summary_provider
from ..services.summary_gateway import SummaryGateway
from ..settings import APISettings, get_settings

router = APIRouter(prefix="/api", tags=["summarize"])


def get_summary_provider(settings: APISettings = Depends(get_settings)) -> SummaryProvider:
    return build_summary_provider(settings)


@router.post("/summarize", response_model=SummaryResponse)
async def summarize_transcript(
    body: SummarizeRequest,
    settings: APISettings = Depends(get_settings),
    provider: SummaryProvider = Depends(get_summary_provider),
):
    verify_credential(settings, body.credential)
    summary = await SummaryGateway(settings, provider).summarize(body.transcript, body.prompt)
    return SummaryResponse(summary=summary)
