from __future__ import annotations

from fastapi import APIRouter, Depends

from resonance import __version__
from resonance.api.deps import get_chat_service
from resonance.api.schemas import HealthResponse
from resonance.chat.service import ChatThreadService

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(service: ChatThreadService = Depends(get_chat_service)):  # noqa: B008
    return HealthResponse(version=__version__, any_running=service.is_any_running())
