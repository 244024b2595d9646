"""Cache inspection router."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...service import ChatService
from ..contracts import CacheStatsResponse, SessionEndedResponse
from ..deps import get_chat_service

router = APIRouter(prefix="/cache", tags=["cache"])


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> CacheStatsResponse:
    """Store sizes and tool cache hit/miss counters."""
    stats = await service.stats()
    return CacheStatsResponse.model_validate(stats.model_dump())


@router.delete("/sessions/{session_id}", response_model=SessionEndedResponse)
async def end_session(
    session_id: str,
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> SessionEndedResponse:
    """Drop a session and its conversation cache entry."""
    removed = await service.end_session(session_id)
    return SessionEndedResponse(session_id=session_id, removed=removed)
