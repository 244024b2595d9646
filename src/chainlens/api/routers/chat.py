"""Chat API Router - thin HTTP layer over the session orchestrator."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...service import ChatService
from ..contracts import ChatRequest, ChatResponse, ToolUseResponse
from ..deps import get_chat_service

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("", response_model=ChatResponse)
async def send_message(
    request: ChatRequest,
    service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatResponse:
    """
    Process one user turn.

    Degraded turns (model, tool or catalog failures) still answer 200;
    ``fallback_level`` and ``diagnostics`` say what happened.
    """
    result = await service.send(
        request.text,
        session_id=request.session_id,
        user_id=request.user_id,
        persona_id=request.persona_id,
    )

    # Map to API contract
    return ChatResponse(
        session_id=result.session_id,
        reply=result.reply,
        tools_used=[
            ToolUseResponse(name=tool.name, arguments=dict(tool.arguments), cached=tool.cached)
            for tool in result.tools_invoked
        ],
        fallback_level=result.fallback_level,
        first_turn=result.first_turn,
        diagnostics=list(result.diagnostics),
    )
