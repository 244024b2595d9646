"""API dependency wiring."""

from fastapi import HTTPException, Request

from ..service import ChatService


def get_chat_service(request: Request) -> ChatService:
    """ChatService built by the application lifespan."""
    service: ChatService | None = getattr(request.app.state, "chat_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Chat service is not ready")
    return service
