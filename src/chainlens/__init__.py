"""Chainlens package exports."""

from .config import Settings, settings
from .domain import SessionOrchestrator, TurnResult
from .service import ChatService, create_chat_service

__all__ = [
    "ChatService",
    "SessionOrchestrator",
    "Settings",
    "TurnResult",
    "create_chat_service",
    "settings",
]
