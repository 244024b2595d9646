# src/chainlens/api/contracts/chat.py
"""Chat API contracts - use domain types directly."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from ...domain.domain_type import FallbackLevel
from ...domain.domain_value import SESSION_ID_MAX_LENGTH, SessionId


class ChatRequest(BaseModel):
    """One user turn."""

    text: str = Field(
        min_length=1,
        max_length=10_000,
        description="User message",
        examples=["What's the balance of 0x742d35Cc6634C0532925a3b844Bc454e4438f44e?"],
    )
    session_id: str | None = Field(
        default=None,
        max_length=SESSION_ID_MAX_LENGTH,
        description="Existing session to continue, or None to start new",
        examples=["session_3fa85f645717"],
    )
    user_id: str | None = Field(
        default=None,
        description="Owning user; anonymous when omitted",
    )
    persona_id: str | None = Field(
        default=None,
        description="Persona override (default, alice, bob, charlie)",
        examples=["alice"],
    )


class ToolUseResponse(BaseModel):
    """A tool executed during the turn."""

    name: str
    arguments: dict[str, Any]
    cached: bool = Field(description="Served from the tool result cache")


class ChatResponse(BaseModel):
    """Reply to a user turn."""

    session_id: SessionId = Field(description="Session ID for subsequent requests")
    reply: str = Field(description="Assistant reply text")
    tools_used: list[ToolUseResponse] = Field(default_factory=list)
    fallback_level: FallbackLevel
    first_turn: bool
    diagnostics: list[str] = Field(default_factory=list)
