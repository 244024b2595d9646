"""Identity Layer - Sessions, History and Turn Results.

This module provides the value objects that flow through a turn: the session
identity and its bounded history, the record of a tool invocation, and the
result handed back to callers.

Architecture:
    - Identity: SessionId (RootModel wrapper around the external string id)
    - State: Session (history, turn counter, activity timestamps)
    - Output: ToolInvocation, TurnResult

All models are frozen; updates return new instances via model_copy so a
session loaded by one request is never mutated under another.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, RootModel

from .domain_type import ChatRole, FallbackLevel

ANONYMOUS_USER = "anonymous"
DEFAULT_HISTORY_LIMIT = 10
SESSION_ID_MAX_LENGTH = 200


def _new_session_id() -> str:
    return f"session_{uuid4().hex}"


class SessionId(RootModel[str]):
    """Unique Identifier for Chat Sessions.

    Callers may supply their own id (idempotent create); otherwise one is
    generated. Used as the key in every session-scoped store.

    Usage:
        >>> sid = SessionId()
        >>> sid.root.startswith("session_")
        True
    """

    root: str = Field(default_factory=_new_session_id, min_length=1, max_length=SESSION_ID_MAX_LENGTH)
    model_config = ConfigDict(frozen=True)


class HistoryEntry(BaseModel):
    """One message in a session's bounded history."""

    role: ChatRole
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class Session(BaseModel):
    """Chat Session State.

    Attributes:
        id: Session identity
        user_id: Owning user or the anonymous marker
        created_at: Creation time
        last_activity: Time of the last completed exchange
        turn_count: Advances by 2 per exchange (user + assistant)
        history: Last N messages, oldest first

    The first-turn condition is ``turn_count == 0`` and nothing else; it holds
    exactly once, between creation and the first recorded exchange.
    """

    id: SessionId
    user_id: str = ANONYMOUS_USER
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = Field(default_factory=lambda: datetime.now(UTC))
    turn_count: int = Field(default=0, ge=0)
    history: tuple[HistoryEntry, ...] = ()

    model_config = ConfigDict(frozen=True)

    @classmethod
    def start(cls, *, session_id: str | None = None, user_id: str | None = None) -> Session:
        """Factory: new session with an optional caller-supplied id."""
        sid = SessionId(session_id) if session_id else SessionId()
        return cls(id=sid, user_id=user_id or ANONYMOUS_USER)

    @property
    def is_first_turn(self) -> bool:
        return self.turn_count == 0

    def record_exchange(
        self,
        user_text: str,
        reply: str,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        now: datetime | None = None,
    ) -> Session:
        """Append a user/assistant pair and advance the turn counter by 2."""
        stamp = now or datetime.now(UTC)
        entries = (
            *self.history,
            HistoryEntry(role=ChatRole.USER, content=user_text, timestamp=stamp),
            HistoryEntry(role=ChatRole.ASSISTANT, content=reply, timestamp=stamp),
        )
        return self.model_copy(
            update={
                "history": entries[-history_limit:],
                "last_activity": stamp,
                "turn_count": self.turn_count + 2,
            }
        )


class ToolInvocation(BaseModel):
    """A tool actually executed (or served from cache) during a turn.

    Arguments are post-alias-resolution: they carry full addresses and hashes,
    never session aliases.
    """

    name: str
    arguments: dict[str, Any]
    result: Any = None
    cached: bool = False

    model_config = ConfigDict(frozen=True)


class TurnResult(BaseModel):
    """Everything a caller learns from one processed turn."""

    session_id: SessionId
    reply: str
    tools_invoked: tuple[ToolInvocation, ...] = ()
    fallback_level: FallbackLevel = FallbackLevel.NONE
    first_turn: bool = False
    diagnostics: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True)


__all__ = [
    "ANONYMOUS_USER",
    "DEFAULT_HISTORY_LIMIT",
    "SESSION_ID_MAX_LENGTH",
    "HistoryEntry",
    "Session",
    "SessionId",
    "ToolInvocation",
    "TurnResult",
]
