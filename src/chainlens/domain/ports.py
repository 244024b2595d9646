"""Ports - the collaborators the turn-processing core depends on.

Adapters live in ``chainlens.service``; tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, TypeVar

from .domain_value import HistoryEntry, SessionId, ToolInvocation
from .persona import Persona
from .tool_catalog import ToolCatalog

T = TypeVar("T")


class LanguageModel(Protocol):
    async def complete(self, instructions: str, history: Sequence[HistoryEntry], prompt: str) -> str:
        """Return the model's free-text reply.

        Raises:
            ModelUnavailableError: Provider unreachable, misconfigured or failed
        """
        ...


class ToolProvider(Protocol):
    async def list_tools(self) -> ToolCatalog: ...

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> Any:
        """Execute one tool.

        Raises:
            ToolExecutionError: Transport failure or tool-reported error
        """
        ...


class PersonaSource(Protocol):
    def get(self, persona_id: str | None) -> Persona: ...


class AnalyticsSink(Protocol):
    async def record(self, session_id: SessionId, invocation: ToolInvocation) -> None: ...


class TTLStore(Protocol[T]):
    """Key/value store with per-entry expiry shared by every cache layer."""

    async def get(self, key: str) -> T | None: ...

    async def put(self, key: str, value: T, ttl_seconds: int) -> None: ...

    async def evict(self, key: str) -> bool: ...

    async def evict_expired(self) -> int: ...

    async def size(self) -> int: ...


__all__ = ["AnalyticsSink", "LanguageModel", "PersonaSource", "TTLStore", "ToolProvider"]
