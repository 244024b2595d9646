"""
Shared test fixtures and fakes.

Environment strategy:
- All tests load .env.test (in-memory stores, no real infrastructure)
- The language model and tool provider are scripted fakes
"""

import asyncio
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import pytest
from dotenv import load_dotenv

ENV_FILE = Path(__file__).parent.parent / ".env.test"
load_dotenv(ENV_FILE, override=True)

from chainlens.domain import (  # noqa: E402
    ConversationCacheEntry,
    HistoryEntry,
    IntentClassifier,
    OrchestratorSettings,
    PersonaCatalog,
    Session,
    SessionId,
    SessionOrchestrator,
    ToolCatalog,
    ToolInvocation,
    ToolResultCache,
    ToolResultRecord,
)
from chainlens.service.store import InMemoryTTLStore  # noqa: E402

DOMAIN_DIR = Path(__file__).parent.parent / "src" / "chainlens" / "domain"

ADDRESS = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"
OTHER_ADDRESS = "0x8315177aB297bA92A06054cE80a67Ed4DBd7ed3a"
TX_HASH = "0x5c504ed432cb51138bcf09aa5e8a410dd4a1e204ef84bfed1be16dfba1b22060"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLanguageModel:
    """Scripted model: each call pops the next reply.

    A reply that is an exception instance is raised instead. A callable reply
    is invoked with (instructions, history, prompt).
    """

    def __init__(self, replies: Sequence[Any] = (), *, default: str = "Happy to help.", delay: float = 0.0) -> None:
        self.replies = list(replies)
        self.default = default
        self.delay = delay
        self.calls: list[tuple[str, tuple[HistoryEntry, ...], str]] = []

    async def complete(self, instructions: str, history: Sequence[HistoryEntry], prompt: str) -> str:
        self.calls.append((instructions, tuple(history), prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(instructions, history, prompt)
        return reply


class FakeToolProvider:
    """Tool provider returning canned results and counting calls."""

    def __init__(
        self,
        catalog: ToolCatalog,
        results: Mapping[str, Any] | None = None,
        *,
        delay: float = 0.0,
        errors: Mapping[str, Exception] | None = None,
        catalog_error: Exception | None = None,
    ) -> None:
        self.catalog = catalog
        self.results = dict(results or {})
        self.delay = delay
        self.errors = dict(errors or {})
        self.catalog_error = catalog_error
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def list_tools(self) -> ToolCatalog:
        if self.catalog_error is not None:
            raise self.catalog_error
        return self.catalog

    async def call_tool(self, name: str, arguments: Mapping[str, Any]) -> Any:
        self.calls.append((name, dict(arguments)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if name in self.errors:
            raise self.errors[name]
        result = self.results.get(name, {"ok": True})
        return result(arguments) if callable(result) else result


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[tuple[SessionId, ToolInvocation]] = []

    async def record(self, session_id: SessionId, invocation: ToolInvocation) -> None:
        self.records.append((session_id, invocation))


class FailingSink:
    async def record(self, session_id: SessionId, invocation: ToolInvocation) -> None:
        raise RuntimeError("analytics backend down")


@pytest.fixture
def catalog() -> ToolCatalog:
    """The packaged tool catalog."""
    return ToolCatalog.from_json_file(DOMAIN_DIR / "tool_catalog.json")


@pytest.fixture
def personas() -> PersonaCatalog:
    """The packaged persona catalog."""
    return PersonaCatalog.from_json_file(DOMAIN_DIR / "personas.json")


@pytest.fixture
def classifier() -> IntentClassifier:
    return IntentClassifier()


@pytest.fixture
def model() -> FakeLanguageModel:
    return FakeLanguageModel()


@pytest.fixture
def tools(catalog: ToolCatalog) -> FakeToolProvider:
    return FakeToolProvider(
        catalog,
        results={
            "getBalance": {"balance": "1500000000000000000", "formatted": "1.5"},
            "getGasPrice": {"gasPrice": "0.1"},
            "getTransaction": {"hash": TX_HASH, "status": "success"},
            "getTransactionHistory": {"transactions": [{"hash": TX_HASH}]},
        },
    )


@pytest.fixture
def build_orchestrator(
    personas: PersonaCatalog,
) -> Callable[..., SessionOrchestrator]:
    """Factory: orchestrator over fresh in-memory stores.

    Keyword overrides are passed straight to SessionOrchestrator.
    """

    def build(model: Any, tools: Any, **overrides: Any) -> SessionOrchestrator:
        sessions: InMemoryTTLStore[Session] = InMemoryTTLStore()
        conversations: InMemoryTTLStore[ConversationCacheEntry] = InMemoryTTLStore()
        tool_results: InMemoryTTLStore[ToolResultRecord] = InMemoryTTLStore()
        options: dict[str, Any] = {
            "model": model,
            "tools": tools,
            "personas": personas,
            "sessions": sessions,
            "conversations": conversations,
            "tool_cache": ToolResultCache(tool_results),
            "settings": OrchestratorSettings(model_timeout=1.0, tool_timeout=1.0),
        }
        options.update(overrides)
        return SessionOrchestrator(**options)

    return build


