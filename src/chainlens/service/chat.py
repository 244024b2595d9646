"""Thin chat service - wires infrastructure around the SessionOrchestrator."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from ..config import Settings
from ..domain.conversation_cache import ConversationCacheEntry, DiversityPolicy
from ..domain.domain_type import CacheBackend
from ..domain.domain_value import Session, TurnResult
from ..domain.intent import IntentClassifier
from ..domain.orchestrator import OrchestratorSettings, SessionOrchestrator
from ..domain.persona import PersonaCatalog
from ..domain.ports import AnalyticsSink, LanguageModel, TTLStore, ToolProvider
from ..domain.tool_cache import ToolResultCache, ToolResultRecord
from ..domain.tool_catalog import ToolCatalog
from .analytics import EmbeddingSinkConfig, QdrantEmbeddingSink
from .llm import PydanticAILanguageModel
from .mcp import McpToolProvider
from .storage import MemoryStoreConfig, StorageService, VectorStoreConfig, create_storage_service
from .store import InMemoryTTLStore, RedisHealth, RedisTTLStore
from .sweeper import CacheSweeper

logger = logging.getLogger(__name__)


class CacheStats(BaseModel):
    """Point-in-time store sizes and tool cache counters."""

    backend: CacheBackend
    sessions: int
    conversations: int
    tool_results: int
    tool_hits: int
    tool_misses: int

    model_config = ConfigDict(frozen=True)


class ChatService:
    """
    Pure infrastructure wrapper - zero turn logic.

    Service responsibilities:
    1. Own the orchestrator and the stores it was built with
    2. Start/stop the background cache sweeper
    3. Close network clients on shutdown

    The SessionOrchestrator owns ALL turn-processing logic.
    """

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        *,
        backend: CacheBackend,
        sessions: TTLStore[Session],
        conversations: TTLStore[ConversationCacheEntry],
        tool_results: TTLStore[ToolResultRecord],
        sweeper: CacheSweeper | None = None,
        tools: McpToolProvider | None = None,
        storage: StorageService | None = None,
    ):
        self.orchestrator = orchestrator
        self.backend = backend
        self._sessions = sessions
        self._conversations = conversations
        self._tool_results = tool_results
        self._sweeper = sweeper
        self._tools = tools
        self._storage = storage

    def start(self) -> None:
        if self._sweeper is not None:
            self._sweeper.start()

    async def send(
        self,
        text: str,
        session_id: str | None = None,
        user_id: str | None = None,
        persona_id: str | None = None,
    ) -> TurnResult:
        """Process one user message; see ``SessionOrchestrator.process_turn``."""
        return await self.orchestrator.process_turn(text, session_id=session_id, user_id=user_id, persona_id=persona_id)

    async def get_session(self, session_id: str) -> Session | None:
        return await self.orchestrator.get_session(session_id)

    async def end_session(self, session_id: str) -> bool:
        return await self.orchestrator.end_session(session_id)

    async def stats(self) -> CacheStats:
        cache = self.orchestrator.tool_cache
        return CacheStats(
            backend=self.backend,
            sessions=await self._sessions.size(),
            conversations=await self._conversations.size(),
            tool_results=await self._tool_results.size(),
            tool_hits=cache.hits,
            tool_misses=cache.misses,
        )

    async def aclose(self) -> None:
        """Stop the sweeper, flush analytics, close clients."""
        if self._sweeper is not None:
            await self._sweeper.stop()
        await self.orchestrator.drain()
        if self._tools is not None:
            await self._tools.aclose()
        if self._storage is not None:
            await self._storage.close()


def _build_stores(
    settings: Settings, storage: StorageService
) -> tuple[TTLStore[Session], TTLStore[ConversationCacheEntry], TTLStore[ToolResultRecord]]:
    if settings.cache_backend is CacheBackend.REDIS:
        client = storage.get_memory_client()
        prefix = settings.cache_prefix
        health = RedisHealth()
        return (
            RedisTTLStore(client, prefix=f"{prefix}session:", model_type=Session, health=health),
            RedisTTLStore(client, prefix=f"{prefix}conversation:", model_type=ConversationCacheEntry, health=health),
            RedisTTLStore(client, prefix=f"{prefix}tool:", model_type=ToolResultRecord, health=health),
        )
    return (
        InMemoryTTLStore(max_entries=settings.session_capacity, shards=settings.cache_shards),
        InMemoryTTLStore(max_entries=settings.session_capacity, shards=settings.cache_shards),
        InMemoryTTLStore(max_entries=settings.tool_cache_capacity, shards=settings.cache_shards),
    )


def create_chat_service(
    settings: Settings,
    *,
    model: LanguageModel | None = None,
    tools: ToolProvider | None = None,
    sinks: Sequence[AnalyticsSink] | None = None,
) -> ChatService:
    """
    Factory function for creating ChatService.

    Service owns its own construction logic - main.py just calls this.
    ``model``, ``tools`` and ``sinks`` override the configured adapters
    (tests and alternative deployments).

    Args:
        settings: Application settings

    Returns:
        Configured ChatService; call ``start()`` inside a running event loop
    """
    storage = create_storage_service(
        MemoryStoreConfig(url=settings.redis_url, socket_timeout=settings.redis_socket_timeout),
        VectorStoreConfig(url=settings.qdrant_url, collection=settings.qdrant_collection),
    )
    sessions, conversations, tool_results = _build_stores(settings, storage)

    personas = PersonaCatalog.from_json_file(Path(settings.persona_catalog_path))

    mcp: McpToolProvider | None = None
    if tools is None:
        mcp = McpToolProvider(
            settings.mcp_server_url,
            local_catalog=ToolCatalog.from_json_file(Path(settings.tool_catalog_path)),
            timeout=settings.mcp_timeout,
            catalog_ttl=settings.mcp_catalog_ttl,
        )
        tools = mcp

    if model is None:
        model = PydanticAILanguageModel(
            settings.llm_model,
            temperature=settings.llm_temperature,
            max_tokens=settings.llm_max_tokens,
        )

    if sinks is None:
        sinks = []
        if settings.analytics_enabled:
            from ollama import AsyncClient as OllamaClient

            sinks.append(
                QdrantEmbeddingSink(
                    qdrant=storage.get_vector_client(),
                    embedder=OllamaClient(host=settings.ollama_base_url),
                    config=EmbeddingSinkConfig(
                        collection=settings.qdrant_collection,
                        embedding_model=settings.ollama_embedding_model,
                    ),
                )
            )

    orchestrator = SessionOrchestrator(
        model=model,
        tools=tools,
        personas=personas,
        sessions=sessions,
        conversations=conversations,
        tool_cache=ToolResultCache(
            tool_results,
            ttl_by_category=settings.tool_category_ttls,
            default_ttl=settings.tool_default_ttl,
        ),
        classifier=IntentClassifier(keywords=settings.intent_keywords, priority=settings.intent_priority),
        diversity=DiversityPolicy(
            core_tools=settings.core_tools,
            fallback_tools=settings.fallback_tools,
            min_diversity=settings.min_diversity,
            max_diversity=settings.max_diversity,
        ),
        sinks=sinks,
        settings=OrchestratorSettings(
            model_timeout=settings.llm_timeout,
            tool_timeout=settings.mcp_timeout,
            session_ttl=settings.session_ttl,
            history_limit=settings.history_limit,
            max_active_entities=settings.max_active_entities,
            max_tool_history=settings.max_tool_history,
            intent_shift_threshold=settings.intent_shift_threshold,
        ),
    )

    sweeper = CacheSweeper(
        {"sessions": sessions, "conversations": conversations, "tool_results": tool_results},
        interval_seconds=settings.sweep_interval_seconds,
    )
    logger.info(
        "Chat service ready: backend=%s model=%s analytics=%s",
        settings.cache_backend.value,
        settings.llm_model,
        bool(sinks),
    )
    return ChatService(
        orchestrator,
        backend=settings.cache_backend,
        sessions=sessions,
        conversations=conversations,
        tool_results=tool_results,
        sweeper=sweeper,
        tools=mcp,
        storage=storage,
    )


__all__ = ["CacheStats", "ChatService", "create_chat_service"]
