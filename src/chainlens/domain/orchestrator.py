"""Session Orchestrator - Turn Processing State Machine.

Ties the turn-processing components together and owns session lifecycle.
One call to ``process_turn`` handles one user message end to end.

Turn Flow:
    1. Resolve or start the session
    2. Load the tool catalog from the provider
    3. First turn: bootstrap cache entry, full prompt
       Later turn: update cache entry, diversity subset, compressed prompt
    4. Call the model with instructions + bounded history + user text
    5. Parse the reply for a tool directive
    6. Valid directive: memoized execution, fold result into cache entry,
       result-only follow-up call that replaces the first reply
    7. Record the exchange, persist session and cache entry
    8. Hand executed tools to analytics sinks in the background

No exception escapes ``process_turn`` for model, tool or directive
failures; those produce degraded replies with a FallbackLevel and
diagnostics.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .conversation_cache import (
    DEFAULT_INTENT_SHIFT_THRESHOLD,
    DEFAULT_MAX_ACTIVE_ENTITIES,
    DEFAULT_MAX_TOOL_HISTORY,
    ConversationCacheEntry,
    DiversityPolicy,
    ToolUsage,
    summarize_result,
)
from .domain_type import ErrorCategory, FallbackLevel, Intent
from .domain_value import (
    DEFAULT_HISTORY_LIMIT,
    SESSION_ID_MAX_LENGTH,
    HistoryEntry,
    Session,
    SessionId,
    ToolInvocation,
    TurnResult,
)
from .entities import extract_entities
from .errors import ModelUnavailableError, NoToolCallDetected, ToolExecutionError
from .fallback import FallbackResponder
from .intent import IntentClassifier
from .persona import Persona
from .ports import AnalyticsSink, LanguageModel, PersonaSource, TTLStore, ToolProvider
from .prompt import AssembledPrompt, PromptAssembler
from .tool_cache import ToolResultCache, cache_key
from .tool_call import InvalidDirective, ToolCall, ToolCallParser, ValidDirective, clean_reply
from .tool_catalog import ToolCatalog

logger = logging.getLogger(__name__)


class OrchestratorSettings(BaseModel):
    """Tunables for turn processing.

    Attributes:
        model_timeout: Seconds allowed per model call
        tool_timeout: Seconds allowed per tool provider call
        session_ttl: Inactivity TTL for sessions and their cache entries
        history_limit: Messages kept in session history
        max_active_entities: Bound on the active entity list
        max_tool_history: Bound on last_tools_used
        intent_shift_threshold: Same-category usages that shift the intent
    """

    model_timeout: float = Field(default=30.0, gt=0)
    tool_timeout: float = Field(default=30.0, gt=0)
    session_ttl: int = Field(default=3600, gt=0)
    history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=2)
    max_active_entities: int = Field(default=DEFAULT_MAX_ACTIVE_ENTITIES, ge=1)
    max_tool_history: int = Field(default=DEFAULT_MAX_TOOL_HISTORY, ge=1)
    intent_shift_threshold: int = Field(default=DEFAULT_INTENT_SHIFT_THRESHOLD, ge=1)

    model_config = ConfigDict(frozen=True)


def render_result(tool_name: str, value: Any) -> str:
    """Plain rendering of a raw tool result, used when the follow-up fails."""
    return f"Result from {tool_name}:\n{json.dumps(value, indent=2, default=str)}"


class SessionOrchestrator:
    """Turn-processing core.

    Stores are constructed once at start-up and passed in; the orchestrator
    itself holds no per-session state besides the set of pending analytics
    tasks. Concurrent turns on the same session are last-write-wins.
    """

    def __init__(
        self,
        *,
        model: LanguageModel,
        tools: ToolProvider,
        personas: PersonaSource,
        sessions: TTLStore[Session],
        conversations: TTLStore[ConversationCacheEntry],
        tool_cache: ToolResultCache,
        classifier: IntentClassifier | None = None,
        diversity: DiversityPolicy | None = None,
        assembler: PromptAssembler | None = None,
        parser: ToolCallParser | None = None,
        fallback: FallbackResponder | None = None,
        sinks: Sequence[AnalyticsSink] = (),
        settings: OrchestratorSettings | None = None,
    ) -> None:
        self._model = model
        self._tools = tools
        self._personas = personas
        self._sessions = sessions
        self._conversations = conversations
        self._tool_cache = tool_cache
        self._classifier = classifier or IntentClassifier()
        self._diversity = diversity or DiversityPolicy()
        self._assembler = assembler or PromptAssembler()
        self._parser = parser or ToolCallParser()
        self._fallback = fallback or FallbackResponder()
        self._sinks = tuple(sinks)
        self._settings = settings or OrchestratorSettings()
        self._background: set[asyncio.Task[None]] = set()

    @property
    def tool_cache(self) -> ToolResultCache:
        return self._tool_cache

    async def process_turn(
        self,
        text: str,
        session_id: str | None = None,
        user_id: str | None = None,
        persona_id: str | None = None,
    ) -> TurnResult:
        """Process One User Turn.

        Args:
            text: User message
            session_id: Existing session id; unknown or absent starts a new
                session (a supplied unknown id is kept)
            user_id: Owning user, anonymous when absent
            persona_id: Persona override; defaults to the session's persona

        Returns:
            TurnResult with the reply, executed tools and degradation level

        Example:
            >>> first = await orchestrator.process_turn("balance of 0x742d...f44e")
            >>> first.first_turn
            True
            >>> second = await orchestrator.process_turn("and gas?", session_id=first.session_id.root)
            >>> second.first_turn
            False
        """
        # === Step 1: Session ===
        session = await self._resolve_session(session_id, user_id)
        first_turn = session.is_first_turn
        diagnostics: list[str] = []

        # === Step 2: Catalog ===
        try:
            catalog = await self._tools.list_tools()
        except ToolExecutionError as exc:
            # Nothing has been persisted yet; the next turn retries from scratch
            logger.warning("Tool catalog unavailable for session %s: %s", session.id.root, exc)
            return TurnResult(
                session_id=session.id,
                reply=self._fallback.emergency(exc.category),
                fallback_level=FallbackLevel.EMERGENCY,
                first_turn=first_turn,
                diagnostics=(f"catalog_unavailable: {exc}",),
            )

        # === Step 3: Cache entry + prompt ===
        entry, prompt, persona = await self._prepare(session, text, persona_id, catalog, first_turn)

        # === Step 4: Model ===
        invocations: list[ToolInvocation] = []
        level = FallbackLevel.NONE
        try:
            raw = await self._complete(prompt.instructions, session.history, text)
        except ModelUnavailableError as exc:
            logger.warning("Model unavailable for session %s (%s): %s", session.id.root, exc.category, exc)
            diagnostics.append(f"model_unavailable: {exc.category.value}")
            reply = self._fallback.template(text)
            level = FallbackLevel.TEMPLATE
        else:
            # === Step 5: Directive ===
            parsed = self._parser.parse(raw, offered=prompt.offered_tools, catalog=catalog, aliases=entry.aliases)

            if isinstance(parsed, ValidDirective):
                # === Step 6: Tool ===
                reply, entry, invocation, level = await self._run_tool(
                    parsed.call, catalog, entry, persona, text, diagnostics
                )
                if invocation is not None:
                    invocations.append(invocation)
            elif isinstance(parsed, InvalidDirective):
                logger.warning(
                    "Discarded directive in session %s: %s (fragment=%r)",
                    session.id.root,
                    parsed.error,
                    parsed.fragment,
                )
                diagnostics.append(f"{type(parsed.error).__name__}: {parsed.error}")
                reply = parsed.prose
            else:
                reply = parsed.prose
                if self._expects_tool(text):
                    soft = NoToolCallDetected(f"No tool call for a data query (intent={entry.current_intent.value})")
                    logger.info("Session %s: %s", session.id.root, soft)
                    diagnostics.append(f"{type(soft).__name__}: {soft}")

            if not reply:
                reply = self._fallback.template(text)
                level = FallbackLevel.TEMPLATE

        # === Step 7: Persist ===
        session = session.record_exchange(text, reply, history_limit=self._settings.history_limit)
        await self._sessions.put(session.id.root, session, self._settings.session_ttl)
        await self._conversations.put(session.id.root, entry, self._settings.session_ttl)

        # === Step 8: Analytics ===
        for invocation in invocations:
            self._dispatch_analytics(session.id, invocation)

        return TurnResult(
            session_id=session.id,
            reply=reply,
            tools_invoked=tuple(invocations),
            fallback_level=level,
            first_turn=first_turn,
            diagnostics=tuple(diagnostics),
        )

    async def _resolve_session(self, session_id: str | None, user_id: str | None) -> Session:
        if session_id and len(session_id) > SESSION_ID_MAX_LENGTH:
            logger.warning(
                "Ignoring session id longer than %d characters, starting a new session", SESSION_ID_MAX_LENGTH
            )
            session_id = None
        if session_id:
            existing = await self._sessions.get(session_id)
            if existing is not None:
                return existing
        session = Session.start(session_id=session_id, user_id=user_id)
        logger.info("Started session %s", session.id.root)
        return session

    async def _prepare(
        self,
        session: Session,
        text: str,
        persona_id: str | None,
        catalog: ToolCatalog,
        first_turn: bool,
    ) -> tuple[ConversationCacheEntry, AssembledPrompt, Persona]:
        """Build (entry, prompt, persona) for this turn.

        ``first_turn`` alone picks full versus compressed semantics. A later
        turn whose cache entry has expired starts a fresh entry from the
        current text but still gets the compressed prompt.
        """
        key = session.id.root
        entry: ConversationCacheEntry | None = None
        if not first_turn:
            stored = await self._conversations.get(key)
            if stored is None:
                logger.info("Conversation cache for %s expired mid-session, restarting from current text", key)
            else:
                entry = stored.with_query(text, self._classifier, max_entities=self._settings.max_active_entities)

        if entry is None:
            entry = ConversationCacheEntry.bootstrap(
                session_id=key,
                user_id=session.user_id,
                persona_id=persona_id,
                text=text,
                classifier=self._classifier,
                max_entities=self._settings.max_active_entities,
            )
        elif persona_id and persona_id != entry.persona_id:
            entry = entry.model_copy(update={"persona_id": persona_id})

        persona = self._personas.get(entry.persona_id)

        if first_turn:
            prompt = self._assembler.full(catalog=catalog, persona=persona, entry=entry)
        else:
            offered = self._diversity.select(entry, catalog)
            prompt = self._assembler.compressed(catalog=catalog, persona=persona, entry=entry, offered=offered)

        logger.debug(
            "Session %s %s prompt: %d tools, ~%d tokens",
            key,
            prompt.mode.value,
            len(prompt.offered_tools),
            prompt.estimated_tokens,
        )
        return entry, prompt, persona

    async def _complete(self, instructions: str, history: Sequence[HistoryEntry], text: str) -> str:
        """Model call under the request-level timeout."""
        try:
            async with asyncio.timeout(self._settings.model_timeout):
                return await self._model.complete(instructions, history, text)
        except TimeoutError as exc:
            raise ModelUnavailableError(
                f"Model did not answer within {self._settings.model_timeout}s", ErrorCategory.TIMEOUT
            ) from exc

    async def _call_tool(self, call: ToolCall) -> Any:
        try:
            async with asyncio.timeout(self._settings.tool_timeout):
                return await self._tools.call_tool(call.name, call.arguments)
        except TimeoutError as exc:
            raise ToolExecutionError(
                call.name, f"timed out after {self._settings.tool_timeout}s", ErrorCategory.TIMEOUT
            ) from exc

    async def _run_tool(
        self,
        call: ToolCall,
        catalog: ToolCatalog,
        entry: ConversationCacheEntry,
        persona: Persona,
        text: str,
        diagnostics: list[str],
    ) -> tuple[str, ConversationCacheEntry, ToolInvocation | None, FallbackLevel]:
        """Execute (or reuse) a tool result and produce the follow-up reply."""
        category = catalog.category_of(call.name)
        try:
            value, cached = await self._tool_cache.get_or_execute(
                call.name, call.arguments, category, lambda: self._call_tool(call)
            )
        except ToolExecutionError as exc:
            logger.warning("Tool %s failed: %s", call.name, exc)
            diagnostics.append(f"tool_failed: {exc}")
            return self._fallback.tool_failure(call.name, exc.category), entry, None, FallbackLevel.EMERGENCY

        usage = ToolUsage(
            tool=call.name,
            category=category,
            args_hash=cache_key(call.name, call.arguments),
            result_summary=summarize_result(category, value),
        )
        entry = entry.with_tool_usage(
            usage,
            call.arguments,
            max_tools=self._settings.max_tool_history,
            max_entities=self._settings.max_active_entities,
            shift_threshold=self._settings.intent_shift_threshold,
        )
        invocation = ToolInvocation(name=call.name, arguments=call.arguments, result=value, cached=cached)

        instructions = self._assembler.follow_up(
            tool_name=call.name, arguments=call.arguments, result=value, persona=persona
        )
        try:
            reply = clean_reply(await self._complete(instructions, (), text))
        except ModelUnavailableError as exc:
            logger.warning("Follow-up for %s failed, returning raw result: %s", call.name, exc)
            diagnostics.append(f"follow_up_failed: {exc.category.value}")
            reply = ""
        if not reply:
            reply = render_result(call.name, value)
        return reply, entry, invocation, FallbackLevel.NONE

    def _expects_tool(self, text: str) -> bool:
        if extract_entities(text):
            return True
        return self._classifier.classify(text) is not Intent.GENERIC

    def _dispatch_analytics(self, session_id: SessionId, invocation: ToolInvocation) -> None:
        for sink in self._sinks:
            task = asyncio.create_task(self._record(sink, session_id, invocation))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    @staticmethod
    async def _record(sink: AnalyticsSink, session_id: SessionId, invocation: ToolInvocation) -> None:
        try:
            await sink.record(session_id, invocation)
        except Exception:
            logger.exception("Analytics sink %s failed for %s", type(sink).__name__, invocation.name)

    async def drain(self) -> None:
        """Wait for pending analytics tasks (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def end_session(self, session_id: str) -> bool:
        """Drop a session and its cache entry. Returns True if the session existed."""
        removed = await self._sessions.evict(session_id)
        await self._conversations.evict(session_id)
        return removed

    async def get_session(self, session_id: str) -> Session | None:
        return await self._sessions.get(session_id)


__all__ = ["OrchestratorSettings", "SessionOrchestrator", "render_result"]
