"""Conversation Cache - Compressed Carry-Forward State per Session.

One ConversationCacheEntry exists per live session. It replaces replaying
the full history on later turns: the compressed prompt is built from this
entry, not from raw messages.

Architecture:
    ConversationCacheEntry
    ├─ current_intent: Intent (refined each turn, shifted by tool usage)
    ├─ active_entities: bounded ordered set of ActiveEntity
    ├─ aliases: AliasTable (never shrinks)
    └─ last_tools_used: bounded list of ToolUsage

    DiversityPolicy
    └─ select(entry, catalog) → offered tool names for this turn

The diversity set is computed fresh on every turn and never stored, so a
change to the catalog or policy takes effect immediately.
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .domain_type import EntityKind, Intent, ToolCategory
from .entities import ActiveEntity, AliasTable, entities_from_arguments, extract_entities
from .errors import ConfigurationError
from .intent import IntentClassifier
from .tool_catalog import ToolCatalog

DEFAULT_MAX_ACTIVE_ENTITIES = 8
DEFAULT_MAX_TOOL_HISTORY = 3
DEFAULT_INTENT_SHIFT_THRESHOLD = 2

SUMMARY_TRUNCATE_CHARS = 50

CATEGORY_INTENTS: dict[ToolCategory, Intent] = {
    ToolCategory.GAS: Intent.GAS_ANALYSIS,
    ToolCategory.BALANCE: Intent.BALANCE_CHECK,
    ToolCategory.TRANSACTION: Intent.TRANSACTION_LOOKUP,
    ToolCategory.HISTORY: Intent.TRANSACTION_LOOKUP,
    ToolCategory.TOKEN: Intent.TOKEN_ANALYSIS,
    ToolCategory.TRANSFER: Intent.TOKEN_ANALYSIS,
    ToolCategory.CONTRACT: Intent.CONTRACT_ANALYSIS,
}


def estimate_tokens(text: str) -> int:
    """Rough token count: four tokens per three words."""
    return math.ceil(len(text.split()) * 4 / 3)


def _first_present(result: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if result.get(key) is not None:
            return result[key]
    return None


def summarize_result(category: ToolCategory, result: Any) -> str:
    """Compact one-line rendering of a tool result for the cache summary."""
    if category is ToolCategory.GAS:
        value = _first_present(result, ("gasPrice", "gwei", "ProposeGasPrice")) if isinstance(result, Mapping) else None
        return f"{value if value is not None else result} gwei"
    if category is ToolCategory.BALANCE:
        value = _first_present(result, ("formatted", "balance", "ether")) if isinstance(result, Mapping) else None
        return f"{value if value is not None else result} ETH"
    if category is ToolCategory.HISTORY:
        if isinstance(result, Mapping):
            result = _first_present(result, ("transactions", "result")) or []
        count = len(result) if isinstance(result, (list, tuple)) else 0
        return f"{count} transactions"

    rendered = json.dumps(result, default=str, sort_keys=True)
    if len(rendered) > SUMMARY_TRUNCATE_CHARS:
        return rendered[:SUMMARY_TRUNCATE_CHARS] + "..."
    return rendered


class ToolUsage(BaseModel):
    """Record of one executed tool, kept in the bounded recency list."""

    tool: str
    category: ToolCategory = ToolCategory.GENERAL
    args_hash: str
    result_summary: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)


class ConversationCacheEntry(BaseModel):
    """Per-session compressed conversation state.

    Attributes:
        session_id: Owning session
        user_id: Owning user or the anonymous marker
        persona_id: Persona the session was started with
        current_intent: Closed-set intent, drives category promotion
        active_entities: Most recent entities, oldest first, bounded
        aliases: Every alias issued in this session
        last_tools_used: Most recent executions, oldest first, bounded
        summary: Compressed text rendered into later-turn prompts
        estimated_tokens: Token estimate of ``summary``
        updated_at: Last modification time

    Every ``with_*`` method returns a new entry; the stored one is never
    mutated in place.
    """

    session_id: str
    user_id: str
    persona_id: str | None = None
    current_intent: Intent = Intent.GENERIC
    active_entities: tuple[ActiveEntity, ...] = ()
    aliases: AliasTable = AliasTable()
    last_tools_used: tuple[ToolUsage, ...] = ()
    summary: str = ""
    estimated_tokens: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = ConfigDict(frozen=True)

    @classmethod
    def bootstrap(
        cls,
        *,
        session_id: str,
        user_id: str,
        persona_id: str | None,
        text: str,
        classifier: IntentClassifier,
        max_entities: int = DEFAULT_MAX_ACTIVE_ENTITIES,
    ) -> ConversationCacheEntry:
        """First-turn construction from raw user text."""
        entry = cls(
            session_id=session_id,
            user_id=user_id,
            persona_id=persona_id,
            current_intent=classifier.classify(text),
        )
        return entry.with_entities(extract_entities(text), max_entities=max_entities)._refreshed()

    @property
    def entity_kinds(self) -> frozenset[EntityKind]:
        return frozenset(entity.kind for entity in self.active_entities)

    def with_query(
        self,
        text: str,
        classifier: IntentClassifier,
        *,
        max_entities: int = DEFAULT_MAX_ACTIVE_ENTITIES,
    ) -> ConversationCacheEntry:
        """Fold a later-turn query in: new entities, aliases, intent refinement."""
        updated = self.model_copy(update={"current_intent": classifier.refine(self.current_intent, text)})
        return updated.with_entities(extract_entities(text), max_entities=max_entities)._refreshed()

    def with_entities(
        self,
        found: Iterable[tuple[str, EntityKind]],
        *,
        max_entities: int = DEFAULT_MAX_ACTIVE_ENTITIES,
    ) -> ConversationCacheEntry:
        """Alias and activate entities; a re-mentioned entity moves to the end."""
        aliases = self.aliases
        active = list(self.active_entities)
        for value, kind in found:
            aliases, alias = aliases.assign(value, kind)
            existing = next((e for e in active if e.alias == alias), None)
            if existing is not None:
                active.remove(existing)
            else:
                existing = ActiveEntity(value=aliases.resolve(alias), kind=EntityKind(alias.rstrip("0123456789")), alias=alias)
            active.append(existing)
        return self.model_copy(update={"aliases": aliases, "active_entities": tuple(active[-max_entities:])})

    def with_tool_usage(
        self,
        usage: ToolUsage,
        arguments: Mapping[str, Any],
        *,
        max_tools: int = DEFAULT_MAX_TOOL_HISTORY,
        max_entities: int = DEFAULT_MAX_ACTIVE_ENTITIES,
        shift_threshold: int = DEFAULT_INTENT_SHIFT_THRESHOLD,
    ) -> ConversationCacheEntry:
        """Fold an executed tool in.

        Appends to the bounded recency list, activates entities from the
        resolved arguments, and shifts the intent once ``shift_threshold`` of
        the tracked usages share the new usage's category.
        """
        recent = (*self.last_tools_used, usage)[-max_tools:]
        intent = self.current_intent
        same_category = sum(1 for u in recent if u.category is usage.category)
        shifted = CATEGORY_INTENTS.get(usage.category)
        if shifted is not None and same_category >= shift_threshold:
            intent = shifted

        updated = self.model_copy(update={"last_tools_used": recent, "current_intent": intent})
        return updated.with_entities(entities_from_arguments(arguments), max_entities=max_entities)._refreshed()

    def render_summary(self) -> str:
        parts = [f"Intent: {self.current_intent.value}"]
        if self.persona_id:
            parts.append(f"Persona: {self.persona_id}")
        if self.active_entities:
            parts.append(f"Entities: {', '.join(entity.alias for entity in self.active_entities)}")
        if self.last_tools_used:
            last = self.last_tools_used[-1]
            parts.append(f"Last: {last.tool} → {last.result_summary}")
        return " | ".join(parts)

    def _refreshed(self) -> ConversationCacheEntry:
        summary = self.render_summary()
        return self.model_copy(
            update={
                "summary": summary,
                "estimated_tokens": estimate_tokens(summary),
                "updated_at": datetime.now(UTC),
            }
        )


DEFAULT_CORE_TOOLS: tuple[str, ...] = ("getBalance", "getGasPrice", "getTransaction", "getTransactionHistory")

DEFAULT_FALLBACK_TOOLS: tuple[str, ...] = (
    "getBalance",
    "getGasPrice",
    "getTransaction",
    "getTransactionHistory",
    "getTokenInfo",
    "getGasOracle",
    "getLatestBlock",
    "getMultiBalance",
    "getERC20Transfers",
    "getBlock",
    "validateAddress",
    "getAddressType",
)

DEFAULT_INTENT_CATEGORIES: dict[Intent, tuple[ToolCategory, ...]] = {
    Intent.BALANCE_CHECK: (ToolCategory.BALANCE,),
    Intent.GAS_ANALYSIS: (ToolCategory.GAS,),
    Intent.TOKEN_ANALYSIS: (ToolCategory.TOKEN, ToolCategory.TRANSFER),
    Intent.TRANSACTION_LOOKUP: (ToolCategory.TRANSACTION, ToolCategory.HISTORY),
    Intent.CONTRACT_ANALYSIS: (ToolCategory.CONTRACT, ToolCategory.ADDRESS),
    Intent.DEFI_ANALYSIS: (ToolCategory.TOKEN, ToolCategory.TRANSFER, ToolCategory.BALANCE),
    Intent.GENERIC: (ToolCategory.BLOCK,),
}

DEFAULT_ENTITY_CATEGORIES: dict[EntityKind, tuple[ToolCategory, ...]] = {
    EntityKind.ADDRESS: (ToolCategory.BALANCE, ToolCategory.HISTORY, ToolCategory.TRANSFER, ToolCategory.ADDRESS),
    EntityKind.TOKEN: (ToolCategory.TOKEN, ToolCategory.TRANSFER),
    EntityKind.TRANSACTION: (ToolCategory.TRANSACTION,),
}


class DiversityPolicy(BaseModel):
    """Deterministic selection of the tool subset offered on later turns.

    Guarantees the offered set always contains the core tools present in the
    catalog and has a size within [min_diversity, max_diversity] (or the
    catalog size when the catalog is smaller than min_diversity). This is
    what keeps a turn-1 balance conversation able to answer a turn-3 gas
    question.

    Attributes:
        core_tools: Always offered
        fallback_tools: Preferred top-up order when the set is too small
        min_diversity: Lower size bound
        max_diversity: Upper size bound
        intent_categories: Categories promoted by the current intent
        entity_categories: Categories promoted by active entity kinds
    """

    core_tools: tuple[str, ...] = DEFAULT_CORE_TOOLS
    fallback_tools: tuple[str, ...] = DEFAULT_FALLBACK_TOOLS
    min_diversity: int = Field(default=8, ge=1)
    max_diversity: int = Field(default=15, ge=1)
    intent_categories: dict[Intent, tuple[ToolCategory, ...]] = Field(
        default_factory=lambda: dict(DEFAULT_INTENT_CATEGORIES)
    )
    entity_categories: dict[EntityKind, tuple[ToolCategory, ...]] = Field(
        default_factory=lambda: dict(DEFAULT_ENTITY_CATEGORIES)
    )

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def check_bounds(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        core = tuple(data.get("core_tools", DEFAULT_CORE_TOOLS))
        low = data.get("min_diversity", 8)
        high = data.get("max_diversity", 15)
        if low > high:
            raise ConfigurationError(f"min_diversity ({low}) exceeds max_diversity ({high})")
        if high < len(set(core)):
            raise ConfigurationError(f"max_diversity ({high}) is smaller than the core tool set ({len(set(core))})")
        return data

    def select(self, entry: ConversationCacheEntry, catalog: ToolCatalog) -> tuple[str, ...]:
        """Compute the offered tool names for this turn, in priority order."""
        candidates: list[str] = []

        # 1. core
        core = [name for name in self.core_tools if name in catalog]
        candidates.extend(core)
        # 2. intent categories
        candidates.extend(catalog.names_in(self.intent_categories.get(entry.current_intent, ())))
        # 3. recency
        candidates.extend(usage.tool for usage in entry.last_tools_used)
        # 4. entity kinds
        for kind in (EntityKind.ADDRESS, EntityKind.TOKEN, EntityKind.TRANSACTION):
            if kind in entry.entity_kinds:
                candidates.extend(catalog.names_in(self.entity_categories.get(kind, ())))

        # 5. dedupe, keeping first occurrence; drop anything the catalog lacks
        selected = [name for name in dict.fromkeys(candidates) if name in catalog]

        # 6. top up
        if len(selected) < self.min_diversity:
            for name in (*self.fallback_tools, *catalog.names()):
                if len(selected) >= self.min_diversity:
                    break
                if name in catalog and name not in selected:
                    selected.append(name)

        # 7. truncate, never dropping core
        if len(selected) > self.max_diversity:
            core_set = set(core)
            room = self.max_diversity - len(core_set)
            kept: list[str] = []
            for name in selected:
                if name in core_set:
                    kept.append(name)
                elif room > 0:
                    kept.append(name)
                    room -= 1
            selected = kept

        return tuple(selected)


__all__ = [
    "CATEGORY_INTENTS",
    "DEFAULT_CORE_TOOLS",
    "DEFAULT_ENTITY_CATEGORIES",
    "DEFAULT_FALLBACK_TOOLS",
    "DEFAULT_INTENT_CATEGORIES",
    "DEFAULT_MAX_ACTIVE_ENTITIES",
    "DEFAULT_MAX_TOOL_HISTORY",
    "ConversationCacheEntry",
    "DiversityPolicy",
    "ToolUsage",
    "estimate_tokens",
    "summarize_result",
]
