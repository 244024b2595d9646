"""Domain Layer - Turn Processing for an On-Chain Analytics Agent.

Pure, framework-free business logic. Every model is an immutable pydantic
model; collaborators (model, tool provider, stores, sinks) are reached only
through the Protocols in ``ports``.

Key Components:
    - SessionOrchestrator: Turn-processing state machine, owns session lifecycle
    - ConversationCacheEntry / DiversityPolicy: Carry-forward state and the
      bounded, drift-proof tool subset offered on later turns
    - PromptAssembler: Full (first turn) and compressed (later turn) prompts
    - ToolCallParser: TOOL_CALL directive state machine with schema validation
    - ToolResultCache: TTL + single-flight memoization of tool executions

Design Principles:
    - Immutable by Default: updates return new instances via model_copy
    - Explicit Dependencies: stores and adapters are injected, never global
    - No Fabrication: failures degrade to canned or raw-result replies
"""

from .conversation_cache import (
    ConversationCacheEntry,
    DiversityPolicy,
    ToolUsage,
    estimate_tokens,
    summarize_result,
)
from .domain_type import (
    CacheBackend,
    ChatRole,
    EntityKind,
    ErrorCategory,
    FallbackLevel,
    Intent,
    ParseOutcome,
    ParseState,
    PromptMode,
    ToolCategory,
)
from .domain_value import HistoryEntry, Session, SessionId, ToolInvocation, TurnResult
from .entities import ActiveEntity, AliasTable, entities_from_arguments, extract_entities
from .errors import (
    AliasResolutionError,
    ChainlensError,
    ConfigurationError,
    DirectiveError,
    MissingArgumentError,
    ModelUnavailableError,
    NoToolCallDetected,
    ParseError,
    ToolExecutionError,
    UnknownToolError,
)
from .fallback import FallbackResponder
from .intent import IntentClassifier
from .orchestrator import OrchestratorSettings, SessionOrchestrator
from .persona import Persona, PersonaCatalog
from .ports import AnalyticsSink, LanguageModel, PersonaSource, TTLStore, ToolProvider
from .prompt import AssembledPrompt, PromptAssembler
from .tool_cache import ToolResultCache, ToolResultRecord, cache_key
from .tool_call import InvalidDirective, NoDirective, ToolCall, ToolCallParser, ValidDirective
from .tool_catalog import ToolCatalog, ToolCatalogEntry, ToolExample, ToolParameter, ToolSchema

__all__ = [
    "ActiveEntity",
    "AliasResolutionError",
    "AliasTable",
    "AnalyticsSink",
    "AssembledPrompt",
    "CacheBackend",
    "ChainlensError",
    "ChatRole",
    "ConfigurationError",
    "ConversationCacheEntry",
    "DirectiveError",
    "DiversityPolicy",
    "EntityKind",
    "ErrorCategory",
    "FallbackLevel",
    "FallbackResponder",
    "HistoryEntry",
    "Intent",
    "IntentClassifier",
    "InvalidDirective",
    "LanguageModel",
    "MissingArgumentError",
    "ModelUnavailableError",
    "NoDirective",
    "NoToolCallDetected",
    "OrchestratorSettings",
    "ParseError",
    "ParseOutcome",
    "ParseState",
    "Persona",
    "PersonaCatalog",
    "PersonaSource",
    "PromptAssembler",
    "PromptMode",
    "Session",
    "SessionId",
    "SessionOrchestrator",
    "TTLStore",
    "ToolCall",
    "ToolCallParser",
    "ToolCatalog",
    "ToolCatalogEntry",
    "ToolCategory",
    "ToolExample",
    "ToolExecutionError",
    "ToolInvocation",
    "ToolParameter",
    "ToolProvider",
    "ToolResultCache",
    "ToolResultRecord",
    "ToolSchema",
    "ToolUsage",
    "TurnResult",
    "UnknownToolError",
    "ValidDirective",
    "cache_key",
    "entities_from_arguments",
    "estimate_tokens",
    "extract_entities",
    "summarize_result",
]
