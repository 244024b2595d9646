"""Domain Type System - Core Enumerations.

Defines type-safe constants using Python's StrEnum for domain concepts.
Using StrEnum instead of plain Enum provides automatic string coercion
and better JSON serialization without custom encoders.
"""

from enum import StrEnum


class Intent(StrEnum):
    """Closed set of conversational intents.

    Inferred from free text on the first turn and refined on later turns.
    The intent decides which tool categories are promoted into the offered
    tool subset.
    """

    BALANCE_CHECK = "balance_check"
    GAS_ANALYSIS = "gas_analysis"
    TOKEN_ANALYSIS = "token_analysis"
    TRANSACTION_LOOKUP = "transaction_lookup"
    CONTRACT_ANALYSIS = "contract_analysis"
    DEFI_ANALYSIS = "defi_analysis"
    GENERIC = "generic"


class ToolCategory(StrEnum):
    """Category tag attached to every tool in the catalog.

    Used by the diversity algorithm (intent and entity promotion) and by the
    tool-result cache to pick a TTL: volatile data (gas, block) expires fast,
    static metadata (contract, token) lives long.
    """

    BALANCE = "balance"
    GAS = "gas"
    TRANSACTION = "transaction"
    HISTORY = "history"
    TRANSFER = "transfer"
    TOKEN = "token"
    CONTRACT = "contract"
    BLOCK = "block"
    ADDRESS = "address"
    NETWORK = "network"
    GENERAL = "general"


class EntityKind(StrEnum):
    """Kinds of long domain values that receive session aliases.

    The value is also the alias prefix: ``addr1``, ``token1``, ``tx1``.
    """

    ADDRESS = "addr"
    TOKEN = "token"
    TRANSACTION = "tx"


class ChatRole(StrEnum):
    """Author of a history entry."""

    USER = "user"
    ASSISTANT = "assistant"


class PromptMode(StrEnum):
    """Instruction-set flavour.

    FULL: first turn of a session, complete catalog and examples
    COMPRESSED: later turns, diversity-bounded tools plus cached state
    """

    FULL = "full"
    COMPRESSED = "compressed"


class ParseState(StrEnum):
    """States of the tool directive parser.

    SCANNING → DIRECTIVE_FOUND → ARGS_PARSED → (VALID | INVALID)
    """

    SCANNING = "scanning"
    DIRECTIVE_FOUND = "directive_found"
    ARGS_PARSED = "args_parsed"
    VALID = "valid"
    INVALID = "invalid"


class ParseOutcome(StrEnum):
    """Discriminator for parse results."""

    NONE = "none"
    VALID = "valid"
    INVALID = "invalid"


class FallbackLevel(StrEnum):
    """How degraded a reply is.

    NONE: normal model reply
    TEMPLATE: canned guidance chosen by query class (model unavailable)
    EMERGENCY: explicit failure message chosen by error class
    """

    NONE = "none"
    TEMPLATE = "template"
    EMERGENCY = "emergency"


class ErrorCategory(StrEnum):
    """Classification of failures for logging and emergency replies."""

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    AUTH = "auth"
    GENERAL = "general"


class CacheBackend(StrEnum):
    """Backing substrate for sessions and caches."""

    MEMORY = "memory"
    REDIS = "redis"


__all__ = [
    "CacheBackend",
    "ChatRole",
    "EntityKind",
    "ErrorCategory",
    "FallbackLevel",
    "Intent",
    "ParseOutcome",
    "ParseState",
    "PromptMode",
    "ToolCategory",
]
