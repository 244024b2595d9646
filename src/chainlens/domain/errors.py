"""Error taxonomy for turn processing.

Directive errors (parse, unknown tool, missing argument, alias) are handled
inside the orchestrator and downgraded to "no tool call". Tool and model
errors produce a degraded reply. None of these reach the caller raw.
"""

from __future__ import annotations

from .domain_type import ErrorCategory


class ChainlensError(Exception):
    """Base class for all domain errors."""


class ConfigurationError(ChainlensError):
    """Invalid static configuration (catalog, thresholds, personas)."""


class DirectiveError(ChainlensError):
    """A tool directive was found but cannot be executed.

    Attributes:
        fragment: Offending slice of the model output, kept for diagnostics
    """

    def __init__(self, message: str, fragment: str = "") -> None:
        super().__init__(message)
        self.fragment = fragment


class ParseError(DirectiveError):
    """Directive syntax or argument JSON is malformed."""


class UnknownToolError(DirectiveError):
    """Directive names a tool that was not offered this turn."""

    def __init__(self, tool_name: str, offered: tuple[str, ...], fragment: str = "") -> None:
        super().__init__(f"Tool '{tool_name}' was not offered this turn", fragment)
        self.tool_name = tool_name
        self.offered = offered


class MissingArgumentError(DirectiveError):
    """Directive omits one or more required parameters."""

    def __init__(self, tool_name: str, fields: tuple[str, ...], fragment: str = "") -> None:
        super().__init__(f"Tool '{tool_name}' is missing required argument(s): {', '.join(fields)}", fragment)
        self.tool_name = tool_name
        self.fields = fields


class AliasResolutionError(DirectiveError):
    """Directive references an alias never introduced in this session."""

    def __init__(self, alias: str, fragment: str = "") -> None:
        super().__init__(f"Alias '{alias}' was never introduced in this session", fragment)
        self.alias = alias


class ToolExecutionError(ChainlensError):
    """Tool provider failed, timed out or returned a structured error."""

    def __init__(self, tool_name: str, message: str, category: ErrorCategory = ErrorCategory.GENERAL) -> None:
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name
        self.category = category


class ModelUnavailableError(ChainlensError):
    """Language model could not produce a reply (timeout, HTTP, config)."""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.GENERAL) -> None:
        super().__init__(message)
        self.category = category


class NoToolCallDetected(ChainlensError):
    """Soft condition: the model answered in prose where data was expected.

    Recorded in turn diagnostics, never raised out of the orchestrator.
    """


def classify_error_message(message: str) -> ErrorCategory:
    """Bucket a free-form error message for emergency replies and logs."""
    lowered = message.lower()
    if "timeout" in lowered or "timed out" in lowered:
        return ErrorCategory.TIMEOUT
    if "rate limit" in lowered or "too many requests" in lowered or "429" in lowered:
        return ErrorCategory.RATE_LIMIT
    if "connection" in lowered or "network" in lowered:
        return ErrorCategory.NETWORK
    if "unauthorized" in lowered or "api key" in lowered or "401" in lowered:
        return ErrorCategory.AUTH
    return ErrorCategory.GENERAL


def classify_status_code(status_code: int) -> ErrorCategory:
    """Bucket an HTTP status from a model or tool provider."""
    if status_code == 429:
        return ErrorCategory.RATE_LIMIT
    if status_code in (401, 403):
        return ErrorCategory.AUTH
    if status_code in (408, 504):
        return ErrorCategory.TIMEOUT
    return ErrorCategory.GENERAL


__all__ = [
    "AliasResolutionError",
    "ChainlensError",
    "ConfigurationError",
    "DirectiveError",
    "MissingArgumentError",
    "ModelUnavailableError",
    "NoToolCallDetected",
    "ParseError",
    "ToolExecutionError",
    "UnknownToolError",
    "classify_error_message",
    "classify_status_code",
]
