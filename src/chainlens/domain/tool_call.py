"""Tool directive parsing.

The model asks for data by emitting a single line::

    TOOL_CALL:getBalance:{"address": "addr1"}

The parser walks an explicit state machine over that text:

    SCANNING → DIRECTIVE_FOUND → ARGS_PARSED → VALID
                     │                │
                     └────────────────┴──────→ INVALID

Parsing never raises: every failure becomes an InvalidDirective carrying
the typed DirectiveError and the offending fragment, so the orchestrator
can log it and carry on as if no tool was requested.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Collection
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from .domain_type import ParseOutcome, ParseState
from .entities import AliasTable
from .errors import DirectiveError, ParseError, UnknownToolError
from .prompt import DIRECTIVE_MARKER
from .tool_catalog import ToolCatalog

logger = logging.getLogger(__name__)

TOOL_NAME_PATTERN = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*)\s*:\s*")
THINK_PATTERN = re.compile(r"<think>.*?(?:</think>|\Z)", re.DOTALL | re.IGNORECASE)
FRAGMENT_LIMIT = 200


class ToolCall(BaseModel):
    """A validated request to execute one tool with fully resolved arguments."""

    name: str
    arguments: dict[str, Any]

    model_config = ConfigDict(frozen=True)


class NoDirective(BaseModel):
    """The reply is prose only."""

    outcome: Literal[ParseOutcome.NONE] = ParseOutcome.NONE
    prose: str

    model_config = ConfigDict(frozen=True)


class ValidDirective(BaseModel):
    """Directive accepted; ``prose`` is whatever text surrounded it."""

    outcome: Literal[ParseOutcome.VALID] = ParseOutcome.VALID
    call: ToolCall
    prose: str = ""

    model_config = ConfigDict(frozen=True)


class InvalidDirective(BaseModel):
    """Directive rejected; ``error`` says why."""

    outcome: Literal[ParseOutcome.INVALID] = ParseOutcome.INVALID
    error: DirectiveError
    fragment: str
    prose: str = ""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


ParseResult = NoDirective | ValidDirective | InvalidDirective


def strip_reasoning(text: str) -> str:
    """Remove ``<think>`` blocks (an unterminated block runs to the end)."""
    return THINK_PATTERN.sub("", text)


def _strip_directive_lines(text: str) -> str:
    kept = [line for line in text.splitlines() if DIRECTIVE_MARKER not in line]
    return "\n".join(kept).strip()


def clean_reply(text: str) -> str:
    """User-facing text: reasoning blocks and directive lines removed."""
    return _strip_directive_lines(strip_reasoning(text))


def _line_end(text: str, start: int) -> int:
    end = text.find("\n", start)
    return len(text) if end == -1 else end


class ToolCallParser:
    """Stateless directive parser.

    Only the first directive in a reply is honoured; any further ones are
    stripped from the prose and ignored.
    """

    def __init__(self) -> None:
        self._decoder = json.JSONDecoder()

    def parse(
        self,
        text: str,
        *,
        offered: Collection[str],
        catalog: ToolCatalog,
        aliases: AliasTable,
    ) -> ParseResult:
        cleaned = strip_reasoning(text)
        state = ParseState.SCANNING
        start = end = 0
        name = ""
        raw_arguments: dict[str, Any] = {}
        arguments: dict[str, Any] = {}
        error: DirectiveError | None = None

        while True:
            if state is ParseState.SCANNING:
                start = cleaned.find(DIRECTIVE_MARKER)
                if start == -1:
                    return NoDirective(prose=cleaned.strip())
                end = _line_end(cleaned, start)
                match = TOOL_NAME_PATTERN.match(cleaned, start + len(DIRECTIVE_MARKER))
                if match is None:
                    error = ParseError("Directive is missing its tool name or argument separator", cleaned[start:end][:FRAGMENT_LIMIT])
                    state = ParseState.INVALID
                else:
                    name = match.group(1)
                    end = match.end()
                    state = ParseState.DIRECTIVE_FOUND

            elif state is ParseState.DIRECTIVE_FOUND:
                try:
                    decoded, end = self._decoder.raw_decode(cleaned, end)
                except json.JSONDecodeError as exc:
                    end = _line_end(cleaned, start)
                    error = ParseError(f"Arguments for '{name}' are not valid JSON: {exc.msg}", cleaned[start:end][:FRAGMENT_LIMIT])
                    state = ParseState.INVALID
                    continue
                if not isinstance(decoded, dict):
                    error = ParseError(f"Arguments for '{name}' must be a JSON object", cleaned[start:end][:FRAGMENT_LIMIT])
                    state = ParseState.INVALID
                else:
                    raw_arguments = decoded
                    state = ParseState.ARGS_PARSED

            elif state is ParseState.ARGS_PARSED:
                fragment = cleaned[start:end][:FRAGMENT_LIMIT]
                try:
                    if name not in offered or name not in catalog:
                        raise UnknownToolError(name, tuple(offered), fragment)
                    expanded = aliases.expand(raw_arguments, fragment=fragment)
                    arguments = catalog.get(name).validate_arguments(expanded, fragment=fragment)
                except DirectiveError as exc:
                    error = exc
                    state = ParseState.INVALID
                else:
                    state = ParseState.VALID

            elif state is ParseState.VALID:
                prose = _strip_directive_lines(cleaned[:start] + cleaned[end:])
                return ValidDirective(call=ToolCall(name=name, arguments=arguments), prose=prose)

            else:
                if error is None:
                    error = ParseError("Directive could not be parsed", cleaned[start:end][:FRAGMENT_LIMIT])
                if not error.fragment:
                    error.fragment = cleaned[start:end][:FRAGMENT_LIMIT]
                logger.debug("Rejected directive (%s): %s", type(error).__name__, error)
                prose = _strip_directive_lines(cleaned[:start] + cleaned[end:])
                return InvalidDirective(error=error, fragment=error.fragment, prose=prose)


__all__ = [
    "InvalidDirective",
    "NoDirective",
    "ParseResult",
    "ToolCall",
    "ToolCallParser",
    "ValidDirective",
    "clean_reply",
    "strip_reasoning",
]
