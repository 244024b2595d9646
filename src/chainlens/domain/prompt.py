"""Prompt assembly for full, compressed and follow-up model calls."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .conversation_cache import ConversationCacheEntry, estimate_tokens
from .domain_type import PromptMode, ToolCategory
from .persona import Persona
from .tool_catalog import ToolCatalog, ToolCatalogEntry

DIRECTIVE_MARKER = "TOOL_CALL:"

BASE_ROLE = "You are an on-chain data assistant for Arbitrum One."

RESPONSE_PROTOCOL = f"""RESPONSE PROTOCOL:
- When the user needs on-chain data, reply with exactly one line and nothing else:
  {DIRECTIVE_MARKER}<toolName>:<JSON object of arguments>
- Otherwise reply in plain natural language without any {DIRECTIVE_MARKER} line.
- Never combine a tool call and a prose answer in one reply.
- Never invent balances, prices, hashes or any other data. If a tool result is empty or null, say so plainly.
- You may use the short aliases listed below (addr1, tx1, ...) in tool arguments."""

FOLLOW_UP_RULES = """Answer the user's question using ONLY the tool result below.
Do not call any tools. Do not add figures that are not in the result.
If the result is empty or null, say that no data was found."""


def render_directive(name: str, arguments: Mapping[str, Any]) -> str:
    return f"{DIRECTIVE_MARKER}{name}:{json.dumps(dict(arguments), separators=(',', ':'))}"


class AssembledPrompt(BaseModel):
    """Instructions for one model call plus the tools they offer.

    ``offered_tools`` is the authority on which directives the parser may
    accept this turn.
    """

    mode: PromptMode
    instructions: str
    offered_tools: tuple[str, ...]
    estimated_tokens: int

    model_config = ConfigDict(frozen=True)


class PromptAssembler(BaseModel):
    """Builds instruction text from catalog, persona and cached state.

    Attributes:
        full_examples_per_category: Worked examples per category on turn one
        compressed_examples_per_category: Worked examples per category later
    """

    full_examples_per_category: int = Field(default=3, ge=0)
    compressed_examples_per_category: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True)

    def full(self, *, catalog: ToolCatalog, persona: Persona, entry: ConversationCacheEntry) -> AssembledPrompt:
        """First-turn prompt: complete catalog with schemas and examples."""
        tools = catalog.root
        lines = [BASE_ROLE, "", RESPONSE_PROTOCOL, "", "PERSONA:", persona.full_text, "", "AVAILABLE TOOLS:"]
        for tool in tools:
            lines.append(f"- {tool.name}: {tool.description}")
            lines.append(f"  parameters: {tool.schema_json()}")
        lines.extend(self._examples(tools, self.full_examples_per_category))
        lines.extend(self._alias_lines(entry))
        return self._assemble(PromptMode.FULL, lines, tuple(tool.name for tool in tools))

    def compressed(
        self,
        *,
        catalog: ToolCatalog,
        persona: Persona,
        entry: ConversationCacheEntry,
        offered: Iterable[str],
    ) -> AssembledPrompt:
        """Later-turn prompt: offered subset as signatures plus cached context."""
        tools = catalog.subset(offered)
        lines = [BASE_ROLE, "", RESPONSE_PROTOCOL, "", "PERSONA:", persona.full_text, ""]
        lines.append(f"CONTEXT: {entry.summary or entry.render_summary()}")
        lines.extend(self._alias_lines(entry))
        lines.append("")
        lines.append("TOOLS (* = required): " + ", ".join(tool.signature() for tool in tools))
        lines.extend(self._examples(tools, self.compressed_examples_per_category))
        return self._assemble(PromptMode.COMPRESSED, lines, tuple(tool.name for tool in tools))

    def follow_up(
        self,
        *,
        tool_name: str,
        arguments: Mapping[str, Any],
        result: Any,
        persona: Persona,
    ) -> str:
        """Result-only instructions for the short natural-language answer."""
        return "\n".join(
            [
                BASE_ROLE,
                "",
                "PERSONA:",
                persona.full_text,
                "",
                FOLLOW_UP_RULES,
                "",
                f"TOOL: {tool_name}",
                f"ARGUMENTS: {json.dumps(dict(arguments), sort_keys=True, default=str)}",
                f"RESULT: {json.dumps(result, default=str)}",
            ]
        )

    @staticmethod
    def _examples(tools: Iterable[ToolCatalogEntry], per_category: int) -> list[str]:
        if per_category == 0:
            return []
        taken: dict[ToolCategory, int] = {}
        lines: list[str] = []
        for tool in tools:
            for example in tool.examples:
                if taken.get(tool.category, 0) >= per_category:
                    break
                taken[tool.category] = taken.get(tool.category, 0) + 1
                lines.append(f"User: {example.query}")
                lines.append(render_directive(tool.name, example.arguments))
        return ["", "EXAMPLES:", *lines] if lines else []

    @staticmethod
    def _alias_lines(entry: ConversationCacheEntry) -> list[str]:
        if not len(entry.aliases):
            return []
        return ["", "ALIASES:", *(f"{alias} = {value}" for alias, value in entry.aliases.items())]

    @staticmethod
    def _assemble(mode: PromptMode, lines: list[str], offered: tuple[str, ...]) -> AssembledPrompt:
        instructions = "\n".join(lines)
        return AssembledPrompt(
            mode=mode,
            instructions=instructions,
            offered_tools=offered,
            estimated_tokens=estimate_tokens(instructions),
        )


__all__ = ["DIRECTIVE_MARKER", "RESPONSE_PROTOCOL", "AssembledPrompt", "PromptAssembler", "render_directive"]
