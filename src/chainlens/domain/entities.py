"""Entity extraction and session-scoped aliasing.

Long hex values (addresses, transaction hashes) are given short aliases the
first time a session sees them. Prompts carry the aliases, tool arguments
carry the full values.

Alias lifecycle:
    - Assigned monotonically per prefix (addr1, addr2, ..., tx1, token1)
    - Never reused or renumbered while the session lives
    - Matching is case-insensitive; the first-seen spelling is preserved
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict

from .domain_type import EntityKind
from .errors import AliasResolutionError

# Hash alternative first so a 64-hex hash is never read as an address prefix
ENTITY_PATTERN = re.compile(r"\b0x(?:[a-fA-F0-9]{64}|[a-fA-F0-9]{40})\b")
ALIAS_PATTERN = re.compile(r"^(addr|token|tx)(\d+)$")
# Alias-shaped token anywhere in a value, any case
EMBEDDED_ALIAS_PATTERN = re.compile(r"\b(?:addr|token|tx)\d+\b", re.IGNORECASE)

TOKEN_ARGUMENT_KEYS = frozenset({"contractAddress", "tokenAddress"})

_ADDRESS_LENGTH = 42


def _kind_for(value: str) -> EntityKind:
    return EntityKind.ADDRESS if len(value) == _ADDRESS_LENGTH else EntityKind.TRANSACTION


def extract_entities(text: str) -> list[tuple[str, EntityKind]]:
    """Address- and hash-shaped values in order of first appearance."""
    seen: set[str] = set()
    found: list[tuple[str, EntityKind]] = []
    for match in ENTITY_PATTERN.finditer(text):
        value = match.group(0)
        if value.lower() in seen:
            continue
        seen.add(value.lower())
        found.append((value, _kind_for(value)))
    return found


def entities_from_arguments(arguments: Mapping[str, Any]) -> list[tuple[str, EntityKind]]:
    """Entities referenced by (already resolved) tool arguments.

    Values passed as ``contractAddress`` or ``tokenAddress`` are token kind.
    """
    found: list[tuple[str, EntityKind]] = []

    def visit(key: str | None, value: Any) -> None:
        if isinstance(value, str):
            if ENTITY_PATTERN.fullmatch(value):
                kind = EntityKind.TOKEN if key in TOKEN_ARGUMENT_KEYS else _kind_for(value)
                found.append((value, kind))
        elif isinstance(value, Mapping):
            for k, v in value.items():
                visit(k, v)
        elif isinstance(value, (list, tuple)):
            for item in value:
                visit(key, item)

    for key, value in arguments.items():
        visit(key, value)
    return found


def is_alias(value: str) -> bool:
    return ALIAS_PATTERN.match(value) is not None


class ActiveEntity(BaseModel):
    """Entity currently in play, with its session alias."""

    value: str
    kind: EntityKind
    alias: str

    model_config = ConfigDict(frozen=True)


class AliasTable(BaseModel):
    """Bidirectional value ↔ alias mapping for one session.

    Attributes:
        aliases: alias → full value, insertion ordered
        counters: last number issued per prefix
    """

    aliases: dict[str, str] = {}
    counters: dict[str, int] = {}

    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return len(self.aliases)

    def items(self) -> Iterator[tuple[str, str]]:
        return iter(self.aliases.items())

    def alias_for(self, value: str) -> str | None:
        lowered = value.lower()
        for alias, known in self.aliases.items():
            if known.lower() == lowered:
                return alias
        return None

    def assign(self, value: str, kind: EntityKind) -> tuple[AliasTable, str]:
        """Return (table, alias) for ``value``, issuing a new alias if unseen.

        A value already aliased keeps its alias regardless of ``kind``.
        """
        existing = self.alias_for(value)
        if existing is not None:
            return self, existing

        number = self.counters.get(kind.value, 0) + 1
        alias = f"{kind.value}{number}"
        updated = self.model_copy(
            update={
                "aliases": {**self.aliases, alias: value},
                "counters": {**self.counters, kind.value: number},
            }
        )
        return updated, alias

    def resolve(self, alias: str, *, fragment: str = "") -> str:
        try:
            return self.aliases[alias]
        except KeyError:
            raise AliasResolutionError(alias, fragment) from None

    def expand(self, value: Any, *, fragment: str = "") -> Any:
        """Replace every alias-shaped string inside ``value`` with its full form.

        Only exact aliases are replaced. Any other string still carrying an
        alias-shaped token (padded, recased or embedded in a list) is rejected
        so an alias never reaches a tool.

        Raises:
            AliasResolutionError: An alias-shaped string was never issued or
                could not be expanded
        """
        if isinstance(value, str):
            if is_alias(value):
                return self.resolve(value, fragment=fragment)
            leftover = EMBEDDED_ALIAS_PATTERN.search(value)
            if leftover is not None:
                raise AliasResolutionError(leftover.group(0), fragment)
            return value
        if isinstance(value, Mapping):
            return {k: self.expand(v, fragment=fragment) for k, v in value.items()}
        if isinstance(value, list):
            return [self.expand(item, fragment=fragment) for item in value]
        return value


__all__ = [
    "ALIAS_PATTERN",
    "EMBEDDED_ALIAS_PATTERN",
    "ENTITY_PATTERN",
    "TOKEN_ARGUMENT_KEYS",
    "ActiveEntity",
    "AliasTable",
    "entities_from_arguments",
    "extract_entities",
    "is_alias",
]
