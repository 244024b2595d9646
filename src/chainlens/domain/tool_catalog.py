"""Tool Catalog - Configuration-Driven Tool Metadata.

Provides type-safe, validated management of the blockchain data tools the
model may call. The catalog is loaded from JSON (categories, schemas, worked
examples) and merged with whatever the live tool provider reports.

Architecture:
    ToolCatalog: Ordered root container, O(1) lookup by name
    └─ ToolCatalogEntry: One tool with category tag and examples
       ├─ ToolSchema: JSON-schema style properties + required list
       └─ ToolExample: Query → arguments pair used in prompts

Key Features:
    - Boundary Validation: arguments are checked against a pydantic model
      generated from the declared schema, never forwarded as an untyped bag
    - Category Index: tools grouped by ToolCategory for the diversity policy
    - Ordered: catalog order is the deterministic tie-breaker everywhere
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    PrivateAttr,
    RootModel,
    ValidationError,
    create_model,
    model_validator,
)

from .domain_type import ToolCategory
from .errors import MissingArgumentError, ParseError

# JSON-schema primitive → Python annotation for generated argument models
_JSON_TYPES: dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": float,
    "boolean": bool,
    "object": dict,
    "array": list,
}


class ToolParameter(BaseModel):
    """Single declared parameter of a tool."""

    type: str = "string"
    description: str | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def annotation(self) -> Any:
        return _JSON_TYPES.get(self.type, Any)


class ToolSchema(BaseModel):
    """Declared parameter schema (subset of JSON Schema used by MCP servers)."""

    type: str = "object"
    properties: dict[str, ToolParameter] = {}
    required: tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="after")
    def check_required_declared(self) -> ToolSchema:
        undeclared = [name for name in self.required if name not in self.properties]
        if undeclared:
            raise ValueError(f"Required parameters not declared in properties: {undeclared}")
        return self


class ToolExample(BaseModel):
    """Worked example: a user query and the directive arguments it maps to."""

    query: str
    arguments: dict[str, Any] = {}

    model_config = ConfigDict(frozen=True)


class ToolCatalogEntry(BaseModel):
    """One tool the model may be offered.

    Attributes:
        name: Tool identifier used in directives (e.g. "getBalance")
        description: One-line description shown in full-mode prompts
        category: Category tag for intent/entity promotion and cache TTL
        parameters: Declared argument schema
        examples: Worked examples rendered into prompts
    """

    name: str
    description: str = ""
    category: ToolCategory = ToolCategory.GENERAL
    parameters: ToolSchema = ToolSchema()
    examples: tuple[ToolExample, ...] = ()
    _arguments_model: type[BaseModel] | None = PrivateAttr(default=None)

    model_config = ConfigDict(frozen=True)

    @property
    def required(self) -> tuple[str, ...]:
        return self.parameters.required

    def signature(self) -> str:
        """Compact form used in compressed prompts: ``getBalance(address*)``."""
        params = [
            f"{name}*" if name in self.parameters.required else name for name in self.parameters.properties
        ]
        return f"{self.name}({', '.join(params)})"

    def schema_json(self) -> str:
        return self.parameters.model_dump_json(exclude={"type"})

    def arguments_model(self) -> type[BaseModel]:
        """Lazy-built pydantic model mirroring the declared schema (cached)."""
        if self._arguments_model is None:
            fields: dict[str, Any] = {}
            for name, param in self.parameters.properties.items():
                if name in self.parameters.required:
                    fields[name] = (param.annotation, ...)
                else:
                    fields[name] = (Optional[param.annotation], None)
            self._arguments_model = create_model(
                f"{self.name}Arguments",
                __config__=ConfigDict(extra="forbid"),
                **fields,
            )
        return self._arguments_model

    def validate_arguments(self, arguments: Mapping[str, Any], *, fragment: str = "") -> dict[str, Any]:
        """Check arguments against the schema.

        Raises:
            MissingArgumentError: One or more required parameters absent
            ParseError: Wrong types or undeclared parameters
        """
        try:
            validated = self.arguments_model().model_validate(dict(arguments))
        except ValidationError as exc:
            missing = tuple(str(err["loc"][0]) for err in exc.errors() if err["type"] == "missing" and err["loc"])
            if missing:
                raise MissingArgumentError(self.name, missing, fragment) from exc
            problems = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
            raise ParseError(f"Invalid arguments for '{self.name}': {problems}", fragment) from exc
        return validated.model_dump(exclude_unset=True)


class ToolCatalog(RootModel[tuple[ToolCatalogEntry, ...]]):
    """Ordered, name-unique collection of tools."""

    root: tuple[ToolCatalogEntry, ...] = ()
    _lookup: dict[str, ToolCatalogEntry] = PrivateAttr(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_duplicate_names(self) -> ToolCatalog:
        names = [entry.name for entry in self.root]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate tool names in catalog: {duplicates}")
        self._lookup = {entry.name: entry for entry in self.root}
        return self

    @classmethod
    def from_entries(cls, entries: Iterable[ToolCatalogEntry]) -> ToolCatalog:
        return cls(tuple(entries))

    @classmethod
    def from_json_file(cls, path: Path) -> ToolCatalog:
        """Load and validate catalog from JSON (a list of tool objects)."""
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls.model_validate(data)

    def __contains__(self, name: object) -> bool:
        return name in self._lookup

    def __len__(self) -> int:
        return len(self.root)

    def get(self, name: str) -> ToolCatalogEntry:
        entry = self._lookup.get(name)
        if entry is None:
            raise KeyError(f"Tool '{name}' not registered in catalog")
        return entry

    def names(self) -> tuple[str, ...]:
        return tuple(entry.name for entry in self.root)

    def names_in(self, categories: Iterable[ToolCategory]) -> tuple[str, ...]:
        """Tool names whose category is in ``categories``, in catalog order."""
        wanted = set(categories)
        return tuple(entry.name for entry in self.root if entry.category in wanted)

    def category_of(self, name: str) -> ToolCategory:
        entry = self._lookup.get(name)
        return entry.category if entry else ToolCategory.GENERAL

    def subset(self, names: Iterable[str]) -> tuple[ToolCatalogEntry, ...]:
        """Entries for ``names`` in the given order, skipping unknown names."""
        return tuple(self._lookup[name] for name in names if name in self._lookup)

    def merge_remote(self, remote: Iterable[ToolCatalogEntry]) -> ToolCatalog:
        """Overlay a provider-reported tool list onto this (local) catalog.

        The provider is authoritative for which tools exist and their schemas;
        the local catalog contributes category tags, descriptions and examples.
        Tools the provider does not report are dropped.
        """
        merged: list[ToolCatalogEntry] = []
        for entry in remote:
            local = self._lookup.get(entry.name)
            if local is None:
                merged.append(entry)
                continue
            # Built fresh so no argument model cached on the local entry carries over
            merged.append(
                ToolCatalogEntry(
                    name=entry.name,
                    description=entry.description or local.description,
                    category=local.category,
                    parameters=entry.parameters if entry.parameters.properties else local.parameters,
                    examples=local.examples,
                )
            )
        return ToolCatalog.from_entries(merged)


__all__ = [
    "ToolCatalog",
    "ToolCatalogEntry",
    "ToolExample",
    "ToolParameter",
    "ToolSchema",
]
