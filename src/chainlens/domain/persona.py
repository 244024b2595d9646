"""Personas - voice and focus text injected into every prompt."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, RootModel, computed_field, model_validator

logger = logging.getLogger(__name__)

DEFAULT_PERSONA_ID = "default"


class Persona(BaseModel):
    """Persona definition.

    Attributes:
        id: Lookup key (e.g. "alice")
        name: Display name
        title: Short role description
        expertise: Trait tags, used for the compact summary
        initial_context: Background the persona brings to the conversation
        prompt_modifier: Voice and tone instructions
    """

    id: str
    name: str
    title: str = ""
    expertise: tuple[str, ...] = ()
    initial_context: str = ""
    prompt_modifier: str = ""

    model_config = ConfigDict(frozen=True)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def full_text(self) -> str:
        """Verbatim text placed in prompts (both modes carry it in full)."""
        return f"{self.initial_context.strip()}\n\n{self.prompt_modifier.strip()}".strip()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def traits(self) -> str:
        return ", ".join(self.expertise)


class PersonaCatalog(RootModel[dict[str, Persona]]):
    """Persona lookup with a mandatory default entry."""

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def require_default(self) -> PersonaCatalog:
        if DEFAULT_PERSONA_ID not in self.root:
            raise ValueError(f"Persona catalog must define '{DEFAULT_PERSONA_ID}'")
        return self

    @classmethod
    def from_json_file(cls, path: Path) -> PersonaCatalog:
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls.model_validate(data)

    def ids(self) -> tuple[str, ...]:
        return tuple(self.root)

    def get(self, persona_id: str | None) -> Persona:
        """Resolve a persona; unknown ids fall back to the default persona."""
        if persona_id is None:
            return self.root[DEFAULT_PERSONA_ID]
        persona = self.root.get(persona_id)
        if persona is None:
            logger.warning("Unknown persona '%s', using default", persona_id)
            return self.root[DEFAULT_PERSONA_ID]
        return persona


__all__ = ["DEFAULT_PERSONA_ID", "Persona", "PersonaCatalog"]
