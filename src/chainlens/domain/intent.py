"""Keyword-based intent inference."""

from __future__ import annotations

import re
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain_type import Intent

DEFAULT_INTENT_KEYWORDS: dict[Intent, tuple[str, ...]] = {
    Intent.GAS_ANALYSIS: ("gas", "fee", "gwei"),
    Intent.BALANCE_CHECK: ("balance", "holding", "portfolio"),
    Intent.TRANSACTION_LOOKUP: ("transaction", "tx", "receipt", "hash"),
    Intent.TOKEN_ANALYSIS: ("token", "erc20", "erc-20", "nft", "erc721"),
    Intent.DEFI_ANALYSIS: ("defi", "liquidity", "yield", "swap", "pool"),
    Intent.CONTRACT_ANALYSIS: ("contract", "abi", "source code", "verified"),
}

DEFAULT_INTENT_PRIORITY: tuple[Intent, ...] = (
    Intent.GAS_ANALYSIS,
    Intent.BALANCE_CHECK,
    Intent.TRANSACTION_LOOKUP,
    Intent.TOKEN_ANALYSIS,
    Intent.DEFI_ANALYSIS,
    Intent.CONTRACT_ANALYSIS,
)


class IntentClassifier(BaseModel):
    """Counts keyword hits per intent and picks the best one.

    Each keyword counts at most once per text and must start on a word
    boundary ("tx" matches "tx1" but not "ntx"). Ties go to whichever intent
    comes first in ``priority``; no hits at all means GENERIC.

    Example:
        >>> IntentClassifier().classify("what's the gas fee?")
        <Intent.GAS_ANALYSIS: 'gas_analysis'>
    """

    keywords: dict[Intent, tuple[str, ...]] = Field(default_factory=lambda: dict(DEFAULT_INTENT_KEYWORDS))
    priority: tuple[Intent, ...] = DEFAULT_INTENT_PRIORITY

    model_config = ConfigDict(frozen=True)

    @field_validator("keywords")
    @classmethod
    def lowercase_keywords(cls, v: Mapping[Intent, tuple[str, ...]]) -> dict[Intent, tuple[str, ...]]:
        return {intent: tuple(word.lower() for word in words) for intent, words in v.items()}

    def scores(self, text: str) -> dict[Intent, int]:
        lowered = text.lower()
        return {
            intent: sum(1 for word in words if re.search(rf"\b{re.escape(word)}", lowered))
            for intent, words in self.keywords.items()
        }

    def classify(self, text: str) -> Intent:
        scores = self.scores(text)
        best = max(scores.values(), default=0)
        if best == 0:
            return Intent.GENERIC

        # Intents missing from the priority list rank after every listed one
        ranked = list(self.priority) + [intent for intent in scores if intent not in self.priority]
        for intent in ranked:
            if scores.get(intent, 0) == best:
                return intent
        return Intent.GENERIC

    def refine(self, current: Intent, text: str) -> Intent:
        """Later-turn classification: a generic reading keeps the current intent."""
        inferred = self.classify(text)
        return current if inferred is Intent.GENERIC else inferred


__all__ = ["DEFAULT_INTENT_KEYWORDS", "DEFAULT_INTENT_PRIORITY", "IntentClassifier"]
