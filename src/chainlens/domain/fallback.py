"""Canned replies for degraded turns.

Template replies are picked by what the user asked about and used when the
model is unavailable. Emergency replies are picked by what went wrong. None
of them state on-chain figures.
"""

from __future__ import annotations

from .domain_type import ErrorCategory

QUERY_CLASS_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("gas_price", ("gas", "fee")),
    ("balance", ("balance", "wallet")),
    ("transaction", ("transaction", "tx")),
    ("block", ("block",)),
    ("contract", ("contract", "abi")),
    ("token", ("token",)),
    ("address", ("address",)),
)

TEMPLATE_REPLIES: dict[str, str] = {
    "gas_price": "I can't reach the language model right now, so I can't check the current gas price. "
    "Please try again shortly.",
    "balance": "To check an account balance I need a valid address (0x followed by 40 hex characters). "
    "Please send the address you want to check.",
    "transaction": "To look up a transaction I need its hash (0x followed by 64 hex characters). "
    "Please send the hash you want to analyze.",
    "block": "I can look up block information. Please give a block number, or ask for the latest block.",
    "contract": "For contract details I need the contract address. I can then fetch its ABI or verified source.",
    "token": "I can check token details and balances. Please send the token contract address and, for balances, "
    "the holder address.",
    "address": "I can validate addresses and tell contracts from wallets. Please send the address to analyze.",
    "general": "I can help with Arbitrum balances, transactions, gas prices, tokens and contracts. "
    "What would you like to know?",
}

EMERGENCY_REPLIES: dict[ErrorCategory, str] = {
    ErrorCategory.GENERAL: "I'm having trouble reaching the blockchain data services right now. "
    "Please try again in a few moments.",
    ErrorCategory.TIMEOUT: "The request took longer than expected. Please try again, ideally with a more "
    "specific question.",
    ErrorCategory.RATE_LIMIT: "The blockchain data API is rate-limiting requests. Please wait a moment before "
    "trying again.",
    ErrorCategory.NETWORK: "There is a network problem between me and the data services. Please try again shortly.",
    ErrorCategory.AUTH: "The data services rejected my credentials. Please contact support if this persists.",
}


def classify_query(text: str) -> str:
    lowered = text.lower()
    for query_class, words in QUERY_CLASS_KEYWORDS:
        if any(word in lowered for word in words):
            return query_class
    return "general"


class FallbackResponder:
    """Produces degraded replies; never invents data."""

    def template(self, text: str) -> str:
        return TEMPLATE_REPLIES[classify_query(text)]

    def emergency(self, category: ErrorCategory) -> str:
        return EMERGENCY_REPLIES.get(category, EMERGENCY_REPLIES[ErrorCategory.GENERAL])

    def tool_failure(self, tool_name: str, category: ErrorCategory) -> str:
        """Explicit failure reply for a tool that errored or timed out."""
        return f"I couldn't retrieve data from {tool_name}. {self.emergency(category)}"


__all__ = ["EMERGENCY_REPLIES", "TEMPLATE_REPLIES", "FallbackResponder", "classify_query"]
