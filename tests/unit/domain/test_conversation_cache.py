"""Unit tests for ConversationCacheEntry.

Tests focus on how carry-forward state evolves across turns:
- Entity activation, aliasing and bounding
- Intent refinement and tool-driven intent shifts
- Result summaries rendered into later prompts
"""

from chainlens.domain.conversation_cache import ConversationCacheEntry, ToolUsage, summarize_result
from chainlens.domain.domain_type import EntityKind, Intent, ToolCategory
from chainlens.domain.intent import IntentClassifier
from tests.conftest import ADDRESS, OTHER_ADDRESS, TX_HASH

TOKEN_CONTRACT = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"


def bootstrap(text: str, classifier: IntentClassifier, **kwargs) -> ConversationCacheEntry:
    return ConversationCacheEntry.bootstrap(
        session_id="session_test",
        user_id="anonymous",
        persona_id=kwargs.pop("persona_id", None),
        text=text,
        classifier=classifier,
        **kwargs,
    )


def usage(tool: str, category: ToolCategory) -> ToolUsage:
    return ToolUsage(tool=tool, category=category, args_hash=tool, result_summary="ok")


def test_bootstrap_aliases_entities_and_infers_intent(classifier: IntentClassifier):
    entry = bootstrap(f"balance of {ADDRESS}", classifier)

    assert entry.current_intent is Intent.BALANCE_CHECK
    assert [e.alias for e in entry.active_entities] == ["addr1"]
    assert entry.aliases.resolve("addr1") == ADDRESS
    assert "Entities: addr1" in entry.summary
    assert entry.estimated_tokens > 0


def test_with_query_adds_entities_without_mutating(classifier: IntentClassifier):
    """
    Demonstrates: Immutable update of cached state.

    The stored entry stays exactly as it was; the updated copy carries the
    new alias and the refined intent.
    """
    entry = bootstrap(f"balance of {ADDRESS}", classifier)

    updated = entry.with_query(f"show transaction {TX_HASH}", classifier)

    assert [e.alias for e in updated.active_entities] == ["addr1", "tx1"]
    assert updated.current_intent is Intent.TRANSACTION_LOOKUP
    assert [e.alias for e in entry.active_entities] == ["addr1"]
    assert entry.current_intent is Intent.BALANCE_CHECK


def test_generic_follow_up_keeps_current_intent(classifier: IntentClassifier):
    entry = bootstrap(f"balance of {ADDRESS}", classifier)

    updated = entry.with_query("thanks, and then?", classifier)

    assert updated.current_intent is Intent.BALANCE_CHECK


def test_re_mentioned_entity_moves_to_end(classifier: IntentClassifier):
    entry = bootstrap(f"{ADDRESS} vs {OTHER_ADDRESS}", classifier)

    updated = entry.with_query(f"back to {ADDRESS}", classifier)

    assert [e.alias for e in updated.active_entities] == ["addr2", "addr1"]


def test_active_entities_are_bounded_but_aliases_are_kept(classifier: IntentClassifier):
    entry = bootstrap(f"{ADDRESS} {OTHER_ADDRESS} {TX_HASH}", classifier, max_entities=2)

    assert [e.alias for e in entry.active_entities] == ["addr2", "tx1"]
    assert len(entry.aliases) == 3
    assert entry.aliases.resolve("addr1") == ADDRESS


def test_tool_history_is_bounded(classifier: IntentClassifier):
    entry = bootstrap("hello", classifier)
    for tool in ("getBlock", "getLatestBlock", "getEthSupply", "validateAddress"):
        entry = entry.with_tool_usage(usage(tool, ToolCategory.GENERAL), {}, max_tools=3)

    assert [u.tool for u in entry.last_tools_used] == ["getLatestBlock", "getEthSupply", "validateAddress"]


def test_intent_shifts_after_repeated_category_usage(classifier: IntentClassifier):
    entry = bootstrap(f"balance of {ADDRESS}", classifier)

    once = entry.with_tool_usage(usage("getGasPrice", ToolCategory.GAS), {}, shift_threshold=2)
    twice = once.with_tool_usage(usage("getGasOracle", ToolCategory.GAS), {}, shift_threshold=2)

    assert once.current_intent is Intent.BALANCE_CHECK
    assert twice.current_intent is Intent.GAS_ANALYSIS


def test_tool_arguments_activate_token_entities(classifier: IntentClassifier):
    entry = bootstrap(f"token balance of {ADDRESS}", classifier)

    updated = entry.with_tool_usage(
        usage("getTokenBalance", ToolCategory.BALANCE),
        {"address": ADDRESS, "contractAddress": TOKEN_CONTRACT},
    )

    assert updated.aliases.alias_for(TOKEN_CONTRACT) == "token1"
    assert EntityKind.TOKEN in updated.entity_kinds
    assert "Last: getTokenBalance" in updated.summary


def test_summary_includes_persona(classifier: IntentClassifier):
    entry = bootstrap("what's the gas fee?", classifier, persona_id="alice")

    assert entry.summary == "Intent: gas_analysis | Persona: alice"


def test_summarize_gas_and_balance_results():
    assert summarize_result(ToolCategory.GAS, {"gasPrice": "0.1"}) == "0.1 gwei"
    assert summarize_result(ToolCategory.BALANCE, {"balance": "1500", "formatted": "1.5"}) == "1.5 ETH"
    assert summarize_result(ToolCategory.BALANCE, "2.0") == "2.0 ETH"


def test_summarize_history_counts_transactions():
    assert summarize_result(ToolCategory.HISTORY, [{"hash": "a"}, {"hash": "b"}]) == "2 transactions"
    assert summarize_result(ToolCategory.HISTORY, {"transactions": [{"hash": "a"}]}) == "1 transactions"


def test_summarize_other_results_truncates():
    summary = summarize_result(ToolCategory.CONTRACT, {"abi": "x" * 200})

    assert summary.endswith("...")
    assert len(summary) == 53
