"""Unit tests for PromptAssembler.

Tests focus on what each prompt mode must carry, not on exact wording.
"""

from chainlens.domain.conversation_cache import ConversationCacheEntry, DiversityPolicy
from chainlens.domain.domain_type import PromptMode
from chainlens.domain.intent import IntentClassifier
from chainlens.domain.persona import PersonaCatalog
from chainlens.domain.prompt import DIRECTIVE_MARKER, PromptAssembler, render_directive
from chainlens.domain.tool_catalog import ToolCatalog
from tests.conftest import ADDRESS


def entry_for(text: str) -> ConversationCacheEntry:
    return ConversationCacheEntry.bootstrap(
        session_id="session_test",
        user_id="anonymous",
        persona_id="alice",
        text=text,
        classifier=IntentClassifier(),
    )


def test_full_prompt_offers_entire_catalog(catalog: ToolCatalog, personas: PersonaCatalog):
    persona = personas.get("alice")

    prompt = PromptAssembler().full(catalog=catalog, persona=persona, entry=entry_for(f"balance of {ADDRESS}"))

    assert prompt.mode is PromptMode.FULL
    assert prompt.offered_tools == catalog.names()
    for name in catalog.names():
        assert name in prompt.instructions
    assert persona.full_text in prompt.instructions
    assert DIRECTIVE_MARKER in prompt.instructions
    assert f"addr1 = {ADDRESS}" in prompt.instructions


def test_compressed_prompt_carries_offered_subset_and_context(catalog: ToolCatalog, personas: PersonaCatalog):
    entry = entry_for(f"balance of {ADDRESS}")
    offered = DiversityPolicy().select(entry, catalog)
    persona = personas.get("alice")
    assembler = PromptAssembler()

    compressed = assembler.compressed(catalog=catalog, persona=persona, entry=entry, offered=offered)
    full = assembler.full(catalog=catalog, persona=persona, entry=entry)

    assert compressed.mode is PromptMode.COMPRESSED
    assert compressed.offered_tools == offered
    assert "getBalance(address*, blockTag)" in compressed.instructions
    assert "getContractSource" not in compressed.instructions
    assert f"CONTEXT: {entry.summary}" in compressed.instructions
    assert f"addr1 = {ADDRESS}" in compressed.instructions
    assert persona.full_text in compressed.instructions
    assert compressed.estimated_tokens < full.estimated_tokens


def test_compressed_prompt_limits_examples_per_category(catalog: ToolCatalog, personas: PersonaCatalog):
    entry = entry_for("hello")
    offered = ("getBalance", "getMultiBalance", "getTokenBalance")

    prompt = PromptAssembler().compressed(
        catalog=catalog, persona=personas.get(None), entry=entry, offered=offered
    )

    assert prompt.instructions.count(DIRECTIVE_MARKER + "get") == 1


def test_compressed_prompt_has_an_example_for_every_offered_category(catalog: ToolCatalog, personas: PersonaCatalog):
    entry = entry_for("hello")
    offered = (
        "getBalance",
        "getMultiBalance",
        "getGasOracle",
        "getTransactionStatus",
        "getTransactionHistory",
        "getERC20Transfers",
        "getLatestBlock",
    )

    prompt = PromptAssembler().compressed(
        catalog=catalog, persona=personas.get(None), entry=entry, offered=offered
    )

    categories = {catalog.category_of(name) for name in offered}
    assert prompt.instructions.count(DIRECTIVE_MARKER + "get") == len(categories)
    for name in ("getBalance", "getGasOracle", "getTransactionStatus", "getTransactionHistory", "getERC20Transfers"):
        example = catalog.get(name).examples[0]
        assert render_directive(name, example.arguments) in prompt.instructions
    assert render_directive("getLatestBlock", {}) in prompt.instructions
    assert "getMultiBalance:" not in prompt.instructions


def test_follow_up_is_result_only(personas: PersonaCatalog):
    instructions = PromptAssembler().follow_up(
        tool_name="getBalance",
        arguments={"address": ADDRESS},
        result={"formatted": "1.5"},
        persona=personas.get(None),
    )

    assert "Do not call any tools" in instructions
    assert '"formatted": "1.5"' in instructions
    assert ADDRESS in instructions
    assert "AVAILABLE TOOLS" not in instructions


def test_render_directive_is_compact():
    assert render_directive("getBalance", {"address": "addr1"}) == 'TOOL_CALL:getBalance:{"address":"addr1"}'
