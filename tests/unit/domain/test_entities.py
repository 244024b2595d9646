"""Unit tests for entity extraction and session aliases."""

import pytest

from chainlens.domain.domain_type import EntityKind
from chainlens.domain.entities import AliasTable, entities_from_arguments, extract_entities, is_alias
from chainlens.domain.errors import AliasResolutionError
from tests.conftest import ADDRESS, OTHER_ADDRESS, TX_HASH


def test_extracts_addresses_and_hashes_in_order():
    text = f"Did {ADDRESS} send {TX_HASH} to {OTHER_ADDRESS}?"

    assert extract_entities(text) == [
        (ADDRESS, EntityKind.ADDRESS),
        (TX_HASH, EntityKind.TRANSACTION),
        (OTHER_ADDRESS, EntityKind.ADDRESS),
    ]


def test_extraction_dedupes_case_insensitively_keeping_first_spelling():
    text = f"{ADDRESS} and again {ADDRESS.lower()}"

    assert extract_entities(text) == [(ADDRESS, EntityKind.ADDRESS)]


def test_hash_is_never_read_as_an_address():
    found = extract_entities(f"hash {TX_HASH}")

    assert found == [(TX_HASH, EntityKind.TRANSACTION)]


def test_short_hex_is_ignored():
    assert extract_entities("block 0x1a2b and 0xdeadbeef") == []


def test_alias_numbers_are_monotonic_per_prefix():
    table = AliasTable()
    table, first = table.assign(ADDRESS, EntityKind.ADDRESS)
    table, tx = table.assign(TX_HASH, EntityKind.TRANSACTION)
    table, second = table.assign(OTHER_ADDRESS, EntityKind.ADDRESS)

    assert (first, tx, second) == ("addr1", "tx1", "addr2")
    assert len(table) == 3


def test_assign_is_idempotent_and_returns_new_instances():
    """
    Demonstrates: Immutability of the alias table.

    Issuing an alias returns a new table; re-assigning a known value returns
    the same alias and the same table.
    """
    empty = AliasTable()
    table, alias = empty.assign(ADDRESS, EntityKind.ADDRESS)
    again, alias_again = table.assign(ADDRESS.upper().replace("0X", "0x"), EntityKind.ADDRESS)

    assert len(empty) == 0
    assert alias == alias_again == "addr1"
    assert again is table
    assert table.resolve("addr1") == ADDRESS


def test_resolve_unknown_alias_raises():
    with pytest.raises(AliasResolutionError) as exc_info:
        AliasTable().resolve("addr1", fragment='{"address":"addr1"}')

    assert exc_info.value.fragment == '{"address":"addr1"}'


def test_expand_walks_nested_values():
    table, _ = AliasTable().assign(ADDRESS, EntityKind.ADDRESS)

    expanded = table.expand({"addresses": ["addr1", "latest"], "options": {"holder": "addr1"}, "page": 2})

    assert expanded == {"addresses": [ADDRESS, "latest"], "options": {"holder": ADDRESS}, "page": 2}


@pytest.mark.parametrize("value", [" addr1", "Addr1", "addr1,addr2", "holder addr1"])
def test_expand_rejects_alias_tokens_that_are_not_exact(value: str):
    table, _ = AliasTable().assign(ADDRESS, EntityKind.ADDRESS)

    with pytest.raises(AliasResolutionError):
        table.expand({"address": value})


def test_expand_leaves_plain_text_alone():
    table, _ = AliasTable().assign(ADDRESS, EntityKind.ADDRESS)

    arguments = {"blockTag": "latest", "note": "address book"}

    assert table.expand(arguments) == arguments


def test_is_alias():
    assert is_alias("addr12")
    assert is_alias("tx1")
    assert not is_alias("address")
    assert not is_alias("addr")


def test_token_argument_keys_yield_token_entities():
    found = entities_from_arguments({"address": ADDRESS, "contractAddress": OTHER_ADDRESS})

    assert found == [(ADDRESS, EntityKind.ADDRESS), (OTHER_ADDRESS, EntityKind.TOKEN)]
