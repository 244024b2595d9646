"""Unit tests for ToolCatalog and schema-checked arguments."""

import pytest
from pydantic import ValidationError

from chainlens.domain.domain_type import ToolCategory
from chainlens.domain.errors import MissingArgumentError, ParseError
from chainlens.domain.tool_catalog import ToolCatalog, ToolCatalogEntry, ToolParameter, ToolSchema


def test_packaged_catalog_loads_with_categories(catalog: ToolCatalog):
    assert len(catalog) == 21
    assert catalog.category_of("getGasPrice") is ToolCategory.GAS
    assert catalog.category_of("notATool") is ToolCategory.GENERAL
    assert catalog.names_in([ToolCategory.CONTRACT]) == ("getContractAbi", "getContractSource")


def test_get_unknown_tool_raises_key_error(catalog: ToolCatalog):
    with pytest.raises(KeyError):
        catalog.get("notATool")


def test_duplicate_names_are_rejected():
    with pytest.raises(ValidationError):
        ToolCatalog.from_entries([ToolCatalogEntry(name="getBalance"), ToolCatalogEntry(name="getBalance")])


def test_required_parameters_must_be_declared():
    with pytest.raises(ValidationError):
        ToolSchema(properties={}, required=("address",))


def test_signature_marks_required_parameters(catalog: ToolCatalog):
    assert catalog.get("getTransactionHistory").signature() == "getTransactionHistory(address*, page, offset, sort)"
    assert catalog.get("getGasPrice").signature() == "getGasPrice()"


def test_validate_arguments_checks_types(catalog: ToolCatalog):
    entry = catalog.get("getTransactionHistory")

    with pytest.raises(ParseError):
        entry.validate_arguments({"address": "0xabc", "page": "first"})


def test_validate_arguments_reports_all_missing_fields(catalog: ToolCatalog):
    entry = catalog.get("getTokenBalance")

    with pytest.raises(MissingArgumentError) as exc_info:
        entry.validate_arguments({}, fragment="TOOL_CALL:getTokenBalance:{}")

    assert set(exc_info.value.fields) == {"address", "contractAddress"}
    assert exc_info.value.fragment == "TOOL_CALL:getTokenBalance:{}"


def test_validate_arguments_drops_nothing_and_adds_nothing(catalog: ToolCatalog):
    entry = catalog.get("getBalance")

    assert entry.validate_arguments({"address": "0xabc"}) == {"address": "0xabc"}


def test_merge_remote_keeps_local_categories_and_examples(catalog: ToolCatalog):
    remote = [
        ToolCatalogEntry(
            name="getBalance",
            description="Balance from the live server",
            parameters=ToolSchema(properties={"address": ToolParameter()}, required=("address",)),
        ),
        ToolCatalogEntry(name="getNewThing", description="Not in the local file"),
    ]

    merged = catalog.merge_remote(remote)

    assert merged.names() == ("getBalance", "getNewThing")
    balance = merged.get("getBalance")
    assert balance.category is ToolCategory.BALANCE
    assert balance.description == "Balance from the live server"
    assert balance.examples == catalog.get("getBalance").examples
    assert balance.signature() == "getBalance(address*)"
    assert merged.category_of("getNewThing") is ToolCategory.GENERAL


def test_merge_remote_rebuilds_argument_model(catalog: ToolCatalog):
    local = catalog.get("getBalance")
    local.validate_arguments({"address": "0xabc", "blockTag": "latest"})
    remote = ToolCatalogEntry(
        name="getBalance",
        parameters=ToolSchema(properties={"address": ToolParameter()}, required=("address",)),
    )

    merged = catalog.merge_remote([remote]).get("getBalance")

    with pytest.raises(ParseError):
        merged.validate_arguments({"address": "0xabc", "blockTag": "latest"})
