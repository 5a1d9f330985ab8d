"""Tests: ToolRegistry lookup, dispatch and argument handling."""

import pytest

from wallet_keeper.tools.registry import ToolRegistry, UnknownToolError, tool

SCHEMA = {
    "type": "object",
    "properties": {"address": {"type": "string"}},
    "required": ["address"],
}


@pytest.fixture
def registry():
    reg = ToolRegistry()

    @tool("echo", "Echo the address back", SCHEMA, registry=reg)
    async def echo(address: str) -> str:
        return f"got {address}"

    @tool("stats", "Return a dict", {"type": "object", "properties": {}}, registry=reg)
    def stats() -> dict:
        return {"cycles": 3}

    return reg


def test_decorator_registers_in_given_registry(registry):
    assert registry.names() == ["echo", "stats"]
    assert registry.lookup("echo").definition.required == ["address"]
    assert "echo" not in ToolRegistry.default().names()


async def test_dispatch_dict_arguments(registry):
    assert await registry.dispatch("echo", {"address": "0xabc"}) == "got 0xabc"


async def test_dispatch_json_string_arguments(registry):
    assert await registry.dispatch("echo", '{"address": "0xabc"}') == "got 0xabc"


async def test_sync_handler_result_is_json(registry):
    assert await registry.dispatch("stats") == '{"cycles": 3}'


async def test_unknown_tool(registry):
    with pytest.raises(UnknownToolError, match="nope"):
        await registry.dispatch("nope", {})


@pytest.mark.parametrize("arguments", ["{not json", "[1, 2]", {}])
async def test_bad_arguments_rejected(registry, arguments):
    with pytest.raises(ValueError):
        await registry.dispatch("echo", arguments)


def test_definitions_serialise(registry):
    dumped = [d.to_dict() for d in registry.definitions()]

    assert dumped[0] == {"name": "echo", "description": "Echo the address back", "parameters": SCHEMA}
