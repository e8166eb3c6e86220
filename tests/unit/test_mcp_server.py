"""Tests for the MCP tool server facade."""

from __future__ import annotations

import json

import pytest
from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    CallToolRequest,
    CallToolRequestParams,
    ListToolsRequest,
)

from tests.fixtures.protocols import (
    BROKEN_SOURCE,
    FakeCompiler,
    FakeResolver,
    StaticSource,
)
from tx3_mcp import __version__
from tx3_mcp.core.errors import RegistryError
from tx3_mcp.mcp.server import (
    RESOURCE_NOT_FOUND,
    SERVER_NAME,
    ProtocolToolServer,
    build_server,
    create_app,
)
from tx3_mcp.protocols.base import ProtocolDefinition

SWAP_ARGS = {
    "quantity": "42",
    "partial": "false",
    "buyer": "addr_test1qz",
    "datum": "d87980",
}


@pytest.fixture
def facade(source, compiler, resolver) -> ProtocolToolServer:
    return ProtocolToolServer(source, compiler, resolver)


class _FailingSource:
    async def load(self) -> list[ProtocolDefinition]:
        raise RegistryError("Registry query failed: 502")


# ── list_tools ───────────────────────────────────────────────────


class TestListTools:
    async def test_lists_resolve_and_describe(self, facade):
        tools = await facade.list_tools()
        assert [t.name for t in tools] == [
            "list-protocols",
            "resolve-acme-swap",
            "describe-acme-swap",
            "resolve-acme-mint",
            "describe-acme-mint",
        ]

    async def test_reloads_each_call(self, facade, source, compiler):
        await facade.list_tools()
        await facade.list_tools()
        assert source.loads == 2
        assert compiler.calls == ["acme", "acme"]

    async def test_broken_protocol_does_not_hide_others(self, compiler, resolver):
        source = StaticSource(
            [
                ProtocolDefinition("broken", BROKEN_SOURCE),
                ProtocolDefinition("acme", "protocol acme;"),
            ]
        )
        tools = await ProtocolToolServer(source, compiler, resolver).list_tools()
        assert len(tools) == 5

    async def test_empty_source_still_lists_protocols_tool(self, compiler, resolver):
        facade = ProtocolToolServer(StaticSource([]), compiler, resolver)
        assert [t.name for t in await facade.list_tools()] == ["list-protocols"]

    async def test_source_failure_is_internal_error(self, compiler, resolver):
        facade = ProtocolToolServer(_FailingSource(), compiler, resolver)
        with pytest.raises(McpError) as excinfo:
            await facade.list_tools()
        assert excinfo.value.error.code == INTERNAL_ERROR
        assert "502" in excinfo.value.error.message


# ── describe ─────────────────────────────────────────────────────


class TestDescribe:
    async def test_returns_parameter_map(self, facade, resolver):
        result = await facade.call_tool("describe-acme-swap", {})
        assert len(result) == 1
        data = json.loads(result[0].text)
        assert data == {
            "protocol": "acme",
            "transaction": "swap",
            "parameters": {
                "quantity": "Int",
                "partial": "Bool",
                "buyer": "Address",
                "datum": "Bytes",
            },
        }
        assert resolver.requests == []

    async def test_none_arguments(self, facade):
        result = await facade.call_tool("describe-acme-mint", None)
        assert json.loads(result[0].text)["parameters"] == {"amount": "Int"}


# ── list-protocols ───────────────────────────────────────────────


class TestListProtocols:
    async def test_one_text_item_per_protocol(self, compiler, resolver):
        source = StaticSource(
            [
                ProtocolDefinition("acme", "protocol acme;"),
                ProtocolDefinition("broken", BROKEN_SOURCE),
            ]
        )
        facade = ProtocolToolServer(source, compiler, resolver)
        result = await facade.call_tool("list-protocols", None)
        assert [c.text for c in result] == ["acme", "broken"]
        assert compiler.calls == []

    async def test_empty_source(self, compiler, resolver):
        facade = ProtocolToolServer(StaticSource([]), compiler, resolver)
        assert await facade.call_tool("list-protocols", {}) == []

    async def test_source_failure_is_internal_error(self, compiler, resolver):
        facade = ProtocolToolServer(_FailingSource(), compiler, resolver)
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool("list-protocols", {})
        assert excinfo.value.error.code == INTERNAL_ERROR


# ── resolve ──────────────────────────────────────────────────────


class TestResolve:
    async def test_returns_tx_unchanged(self, facade, resolver):
        result = await facade.call_tool("resolve-acme-swap", SWAP_ARGS)
        assert [c.text for c in result] == ["84a400818258"]

        request = resolver.requests[0]
        assert request.bytecode_hex == "0102ff"
        assert request.encoding == "hex"
        assert request.ir_version == "v1alpha1"
        assert request.args == {
            "quantity": 42,
            "partial": False,
            "buyer": "addr_test1qz",
            "datum": "d87980",
        }

    async def test_resolver_failure_embedded(self, source, compiler):
        resolver = FakeResolver(error="script failure: not enough funds")
        facade = ProtocolToolServer(source, compiler, resolver)
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool("resolve-acme-swap", SWAP_ARGS)
        assert excinfo.value.error.code == INTERNAL_ERROR
        assert excinfo.value.error.message == (
            "Error resolving transaction: script failure: not enough funds"
        )

    async def test_bad_int_is_invalid_params(self, facade, resolver):
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool("resolve-acme-mint", {"amount": "abc"})
        assert excinfo.value.error.code == INVALID_PARAMS
        assert "amount" in excinfo.value.error.message
        assert resolver.requests == []

    async def test_missing_parameter_is_invalid_params(self, facade, resolver):
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool("resolve-acme-mint", {})
        assert excinfo.value.error.code == INVALID_PARAMS
        assert resolver.requests == []


# ── not found ────────────────────────────────────────────────────


class TestNotFound:
    @pytest.mark.parametrize(
        ("name", "fragment"),
        [
            ("resolve-acme", "Transaction name not found"),
            ("resolve-nope-swap", "Protocol `nope` not found"),
            ("resolve-acme-burn", "Transaction `burn` not found for protocol `acme`"),
            ("execute-acme-swap", "Unknown operation"),
        ],
    )
    async def test_resource_not_found(self, facade, name, fragment):
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool(name, {})
        assert excinfo.value.error.code == RESOURCE_NOT_FOUND
        assert fragment in excinfo.value.error.message

    async def test_unknown_parameter(self, facade):
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool("resolve-acme-mint", {"amount": "1", "memo": "x"})
        assert excinfo.value.error.code == RESOURCE_NOT_FOUND
        assert "`memo`" in excinfo.value.error.message

    async def test_compile_failure_is_invalid_params(self, compiler, resolver):
        source = StaticSource([ProtocolDefinition("broken", BROKEN_SOURCE)])
        facade = ProtocolToolServer(source, compiler, resolver)
        with pytest.raises(McpError) as excinfo:
            await facade.call_tool("describe-broken-swap", {})
        assert excinfo.value.error.code == INVALID_PARAMS


# ── other hooks ──────────────────────────────────────────────────


class TestLifecycleHooks:
    async def test_empty_listings(self, facade):
        assert await facade.list_prompts() == []
        assert await facade.list_resources() == []

    @pytest.mark.parametrize(
        ("hook", "args"),
        [
            ("get_prompt", ("p", None)),
            ("subscribe_resource", ("file:///x",)),
            ("complete", (None, None)),
            ("set_logging_level", ("debug",)),
        ],
    )
    async def test_not_implemented(self, facade, hook, args):
        with pytest.raises(McpError) as excinfo:
            await getattr(facade, hook)(*args)
        assert excinfo.value.error.code == METHOD_NOT_FOUND

    def test_initialization_advertises_tools_only(self, facade):
        options = facade.initialization_options()
        assert options.server_name == SERVER_NAME
        assert options.server_version == __version__
        assert options.capabilities.tools is not None
        assert options.capabilities.prompts is None
        assert options.capabilities.resources is None
        assert options.capabilities.logging is None
        assert options.instructions


# ── low-level wiring ─────────────────────────────────────────────


class TestBuildServer:
    async def test_list_tools_handler(self, facade):
        server = build_server(facade)
        result = await server.request_handlers[ListToolsRequest](
            ListToolsRequest(method="tools/list")
        )
        assert len(result.root.tools) == 5

    async def test_call_tool_handler(self, facade):
        server = build_server(facade)
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(name="describe-acme-mint", arguments={}),
        )
        result = await server.request_handlers[CallToolRequest](request)
        assert not result.root.isError
        assert json.loads(result.root.content[0].text)["transaction"] == "mint"

    async def test_call_tool_handler_keeps_not_found_code(self, facade):
        server = build_server(facade)
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(name="resolve-nope-swap", arguments={}),
        )
        with pytest.raises(McpError) as excinfo:
            await server.request_handlers[CallToolRequest](request)
        assert excinfo.value.error.code == RESOURCE_NOT_FOUND
        assert "Protocol `nope` not found" in excinfo.value.error.message

    async def test_call_tool_handler_keeps_internal_error_code(self, source, compiler):
        facade = ProtocolToolServer(source, compiler, FakeResolver(error="boom"))
        server = build_server(facade)
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(name="resolve-acme-swap", arguments=SWAP_ARGS),
        )
        with pytest.raises(McpError) as excinfo:
            await server.request_handlers[CallToolRequest](request)
        assert excinfo.value.error.code == INTERNAL_ERROR
        assert excinfo.value.error.message == "Error resolving transaction: boom"

    async def test_call_tool_handler_keeps_invalid_params_code(self, facade):
        server = build_server(facade)
        request = CallToolRequest(
            method="tools/call",
            params=CallToolRequestParams(
                name="resolve-acme-mint", arguments={"amount": "abc"}
            ),
        )
        with pytest.raises(McpError) as excinfo:
            await server.request_handlers[CallToolRequest](request)
        assert excinfo.value.error.code == INVALID_PARAMS


class TestCreateApp:
    def test_health(self, facade):
        from fastapi.testclient import TestClient

        client = TestClient(create_app(facade))
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_routes_registered(self, facade):
        app = create_app(facade)
        paths = {getattr(route, "path", None) for route in app.routes}
        assert "/sse" in paths
        assert "/messages" in paths or "/messages/" in paths
