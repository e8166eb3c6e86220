"""MCP server exposing tx3 protocol transactions as tools."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from mcp.server import Server
from mcp.server.models import InitializationOptions
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    CallToolRequest,
    CallToolResult,
    ErrorData,
    ServerCapabilities,
    ServerResult,
    TextContent,
    ToolsCapability,
)

from tx3_mcp import __version__
from tx3_mcp.core.errors import (
    CompilationError,
    InvalidArgumentError,
    NotFoundError,
    Tx3McpError,
    UpstreamError,
)
from tx3_mcp.tools.coercion import coerce_arguments
from tx3_mcp.tools.descriptors import build_tools, list_protocols_tool
from tx3_mcp.tools.resolver import build_request
from tx3_mcp.tools.router import DESCRIBE, LIST_PROTOCOLS, route

if TYPE_CHECKING:
    from fastapi import FastAPI
    from mcp.types import GetPromptResult, Prompt, Resource, Tool

    from tx3_mcp.protocols.base import ProtocolCompiler, ProtocolSource
    from tx3_mcp.tools.resolver import TrpClient

logger = logging.getLogger(__name__)

SERVER_NAME = "tx3-mcp"

# MCP has no constant for this; matches the reference servers.
RESOURCE_NOT_FOUND = -32002

INSTRUCTIONS = (
    "`list-protocols` returns the names of the loaded protocols. "
    "Each tx3 protocol transaction is exposed as two tools: "
    "`describe-<protocol>-<transaction>` lists its parameters and types, "
    "`resolve-<protocol>-<transaction>` resolves it into a serialized "
    "transaction. Pass every argument as a string."
)


def to_mcp_error(exc: Tx3McpError) -> McpError:
    """Map a tx3-mcp error onto an MCP error code, keeping the message."""
    if isinstance(exc, NotFoundError):
        code = RESOURCE_NOT_FOUND
    elif isinstance(exc, InvalidArgumentError | CompilationError):
        code = INVALID_PARAMS
    else:
        code = INTERNAL_ERROR
    return McpError(ErrorData(code=code, message=str(exc)))


def _not_implemented() -> McpError:
    return McpError(ErrorData(code=METHOD_NOT_FOUND, message="Method not implemented"))


class ProtocolToolServer:
    """Tool server facade.

    Stateless between calls: every list and invoke reloads definitions
    from the source and compiles them through the compiler.
    """

    def __init__(
        self,
        source: ProtocolSource,
        compiler: ProtocolCompiler,
        resolver: TrpClient,
    ) -> None:
        self._source = source
        self._compiler = compiler
        self._resolver = resolver

    async def list_tools(self) -> list[Tool]:
        try:
            definitions = await self._source.load()
        except UpstreamError as exc:
            logger.exception("Failed to load protocols")
            raise to_mcp_error(exc) from exc
        tools = await build_tools(definitions, self._compiler)
        return [list_protocols_tool(), *tools]

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> list[TextContent]:
        try:
            return await self._call(name, arguments or {})
        except UpstreamError as exc:
            logger.warning("Upstream failure for %s: %s", name, exc)
            raise to_mcp_error(exc) from exc
        except Tx3McpError as exc:
            logger.info("Rejected %s: %s", name, exc)
            raise to_mcp_error(exc) from exc

    async def _call(self, name: str, arguments: dict[str, Any]) -> list[TextContent]:
        definitions = await self._source.load()
        if name == LIST_PROTOCOLS:
            return [TextContent(type="text", text=d.name) for d in definitions]

        routed = await route(name, definitions, self._compiler)
        key = routed.key

        if key.action == DESCRIBE:
            payload = {
                "protocol": key.protocol,
                "transaction": key.transaction,
                "parameters": routed.prototype.find_parameters(),
            }
            return [TextContent(type="text", text=json.dumps(payload))]

        args = coerce_arguments(routed.prototype, key.protocol, arguments)
        request = build_request(routed.prototype, routed.ir_version, args)
        tx = await self._resolver.resolve(request)
        return [TextContent(type="text", text=tx)]

    async def list_prompts(self) -> list[Prompt]:
        return []

    async def list_resources(self) -> list[Resource]:
        return []

    async def get_prompt(
        self, name: str, arguments: dict[str, str] | None
    ) -> GetPromptResult:
        raise _not_implemented()

    async def subscribe_resource(self, uri: Any) -> None:
        raise _not_implemented()

    async def complete(self, ref: Any, argument: Any, context: Any = None) -> Any:
        raise _not_implemented()

    async def set_logging_level(self, level: Any) -> None:
        raise _not_implemented()

    def initialization_options(self) -> InitializationOptions:
        """Advertise tool support only."""
        return InitializationOptions(
            server_name=SERVER_NAME,
            server_version=__version__,
            capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
            instructions=INSTRUCTIONS,
        )


def build_server(facade: ProtocolToolServer) -> Server:
    """Register the facade's hooks on a low-level MCP server."""
    server: Server = Server(SERVER_NAME, version=__version__, instructions=INSTRUCTIONS)

    async def _handle_call_tool(req: CallToolRequest) -> ServerResult:
        # McpError propagates to the session as a JSON-RPC error.
        content = await facade.call_tool(req.params.name, req.params.arguments)
        return ServerResult(CallToolResult(content=list(content), isError=False))

    server.request_handlers[CallToolRequest] = _handle_call_tool
    server.list_tools()(facade.list_tools)  # type: ignore[no-untyped-call]
    server.list_prompts()(facade.list_prompts)  # type: ignore[no-untyped-call]
    server.list_resources()(facade.list_resources)  # type: ignore[no-untyped-call]
    server.get_prompt()(facade.get_prompt)  # type: ignore[no-untyped-call]
    server.subscribe_resource()(facade.subscribe_resource)  # type: ignore[no-untyped-call]
    server.completion()(facade.complete)  # type: ignore[no-untyped-call]
    server.set_logging_level()(facade.set_logging_level)  # type: ignore[no-untyped-call]
    return server


async def run_stdio(facade: ProtocolToolServer) -> None:
    """Serve MCP over stdin/stdout."""
    server = build_server(facade)
    logger.info("Starting MCP server on stdio")
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            facade.initialization_options(),
        )


def create_app(facade: ProtocolToolServer) -> FastAPI:
    """Create the SSE application.

    ``GET /sse`` opens an event stream per client and ``POST /messages/``
    receives that client's requests.
    """
    from fastapi import FastAPI, Request
    from mcp.server.sse import SseServerTransport
    from starlette.responses import Response
    from starlette.routing import Mount, Route

    server = build_server(facade)
    sse = SseServerTransport("/messages/")

    app = FastAPI(title=SERVER_NAME, version=__version__)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    async def handle_sse(request: Request) -> Response:
        async with sse.connect_sse(
            request.scope, request.receive, request._send
        ) as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                facade.initialization_options(),
            )
        return Response()

    app.router.routes.append(Route("/sse", endpoint=handle_sse, methods=["GET"]))
    app.router.routes.append(Mount("/messages/", app=sse.handle_post_message))
    return app
