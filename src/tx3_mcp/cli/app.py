"""Main CLI application.

Click commands for the tx3 MCP server: stdio, sse, tools.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING, NoReturn

import click
from dotenv import load_dotenv

from tx3_mcp import __version__
from tx3_mcp.config.loader import load_config
from tx3_mcp.core.errors import ConfigError

if TYPE_CHECKING:
    from tx3_mcp.config.schema import LoggingConfig, Tx3McpConfig
    from tx3_mcp.mcp.server import ProtocolToolServer
    from tx3_mcp.protocols.base import ProtocolSource


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> NoReturn:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(
    config_path: str | None,
    source: str | None = None,
    protocols_dir: str | None = None,
) -> Tx3McpConfig:
    """Load config with user-friendly error handling."""
    overrides: dict[str, dict[str, object]] = {}
    if source:
        overrides.setdefault("source", {})["kind"] = source
    if protocols_dir:
        overrides.setdefault("source", {})["directory"] = protocols_dir
    try:
        return load_config(path=config_path, overrides=overrides or None)
    except ConfigError as e:
        _error(str(e))


def _setup_logging(config: LoggingConfig) -> None:
    """Configure root logging on stderr; stdout belongs to the stdio transport."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))
    logging.basicConfig(
        level=config.level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def _create_source(config: Tx3McpConfig) -> ProtocolSource:
    from tx3_mcp.protocols.sources import DirectorySource, RegistrySource

    if config.source.kind == "registry":
        return RegistrySource.from_config(config.registry)
    return DirectorySource.from_config(config.source)


def _create_facade(config: Tx3McpConfig) -> ProtocolToolServer:
    """Wire source, compiler and resolver from config."""
    from tx3_mcp.mcp.server import ProtocolToolServer
    from tx3_mcp.protocols.compiler import create_compiler
    from tx3_mcp.tools.resolver import TrpClient

    try:
        resolver = TrpClient.from_config(config.resolver)
        source = _create_source(config)
        compiler = create_compiler(config.compiler)
    except ConfigError as e:
        _error(str(e))
    return ProtocolToolServer(source, compiler, resolver)


_source_option = click.option(
    "--source",
    type=click.Choice(["directory", "registry"]),
    default=None,
    help="Where protocols come from (overrides config).",
)
_protocols_dir_option = click.option(
    "--protocols-dir",
    default=None,
    help="Directory of .tx3 files for the directory source.",
)


# ── CLI group ────────────────────────────────────────────────────


@click.group()
@click.version_option(version=__version__, prog_name="tx3-mcp")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(),
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """tx3-mcp: tx3 protocols as MCP tools."""
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


# ── stdio ────────────────────────────────────────────────────────


@cli.command()
@_source_option
@_protocols_dir_option
@click.pass_context
def stdio(ctx: click.Context, source: str | None, protocols_dir: str | None) -> None:
    """Serve MCP over stdin/stdout."""
    from tx3_mcp.mcp.server import run_stdio

    config = _load_config(ctx.obj["config_path"], source, protocols_dir)
    _setup_logging(config.logging)
    facade = _create_facade(config)
    asyncio.run(run_stdio(facade))


# ── sse ──────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config).")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (overrides config)."
)
@_source_option
@_protocols_dir_option
@click.pass_context
def sse(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    source: str | None,
    protocols_dir: str | None,
) -> None:
    """Serve MCP over HTTP server-sent events."""
    import uvicorn

    from tx3_mcp.mcp.server import create_app

    config = _load_config(ctx.obj["config_path"], source, protocols_dir)
    _setup_logging(config.logging)

    effective_host = host or config.server.bind_host
    effective_port = port or config.server.bind_port

    app = create_app(_create_facade(config))
    click.echo(f"MCP SSE endpoint: http://{effective_host}:{effective_port}/sse", err=True)
    uvicorn.run(app, host=effective_host, port=effective_port)


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@_source_option
@_protocols_dir_option
@click.pass_context
def tools(ctx: click.Context, source: str | None, protocols_dir: str | None) -> None:
    """List the tools the server would publish."""
    from mcp.shared.exceptions import McpError

    from tx3_mcp.tools.router import LIST_PROTOCOLS

    config = _load_config(ctx.obj["config_path"], source, protocols_dir)
    _setup_logging(config.logging)
    facade = _create_facade(config)
    try:
        published = asyncio.run(facade.list_tools())
    except McpError as e:
        _error(e.error.message)

    if all(tool.name == LIST_PROTOCOLS for tool in published):
        click.echo("No tools found.")
        return
    for tool in published:
        click.echo(f"{tool.name}  {tool.description}")
