"""Expose tx3 protocols as MCP tools backed by a TRP resolver."""

__version__ = "0.3.0"
