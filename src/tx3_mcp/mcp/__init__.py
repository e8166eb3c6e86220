"""MCP transport layer."""
