"""Configuration loading and validation."""

from tx3_mcp.config.loader import load_config
from tx3_mcp.config.schema import (
    CompilerConfig,
    LoggingConfig,
    RegistryConfig,
    ResolverConfig,
    ServerConfig,
    SourceConfig,
    Tx3McpConfig,
)

__all__ = [
    "CompilerConfig",
    "LoggingConfig",
    "RegistryConfig",
    "ResolverConfig",
    "ServerConfig",
    "SourceConfig",
    "Tx3McpConfig",
    "load_config",
]
