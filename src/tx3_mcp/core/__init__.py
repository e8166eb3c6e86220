"""Core errors shared by every layer."""

from tx3_mcp.core.errors import (
    CompilationError,
    ConfigError,
    InvalidArgumentError,
    NotFoundError,
    OperationNotFoundError,
    ParameterNotFoundError,
    ProtocolNotFoundError,
    RegistryError,
    ResolverError,
    TransactionNotFoundError,
    Tx3McpError,
    UpstreamError,
)

__all__ = [
    "CompilationError",
    "ConfigError",
    "InvalidArgumentError",
    "NotFoundError",
    "OperationNotFoundError",
    "ParameterNotFoundError",
    "ProtocolNotFoundError",
    "RegistryError",
    "ResolverError",
    "TransactionNotFoundError",
    "Tx3McpError",
    "UpstreamError",
]
