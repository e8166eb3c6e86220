"""Exception hierarchy for tx3-mcp.

Every module imports from here. The hierarchy is:

    Tx3McpError
    ├── NotFoundError
    │   ├── OperationNotFoundError
    │   ├── ProtocolNotFoundError
    │   ├── TransactionNotFoundError
    │   └── ParameterNotFoundError
    ├── InvalidArgumentError
    ├── CompilationError(protocol)
    ├── UpstreamError
    │   ├── RegistryError
    │   └── ResolverError
    └── ConfigError
"""

from __future__ import annotations


class Tx3McpError(Exception):
    """Base exception for all tx3-mcp errors."""


# ─── Lookup Errors ────────────────────────────────────────────


class NotFoundError(Tx3McpError):
    """A named operation, protocol, transaction or parameter is unknown."""


class OperationNotFoundError(NotFoundError):
    """Operation name could not be decoded."""


class ProtocolNotFoundError(NotFoundError):
    """No loaded protocol has the requested name."""

    def __init__(self, protocol: str) -> None:
        self.protocol = protocol
        super().__init__(f"Protocol `{protocol}` not found")


class TransactionNotFoundError(NotFoundError):
    """The compiled protocol has no transaction with the requested name."""

    def __init__(self, protocol: str, transaction: str) -> None:
        self.protocol = protocol
        self.transaction = transaction
        super().__init__(
            f"Transaction `{transaction}` not found for protocol `{protocol}`"
        )


class ParameterNotFoundError(NotFoundError):
    """Caller supplied a parameter the transaction does not declare."""

    def __init__(self, parameter: str, transaction: str, protocol: str) -> None:
        self.parameter = parameter
        super().__init__(
            f"Parameter `{parameter}` not found for transaction "
            f"`{transaction}` in protocol `{protocol}`"
        )


# ─── Argument Errors ──────────────────────────────────────────


class InvalidArgumentError(Tx3McpError):
    """A caller-supplied value cannot be coerced to its declared type."""


class CompilationError(Tx3McpError):
    """Protocol source could not be compiled."""

    def __init__(self, protocol: str, message: str) -> None:
        self.protocol = protocol
        super().__init__(f"Protocol `{protocol}` failed to compile: {message}")


# ─── Upstream Errors ──────────────────────────────────────────


class UpstreamError(Tx3McpError):
    """A remote collaborator call failed."""


class RegistryError(UpstreamError):
    """Registry query failed."""


class ResolverError(UpstreamError):
    """Resolver service rejected or failed the request."""

    def __init__(self, message: str) -> None:
        self.upstream_message = message
        super().__init__(f"Error resolving transaction: {message}")


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(Tx3McpError):
    """Invalid configuration."""
