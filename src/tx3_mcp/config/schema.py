"""Pydantic models for tx3-mcp configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class SourceConfig(BaseModel):
    """Where protocol definitions come from."""

    kind: Literal["directory", "registry"] = "directory"
    directory: str = "./protocols"
    extension: str = ".tx3"


class RegistryConfig(BaseModel):
    """Remote protocol registry (GraphQL)."""

    url: str | None = None
    url_env: str | None = "TX3_REGISTRY_URL"
    timeout: float = 30.0


class CompilerConfig(BaseModel):
    """External tx3 compiler command.

    ``{source}`` in the command is replaced with the path of a temporary
    file holding the protocol source.
    """

    command: list[str] = Field(
        default_factory=lambda: ["tx3c", "interface", "{source}"]
    )
    timeout: float = 30.0
    cache_size: int = 0


class ResolverConfig(BaseModel):
    """TRP resolver service."""

    url: str | None = None
    url_env: str | None = "TRP_URL"
    api_key: str | None = None
    api_key_env: str | None = "TRP_KEY"
    api_key_header: str = "dmtr-api-key"
    timeout: float = 30.0


class ServerConfig(BaseModel):
    """Network listener settings for the SSE transport."""

    host: str | None = None
    host_env: str | None = "ADDRESS"
    port: int | None = None
    port_env: str | None = "PORT"
    default_host: str = "127.0.0.1"
    default_port: int = 3000

    @property
    def bind_host(self) -> str:
        return self.host or self.default_host

    @property
    def bind_port(self) -> int:
        return self.port or self.default_port


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""


class Tx3McpConfig(BaseModel):
    """Top-level configuration for tx3-mcp."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    registry: RegistryConfig = Field(default_factory=RegistryConfig)
    compiler: CompilerConfig = Field(default_factory=CompilerConfig)
    resolver: ResolverConfig = Field(default_factory=ResolverConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
