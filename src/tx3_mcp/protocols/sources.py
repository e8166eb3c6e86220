"""Protocol sources: local directory snapshot and remote registry.

Both implement the :class:`ProtocolSource` protocol and normalize every
entry into a :class:`ProtocolDefinition`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx

from tx3_mcp.core.errors import ConfigError, RegistryError
from tx3_mcp.protocols.base import ProtocolDefinition, reserve_delimiter

if TYPE_CHECKING:
    from tx3_mcp.config.schema import RegistryConfig, SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".tx3"

REGISTRY_QUERY = """
query Protocols {
  dapps {
    nodes {
      scope
      name
      protocol
    }
  }
}
"""


def _protocol_name(raw: str) -> str:
    name = reserve_delimiter(raw)
    if name != raw:
        logger.debug("Renamed protocol %r to %r", raw, name)
    return name


class DirectorySource:
    """Protocols read once from a local directory.

    The snapshot is taken at construction and never mutated, so it can
    be shared by concurrent requests.
    """

    def __init__(self, directory: str | Path, extension: str = DEFAULT_EXTENSION) -> None:
        self._directory = Path(directory)
        self._extension = extension
        self._definitions = tuple(self._scan())
        logger.info(
            "Loaded %d protocol(s) from %s", len(self._definitions), self._directory
        )

    @classmethod
    def from_config(cls, config: SourceConfig) -> DirectorySource:
        return cls(config.directory, config.extension)

    def _scan(self) -> list[ProtocolDefinition]:
        if not self._directory.is_dir():
            msg = f"Protocol directory not found: {self._directory}"
            raise ConfigError(msg)

        definitions: list[ProtocolDefinition] = []
        for entry in sorted(self._directory.iterdir()):
            if not entry.name.endswith(self._extension):
                continue
            try:
                source = entry.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping unreadable protocol %s: %s", entry, exc)
                continue
            stem = entry.name[: -len(self._extension)]
            definitions.append(
                ProtocolDefinition(name=_protocol_name(stem), source=source)
            )
        return definitions

    async def load(self) -> list[ProtocolDefinition]:
        return list(self._definitions)


class RegistrySource:
    """Protocols queried from the tx3 registry on every call."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: RegistryConfig) -> RegistrySource:
        if not config.url:
            msg = f"{config.url_env or 'registry.url'} must be set for the registry source"
            raise ConfigError(msg)
        return cls(config.url, timeout=config.timeout)

    async def load(self) -> list[ProtocolDefinition]:
        """Query the registry.

        Raises:
            RegistryError: If the request or the GraphQL query fails.
        """
        payload = await self._query()
        data = payload.get("data") or {}
        dapps = (data.get("dapps") or {}) if isinstance(data, dict) else None
        nodes = (dapps.get("nodes") or []) if isinstance(dapps, dict) else None
        if not isinstance(nodes, list):
            msg = "Registry returned an unexpected payload"
            raise RegistryError(msg)

        definitions: list[ProtocolDefinition] = []
        for node in nodes:
            if not isinstance(node, dict):
                logger.warning("Skipping malformed registry entry: %r", node)
                continue
            protocol = node.get("protocol")
            if protocol is None:
                continue
            raw = f"{node.get('scope', '')}_{node.get('name', '')}"
            definitions.append(
                ProtocolDefinition(name=_protocol_name(raw), source=protocol)
            )
        logger.debug("Registry returned %d protocol(s)", len(definitions))
        return definitions

    async def _query(self) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._url, json={"query": REGISTRY_QUERY})
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            msg = f"Registry query failed: {exc}"
            raise RegistryError(msg) from exc
        except ValueError as exc:
            msg = f"Registry returned invalid JSON: {exc}"
            raise RegistryError(msg) from exc

        if not isinstance(payload, dict):
            msg = "Registry returned an unexpected payload"
            raise RegistryError(msg)

        errors = payload.get("errors")
        if errors:
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in errors
            )
            msg = f"Registry query failed: {messages}"
            raise RegistryError(msg)
        return payload
