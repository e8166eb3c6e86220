"""TRP resolver client: forwards resolved requests to the resolver service.

The service speaks JSON-RPC 2.0 over HTTP (method ``trp.resolve``) and
answers with the serialized transaction in ``result.tx``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from tx3_mcp.core.errors import ConfigError, ResolverError

if TYPE_CHECKING:
    from tx3_mcp.config.schema import ResolverConfig
    from tx3_mcp.protocols.base import ArgValue, TransactionPrototype

logger = logging.getLogger(__name__)

RESOLVE_METHOD = "trp.resolve"
IR_ENCODING = "hex"


@dataclass(frozen=True, slots=True)
class ResolutionRequest:
    """A transaction prototype with coerced arguments, ready to resolve."""

    bytecode_hex: str
    ir_version: str
    args: dict[str, ArgValue] = field(default_factory=dict)
    encoding: str = IR_ENCODING

    def to_params(self) -> dict[str, Any]:
        return {
            "tir": {
                "bytecode": self.bytecode_hex,
                "encoding": self.encoding,
                "version": self.ir_version,
            },
            "args": dict(self.args),
        }


def build_request(
    prototype: TransactionPrototype,
    ir_version: str,
    args: dict[str, ArgValue],
) -> ResolutionRequest:
    return ResolutionRequest(
        bytecode_hex=prototype.ir_bytes().hex(),
        ir_version=ir_version,
        args=args,
    )


class TrpClient:
    """Client for the TRP resolver service."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        api_key_header: str = "dmtr-api-key",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._headers = {api_key_header: api_key}
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: ResolverConfig) -> TrpClient:
        if not config.url:
            msg = f"{config.url_env or 'resolver.url'} must be set"
            raise ConfigError(msg)
        if not config.api_key:
            msg = f"{config.api_key_env or 'resolver.api_key'} must be set"
            raise ConfigError(msg)
        return cls(
            config.url,
            config.api_key,
            api_key_header=config.api_key_header,
            timeout=config.timeout,
        )

    async def resolve(self, request: ResolutionRequest) -> str:
        """Resolve a transaction.

        Returns:
            The serialized transaction (``tx``) exactly as returned.

        Raises:
            ResolverError: If the call fails or the service reports an error.
        """
        body = {
            "jsonrpc": "2.0",
            "method": RESOLVE_METHOD,
            "params": request.to_params(),
            "id": str(uuid.uuid4()),
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.post(self._endpoint, json=body)
        except httpx.HTTPError as exc:
            raise ResolverError(str(exc) or type(exc).__name__) from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("error"):
            raise ResolverError(_error_message(payload["error"]))
        if response.is_error:
            raise ResolverError(f"HTTP {response.status_code}: {response.text}")
        if not isinstance(payload, dict):
            raise ResolverError("resolver returned an invalid response")

        result = payload.get("result")
        if not isinstance(result, dict) or not isinstance(result.get("tx"), str):
            raise ResolverError("resolver response has no `tx` field")

        logger.debug("Resolved transaction (%d chars)", len(result["tx"]))
        return result["tx"]


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        message = str(error.get("message", "unknown error"))
        data = error.get("data")
        if data:
            message = f"{message} ({data})"
        return message
    return str(error)
