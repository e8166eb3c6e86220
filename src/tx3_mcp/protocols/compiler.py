"""Protocol compiler adapter.

tx3 compilation happens in an external toolchain. :class:`CommandCompiler`
runs a configured command against the protocol source and reads back an
interface document on stdout::

    {
      "version": "v1alpha1",
      "transactions": [
        {"name": "swap", "parameters": {"quantity": "Int"}, "ir": "<hex>"}
      ]
    }

:class:`CachingCompiler` optionally wraps any compiler with an LRU
keyed on protocol name and source digest.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import tempfile
from collections import OrderedDict
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tx3_mcp.core.errors import CompilationError, TransactionNotFoundError
from tx3_mcp.protocols.base import ParamType, TransactionPrototype

if TYPE_CHECKING:
    from tx3_mcp.config.schema import CompilerConfig
    from tx3_mcp.protocols.base import (
        CompiledProtocol,
        ProtocolCompiler,
        ProtocolDefinition,
    )

logger = logging.getLogger(__name__)

SOURCE_PLACEHOLDER = "{source}"

_TYPE_NAMES = {t.value.lower(): t for t in ParamType}


def parse_param_type(name: str) -> ParamType | str:
    """Map a compiler type name onto :class:`ParamType`, keeping unknown names."""
    return _TYPE_NAMES.get(name.lower(), name)


class InterfaceDocument:
    """Compiled protocol backed by a parsed interface document.

    Implements the :class:`CompiledProtocol` protocol.
    """

    def __init__(
        self,
        protocol: str,
        version: str,
        transactions: dict[str, TransactionPrototype],
    ) -> None:
        self._protocol = protocol
        self._version = version
        self._transactions = transactions

    @classmethod
    def from_dict(cls, protocol: str, data: Any) -> InterfaceDocument:
        """Validate and parse an interface document.

        Raises:
            CompilationError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise CompilationError(protocol, "interface document must be an object")

        version = data.get("version")
        if not isinstance(version, str) or not version:
            raise CompilationError(protocol, "interface document has no IR version")

        entries = data.get("transactions", [])
        if not isinstance(entries, list):
            raise CompilationError(protocol, "`transactions` must be a list")

        transactions: dict[str, TransactionPrototype] = {}
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                raise CompilationError(protocol, "transaction entry without a name")
            name = entry["name"]
            params = entry.get("parameters", {})
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise CompilationError(
                    protocol, f"parameters of `{name}` must be an object"
                )
            try:
                ir = bytes.fromhex(entry.get("ir") or "")
            except (TypeError, ValueError) as e:
                raise CompilationError(
                    protocol, f"IR of `{name}` is not valid hex"
                ) from e
            transactions[name] = TransactionPrototype(
                name=name,
                parameters={k: parse_param_type(str(v)) for k, v in params.items()},
                ir=ir,
            )
        return cls(protocol, version, transactions)

    @property
    def ir_version(self) -> str:
        return self._version

    def transactions(self) -> list[str]:
        return list(self._transactions)

    def new_transaction(self, name: str) -> TransactionPrototype:
        try:
            return self._transactions[name]
        except KeyError:
            raise TransactionNotFoundError(self._protocol, name) from None


class CommandCompiler:
    """Compiles protocols by running an external command.

    Implements the :class:`ProtocolCompiler` protocol.
    """

    def __init__(self, command: list[str], *, timeout: float = 30.0) -> None:
        if not command:
            msg = "Compiler command must not be empty"
            raise ValueError(msg)
        self._command = list(command)
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: CompilerConfig) -> CommandCompiler:
        return cls(config.command, timeout=config.timeout)

    def _argv(self, source_path: Path) -> list[str]:
        argv = [arg.replace(SOURCE_PLACEHOLDER, str(source_path)) for arg in self._command]
        if not any(SOURCE_PLACEHOLDER in arg for arg in self._command):
            argv.append(str(source_path))
        return argv

    async def compile(self, definition: ProtocolDefinition) -> CompiledProtocol:
        with tempfile.TemporaryDirectory(prefix="tx3-mcp-") as tmp:
            source_path = Path(tmp) / "protocol.tx3"
            source_path.write_text(definition.source, encoding="utf-8")
            stdout = await self._run(definition.name, self._argv(source_path))

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise CompilationError(
                definition.name, f"compiler produced invalid JSON: {e}"
            ) from e
        return InterfaceDocument.from_dict(definition.name, data)

    async def _run(self, protocol: str, argv: list[str]) -> bytes:
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise CompilationError(
                protocol, f"failed to start compiler: {exc}"
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(),
                timeout=self._timeout,
            )
        except TimeoutError:
            proc.kill()
            await proc.communicate()
            raise CompilationError(
                protocol, f"compiler timed out after {self._timeout} seconds"
            ) from None

        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            raise CompilationError(protocol, detail)
        return stdout


class CachingCompiler:
    """LRU cache of compiled protocols keyed by name and source digest.

    A changed source produces a new key, so cached entries are never stale.
    Compiled protocols are immutable and safe to share between requests.
    """

    def __init__(self, inner: ProtocolCompiler, max_entries: int = 64) -> None:
        self._inner = inner
        self._max_entries = max_entries
        self._entries: OrderedDict[tuple[str, str], CompiledProtocol] = OrderedDict()

    async def compile(self, definition: ProtocolDefinition) -> CompiledProtocol:
        digest = hashlib.sha256(definition.source.encode()).hexdigest()
        key = (definition.name, digest)
        cached = self._entries.get(key)
        if cached is not None:
            self._entries.move_to_end(key)
            return cached

        compiled = await self._inner.compile(definition)
        self._entries[key] = compiled
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted compiled protocol %s", evicted[0])
        return compiled

    def __len__(self) -> int:
        return len(self._entries)


def create_compiler(config: CompilerConfig) -> ProtocolCompiler:
    """Build the configured compiler, wrapped in a cache when enabled."""
    compiler: ProtocolCompiler = CommandCompiler.from_config(config)
    if config.cache_size > 0:
        compiler = CachingCompiler(compiler, max_entries=config.cache_size)
    return compiler
