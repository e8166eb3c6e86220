"""Protocol data model and collaborator interfaces.

``ProtocolSource`` supplies raw protocol definitions and
``ProtocolCompiler`` turns them into ``CompiledProtocol`` handles.
Data classes are immutable (frozen dataclasses with slots) so a loaded
snapshot can be shared by concurrent requests.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

OPERATION_DELIMITER = "-"


class ParamType(enum.StrEnum):
    """Native parameter types the coercer knows how to build."""

    INT = "Int"
    BOOL = "Bool"
    BYTES = "Bytes"
    ADDRESS = "Address"


ArgValue = int | bool | str
"""Coerced, protocol-native argument value."""


@dataclass(frozen=True, slots=True)
class ProtocolDefinition:
    """Raw protocol source as supplied by a source."""

    name: str
    source: str


@dataclass(frozen=True, slots=True)
class TransactionPrototype:
    """A transaction instantiated from a compiled protocol.

    ``parameters`` maps parameter names to a :class:`ParamType`, or to the
    compiler's raw type name when it is not one the coercer supports.
    """

    name: str
    parameters: dict[str, ParamType | str] = field(default_factory=dict)
    ir: bytes = b""

    def find_parameters(self) -> dict[str, ParamType | str]:
        return dict(self.parameters)

    def ir_bytes(self) -> bytes:
        return self.ir


@runtime_checkable
class CompiledProtocol(Protocol):
    """Opaque handle produced by a :class:`ProtocolCompiler`."""

    @property
    def ir_version(self) -> str:
        """IR format version reported by the compiler (e.g. ``v1alpha1``)."""
        ...

    def transactions(self) -> list[str]:
        """Transaction names in declaration order."""
        ...

    def new_transaction(self, name: str) -> TransactionPrototype:
        """Instantiate a transaction.

        Raises:
            TransactionNotFoundError: If the protocol has no such transaction.
        """
        ...


@runtime_checkable
class ProtocolCompiler(Protocol):
    """Compiles protocol source text."""

    async def compile(self, definition: ProtocolDefinition) -> CompiledProtocol:
        """Compile a definition.

        Raises:
            CompilationError: If the source cannot be compiled.
        """
        ...


@runtime_checkable
class ProtocolSource(Protocol):
    """Supplies protocol definitions."""

    async def load(self) -> list[ProtocolDefinition]:
        """Return the currently available definitions."""
        ...


def reserve_delimiter(name: str) -> str:
    """Replace the operation delimiter so ``name`` splits unambiguously."""
    return name.replace(OPERATION_DELIMITER, "_")
