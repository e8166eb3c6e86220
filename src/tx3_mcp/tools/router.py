"""Operation routing.

Operation names pack ``<action>-<protocol>-<transaction>`` into a single
string. :func:`parse_operation` decodes them and :func:`route` resolves
the protocol and transaction they point at.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tx3_mcp.core.errors import OperationNotFoundError, ProtocolNotFoundError
from tx3_mcp.protocols.base import OPERATION_DELIMITER

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tx3_mcp.protocols.base import (
        ProtocolCompiler,
        ProtocolDefinition,
        TransactionPrototype,
    )

RESOLVE = "resolve"
DESCRIBE = "describe"
ACTIONS = (RESOLVE, DESCRIBE)

# Fixed tool name outside the <action>-<protocol>-<transaction> grammar.
LIST_PROTOCOLS = "list-protocols"

_COMPONENTS = ("Operation", "Protocol", "Transaction")


@dataclass(frozen=True, slots=True)
class OperationKey:
    """Decoded operation name."""

    action: str
    protocol: str
    transaction: str

    @property
    def name(self) -> str:
        return OPERATION_DELIMITER.join((self.action, self.protocol, self.transaction))


@dataclass(frozen=True, slots=True)
class RoutedOperation:
    """An operation bound to its transaction prototype."""

    key: OperationKey
    prototype: TransactionPrototype
    ir_version: str


def parse_operation(name: str) -> OperationKey:
    """Decode an operation name.

    Raises:
        OperationNotFoundError: If a component is missing, there are extra
            components, or the action is unknown.
    """
    parts = name.split(OPERATION_DELIMITER)
    for index, component in enumerate(_COMPONENTS):
        if index >= len(parts) or not parts[index]:
            msg = f"{component} name not found in `{name}`"
            raise OperationNotFoundError(msg)
    if len(parts) > len(_COMPONENTS):
        msg = f"Unknown operation `{name}`"
        raise OperationNotFoundError(msg)

    action, protocol, transaction = parts
    if action not in ACTIONS:
        msg = f"Unknown operation `{action}` in `{name}`"
        raise OperationNotFoundError(msg)
    return OperationKey(action, protocol, transaction)


def find_definition(
    definitions: Iterable[ProtocolDefinition], protocol: str
) -> ProtocolDefinition:
    for definition in definitions:
        if definition.name == protocol:
            return definition
    raise ProtocolNotFoundError(protocol)


async def route(
    name: str,
    definitions: Iterable[ProtocolDefinition],
    compiler: ProtocolCompiler,
) -> RoutedOperation:
    """Resolve an operation name to its transaction prototype.

    Raises:
        OperationNotFoundError: If the name cannot be decoded.
        ProtocolNotFoundError: If no definition has the protocol name.
        CompilationError: If the protocol source does not compile.
        TransactionNotFoundError: If the protocol has no such transaction.
    """
    key = parse_operation(name)
    definition = find_definition(definitions, key.protocol)
    compiled = await compiler.compile(definition)
    prototype = compiled.new_transaction(key.transaction)
    return RoutedOperation(key=key, prototype=prototype, ir_version=compiled.ir_version)
