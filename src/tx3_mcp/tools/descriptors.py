"""Tool descriptor builder.

Derives two MCP tools per transaction of every loaded protocol:
``resolve-<protocol>-<transaction>`` and ``describe-<protocol>-<transaction>``.
The fixed ``list-protocols`` tool sits alongside them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mcp.types import Tool, ToolAnnotations

from tx3_mcp.core.errors import CompilationError
from tx3_mcp.protocols.base import OPERATION_DELIMITER
from tx3_mcp.tools.router import DESCRIBE, LIST_PROTOCOLS, RESOLVE, OperationKey

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tx3_mcp.protocols.base import (
        ParamType,
        ProtocolCompiler,
        ProtocolDefinition,
    )

logger = logging.getLogger(__name__)

DEFAULT_ANNOTATIONS = ToolAnnotations(
    readOnlyHint=True,
    destructiveHint=False,
    idempotentHint=False,
    openWorldHint=True,
)


def resolve_schema(parameters: dict[str, ParamType | str]) -> dict[str, Any]:
    """Input schema with one required string property per parameter.

    Values are coerced to their native type at invocation time, so every
    property is declared as a string.
    """
    return {
        "type": "object",
        "properties": {
            name: {
                "type": "string",
                "description": f"Value of type {param_type}.",
            }
            for name, param_type in parameters.items()
        },
        "required": list(parameters),
    }


def resolve_tool(
    protocol: str, transaction: str, parameters: dict[str, ParamType | str]
) -> Tool:
    return Tool(
        name=OperationKey(RESOLVE, protocol, transaction).name,
        description=(
            f"Resolve the `{transaction}` transaction of the `{protocol}` "
            "protocol and return the serialized transaction."
        ),
        inputSchema=resolve_schema(parameters),
        annotations=DEFAULT_ANNOTATIONS,
    )


def describe_tool(protocol: str, transaction: str) -> Tool:
    return Tool(
        name=OperationKey(DESCRIBE, protocol, transaction).name,
        description=(
            f"List the parameters and types required by the `{transaction}` "
            f"transaction of the `{protocol}` protocol."
        ),
        inputSchema={"type": "object", "properties": {}},
        annotations=DEFAULT_ANNOTATIONS,
    )


def list_protocols_tool() -> Tool:
    return Tool(
        name=LIST_PROTOCOLS,
        description="List the names of all the available protocols.",
        inputSchema={"type": "object", "properties": {}},
        annotations=DEFAULT_ANNOTATIONS,
    )


async def build_tools(
    definitions: Iterable[ProtocolDefinition],
    compiler: ProtocolCompiler,
) -> list[Tool]:
    """Build tool descriptors for every transaction of every protocol.

    Order follows the definitions and the compiler's transaction order.
    A protocol that fails to compile is logged and left out.
    """
    tools: list[Tool] = []
    for definition in definitions:
        try:
            compiled = await compiler.compile(definition)
        except CompilationError as exc:
            logger.warning("Skipping protocol %s: %s", definition.name, exc)
            continue

        for transaction in compiled.transactions():
            if OPERATION_DELIMITER in transaction:
                logger.warning(
                    "Skipping transaction %r of %s: name contains %r",
                    transaction,
                    definition.name,
                    OPERATION_DELIMITER,
                )
                continue
            prototype = compiled.new_transaction(transaction)
            tools.append(
                resolve_tool(definition.name, transaction, prototype.find_parameters())
            )
            tools.append(describe_tool(definition.name, transaction))
    return tools
