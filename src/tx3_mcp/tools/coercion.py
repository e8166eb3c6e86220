"""Argument coercion.

Callers send every argument as a string; each value is converted into
the protocol-native representation for its declared parameter type.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from tx3_mcp.core.errors import InvalidArgumentError, ParameterNotFoundError
from tx3_mcp.protocols.base import ParamType

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from tx3_mcp.protocols.base import ArgValue, TransactionPrototype

INT128_MIN = -(2**127)
INT128_MAX = 2**127 - 1

_INT_LITERAL = re.compile(r"[+-]?[0-9]+")


def _invalid(name: str) -> InvalidArgumentError:
    return InvalidArgumentError(f"Invalid value provided for parameter `{name}`")


def parse_int(name: str, value: str) -> int:
    """Parse a signed 128-bit integer literal."""
    if not _INT_LITERAL.fullmatch(value):
        msg = f"Invalid value provided for parameter `{name}`: expected an integer"
        raise InvalidArgumentError(msg)
    number = int(value)
    if not INT128_MIN <= number <= INT128_MAX:
        msg = f"Invalid value provided for parameter `{name}`: integer out of range"
        raise InvalidArgumentError(msg)
    return number


def parse_bool(name: str, value: str) -> bool:
    """Parse ``true`` or ``false``."""
    if value == "true":
        return True
    if value == "false":
        return False
    msg = f"Invalid value provided for parameter `{name}`: expected `true` or `false`"
    raise InvalidArgumentError(msg)


def _passthrough(name: str, value: str) -> str:
    return value


_COERCERS: dict[ParamType, Callable[[str, str], ArgValue]] = {
    ParamType.INT: parse_int,
    ParamType.BOOL: parse_bool,
    ParamType.BYTES: _passthrough,
    ParamType.ADDRESS: _passthrough,
}


def coerce_value(name: str, param_type: ParamType | str, value: Any) -> ArgValue:
    """Coerce a single raw value to its declared type."""
    if not isinstance(value, str):
        raise _invalid(name)
    try:
        kind = ParamType(param_type)
    except ValueError:
        raise _invalid(name) from None
    return _COERCERS[kind](name, value)


def coerce_arguments(
    prototype: TransactionPrototype,
    protocol: str,
    raw_args: Mapping[str, Any],
) -> dict[str, ArgValue]:
    """Coerce caller arguments for ``prototype``.

    Raises:
        InvalidArgumentError: On a non-string value, a malformed literal, an
            unsupported parameter type, or missing parameters.
        ParameterNotFoundError: If an argument is not declared.
    """
    parameters = prototype.find_parameters()
    args: dict[str, ArgValue] = {}
    for name, value in raw_args.items():
        if not isinstance(value, str):
            raise _invalid(name)
        if name not in parameters:
            raise ParameterNotFoundError(name, prototype.name, protocol)
        args[name] = coerce_value(name, parameters[name], value)

    missing = [name for name in parameters if name not in args]
    if missing:
        listed = ", ".join(f"`{name}`" for name in missing)
        msg = f"Missing value for parameter(s) {listed}"
        raise InvalidArgumentError(msg)
    return args
