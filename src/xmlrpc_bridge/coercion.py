"""Bidirectional type coercion between Python values and wire values.

    Python value                      Wire tag
    ─────────────────────────────────────────────────────────
    None                              nil (ext, needs extensions)
    bool                              boolean
    int (32-bit range)                i4
    int (64-bit range)                i8 (ext, needs extensions)
    float / Decimal / Fraction        double (lossy for the latter two)
    str / Identifier / Enum           string ("ns/name" for namespaced)
    bytes / bytearray / memoryview    base64
    datetime / date                   dateTime.iso8601 (UTC)
    Mapping                           struct (keys stringified)
    list / tuple / set / iterable     array (generators are consumed)
    anything else                     opaque (or CoercionError when strict)

Two core operations:

    to_wire(value)  - Python -> wire (outbound, before sending)
    to_host(value)  - wire -> Python (inbound, after receiving)

Round trips are exact for booleans, strings, 32-bit ints, floats, bytes and
UTC-aware datetimes. Struct key stringification is one-way: a struct built
from ``{(1, 2): "x"}`` comes back as ``{"(1, 2)": "x"}``. Set iteration order
is not stabilised, so arrays built from sets have no guaranteed order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any

from .errors import CoercionError
from .protocol.values import (
    INT32_MAX,
    INT32_MIN,
    INT64_MAX,
    INT64_MIN,
    WireType,
    WireValue,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identifier:
    """A symbolic name, optionally namespaced.

    Identifiers travel as strings: ``Identifier("name", "ns")`` is sent as
    ``"ns/name"``. They are the Python stand-in for keyword-style keys.
    """

    name: str
    namespace: str | None = None

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @classmethod
    def parse(cls, text: str) -> Identifier:
        """Split ``"ns/name"`` back into an identifier."""
        namespace, sep, name = text.rpartition("/")
        if sep and namespace and name:
            return cls(name, namespace)
        return cls(text)


# =============================================================================
# Python -> wire
# =============================================================================


def to_wire(value: Any, *, extensions: bool = False, strict: bool = False) -> WireValue:
    """Convert a Python value into its wire representation.

    Args:
        value: The value to convert
        extensions: Allow extension types (nil and 64-bit ints)
        strict: Raise instead of passing unrecognised objects through as opaque

    Raises:
        CoercionError: If the value has no mapping under the current mode
    """
    match value:
        case WireValue():
            return value
        case None:
            if not extensions:
                raise CoercionError("None needs the nil extension type; enable extensions to send it")
            return WireValue.nil()
        case bool():
            return WireValue.boolean(value)
        case int():
            return _int_to_wire(value, extensions)
        case float():
            return WireValue.double(value)
        case Decimal() | Fraction():
            return WireValue.double(float(value))
        case Enum():
            return to_wire(value.value, extensions=extensions, strict=strict)
        case str():
            return WireValue.string(value)
        case Identifier():
            return WireValue.string(str(value))
        case bytes() | bytearray() | memoryview():
            return WireValue.base64(bytes(value))
        case datetime():
            return WireValue.date_time(value)
        case date():
            return WireValue.date_time(datetime.combine(value, time(), tzinfo=UTC))
        case Mapping():
            return WireValue.struct(
                {
                    _struct_key(k): to_wire(v, extensions=extensions, strict=strict)
                    for k, v in value.items()
                }
            )
        case Iterable():
            return WireValue.array(
                to_wire(item, extensions=extensions, strict=strict) for item in value
            )
        case _:
            if strict:
                raise CoercionError(f"No wire mapping for {type(value).__name__}: {value!r}")
            logger.debug(f"Passing {type(value).__name__} through as opaque")
            return WireValue.opaque(value)


def _int_to_wire(value: int, extensions: bool) -> WireValue:
    if INT32_MIN <= value <= INT32_MAX:
        return WireValue.i4(value)
    if not INT64_MIN <= value <= INT64_MAX:
        raise CoercionError(f"Integer {value} exceeds the 64-bit range")
    if not extensions:
        raise CoercionError(
            f"Integer {value} exceeds the 32-bit range; enable extensions to send it as i8"
        )
    return WireValue.i8(value)


def _struct_key(key: Any) -> str:
    match key:
        case str():
            return key
        case Enum():
            return _struct_key(key.value)
        case _:
            return str(key)


def coerce_params(
    args: Iterable[Any],
    *,
    extensions: bool = False,
    strict: bool = False,
) -> list[WireValue]:
    """Coerce a call's positional arguments for sending."""
    return [to_wire(arg, extensions=extensions, strict=strict) for arg in args]


# =============================================================================
# Wire -> Python
# =============================================================================


def to_host(value: Any) -> Any:
    """Convert a wire value into an idiomatic Python value.

    Structs become dicts with string keys, arrays become lists, both int tags
    become plain ints. Anything that is not a WireValue is returned as is.
    """
    if not isinstance(value, WireValue):
        return value

    match value.type:
        case WireType.STRUCT:
            return {str(k): to_host(v) for k, v in value.value.items()}
        case WireType.ARRAY:
            return [to_host(item) for item in value.value]
        case WireType.I4 | WireType.I8:
            return int(value.value)
        case WireType.DATETIME:
            dt: datetime = value.value
            return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)
        case _:
            return value.value


def to_host_args(args: Iterable[Any]) -> list[Any]:
    """Coerce received positional arguments for a handler."""
    return [to_host(arg) for arg in args]
