"""Wire value model for the XML-RPC protocol.

A WireValue is a tagged union: the tag says which XML-RPC type the value
travels as, the payload holds the Python object for it.

    Tag                 Payload
    ─────────────────────────────────────────────
    nil (ext)           None
    boolean             bool
    i4                  int in [-2**31, 2**31 - 1]
    i8 (ext)            int in [-2**63, 2**63 - 1]
    double              float
    string              str
    base64              bytes
    dateTime.iso8601    datetime (UTC, tz-aware)
    struct              dict[str, WireValue]
    array               tuple[WireValue, ...]
    opaque              any object no mapping exists for

`opaque` never appears in a valid XML document; it lets in-process
transports carry objects the codec would reject.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class WireType(str, Enum):
    """All wire value tags."""

    NIL = "nil"
    BOOLEAN = "boolean"
    I4 = "i4"
    I8 = "i8"
    DOUBLE = "double"
    STRING = "string"
    BASE64 = "base64"
    DATETIME = "dateTime.iso8601"
    STRUCT = "struct"
    ARRAY = "array"
    OPAQUE = "opaque"

    @property
    def is_extension(self) -> bool:
        """True for tags outside the base XML-RPC specification."""
        return self in (WireType.NIL, WireType.I8)


class WireValue(BaseModel):
    """A single value as it travels on the wire.

    Build values with the factory classmethods rather than the constructor;
    the factories check ranges and normalise payloads.

    Example:
        WireValue.struct({"a": WireValue.i4(1)})
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: WireType
    value: Any = None

    @model_validator(mode="after")
    def _payload_matches_tag(self) -> WireValue:
        if not _PAYLOAD_CHECKS[self.type](self.value):
            raise ValueError(
                f"{type(self.value).__name__} payload {self.value!r} is not valid for {self.type.value}"
            )
        return self

    def __repr__(self) -> str:
        return f"WireValue({self.type.value}, {self.value!r})"

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def nil(cls) -> WireValue:
        return cls(type=WireType.NIL, value=None)

    @classmethod
    def boolean(cls, value: bool) -> WireValue:
        return cls(type=WireType.BOOLEAN, value=bool(value))

    @classmethod
    def i4(cls, value: int) -> WireValue:
        if not INT32_MIN <= value <= INT32_MAX:
            raise ValueError(f"{value} does not fit in a 32-bit int")
        return cls(type=WireType.I4, value=int(value))

    @classmethod
    def i8(cls, value: int) -> WireValue:
        if not INT64_MIN <= value <= INT64_MAX:
            raise ValueError(f"{value} does not fit in a 64-bit int")
        return cls(type=WireType.I8, value=int(value))

    @classmethod
    def double(cls, value: float) -> WireValue:
        return cls(type=WireType.DOUBLE, value=float(value))

    @classmethod
    def string(cls, value: str) -> WireValue:
        return cls(type=WireType.STRING, value=value)

    @classmethod
    def base64(cls, value: bytes) -> WireValue:
        return cls(type=WireType.BASE64, value=bytes(value))

    @classmethod
    def date_time(cls, value: datetime) -> WireValue:
        """Tag a datetime; naive values are taken to be UTC."""
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return cls(type=WireType.DATETIME, value=value.astimezone(UTC))

    @classmethod
    def struct(cls, members: Mapping[str, WireValue]) -> WireValue:
        return cls(type=WireType.STRUCT, value=dict(members))

    @classmethod
    def array(cls, items: Iterable[WireValue]) -> WireValue:
        return cls(type=WireType.ARRAY, value=tuple(items))

    @classmethod
    def opaque(cls, value: Any) -> WireValue:
        return cls(type=WireType.OPAQUE, value=value)

    # =========================================================================
    # Inspection
    # =========================================================================

    def is_struct(self) -> bool:
        return self.type == WireType.STRUCT

    def is_array(self) -> bool:
        return self.type == WireType.ARRAY

    def uses_extensions(self) -> bool:
        """True if this value or anything nested in it needs extension types."""
        if self.type.is_extension:
            return True
        if self.type == WireType.STRUCT:
            return any(v.uses_extensions() for v in self.value.values())
        if self.type == WireType.ARRAY:
            return any(v.uses_extensions() for v in self.value)
        return False


def _is_int(value: Any, low: int, high: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


# Payload check per tag; nested members are already validated WireValues
_PAYLOAD_CHECKS = {
    WireType.NIL: lambda v: v is None,
    WireType.BOOLEAN: lambda v: isinstance(v, bool),
    WireType.I4: lambda v: _is_int(v, INT32_MIN, INT32_MAX),
    WireType.I8: lambda v: _is_int(v, INT64_MIN, INT64_MAX),
    WireType.DOUBLE: lambda v: isinstance(v, float),
    WireType.STRING: lambda v: isinstance(v, str),
    WireType.BASE64: lambda v: isinstance(v, bytes),
    WireType.DATETIME: lambda v: isinstance(v, datetime) and v.tzinfo is not None,
    WireType.STRUCT: lambda v: isinstance(v, dict)
    and all(isinstance(k, str) and isinstance(m, WireValue) for k, m in v.items()),
    WireType.ARRAY: lambda v: isinstance(v, tuple) and all(isinstance(i, WireValue) for i in v),
    WireType.OPAQUE: lambda v: True,
}
