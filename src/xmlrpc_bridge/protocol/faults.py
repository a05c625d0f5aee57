"""Fault and multicall records.

`system.multicall` carries a batch of calls in one request and answers with
one item per call:

    request item:   {"methodName": "math.add", "params": [1, 2]}
    success item:   [3]
    failure item:   {"faultCode": -32601, "faultString": "..."}

A success is wrapped in a one-element array so it can never be mistaken for a
fault struct.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import FaultCode, RemoteFault
from .values import INT32_MAX, INT32_MIN, WireValue

logger = logging.getLogger(__name__)


def fault_struct(code: int, message: str) -> WireValue:
    """The {faultCode, faultString} struct for a fault.

    faultCode travels as i4, so codes outside the 32-bit range are sent as
    the generic handler error code with the message kept.
    """
    if not INT32_MIN <= code <= INT32_MAX:
        logger.warning(f"Fault code {code} does not fit in i4; sending {FaultCode.HANDLER_ERROR}")
        code = FaultCode.HANDLER_ERROR
    return WireValue.struct(
        {
            "faultCode": WireValue.i4(code),
            "faultString": WireValue.string(message),
        }
    )


class Fault(BaseModel):
    """A structured remote failure as it appears inside a multicall response."""

    model_config = ConfigDict(frozen=True)

    code: int
    message: str

    def to_wire(self) -> WireValue:
        return fault_struct(self.code, self.message)

    def to_exception(
        self,
        method: str | None = None,
        call_args: Sequence[Any] | None = None,
        index: int | None = None,
    ) -> RemoteFault:
        """Build the RemoteFault a caller should see for this fault."""
        fault = RemoteFault.from_wire(self.code, self.message)
        if method is None:
            return fault
        return fault.bind(method, call_args or [], index)

    @classmethod
    def from_exception(cls, exc: BaseException) -> Fault:
        """Fault record for an exception raised while handling a call."""
        if isinstance(exc, RemoteFault):
            return cls(code=exc.code, message=exc.message)
        return cls(code=0, message=str(exc) or type(exc).__name__)

    @classmethod
    def from_host(cls, value: Any) -> Fault | None:
        """Return the fault a host-side response item describes, if any."""
        if isinstance(value, Mapping) and "faultCode" in value:
            return cls(
                code=int(value["faultCode"]),
                message=str(value.get("faultString", "")),
            )
        return None


class MulticallRequest(BaseModel):
    """One call inside a multicall batch, with host-side arguments."""

    model_config = ConfigDict(frozen=True)

    method: str
    params: list[Any] = Field(default_factory=list)

    @classmethod
    def from_call(cls, call: Any) -> MulticallRequest:
        """Normalise the accepted call shapes.

        Accepts a MulticallRequest, a ``(method, *args)`` sequence, or a
        ``{"methodName": ..., "params": [...]}`` mapping.
        """
        if isinstance(call, MulticallRequest):
            return call
        if isinstance(call, Mapping):
            return cls(method=call["methodName"], params=list(call.get("params") or []))
        if isinstance(call, Sequence) and not isinstance(call, str) and call:
            method, *args = call
            return cls(method=method, params=args)
        raise ValueError(f"Cannot build a multicall request from {call!r}")

    def as_call(self) -> tuple[Any, ...]:
        """The ``(method, *args)`` form of this request."""
        return (self.method, *self.params)
