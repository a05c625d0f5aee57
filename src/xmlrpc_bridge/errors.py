"""Error taxonomy for xmlrpc-bridge.

Local errors (coercion, configuration) are raised immediately and are not
retriable. Remote faults always reach the caller. Transport errors pass
through the client unchanged.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class FaultCode:
    """Fault codes used on the wire."""

    HANDLER_ERROR = 0
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601


class XmlRpcBridgeError(Exception):
    """Base class for all xmlrpc-bridge errors."""


class CoercionError(XmlRpcBridgeError, TypeError):
    """No valid mapping exists for a value under the current mode."""


class ConfigError(XmlRpcBridgeError, ValueError):
    """Invalid client or server construction parameters."""


class TransportError(XmlRpcBridgeError, ConnectionError):
    """Connectivity, timeout or framing failure reported by a transport."""


class RemoteFault(XmlRpcBridgeError):
    """A structured remote failure: integer code plus message.

    On the client the fault also carries the method name and the original
    call arguments, and for multicall the index of the faulted call.
    """

    def __init__(
        self,
        code: int,
        message: str,
        *,
        method: str | None = None,
        call_args: Sequence[Any] | None = None,
        index: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.method = method
        self.call_args = list(call_args) if call_args is not None else None
        self.index = index

    def __str__(self) -> str:
        prefix = f"XML-RPC fault {self.code}"
        if self.index is not None:
            prefix += f" on call #{self.index}"
        if self.method:
            prefix += f" ({self.method})"
        return f"{prefix}: {self.message}"

    @classmethod
    def from_wire(cls, code: int, message: str) -> RemoteFault:
        """Build the most specific fault for a code received off the wire."""
        if code == FaultCode.METHOD_NOT_FOUND:
            return UnknownMethod(None, message)
        return cls(code, message)

    def bind(
        self,
        method: str,
        call_args: Sequence[Any],
        index: int | None = None,
    ) -> RemoteFault:
        """Return a copy of this fault tagged with call details."""
        return RemoteFault(
            self.code,
            self.message,
            method=method,
            call_args=call_args,
            index=self.index if index is None else index,
        )


class UnknownMethod(RemoteFault):
    """Dispatch or introspection referenced a method that is not registered.

    ``name`` is the missing method; it is ``None`` when the fault was decoded
    from a remote response that did not say which name was missing.
    """

    def __init__(
        self,
        name: str | None,
        message: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            FaultCode.METHOD_NOT_FOUND,
            message or f"No handler registered for method: {name}",
            **kwargs,
        )
        self.name = name

    def bind(
        self,
        method: str,
        call_args: Sequence[Any],
        index: int | None = None,
    ) -> RemoteFault:
        return UnknownMethod(
            self.name,
            self.message,
            method=method,
            call_args=call_args,
            index=self.index if index is None else index,
        )
