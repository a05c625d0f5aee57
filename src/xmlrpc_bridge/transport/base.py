"""Server-side transport abstraction.

A server transport owns listening and framing. It receives decoded requests
and hands them to a dispatch function; the dispatch function returns a wire
value or raises RemoteFault, which the transport encodes as a fault
response.

Architecture:
- ServerTransport is the PROTOCOL (interface) for all server transports
- listen() starts serving and returns a ServerHandle
- shutdown() stops serving for a handle
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from ..protocol.values import WireValue

DispatchFn = Callable[[str, Sequence[WireValue]], WireValue]


@dataclass
class ServerHandle:
    """A listening server as seen by its transport.

    ``resources`` holds transport-specific state (threads, server objects).
    """

    port: int
    bind_address: str | None
    dispatch: DispatchFn
    running: bool = True
    resources: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ServerTransport(Protocol):
    """Protocol for server transports.

    All transports must implement:
    - listen: Start accepting requests, routing them to ``dispatch``
    - shutdown: Stop accepting requests for a handle
    """

    def listen(self, port: int, bind_address: str | None, dispatch: DispatchFn) -> ServerHandle:
        """Start serving and return a handle."""
        ...

    def shutdown(self, handle: ServerHandle) -> None:
        """Stop serving. Calling it twice is a no-op."""
        ...
