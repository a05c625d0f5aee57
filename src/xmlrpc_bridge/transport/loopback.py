"""In-process loopback transport.

Serves and calls within one process, skipping XML and HTTP entirely. One
LoopbackTransport instance acts as both the server transport passed to
``start`` and the client transport passed to ``create_client``:

    loopback = LoopbackTransport()
    server = start({"port": 8080, "handlers": {"math.add": add}}, transport=loopback)
    client = create_client("loopback://localhost:8080", transport=loopback)
    client.call("math.add", 1, 2)   # 3

Requests are routed by endpoint port. When the endpoint names no port and
exactly one server is listening, that server is used.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from urllib.parse import urlsplit

from ..client.config import CallConfig
from ..client.transport import BaseClientTransport
from ..errors import FaultCode, RemoteFault, TransportError
from ..protocol.values import WireValue
from .base import DispatchFn, ServerHandle

logger = logging.getLogger(__name__)


class LoopbackTransport(BaseClientTransport):
    """Client and server transport connected in memory."""

    def __init__(self, max_workers: int | None = None) -> None:
        super().__init__(max_workers=max_workers)
        self._servers: dict[int, ServerHandle] = {}
        self._servers_lock = threading.Lock()

    # =========================================================================
    # Server side
    # =========================================================================

    def listen(self, port: int, bind_address: str | None, dispatch: DispatchFn) -> ServerHandle:
        with self._servers_lock:
            if port in self._servers:
                raise TransportError(f"Loopback port {port} is already in use")
            handle = ServerHandle(port=port, bind_address=bind_address, dispatch=dispatch)
            self._servers[port] = handle
        logger.info(f"Loopback server listening on port {port}")
        return handle

    def shutdown(self, handle: ServerHandle) -> None:
        with self._servers_lock:
            if self._servers.get(handle.port) is handle:
                del self._servers[handle.port]
        if handle.running:
            handle.running = False
            logger.info(f"Loopback server on port {handle.port} stopped")

    # =========================================================================
    # Client side
    # =========================================================================

    def _resolve(self, endpoint: str) -> ServerHandle:
        try:
            port = urlsplit(endpoint).port
        except ValueError as e:
            raise TransportError(f"Invalid loopback endpoint: {endpoint}") from e
        with self._servers_lock:
            if port is None and len(self._servers) == 1:
                return next(iter(self._servers.values()))
            handle = self._servers.get(port) if port is not None else None
        if handle is None:
            raise TransportError(f"No loopback server listening at {endpoint}")
        return handle

    def execute(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: Sequence[WireValue],
    ) -> WireValue:
        handle = self._resolve(endpoint)
        logger.debug(f"Loopback {method} -> port {handle.port}")
        try:
            return handle.dispatch(method, list(params))
        except RemoteFault:
            raise
        except Exception as e:
            # Only RemoteFault is expected from a Dispatcher; other dispatch functions may differ
            logger.exception(f"Loopback dispatch of {method} failed")
            raise RemoteFault(FaultCode.HANDLER_ERROR, str(e) or type(e).__name__) from e
