"""Request dispatch: method name + wire arguments -> wire result or fault."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..coercion import to_host_args, to_wire
from ..errors import FaultCode, RemoteFault, UnknownMethod
from ..protocol.values import WireValue
from .registry import HandlerEntry, HandlerRegistry

logger = logging.getLogger(__name__)


class Dispatcher:
    """Routes decoded requests to handlers.

    Each request resolves its handler against one snapshot of the registry,
    pinned for the whole request. Argument and result coercion can be turned
    off, in which case handlers receive WireValues and non-WireValue results
    travel as opaque values.

    Errors:
    - unknown method -> UnknownMethod (code -32601)
    - nil or i8 arguments while extensions are off -> RemoteFault(-32600)
    - RemoteFault raised by a handler -> propagated unchanged
    - any other handler exception -> RemoteFault(0, str(exc))
    """

    def __init__(
        self,
        registry: HandlerRegistry,
        *,
        coerce_args: bool = True,
        coerce_result: bool = True,
        extensions: bool = False,
    ) -> None:
        self.registry = registry
        self.coerce_args = coerce_args
        self.coerce_result = coerce_result
        self.extensions = extensions

    def dispatch(self, method: str, params: Sequence[WireValue]) -> WireValue:
        """Invoke the handler for ``method`` and return its wire result.

        Raises:
            RemoteFault: For every failure; transports encode it as a fault
        """
        with self.registry.pinned() as handlers:
            entry = handlers.get(method)
            if entry is None:
                logger.debug(f"Unknown method requested: {method}")
                raise UnknownMethod(method)
            if not (self.extensions or entry.raw) and any(p.uses_extensions() for p in params):
                raise RemoteFault(
                    FaultCode.INVALID_REQUEST,
                    f"Arguments of {method} use extension types but extensions are disabled",
                    method=method,
                )
            return self._invoke(method, entry, params)

    __call__ = dispatch

    def _invoke(self, method: str, entry: HandlerEntry, params: Sequence[WireValue]) -> WireValue:
        coerce = self.coerce_args and not entry.raw
        args = to_host_args(params) if coerce else list(params)
        logger.debug(f"Dispatching {method} ({len(args)} args)")
        try:
            result = entry.func(*args)
            if entry.raw and isinstance(result, WireValue):
                return result
            return self.wrap_result(result)
        except RemoteFault:
            raise
        except Exception as e:
            logger.exception(f"Handler for {method} failed")
            raise RemoteFault(FaultCode.HANDLER_ERROR, str(e) or type(e).__name__, method=method) from e

    def wrap_result(self, result: Any) -> WireValue:
        """Turn a handler's return value into a WireValue."""
        if self.coerce_result:
            return to_wire(result, extensions=self.extensions)
        if isinstance(result, WireValue):
            return result
        return WireValue.opaque(result)
