"""XML-RPC client.

Quick start:

    from xmlrpc_bridge import create_client

    client = create_client("http://localhost:8080/RPC2")

    client.call("math.add", 2, 3)                  # 5
    client.call("system.listMethods")              # ["math.add", ...]

    # async - returns a concurrent.futures.Future
    future = client.call_async("long.op", 42)
    future.result(timeout=5)

    # batch, one round trip
    client.multicall([("math.add", 1, 2), ("math.sub", 10, 3)])   # [3, 7]

    # per-call config overrides
    client.call_with({"reply_timeout": 500}, "fast.op")

All arguments and return values are coerced between Python and wire values;
see `xmlrpc_bridge.coercion` for the mapping.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Any

from ..coercion import coerce_params, to_host
from ..errors import RemoteFault, TransportError
from ..protocol.faults import Fault, MulticallRequest
from ..protocol.values import WireValue
from .config import CallConfig
from .transport import ClientTransport, HTTPClientTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Client:
    """An endpoint plus default call configuration.

    Clients are immutable: ``call_with`` builds an ephemeral config for one
    call and never touches the defaults, so one client can be shared freely
    between threads.
    """

    endpoint: str
    config: CallConfig = field(default_factory=CallConfig)
    transport: ClientTransport = field(default_factory=HTTPClientTransport, compare=False)

    # =========================================================================
    # Calls
    # =========================================================================

    def call(self, method: str, *args: Any) -> Any:
        """Execute a blocking call and return its coerced result.

        Raises:
            RemoteFault: On a fault response, tagged with method and args
            TransportError: On connectivity or timeout failure
            CoercionError: If an argument cannot be sent under this config
        """
        return self._execute(self.config, method, args)

    def call_with(self, overrides: Mapping[str, Any], method: str, *args: Any) -> Any:
        """Like ``call``, with ``overrides`` merged into the config for this call only.

            client.call_with({"reply_timeout": 500}, "fast.method", 1, 2)
        """
        return self._execute(self.config.with_overrides(overrides), method, args)

    def _execute(self, config: CallConfig, method: str, args: tuple[Any, ...]) -> Any:
        params = coerce_params(args, extensions=config.extensions)
        logger.debug(f"Calling {method} at {self.endpoint}")
        try:
            result = self.transport.execute(self.endpoint, config, method, params)
        except RemoteFault as e:
            raise e.bind(method, args) from e
        return to_host(result)

    def call_async(self, method: str, *args: Any) -> Future[Any]:
        """Execute a call without blocking.

        Returns a Future that completes exactly once, either with the coerced
        result or with the error (RemoteFault tagged with method and args,
        or TransportError). The completion runs on a transport-owned thread.
        Cancelling the future does not stop the remote side.
        """
        future: Future[Any] = Future()
        params = coerce_params(args, extensions=self.config.extensions)

        def on_complete(result: WireValue | None, error: BaseException | None) -> None:
            if error is None:
                try:
                    value = to_host(result)
                except Exception as e:
                    _complete(future, method, error=e)
                else:
                    _complete(future, method, value=value)
            elif isinstance(error, RemoteFault):
                _complete(future, method, error=error.bind(method, args))
            else:
                _complete(future, method, error=error)

        self.transport.execute_async(self.endpoint, self.config, method, params, on_complete)
        return future

    def multicall(self, calls: Iterable[Any], *, fail_fast: bool = True) -> list[Any]:
        """Execute several calls in one round trip via ``system.multicall``.

        Each call is a ``(method, *args)`` tuple, a MulticallRequest, or a
        ``{"methodName": ..., "params": [...]}`` mapping:

            client.multicall([("math.add", 1, 2), ("math.sub", 10, 3)])   # [3, 7]

        Results come back in submission order. With ``fail_fast`` (the
        default) the first fault raises RemoteFault tagged with its index and
        later results are not inspected. With ``fail_fast=False`` the full
        list is returned with Fault records in place of failed results.

        Raises:
            RemoteFault: On the first faulted call (fail_fast), or if the
                multicall request itself faults
            TransportError: If the response is not one result per call
        """
        requests = [MulticallRequest.from_call(c) for c in calls]
        extensions = self.config.extensions
        batch = WireValue.array(
            WireValue.struct(
                {
                    "methodName": WireValue.string(r.method),
                    "params": WireValue.array(coerce_params(r.params, extensions=extensions)),
                }
            )
            for r in requests
        )

        logger.debug(f"Multicall of {len(requests)} calls at {self.endpoint}")
        try:
            raw = self.transport.execute(self.endpoint, self.config, "system.multicall", [batch])
        except RemoteFault as e:
            raise e.bind("system.multicall", [r.as_call() for r in requests]) from e

        items = to_host(raw)
        if not isinstance(items, list) or len(items) != len(requests):
            count = len(items) if isinstance(items, list) else type(items).__name__
            raise TransportError(
                f"system.multicall returned {count} results for {len(requests)} calls"
            )

        results: list[Any] = []
        for index, (request, item) in enumerate(zip(requests, items, strict=True)):
            fault = Fault.from_host(item)
            if fault is not None:
                if fail_fast:
                    raise fault.to_exception(request.method, request.params, index)
                results.append(fault)
            elif isinstance(item, list) and len(item) == 1:
                results.append(item[0])
            else:
                results.append(item)
        return results

    # =========================================================================
    # Introspection helpers (system.* methods)
    # =========================================================================

    def list_methods(self) -> list[str]:
        """Return the method names the server supports."""
        return list(self.call("system.listMethods"))

    def method_help(self, method_name: str) -> str:
        """Return the help string for ``method_name``."""
        return self.call("system.methodHelp", method_name)

    def method_signature(self, method_name: str) -> Any:
        """Return the signature list for ``method_name``, or ``"undefined"``."""
        return self.call("system.methodSignature", method_name)

    def close(self) -> None:
        """Close the underlying transport."""
        self.transport.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


def _complete(
    future: Future[Any],
    method: str,
    *,
    value: Any = None,
    error: BaseException | None = None,
) -> None:
    """Complete ``future`` once; later completions are logged and dropped."""
    if future.cancelled():
        logger.debug(f"Dropping completion of cancelled call to {method}")
        return
    try:
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)
    except InvalidStateError:
        logger.warning(f"Ignoring repeated completion of call to {method}")


def create_client(
    endpoint: str,
    transport: ClientTransport | None = None,
    **options: Any,
) -> Client:
    """Create a client.

    Args:
        endpoint: The XML-RPC endpoint URL
        transport: Transport to use (default: a new HTTPClientTransport)
        **options: CallConfig fields: basic_auth, connect_timeout,
            reply_timeout, content_length_optional, gzip_compressing,
            gzip_requesting, encoding, user_agent, extensions, python_compat

    Raises:
        ConfigError: If an option is unknown or invalid
    """
    config = CallConfig.build(**options)
    return Client(
        endpoint=endpoint,
        config=config,
        transport=transport if transport is not None else HTTPClientTransport(),
    )
