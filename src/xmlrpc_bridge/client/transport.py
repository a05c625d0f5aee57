"""Client-side transport abstraction.

Lets the client work over HTTP, in-process loopback, or a mock without
changing client code.

Architecture:
- ClientTransport is the PROTOCOL (interface) for all client transports
- Implementations handle the wire format and connection management
- The Client accepts any ClientTransport via constructor injection

Transports work on already-coerced WireValues. Coercion, fault tagging and
future handling stay in the client.
"""

from __future__ import annotations

import gzip
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx

from ..errors import TransportError
from ..protocol.values import WireValue
from ..protocol.xml import dumps_request, loads_response
from .config import CallConfig

logger = logging.getLogger(__name__)

# Called exactly once per async call: (result, None) or (None, error)
CompletionCallback = Callable[[WireValue | None, BaseException | None], None]


@runtime_checkable
class ClientTransport(Protocol):
    """Protocol for client transports.

    All transports must implement:
    - execute: Blocking call returning the response value
    - execute_async: Non-blocking call completing a callback on a
      transport-owned thread
    - close: Release connections and worker threads

    ``execute`` raises RemoteFault for faults and TransportError for
    connectivity, timeout and framing failures.
    """

    def execute(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
    ) -> WireValue:
        """Send one call and wait for its response."""
        ...

    def execute_async(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
        on_complete: CompletionCallback,
    ) -> None:
        """Send one call; ``on_complete`` runs exactly once when it finishes."""
        ...

    def close(self) -> None:
        """Release transport resources."""
        ...


class BaseClientTransport(ABC):
    """Base class for client transports with common functionality.

    Provides:
    - execute_async on a worker pool owned by the transport
    - Exactly-once completion (success xor failure) for each async call
    - Context manager support
    """

    def __init__(self, max_workers: int | None = None) -> None:
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._lock = threading.Lock()

    @abstractmethod
    def execute(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
    ) -> WireValue:
        """Implementation-specific blocking call."""
        ...

    def execute_async(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
        on_complete: CompletionCallback,
    ) -> None:
        """Run ``execute`` on the worker pool and report to ``on_complete``."""
        self._get_executor().submit(
            self._run_async, endpoint, config, method, params, on_complete
        )

    def _run_async(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
        on_complete: CompletionCallback,
    ) -> None:
        try:
            result = self.execute(endpoint, config, method, params)
        except Exception as e:
            self._notify(on_complete, None, e)
        else:
            self._notify(on_complete, result, None)

    @staticmethod
    def _notify(
        on_complete: CompletionCallback,
        result: WireValue | None,
        error: BaseException | None,
    ) -> None:
        try:
            on_complete(result, error)
        except Exception:
            logger.exception("Completion callback raised")

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix=f"{type(self).__name__}-worker",
                )
            return self._executor

    def close(self) -> None:
        """Shut down the worker pool, waiting for in-flight async calls."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
            logger.debug(f"{type(self).__name__} worker pool shut down")

    def __enter__(self) -> BaseClientTransport:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class HTTPClientTransport(BaseClientTransport):
    """Transport over HTTP POST of XML-RPC documents.

    Maps CallConfig onto the request:
    - basic_auth -> HTTP basic auth
    - connect_timeout / reply_timeout -> httpx connect / read timeouts
    - gzip_compressing -> gzip request body with Content-Encoding: gzip
    - gzip_requesting -> Accept-Encoding: gzip (identity otherwise)
    - content_length_optional -> chunked request body
    - encoding, user_agent, python_compat -> document and headers

    Pass an ``httpx.Client`` to share a connection pool or to test against
    an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        http_client: httpx.Client | None = None,
        max_workers: int | None = None,
    ) -> None:
        super().__init__(max_workers=max_workers)
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_http_client(self) -> httpx.Client:
        with self._lock:
            if self._http_client is None:
                self._http_client = httpx.Client()
            return self._http_client

    def execute(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
    ) -> WireValue:
        body = dumps_request(
            method,
            params,
            encoding=config.encoding,
            python_compat=config.python_compat,
        )
        headers = {
            "Content-Type": f"text/xml; charset={config.encoding}",
            "Accept-Encoding": "gzip" if config.gzip_requesting else "identity",
        }
        if config.user_agent:
            headers["User-Agent"] = config.user_agent
        if config.gzip_compressing:
            body = gzip.compress(body)
            headers["Content-Encoding"] = "gzip"

        content: Any = iter([body]) if config.content_length_optional else body
        auth = (
            (config.basic_auth.user, config.basic_auth.password) if config.basic_auth else None
        )
        timeout = httpx.Timeout(
            config.reply_timeout_seconds,
            connect=config.connect_timeout_seconds,
        )

        logger.debug(f"POST {endpoint} {method} ({len(params)} params)")
        try:
            response = self._get_http_client().post(
                endpoint,
                content=content,
                headers=headers,
                auth=auth,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"Timed out calling {method} at {endpoint}: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to call {method} at {endpoint}: {e}") from e

        if response.status_code != 200:
            raise TransportError(
                f"HTTP {response.status_code} from {endpoint} calling {method}"
            )
        return loads_response(response.content)

    def close(self) -> None:
        super().close()
        with self._lock:
            http_client, self._http_client = self._http_client, None
        if http_client is not None and self._owns_client:
            http_client.close()


@dataclass(frozen=True)
class RecordedCall:
    """A call captured by MockClientTransport."""

    endpoint: str
    config: CallConfig
    method: str
    params: list[WireValue]


# A canned response: a value, an exception to raise, or a function of the params
MockResponse = WireValue | BaseException | Callable[[list[WireValue]], WireValue]


class MockClientTransport(BaseClientTransport):
    """Mock transport for testing.

    Allows injecting predefined responses and recording calls.
    No actual I/O - everything is in-memory.

    Usage:
        transport = MockClientTransport()
        transport.set_response("math.add", WireValue.i4(3))

        client = Client("http://example.invalid/RPC2", transport=transport)
        assert client.call("math.add", 1, 2) == 3

        assert transport.recorded_calls[0].method == "math.add"
    """

    def __init__(self) -> None:
        super().__init__()
        self._responses: dict[str, MockResponse] = {}
        self._recorded_calls: list[RecordedCall] = []

    @property
    def recorded_calls(self) -> list[RecordedCall]:
        """Get all calls sent through this transport."""
        with self._lock:
            return self._recorded_calls.copy()

    def set_response(self, method: str, response: MockResponse) -> None:
        """Set the canned response for a method."""
        with self._lock:
            self._responses[method] = response

    def clear(self) -> None:
        """Clear recorded calls and responses."""
        with self._lock:
            self._recorded_calls.clear()
            self._responses.clear()

    def execute(
        self,
        endpoint: str,
        config: CallConfig,
        method: str,
        params: list[WireValue],
    ) -> WireValue:
        with self._lock:
            self._recorded_calls.append(RecordedCall(endpoint, config, method, list(params)))
            response = self._responses.get(
                method, WireValue.struct({"mock": WireValue.boolean(True)})
            )

        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(list(params))
        return response


# Factory functions


def create_http_transport(
    http_client: httpx.Client | None = None,
    max_workers: int | None = None,
) -> HTTPClientTransport:
    """Create an HTTP transport.

    Args:
        http_client: Optional pre-configured httpx client
        max_workers: Size of the pool running async calls

    Returns:
        HTTPClientTransport configured for HTTP communication
    """
    return HTTPClientTransport(http_client=http_client, max_workers=max_workers)


def create_mock_transport() -> MockClientTransport:
    """Create a mock transport for testing.

    Returns:
        MockClientTransport for testing
    """
    return MockClientTransport()
