"""HTTP server transport.

Serves XML-RPC over HTTP POST with a Starlette application run by uvicorn
on a background thread.

Routes:
- POST {path} - XML-RPC endpoint (default /RPC2)
- GET /health - Health check

Every failure inside a request becomes a fault response; nothing raised by a
handler or by decoding ever reaches uvicorn.
"""

from __future__ import annotations

import gzip
import logging
import threading
import time
import zlib

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.gzip import GZipMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ..errors import FaultCode, RemoteFault, TransportError
from ..protocol.xml import DEFAULT_ENCODING, dumps_fault, dumps_response, loads_request
from .base import DispatchFn, ServerHandle

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/RPC2"
STARTUP_TIMEOUT = 10.0


def create_app(
    dispatch: DispatchFn,
    *,
    path: str = DEFAULT_PATH,
    encoding: str = DEFAULT_ENCODING,
    python_compat: bool = False,
) -> Starlette:
    """Create the ASGI application serving ``dispatch``.

    Args:
        dispatch: Called with (method, params) on a worker thread
        path: URL path of the XML-RPC endpoint
        encoding: Character encoding of response documents
        python_compat: Emit extension types without the namespace prefix

    Returns:
        Configured Starlette application
    """

    async def rpc(request: Request) -> Response:
        body = await request.body()
        try:
            if request.headers.get("content-encoding", "").lower() == "gzip":
                body = _gunzip(body)
            method, params = loads_request(body)
            result = await run_in_threadpool(dispatch, method, params)
            payload = dumps_response(result, encoding=encoding, python_compat=python_compat)
        except RemoteFault as e:
            logger.debug(f"Fault {e.code}: {e.message}")
            payload = dumps_fault(e.code, e.message, encoding=encoding)
        except Exception as e:
            logger.exception("Unexpected error serving XML-RPC request")
            payload = dumps_fault(FaultCode.HANDLER_ERROR, str(e) or type(e).__name__, encoding=encoding)
        return Response(payload, media_type=f"text/xml; charset={encoding}")

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    routes = [
        Route(path, rpc, methods=["POST"]),
        Route("/health", health, methods=["GET"]),
    ]
    # Compresses responses when the client sends Accept-Encoding: gzip
    middleware = [Middleware(GZipMiddleware, minimum_size=500)]

    return Starlette(routes=routes, middleware=middleware)


def _gunzip(body: bytes) -> bytes:
    try:
        return gzip.decompress(body)
    except (OSError, EOFError, zlib.error) as e:
        raise RemoteFault(FaultCode.PARSE_ERROR, f"Invalid gzip request body: {e}") from e


class HTTPServerTransport:
    """Server transport running uvicorn on a daemon thread per listener."""

    def __init__(
        self,
        path: str = DEFAULT_PATH,
        *,
        encoding: str = DEFAULT_ENCODING,
        python_compat: bool = False,
        log_level: str = "warning",
    ) -> None:
        self.path = path
        self.encoding = encoding
        self.python_compat = python_compat
        self.log_level = log_level

    def listen(self, port: int, bind_address: str | None, dispatch: DispatchFn) -> ServerHandle:
        """Start uvicorn and wait until it accepts connections.

        Raises:
            TransportError: If the server fails to start
        """
        app = create_app(
            dispatch,
            path=self.path,
            encoding=self.encoding,
            python_compat=self.python_compat,
        )
        host = bind_address or "0.0.0.0"
        server = uvicorn.Server(
            uvicorn.Config(app, host=host, port=port, log_level=self.log_level)
        )
        thread = threading.Thread(target=server.run, name=f"xmlrpc-http-{port}", daemon=True)
        thread.start()

        deadline = time.monotonic() + STARTUP_TIMEOUT
        while not server.started:
            if not thread.is_alive() or time.monotonic() > deadline:
                server.should_exit = True
                raise TransportError(f"HTTP server failed to start on {host}:{port}")
            time.sleep(0.01)

        logger.info(f"XML-RPC server listening on http://{host}:{port}{self.path}")
        return ServerHandle(
            port=port,
            bind_address=bind_address,
            dispatch=dispatch,
            resources={"server": server, "thread": thread},
        )

    def shutdown(self, handle: ServerHandle) -> None:
        if not handle.running:
            return
        handle.running = False
        server: uvicorn.Server = handle.resources["server"]
        thread: threading.Thread = handle.resources["thread"]
        server.should_exit = True
        thread.join(timeout=STARTUP_TIMEOUT)
        logger.info(f"XML-RPC server on port {handle.port} stopped")


def create_http_server_transport(
    path: str = DEFAULT_PATH,
    *,
    encoding: str = DEFAULT_ENCODING,
    python_compat: bool = False,
) -> HTTPServerTransport:
    """Create an HTTP server transport.

    Returns:
        HTTPServerTransport serving XML-RPC at ``path``
    """
    return HTTPServerTransport(path, encoding=encoding, python_compat=python_compat)
