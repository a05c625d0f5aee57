"""Server transports for xmlrpc-bridge.

Provides multiple transport modes:
- http: Starlette application served by uvicorn
- loopback: in-process, also usable as a client transport
"""

from .base import DispatchFn, ServerHandle, ServerTransport
from .http import DEFAULT_PATH, HTTPServerTransport, create_app, create_http_server_transport
from .loopback import LoopbackTransport

__all__ = [
    # Transport Protocol & Base
    "ServerTransport",
    "ServerHandle",
    "DispatchFn",
    # Transport Implementations
    "HTTPServerTransport",
    "LoopbackTransport",
    # Factory Functions
    "create_app",
    "create_http_server_transport",
    "DEFAULT_PATH",
]
