"""XML-RPC client: calls, async calls, multicall and introspection.

Provides multiple transport modes:
- http: POST XML-RPC documents to a remote endpoint
- loopback: call an in-process server directly (see xmlrpc_bridge.transport)
- mock: for testing without real I/O
"""

from .client import Client, create_client
from .config import BasicAuth, CallConfig
from .transport import (
    BaseClientTransport,
    ClientTransport,
    CompletionCallback,
    HTTPClientTransport,
    MockClientTransport,
    RecordedCall,
    create_http_transport,
    create_mock_transport,
)

__all__ = [
    # Client
    "Client",
    "create_client",
    # Configuration
    "CallConfig",
    "BasicAuth",
    # Transport Protocol & Base
    "ClientTransport",
    "BaseClientTransport",
    "CompletionCallback",
    # Transport Implementations
    "HTTPClientTransport",
    "MockClientTransport",
    "RecordedCall",
    # Transport Factory Functions
    "create_http_transport",
    "create_mock_transport",
]
