"""xmlrpc-bridge: an XML-RPC convenience layer.

Value coercion between Python and XML-RPC, a client with blocking, future
based and batched (multicall) calls, and a server whose handlers can be
replaced at runtime.

    from xmlrpc_bridge import create_client, start

    server = start({"port": 8080, "handlers": {"math.add": lambda a, b: a + b}})
    client = create_client("http://localhost:8080/RPC2")
    client.call("math.add", 2, 3)   # 5
"""

from .client import (
    CallConfig,
    Client,
    HTTPClientTransport,
    MockClientTransport,
    create_client,
)
from .coercion import Identifier, coerce_params, to_host, to_wire
from .errors import (
    CoercionError,
    ConfigError,
    FaultCode,
    RemoteFault,
    TransportError,
    UnknownMethod,
    XmlRpcBridgeError,
)
from .protocol import Fault, MulticallRequest, WireType, WireValue
from .server import (
    HandlerEntry,
    RpcServer,
    ServerConfig,
    UpdateMode,
    compose_middleware,
    log_calls,
    log_exceptions,
    namespace_handlers,
    rpc_method,
    start,
    time_calls,
)
from .transport import HTTPServerTransport, LoopbackTransport

__version__ = "0.1.0"

__all__ = [
    # Errors
    "XmlRpcBridgeError",
    "CoercionError",
    "ConfigError",
    "TransportError",
    "RemoteFault",
    "UnknownMethod",
    "FaultCode",
    # Values & coercion
    "WireValue",
    "WireType",
    "Fault",
    "MulticallRequest",
    "Identifier",
    "to_wire",
    "to_host",
    "coerce_params",
    # Client
    "Client",
    "CallConfig",
    "create_client",
    "HTTPClientTransport",
    "MockClientTransport",
    # Server
    "start",
    "RpcServer",
    "ServerConfig",
    "HandlerEntry",
    "UpdateMode",
    "rpc_method",
    "namespace_handlers",
    "compose_middleware",
    "log_calls",
    "time_calls",
    "log_exceptions",
    # Transports
    "HTTPServerTransport",
    "LoopbackTransport",
]
