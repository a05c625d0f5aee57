"""XML-RPC server: handler registry, dispatch, middleware and system methods."""

from .dispatcher import Dispatcher
from .middleware import Middleware, compose_middleware, log_calls, log_exceptions, time_calls
from .registry import (
    HandlerEntry,
    HandlerRegistry,
    HandlerSnapshot,
    UpdateMode,
    namespace_handlers,
    rpc_method,
)
from .server import RpcServer, ServerConfig, start
from .system import SIGNATURE_UNDEFINED, system_handlers

__all__ = [
    # Lifecycle
    "start",
    "RpcServer",
    "ServerConfig",
    # Registry
    "HandlerEntry",
    "HandlerRegistry",
    "HandlerSnapshot",
    "UpdateMode",
    "namespace_handlers",
    "rpc_method",
    # Dispatch
    "Dispatcher",
    "system_handlers",
    "SIGNATURE_UNDEFINED",
    # Middleware
    "Middleware",
    "compose_middleware",
    "log_calls",
    "time_calls",
    "log_exceptions",
]
