"""XML-RPC server lifecycle.

Quick start:

    from xmlrpc_bridge import start

    server = start({
        "port": 8080,
        "handlers": {
            "math.add": lambda a, b: a + b,
            "echo": lambda x: x,
        },
    })

    # Hot-replace handlers without restarting
    server.update_handlers({"math.add": new_add}, mode="merge")

    server.stop()

Handlers receive Python values and return Python values; coercion happens
at the dispatch boundary (see `xmlrpc_bridge.coercion`). Any exception a
handler raises is returned to the caller as a fault.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ConfigError
from ..transport.base import ServerHandle, ServerTransport
from ..transport.http import DEFAULT_PATH, HTTPServerTransport
from .dispatcher import Dispatcher
from .registry import HandlerEntry, HandlerRegistry, HandlerSnapshot, UpdateMode
from .system import system_handlers

logger = logging.getLogger(__name__)


class ServerConfig(BaseModel):
    """Server construction parameters.

    ``bind_address`` of None listens on all interfaces.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    port: int = Field(gt=0, le=65535)
    bind_address: str | None = None
    handlers: dict[str, Any]
    system_handlers: bool = True
    extensions: bool = False
    coerce_args: bool = True
    coerce_result: bool = True
    path: str = DEFAULT_PATH

    @field_validator("handlers")
    @classmethod
    def _callable_handlers(cls, value: dict[str, Any]) -> dict[str, Any]:
        if not value:
            raise ValueError("At least one handler is required")
        for name, handler in value.items():
            if not isinstance(handler, HandlerEntry) and not callable(handler):
                raise ValueError(f"Handler for {name!r} is not callable")
        return value

    @field_validator("path")
    @classmethod
    def _absolute_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"Path must start with '/': {value!r}")
        return value

    @classmethod
    def build(cls, config: ServerConfig | Mapping[str, Any] | None = None, **options: Any) -> ServerConfig:
        """Build a config from a mapping and/or keyword options.

        Raises:
            ConfigError: If a field is missing, unknown or invalid
        """
        if isinstance(config, ServerConfig):
            return config.model_copy(update=options) if options else config
        try:
            return cls.model_validate({**(config or {}), **options})
        except ValidationError as e:
            raise ConfigError(f"Invalid server configuration: {e}") from e


class RpcServer:
    """A running server: its registry, dispatcher and transport handle."""

    def __init__(
        self,
        config: ServerConfig,
        registry: HandlerRegistry,
        dispatcher: Dispatcher,
        transport: ServerTransport,
        handle: ServerHandle,
    ) -> None:
        self.config = config
        self.registry = registry
        self.dispatcher = dispatcher
        self.transport = transport
        self.handle = handle

    @property
    def port(self) -> int:
        return self.handle.port

    @property
    def running(self) -> bool:
        return self.handle.running

    def update_handlers(
        self,
        handlers: Mapping[str, Callable[..., Any] | HandlerEntry],
        mode: UpdateMode | str = UpdateMode.REPLACE,
    ) -> HandlerSnapshot:
        """Atomically replace or merge the live handlers.

        System handlers, when enabled, are re-added after the update so they
        are never dropped or shadowed. In-flight requests finish against the
        snapshot they started with.

        Returns:
            The new handler snapshot
        """
        return self.registry.update(handlers, mode)

    def remove_handler(self, name: str) -> HandlerSnapshot:
        """Atomically remove one handler."""
        return self.registry.remove(name)

    def current_handlers(self) -> HandlerSnapshot:
        """The live handler snapshot."""
        return self.registry.snapshot()

    def stop(self) -> None:
        """Stop listening. Safe to call more than once."""
        self.transport.shutdown(self.handle)

    def __enter__(self) -> RpcServer:
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()


def start(
    config: ServerConfig | Mapping[str, Any],
    transport: ServerTransport | None = None,
) -> RpcServer:
    """Start a server.

    Args:
        config: A ServerConfig or a mapping of its fields
        transport: Server transport (default: HTTPServerTransport at config.path)

    Returns:
        The running RpcServer

    Raises:
        ConfigError: If the port is missing or invalid, or there are no handlers
        TransportError: If the transport fails to start listening
    """
    config = ServerConfig.build(config)

    registry = HandlerRegistry(config.handlers)
    dispatcher = Dispatcher(
        registry,
        coerce_args=config.coerce_args,
        coerce_result=config.coerce_result,
        extensions=config.extensions,
    )
    if config.system_handlers:
        registry.install_reserved(system_handlers(dispatcher))

    if transport is None:
        transport = HTTPServerTransport(config.path)
    handle = transport.listen(config.port, config.bind_address, dispatcher.dispatch)
    logger.info(f"Started XML-RPC server on port {config.port} ({len(registry)} methods)")

    return RpcServer(config, registry, dispatcher, transport, handle)
