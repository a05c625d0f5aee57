"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest

from xmlrpc_bridge import Client, LoopbackTransport, RpcServer, create_client, rpc_method, start
from xmlrpc_bridge.errors import RemoteFault


@rpc_method(signature=[["int", "int", "int"]])
def add(a: int, b: int) -> int:
    """Add two integers."""
    return a + b


def sub(a: int, b: int) -> int:
    return a - b


def echo(value: Any) -> Any:
    """Return the argument unchanged."""
    return value


def boom() -> None:
    raise RuntimeError("kaboom")


def custom_fault() -> None:
    raise RemoteFault(42, "custom failure")


def wide_fault() -> None:
    raise RemoteFault(2**40, "big code")


@pytest.fixture
def handlers() -> dict[str, Any]:
    """A small handler map shared by server-side tests."""
    return {
        "math.add": add,
        "math.sub": sub,
        "echo": echo,
        "boom": boom,
        "custom.fault": custom_fault,
        "custom.wide_fault": wide_fault,
    }


@pytest.fixture
def loopback() -> Iterator[LoopbackTransport]:
    transport = LoopbackTransport()
    yield transport
    transport.close()


@pytest.fixture
def server(handlers: dict[str, Any], loopback: LoopbackTransport) -> Iterator[RpcServer]:
    """A running server on the loopback transport."""
    rpc_server = start({"port": 8080, "handlers": handlers}, transport=loopback)
    yield rpc_server
    rpc_server.stop()


@pytest.fixture
def client(server: RpcServer, loopback: LoopbackTransport) -> Client:
    """A client connected to ``server`` through the loopback transport."""
    return create_client("loopback://localhost:8080", transport=loopback)
