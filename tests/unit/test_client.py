"""Unit tests for the client, using the mock transport."""

from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import FrozenInstanceError

import pytest

from xmlrpc_bridge.client import Client, MockClientTransport, create_client
from xmlrpc_bridge.client.config import CallConfig
from xmlrpc_bridge.client.transport import BaseClientTransport
from xmlrpc_bridge.errors import CoercionError, ConfigError, RemoteFault, TransportError, UnknownMethod
from xmlrpc_bridge.protocol.faults import Fault
from xmlrpc_bridge.protocol.values import WireType, WireValue


@pytest.fixture
def transport() -> MockClientTransport:
    return MockClientTransport()


@pytest.fixture
def mock_client(transport: MockClientTransport) -> Client:
    return create_client("http://rpc.example/RPC2", transport=transport)


def multicall_response(*items: WireValue) -> WireValue:
    return WireValue.array(items)


def ok(value: WireValue) -> WireValue:
    return WireValue.array([value])


def fault(code: int, message: str) -> WireValue:
    return Fault(code=code, message=message).to_wire()


# =============================================================================
# Tests: call / call_with
# =============================================================================


class TestCall:
    """Test blocking calls."""

    def test_call_coerces_args_and_result(self, mock_client, transport):
        transport.set_response("math.add", WireValue.i4(3))

        assert mock_client.call("math.add", 1, 2) == 3

        recorded = transport.recorded_calls[0]
        assert recorded.method == "math.add"
        assert recorded.params == [WireValue.i4(1), WireValue.i4(2)]

    def test_struct_result_becomes_dict(self, mock_client, transport):
        transport.set_response(
            "info", WireValue.struct({"items": WireValue.array([WireValue.string("a")])})
        )
        assert mock_client.call("info") == {"items": ["a"]}

    def test_fault_tagged_with_method_and_args(self, mock_client, transport):
        transport.set_response("boom", RemoteFault(0, "kaboom"))

        with pytest.raises(RemoteFault) as excinfo:
            mock_client.call("boom", 1, "x")

        assert excinfo.value.code == 0
        assert excinfo.value.method == "boom"
        assert excinfo.value.call_args == [1, "x"]
        assert "kaboom" in str(excinfo.value)

    def test_unknown_method_keeps_its_type(self, mock_client, transport):
        transport.set_response("gone", UnknownMethod(None, "no such method"))

        with pytest.raises(UnknownMethod) as excinfo:
            mock_client.call("gone")
        assert excinfo.value.method == "gone"

    def test_transport_error_passes_through(self, mock_client, transport):
        error = TransportError("connection refused")
        transport.set_response("m", error)

        with pytest.raises(TransportError) as excinfo:
            mock_client.call("m")
        assert excinfo.value is error

    def test_coercion_error_raised_before_sending(self, mock_client, transport):
        with pytest.raises(CoercionError):
            mock_client.call("m", 2**40)
        assert transport.recorded_calls == []

    def test_extensions_allow_big_ints(self, transport):
        client = create_client("http://rpc.example/RPC2", transport=transport, extensions=True)
        client.call("m", 2**40)
        assert transport.recorded_calls[0].params[0].type == WireType.I8

    def test_call_with_overrides_single_call(self, mock_client, transport):
        mock_client.call_with({"reply_timeout": 50}, "fast", 1)
        mock_client.call("slow")

        first, second = transport.recorded_calls
        assert first.config.reply_timeout == 50
        assert second.config.reply_timeout is None
        assert mock_client.config.reply_timeout is None

    def test_call_with_invalid_override(self, mock_client):
        with pytest.raises(ConfigError):
            mock_client.call_with({"reply_timeout": 0}, "m")

    def test_create_client_rejects_unknown_option(self, transport):
        with pytest.raises(ConfigError):
            create_client("http://rpc.example/RPC2", transport=transport, bogus=1)


# =============================================================================
# Tests: call_async
# =============================================================================


class TestCallAsync:
    """Test future-based calls."""

    def test_future_resolves_with_result(self, mock_client, transport):
        transport.set_response("math.add", WireValue.i4(5))

        future = mock_client.call_async("math.add", 2, 3)

        assert isinstance(future, Future)
        assert future.result(timeout=5) == 5
        transport.close()

    def test_future_fails_with_tagged_fault(self, mock_client, transport):
        transport.set_response("boom", RemoteFault(7, "bad"))

        future = mock_client.call_async("boom", 1)

        error = future.exception(timeout=5)
        assert isinstance(error, RemoteFault)
        assert (error.code, error.method, error.call_args) == (7, "boom", [1])
        transport.close()

    def test_future_fails_with_transport_error(self, mock_client, transport):
        transport.set_response("m", TransportError("timed out"))
        assert isinstance(mock_client.call_async("m").exception(timeout=5), TransportError)
        transport.close()

    def test_completion_runs_on_transport_thread(self, mock_client, transport):
        seen: list[str] = []

        def respond(params):
            seen.append(threading.current_thread().name)
            return WireValue.nil()

        transport.set_response("m", respond)
        mock_client.call_async("m").result(timeout=5)

        assert seen and seen[0] != threading.current_thread().name
        transport.close()

    def test_completion_is_exactly_once(self):
        """A misbehaving transport completing twice only sets the future once."""

        class DoubleCompletingTransport(BaseClientTransport):
            def execute(self, endpoint, config, method, params):
                return WireValue.i4(1)

            def execute_async(self, endpoint, config, method, params, on_complete):
                on_complete(WireValue.i4(1), None)
                on_complete(None, TransportError("late failure"))

        client = Client("http://rpc.example/RPC2", transport=DoubleCompletingTransport())
        future = client.call_async("m")

        assert future.result(timeout=1) == 1
        assert future.exception(timeout=1) is None

    def test_coercion_error_raised_synchronously(self, mock_client):
        with pytest.raises(CoercionError):
            mock_client.call_async("m", 2**40)


# =============================================================================
# Tests: multicall
# =============================================================================


class TestMulticall:
    """Test batched calls."""

    def test_results_in_submission_order(self, mock_client, transport):
        transport.set_response(
            "system.multicall",
            multicall_response(ok(WireValue.i4(3)), ok(WireValue.i4(7))),
        )

        assert mock_client.multicall([("math.add", 1, 2), ("math.sub", 10, 3)]) == [3, 7]

    def test_request_shape(self, mock_client, transport):
        transport.set_response("system.multicall", multicall_response(ok(WireValue.i4(3))))

        mock_client.multicall([("math.add", 1, 2)])

        (batch,) = transport.recorded_calls[0].params
        item = batch.value[0]
        assert item.value["methodName"] == WireValue.string("math.add")
        assert item.value["params"] == WireValue.array([WireValue.i4(1), WireValue.i4(2)])

    def test_fail_fast_raises_at_first_fault_index(self, mock_client, transport):
        transport.set_response(
            "system.multicall",
            multicall_response(
                ok(WireValue.i4(1)),
                fault(-32601, "No handler registered for method: unknown.method"),
                ok(WireValue.i4(2)),
            ),
        )

        with pytest.raises(RemoteFault) as excinfo:
            mock_client.multicall([("ok", 1), ("unknown.method",), ("ok", 2)])

        assert excinfo.value.index == 1
        assert excinfo.value.method == "unknown.method"
        assert isinstance(excinfo.value, UnknownMethod)

    def test_fail_fast_stops_before_later_items(self, mock_client, transport):
        """Items after the first fault are never inspected."""
        later = WireValue.struct({"faultCode": WireValue.i4(99), "faultString": WireValue.string("x")})
        transport.set_response(
            "system.multicall",
            multicall_response(fault(5, "first"), later),
        )

        with pytest.raises(RemoteFault) as excinfo:
            mock_client.multicall([("a",), ("b",)])
        assert excinfo.value.code == 5
        assert excinfo.value.index == 0

    def test_collect_all_returns_fault_records(self, mock_client, transport):
        transport.set_response(
            "system.multicall",
            multicall_response(ok(WireValue.i4(1)), fault(0, "boom"), ok(WireValue.i4(2))),
        )

        results = mock_client.multicall([("ok", 1), ("boom",), ("ok", 2)], fail_fast=False)

        assert results == [1, Fault(code=0, message="boom"), 2]

    def test_length_mismatch_is_transport_error(self, mock_client, transport):
        transport.set_response("system.multicall", multicall_response(ok(WireValue.i4(1))))

        with pytest.raises(TransportError):
            mock_client.multicall([("a",), ("b",)])

    def test_whole_request_fault_tagged(self, mock_client, transport):
        transport.set_response("system.multicall", UnknownMethod("system.multicall"))

        with pytest.raises(UnknownMethod) as excinfo:
            mock_client.multicall([("a", 1)])
        assert excinfo.value.method == "system.multicall"
        assert excinfo.value.call_args == [("a", 1)]

    def test_accepts_mapping_calls(self, mock_client, transport):
        transport.set_response("system.multicall", multicall_response(ok(WireValue.string("x"))))
        assert mock_client.multicall([{"methodName": "echo", "params": ["x"]}]) == ["x"]


# =============================================================================
# Tests: introspection helpers and lifecycle
# =============================================================================


class TestIntrospectionHelpers:
    """Test system.* wrappers."""

    def test_list_methods(self, mock_client, transport):
        transport.set_response(
            "system.listMethods",
            WireValue.array([WireValue.string("a"), WireValue.string("b")]),
        )
        assert mock_client.list_methods() == ["a", "b"]

    def test_method_help(self, mock_client, transport):
        transport.set_response("system.methodHelp", WireValue.string("Adds."))
        assert mock_client.method_help("math.add") == "Adds."
        assert transport.recorded_calls[0].params == [WireValue.string("math.add")]

    def test_method_signature(self, mock_client, transport):
        transport.set_response("system.methodSignature", WireValue.string("undefined"))
        assert mock_client.method_signature("m") == "undefined"


class TestClientLifecycle:
    """Test client construction and closing."""

    def test_clients_are_immutable(self, mock_client):
        with pytest.raises(FrozenInstanceError):
            mock_client.endpoint = "elsewhere"  # type: ignore[misc]

    def test_context_manager_closes_transport(self, transport):
        with create_client("http://rpc.example/RPC2", transport=transport) as client:
            client.call_async("m").result(timeout=5)
            assert transport._executor is not None
        assert transport._executor is None

    def test_default_config(self, mock_client):
        assert mock_client.config == CallConfig()
