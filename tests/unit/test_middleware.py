"""Unit tests for handler middleware."""

from __future__ import annotations

import functools
import logging

import pytest

from xmlrpc_bridge.server.middleware import compose_middleware, log_calls, log_exceptions, time_calls
from xmlrpc_bridge.server.registry import HandlerEntry, rpc_method


def tracing(label: str, trace: list[str]):
    def middleware(handler):
        @functools.wraps(handler)
        def wrapped(*args):
            trace.append(f"{label}-pre")
            result = handler(*args)
            trace.append(f"{label}-post")
            return result

        return wrapped

    return middleware


class TestComposeMiddleware:
    """Test middleware ordering and metadata."""

    def test_leftmost_is_outermost(self):
        trace: list[str] = []

        def handler():
            trace.append("handler")
            return "done"

        wrapped = compose_middleware({"h": handler}, [tracing("A", trace), tracing("B", trace)])

        assert wrapped["h"]() == "done"
        assert trace == ["A-pre", "B-pre", "handler", "B-post", "A-post"]

    def test_metadata_survives_wrapping(self):
        @rpc_method(signature=[["int", "int"]])
        def double(x):
            """Double it."""
            return 2 * x

        trace: list[str] = []
        wrapped = compose_middleware({"double": double}, [tracing("A", trace)])

        assert wrapped["double"].doc == "Double it."
        assert wrapped["double"].signature == [["int", "int"]]
        assert wrapped["double"](4) == 8

    def test_input_map_not_modified(self):
        handlers = {"h": lambda: 1}
        original = handlers["h"]
        compose_middleware(handlers, [log_calls])
        assert handlers["h"] is original

    def test_no_middleware_is_identity(self):
        def handler():
            return 1

        assert compose_middleware({"h": handler}, [])["h"].func is handler

    def test_raw_entries_are_not_wrapped(self):
        entry = HandlerEntry(func=lambda: None, raw=True)
        assert compose_middleware({"system.x": entry}, [log_calls])["system.x"] is entry

    def test_middleware_may_short_circuit(self):
        def deny(handler):
            def wrapped(*args):
                raise PermissionError("denied")

            return wrapped

        wrapped = compose_middleware({"h": lambda: 1}, [deny])
        with pytest.raises(PermissionError):
            wrapped["h"]()


class TestObservers:
    """Test the provided logging middleware."""

    def test_log_calls(self, caplog):
        def add(a, b):
            return a + b

        with caplog.at_level(logging.INFO):
            assert log_calls(add)(1, 2) == 3

        assert "(1, 2)" in caplog.text
        assert "add: 3" in caplog.text

    def test_time_calls(self, caplog):
        with caplog.at_level(logging.INFO):
            assert time_calls(lambda: "x")() == "x"
        assert "ms" in caplog.text

    def test_time_calls_logs_on_failure(self, caplog):
        def fail():
            raise ValueError("bad")

        with caplog.at_level(logging.INFO), pytest.raises(ValueError):
            time_calls(fail)()
        assert "took" in caplog.text

    def test_log_exceptions_re_raises_same_exception(self, caplog):
        error = KeyError("missing")

        def fail():
            raise error

        with caplog.at_level(logging.ERROR), pytest.raises(KeyError) as excinfo:
            log_exceptions(fail)()

        assert excinfo.value is error
        assert "KeyError" in caplog.text

    def test_observers_keep_function_name(self):
        def named():
            return None

        assert log_calls(named).__name__ == "named"
        assert time_calls(named).__name__ == "named"
        assert log_exceptions(named).__name__ == "named"
