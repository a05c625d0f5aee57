"""Unit tests for the command-line interface."""

from __future__ import annotations

import json
from typing import Any

import pytest
from click.testing import CliRunner

from xmlrpc_bridge import cli
from xmlrpc_bridge.client import create_client

URL = "loopback://localhost:8080"


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def loopback_clients(server, loopback, monkeypatch):
    """Route every CLI client to the loopback server fixture."""

    def factory(endpoint: str, **options: Any):
        return create_client(endpoint, transport=loopback, **options)

    monkeypatch.setattr(cli, "create_client", factory)
    # The CLI closes its client, which would shut the shared pool down
    monkeypatch.setattr(loopback, "close", lambda: None)


class TestParseArg:
    """Test argument parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("42", 42),
            ('"42"', "42"),
            ("[1, 2]", [1, 2]),
            ('{"a": null}', {"a": None}),
            ("true", True),
            ("plain words", "plain words"),
        ],
    )
    def test_parse_arg(self, text, expected):
        assert cli.parse_arg(text) == expected


class TestCallCommand:
    """Test `xmlrpc-bridge call`."""

    def test_call_prints_json_result(self, runner):
        result = runner.invoke(cli.main, ["call", URL, "math.add", "2", "3"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == 5

    def test_call_with_struct_argument(self, runner):
        result = runner.invoke(cli.main, ["call", URL, "echo", '{"a": [1, "b"]}'])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"a": [1, "b"]}

    def test_fault_exits_with_error(self, runner):
        result = runner.invoke(cli.main, ["call", URL, "boom"])

        assert result.exit_code == 1
        assert "kaboom" in result.output

    def test_coercion_error_reported(self, runner):
        result = runner.invoke(cli.main, ["call", URL, "echo", str(2**40)])

        assert result.exit_code == 1
        assert "extensions" in result.output

    def test_extensions_flag_sends_i8(self, runner):
        """The request encodes; the server without extensions rejects it."""
        result = runner.invoke(cli.main, ["call", URL, "echo", str(2**40), "--extensions"])

        assert result.exit_code == 1
        assert "extensions are disabled" in result.output

    def test_null_argument_needs_extensions(self, runner):
        result = runner.invoke(cli.main, ["call", URL, "echo", "null"])

        assert result.exit_code == 1
        assert "nil" in result.output


class TestIntrospectionCommands:
    """Test methods, help and signature."""

    def test_methods(self, runner):
        result = runner.invoke(cli.main, ["methods", URL])

        assert result.exit_code == 0, result.output
        assert "math.add" in result.output.splitlines()

    def test_help(self, runner):
        result = runner.invoke(cli.main, ["help", URL, "math.add"])

        assert result.exit_code == 0, result.output
        assert result.output.strip() == "Add two integers."

    def test_signature(self, runner):
        result = runner.invoke(cli.main, ["signature", URL, "math.add"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [["int", "int", "int"]]

    def test_unknown_method_help(self, runner):
        result = runner.invoke(cli.main, ["help", URL, "nope"])
        assert result.exit_code == 1


class TestServeCommand:
    """Test `xmlrpc-bridge serve` argument handling."""

    def test_missing_module(self, runner):
        result = runner.invoke(cli.main, ["serve", "no_such_module_for_tests"])

        assert result.exit_code == 1
        assert "Failed to import" in result.output

    def test_invalid_port(self, runner):
        result = runner.invoke(cli.main, ["serve", "json", "--port", "0"])

        assert result.exit_code == 1
        assert "Error" in result.output
