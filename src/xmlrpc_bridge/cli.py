"""xmlrpc-bridge CLI.

Usage:
    xmlrpc-bridge call URL METHOD [ARGS...]     # Call a method; ARGS are JSON
    xmlrpc-bridge methods URL                   # system.listMethods
    xmlrpc-bridge help URL METHOD               # system.methodHelp
    xmlrpc-bridge signature URL METHOD          # system.methodSignature

    xmlrpc-bridge serve myapp.math --port 8080 --prefix math
                                                # Serve a module's functions
"""

from __future__ import annotations

import base64
import functools
import json
import logging
import sys
import threading
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

import click

from .client import Client, create_client
from .errors import RemoteFault, XmlRpcBridgeError
from .protocol.faults import Fault
from .server import namespace_handlers, start
from .transport.http import DEFAULT_PATH, HTTPServerTransport


def parse_arg(text: str) -> Any:
    """Parse a command-line argument as JSON, falling back to the raw string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, Fault):
        return {"faultCode": value.code, "faultString": value.message}
    return repr(value)


def echo_json(value: Any) -> None:
    click.echo(json.dumps(value, indent=2, default=_json_default, ensure_ascii=False))


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging level",
)
def main(log_level: str) -> None:
    """XML-RPC client and server tools."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# =============================================================================
# Client Commands
# =============================================================================


def client_options(command: Callable[..., Any]) -> Callable[..., Any]:
    """Add connection options and pass a ready Client as ``client``."""

    @click.option("--user", help="Basic-auth user")
    @click.option("--password", default="", help="Basic-auth password")
    @click.option("--timeout", type=int, help="Reply timeout in milliseconds")
    @click.option("--extensions", is_flag=True, help="Allow nil and 64-bit integer types")
    @click.option("--python-compat", is_flag=True, help="Extension types without namespace")
    @functools.wraps(command)
    def wrapped(
        url: str,
        user: str | None,
        password: str,
        timeout: int | None,
        extensions: bool,
        python_compat: bool,
        **kwargs: Any,
    ) -> None:
        try:
            client = create_client(
                url,
                basic_auth=(user, password) if user else None,
                reply_timeout=timeout,
                extensions=extensions,
                python_compat=python_compat,
            )
            with client:
                command(client=client, **kwargs)
        except RemoteFault as e:
            click.echo(str(e), err=True)
            sys.exit(1)
        except XmlRpcBridgeError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)

    return wrapped


@main.command()
@click.argument("url")
@click.argument("method")
@click.argument("args", nargs=-1)
@client_options
def call(client: Client, method: str, args: tuple[str, ...]) -> None:
    """Call METHOD at URL with ARGS.

    Each argument is parsed as JSON, so 42 is an int, "42" a string and
    [1, 2] an array. Anything that is not valid JSON is sent as a string.

    Examples:

        xmlrpc-bridge call http://localhost:8080/RPC2 math.add 2 3

        xmlrpc-bridge call http://localhost:8080/RPC2 echo '{"a": [1, 2]}'
    """
    echo_json(client.call(method, *(parse_arg(a) for a in args)))


@main.command()
@click.argument("url")
@client_options
def methods(client: Client) -> None:
    """List the methods served at URL."""
    for name in client.list_methods():
        click.echo(name)


@main.command("help")
@click.argument("url")
@click.argument("method")
@client_options
def help_(client: Client, method: str) -> None:
    """Show the help string for METHOD."""
    click.echo(client.method_help(method))


@main.command()
@click.argument("url")
@click.argument("method")
@client_options
def signature(client: Client, method: str) -> None:
    """Show the signature of METHOD."""
    echo_json(client.method_signature(method))


# =============================================================================
# Server Commands
# =============================================================================


@main.command()
@click.argument("module")
@click.option("--port", default=8080, help="Port to listen on")
@click.option("--host", default="127.0.0.1", help="Address to bind to")
@click.option("--prefix", default="", help="Method name prefix, e.g. 'math' for math.add")
@click.option("--path", default=DEFAULT_PATH, help="URL path of the endpoint")
@click.option("--extensions", is_flag=True, help="Allow nil and 64-bit integer results")
def serve(module: str, port: int, host: str, prefix: str, path: str, extensions: bool) -> None:
    """Serve the public functions of MODULE over HTTP.

    Examples:

        xmlrpc-bridge serve myapp.math --prefix math
    """
    try:
        handlers = namespace_handlers(module, prefix)
    except ImportError as e:
        click.echo(f"Failed to import module {module}: {e}", err=True)
        sys.exit(1)

    try:
        server = start(
            {
                "port": port,
                "bind_address": host,
                "handlers": handlers,
                "extensions": extensions,
                "path": path,
            },
            transport=HTTPServerTransport(path),
        )
    except XmlRpcBridgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Serving {len(handlers)} methods on http://{host}:{port}{path}", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    try:
        threading.Event().wait()
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
    finally:
        server.stop()


if __name__ == "__main__":
    main()
