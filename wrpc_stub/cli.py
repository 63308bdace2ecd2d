"""Command-line interface for wrpc-stub.

Invokes zero-argument, string-returning functions through a subprocess
server, serves the ``hello`` example, and decodes raw string values.

Usage::

    wrpc-stub hello --cmd "wrpc-stub serve"
    wrpc-stub call wrpc-examples:hello/handler hello --cmd "wrpc-stub serve --greeting hi"
    wrpc-stub decode 0568656c6c6f

"""

from __future__ import annotations

import logging
import shlex
from enum import StrEnum
from io import BytesIO
from typing import Annotated

import typer

from wrpc_stub.bindings.hello import DEFAULT_GREETING, HELLO_FUNCTION, HELLO_TARGET, hello_handler
from wrpc_stub.bindings.hello import hello as call_hello
from wrpc_stub.logging_utils import configure_logging
from wrpc_stub.rpc import (
    MAX_U32,
    DecodeError,
    DecodeOptions,
    InvocationError,
    ResultError,
    StringCodec,
    SubprocessInvoker,
    UnitCodec,
    Utf8Error,
    WrpcError,
    invoke,
    read_string,
    serve_stdio,
)

# ---------------------------------------------------------------------------
# Option enums
# ---------------------------------------------------------------------------


class LogFormat(StrEnum):
    """Log output format for CLI commands."""

    text = "text"
    json = "json"


class LogLevel(StrEnum):
    """Log level for the ``wrpc_stub`` logger hierarchy."""

    debug = "debug"
    info = "info"
    warning = "warning"
    error = "error"


app = typer.Typer(
    name="wrpc-stub",
    help="Invoke and serve zero-argument wRPC functions.",
    add_completion=False,
    no_args_is_help=True,
)

_handler: logging.Handler | None = None


@app.callback()
def _main(
    log_level: Annotated[LogLevel, typer.Option("--log-level", "-l", help="Log level")] = LogLevel.warning,
    log_format: Annotated[LogFormat, typer.Option("--log-format", help="Log output format")] = LogFormat.text,
) -> None:
    """Configure logging."""
    global _handler
    if _handler is not None:
        logging.getLogger("wrpc_stub").removeHandler(_handler)
    _handler = configure_logging(log_level.value, json_format=log_format == LogFormat.json)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _decode_options(single_read: bool, max_length: int) -> DecodeOptions:
    """Build decode options from CLI flags."""
    try:
        return DecodeOptions(read_until_full=not single_read, max_string_length=max_length)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from None


def _emit_error(e: WrpcError) -> None:
    """Write an invocation failure (stage and cause chain) to stderr."""
    typer.echo(f"Error [{e.stage.value}]: {e}", err=True)
    cause = e.__cause__
    while cause is not None:
        typer.echo(f"  caused by {type(cause).__name__}: {cause}", err=True)
        cause = cause.__cause__
    raw = e.value if isinstance(e, (ResultError, Utf8Error)) else None
    if raw is not None:
        typer.echo(f"  raw value: {raw!r}", err=True)


def _invoker(cmd: str) -> SubprocessInvoker:
    """Build a subprocess invoker from a shell-style command string."""
    argv = shlex.split(cmd)
    if not argv:
        raise typer.BadParameter("--cmd must not be empty")
    return SubprocessInvoker(argv)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def call(
    target: Annotated[str, typer.Argument(help="Interface, e.g. wrpc-examples:hello/handler")],
    function: Annotated[str, typer.Argument(help="Function name")],
    cmd: Annotated[str, typer.Option("--cmd", "-c", help="Server command")],
    single_read: Annotated[bool, typer.Option("--single-read", help="Fail on short reads instead of looping")] = False,
    max_length: Annotated[int, typer.Option("--max-length", help="Largest accepted string length")] = MAX_U32,
) -> None:
    """Call a zero-argument function that returns a string."""
    options = _decode_options(single_read, max_length)
    try:
        value = invoke(_invoker(cmd), target, function, UnitCodec(), StringCodec(), options=options)
    except (InvocationError, ResultError) as e:
        _emit_error(e)
        raise typer.Exit(1) from None
    typer.echo(value)


@app.command()
def hello(
    cmd: Annotated[str, typer.Option("--cmd", "-c", help="Server command")],
    single_read: Annotated[bool, typer.Option("--single-read", help="Fail on short reads instead of looping")] = False,
) -> None:
    """Call ``hello`` on ``wrpc-examples:hello/handler``."""
    try:
        value = call_hello(_invoker(cmd), options=_decode_options(single_read, MAX_U32))
    except (InvocationError, ResultError) as e:
        _emit_error(e)
        raise typer.Exit(1) from None
    typer.echo(value)


@app.command()
def serve(
    greeting: Annotated[str, typer.Option("--greeting", "-g", help="Greeting returned by hello")] = DEFAULT_GREETING,
) -> None:
    """Serve one ``hello`` invocation over stdin/stdout."""
    status = serve_stdio({(HELLO_TARGET, HELLO_FUNCTION): hello_handler(greeting)})
    raise typer.Exit(status)


@app.command()
def decode(
    value: Annotated[str, typer.Argument(help="Hex-encoded string value, length prefix included")],
) -> None:
    """Decode one length-prefixed string value.

    The input must hold exactly one value; leftover bytes are an error.
    """
    try:
        data = bytes.fromhex(value)
    except ValueError as e:
        raise typer.BadParameter(f"not a hex string: {e}") from None
    stream = BytesIO(data)
    try:
        text = read_string(stream)
    except DecodeError as e:
        _emit_error(e)
        raise typer.Exit(1) from None
    trailing = len(data) - stream.tell()
    if trailing:
        typer.echo(f"Error: {trailing} trailing byte(s) after value {text!r}", err=True)
        raise typer.Exit(1)
    typer.echo(text)
