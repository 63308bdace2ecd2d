"""Invoker protocol and implementations."""

from __future__ import annotations

import contextlib
import logging
import os
import subprocess
import sys
from collections.abc import Callable, Mapping
from typing import IO, Protocol, runtime_checkable

import pyarrow as pa

from wrpc_stub.rpc._common import DecodeError, _logger
from wrpc_stub.rpc._debug import fmt_bytes, fmt_call, wire_transport_logger
from wrpc_stub.rpc._wire import encode_string, read_string

Handler = Callable[[bytes], bytes]
"""Server-side function: encoded params in, encoded results out."""

Handlers = Mapping[tuple[str, str], Handler]
"""Handlers keyed by ``(target, function)``."""


# ---------------------------------------------------------------------------
# Stream and invoker protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class IncomingStream(Protocol):
    """Readable byte stream carrying result values."""

    def read(self, n: int, /) -> bytes:
        """Read up to *n* bytes; ``b""`` means end of stream."""
        ...

    def close(self) -> None:
        """Release the stream."""
        ...


@runtime_checkable
class OutgoingStream(Protocol):
    """Writable byte stream carrying parameter values."""

    def write(self, data: bytes, /) -> object:
        """Write *data*."""
        ...

    def close(self) -> None:
        """Release the stream, signalling that no more parameters follow."""
        ...


@runtime_checkable
class Invoker(Protocol):
    """Mechanism that opens the stream pair for one remote call."""

    def invoke(self, target: str, function: str, params: bytes) -> tuple[OutgoingStream, IncomingStream]:
        """Start a call of *function* on *target* with already-encoded *params*.

        Returns:
            ``(outgoing, incoming)``: the parameter stream (for further
            parameter bytes) and the result stream.

        """
        ...


# ---------------------------------------------------------------------------
# LoopbackInvoker
# ---------------------------------------------------------------------------


class LoopbackInvoker:
    """In-process invoker that dispatches straight to handler functions.

    Parameter bytes passed to :meth:`invoke` are handed to the handler; the
    returned outgoing stream is an in-memory sink.  The handler's response
    is served from an in-memory buffer.
    """

    __slots__ = ("_handlers",)

    def __init__(self, handlers: Handlers) -> None:
        """Initialize with handlers keyed by ``(target, function)``."""
        self._handlers = dict(handlers)

    def invoke(self, target: str, function: str, params: bytes) -> tuple[OutgoingStream, IncomingStream]:
        """Run the handler and expose its response as the incoming stream.

        Raises:
            LookupError: No handler is registered for *target*/*function*.

        """
        try:
            handler = self._handlers[(target, function)]
        except KeyError:
            raise LookupError(f"no handler for `{fmt_call(target, function)}`") from None
        response = handler(params)
        if wire_transport_logger.isEnabledFor(logging.DEBUG):
            wire_transport_logger.debug(
                "Loopback invoke %s: params=%s, response=%s",
                fmt_call(target, function),
                fmt_bytes(params),
                fmt_bytes(response),
            )
        return pa.BufferOutputStream(), pa.BufferReader(pa.py_buffer(response))


# ---------------------------------------------------------------------------
# SubprocessInvoker
# ---------------------------------------------------------------------------


class _ChildStdout:
    """Incoming stream over a child's stdout; closing reaps the child."""

    __slots__ = ("_closed", "_proc", "_timeout")

    def __init__(self, proc: subprocess.Popen[bytes], timeout: float) -> None:
        self._proc = proc
        self._timeout = timeout
        self._closed = False

    def read(self, n: int, /) -> bytes:
        assert self._proc.stdout is not None
        return self._proc.stdout.read(n)

    def close(self) -> None:
        """Close stdout and wait for the child.

        Raises:
            subprocess.CalledProcessError: The child exited non-zero.

        """
        if self._closed:
            return
        self._closed = True
        assert self._proc.stdout is not None
        self._proc.stdout.close()
        try:
            self._proc.wait(timeout=self._timeout)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()
        if wire_transport_logger.isEnabledFor(logging.DEBUG):
            wire_transport_logger.debug(
                "SubprocessInvoker child exited: pid=%d, exit_code=%s",
                self._proc.pid,
                self._proc.returncode,
            )
        if self._proc.returncode != 0:
            raise subprocess.CalledProcessError(self._proc.returncode, self._proc.args)


class SubprocessInvoker:
    """Invoker that runs one child process per call.

    The request is written to the child's stdin as two length-prefixed
    strings (target, function) followed by the raw parameter bytes.
    Closing the outgoing stream closes stdin, so the child sees end of
    parameters as end of file.  The child's stdout is the incoming stream.

    Stdout is opened buffered so ``read(n)`` blocks for *n* bytes where
    the pipe allows; the decoder still tolerates short reads.
    """

    __slots__ = ("_cmd", "_timeout")

    def __init__(self, cmd: list[str], *, timeout: float = 10.0) -> None:
        """Initialize with the server command and the reap timeout in seconds."""
        self._cmd = list(cmd)
        self._timeout = timeout

    def invoke(self, target: str, function: str, params: bytes) -> tuple[OutgoingStream, IncomingStream]:
        """Spawn the child and send the request header and *params*."""
        proc = subprocess.Popen(self._cmd, stdin=subprocess.PIPE, stdout=subprocess.PIPE)
        assert proc.stdin is not None
        if wire_transport_logger.isEnabledFor(logging.DEBUG):
            wire_transport_logger.debug(
                "SubprocessInvoker spawned: pid=%d, call=%s, params=%s",
                proc.pid,
                fmt_call(target, function),
                fmt_bytes(params),
            )
        try:
            proc.stdin.write(encode_string(target) + encode_string(function) + params)
            proc.stdin.flush()
        except OSError:
            proc.kill()
            # Buffered request bytes fail to flush; the pipe is closed regardless.
            with contextlib.suppress(OSError):
                proc.stdin.close()
            assert proc.stdout is not None
            proc.stdout.close()
            proc.wait()
            raise
        return proc.stdin, _ChildStdout(proc, self._timeout)


# ---------------------------------------------------------------------------
# Child side
# ---------------------------------------------------------------------------


def serve_one(reader: IO[bytes], writer: IO[bytes], handlers: Handlers) -> int:
    """Answer a single invocation read from *reader*.

    Returns:
        Process exit status: ``0`` on success, ``1`` when the request
        cannot be decoded or no handler matches.

    """
    try:
        target = read_string(reader)
        function = read_string(reader)
    except DecodeError:
        _logger.error("failed to read invocation header", exc_info=True)
        return 1
    handler = handlers.get((target, function))
    if handler is None:
        _logger.error(
            "no handler for invocation",
            extra={"instance": target, "function": function},
        )
        return 1
    params = reader.read()
    response = handler(params)
    if wire_transport_logger.isEnabledFor(logging.DEBUG):
        wire_transport_logger.debug(
            "serve_one %s: params=%s, response=%s",
            fmt_call(target, function),
            fmt_bytes(params),
            fmt_bytes(response),
        )
    writer.write(response)
    writer.flush()
    return 0


def serve_stdio(handlers: Handlers) -> int:
    """Serve one invocation over stdin/stdout.

    This is the child-side entry point for :class:`SubprocessInvoker`.
    Uses ``closefd=False`` so the original stdio descriptors are not
    closed on exit.

    Emits a diagnostic warning to stderr when stdin or stdout is connected
    to a terminal, since the process expects binary request data.
    """
    if sys.stdin.isatty() or sys.stdout.isatty():
        sys.stderr.write(
            "WARNING: This process reads a binary invocation on stdin "
            "and is not intended to be run interactively.\n"
        )
    reader = os.fdopen(sys.stdin.fileno(), "rb", closefd=False)
    writer = os.fdopen(sys.stdout.fileno(), "wb", closefd=False)
    with contextlib.closing(reader), contextlib.closing(writer):
        return serve_one(reader, writer, handlers)
