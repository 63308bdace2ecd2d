"""Tests for the invokers and the child-side request loop."""

from __future__ import annotations

import logging
import subprocess
import sys
from io import BytesIO
from typing import Any

import pyarrow as pa
import pytest

from wrpc_stub.bindings import HELLO_HANDLERS, HELLO_TARGET, hello
from wrpc_stub.rpc import (
    IncomingStream,
    InvocationError,
    InvocationSession,
    Invoker,
    LengthOverflowError,
    LoopbackInvoker,
    OutgoingStream,
    ResultError,
    Stage,
    StreamReadError,
    StringCodec,
    SubprocessInvoker,
    TruncatedBodyError,
    UnitCodec,
    Utf8Error,
    encode_string,
    invoke,
    serve_one,
)
from wrpc_stub.rpc import _transport

FIXTURE_TARGET = "wrpc-tests:fixture/results"


# ---------------------------------------------------------------------------
# LoopbackInvoker
# ---------------------------------------------------------------------------


class TestLoopbackInvoker:
    """Tests for the in-process invoker."""

    def test_satisfies_protocols(self, hello_invoker: LoopbackInvoker) -> None:
        """The invoker and its streams satisfy the runtime protocols."""
        assert isinstance(hello_invoker, Invoker)
        outgoing, incoming = hello_invoker.invoke(HELLO_TARGET, "hello", b"")
        assert isinstance(outgoing, OutgoingStream)
        assert isinstance(incoming, IncomingStream)
        assert isinstance(incoming, pa.BufferReader)
        outgoing.close()
        incoming.close()

    def test_response_stream(self, hello_invoker: LoopbackInvoker) -> None:
        """The incoming stream carries the handler's encoded response."""
        _, incoming = hello_invoker.invoke(HELLO_TARGET, "hello", b"")
        assert incoming.read(64) == encode_string("hello from Python")
        assert incoming.read(1) == b""

    def test_params_reach_handler(self) -> None:
        """Parameter bytes are passed to the handler."""
        seen: list[bytes] = []

        def handler(params: bytes) -> bytes:
            seen.append(params)
            return b"\x00"

        inv = LoopbackInvoker({("t:p/i", "f"): handler})
        assert invoke(inv, "t:p/i", "f", StringCodec(), StringCodec(), args="abc") == ""
        assert seen == [b"\x03abc"]

    def test_unknown_handler(self) -> None:
        """Unknown target/function pairs raise LookupError."""
        with pytest.raises(LookupError, match="wrpc-examples:hello/handler.goodbye"):
            LoopbackInvoker(HELLO_HANDLERS).invoke(HELLO_TARGET, "goodbye", b"")

    def test_debug_logging(self, hello_invoker: LoopbackInvoker, caplog: pytest.LogCaptureFixture) -> None:
        """Invocations are traced on the transport wire logger."""
        with caplog.at_level(logging.DEBUG, logger="wrpc_stub.wire.transport"):
            hello(hello_invoker)
        messages = [r.getMessage() for r in caplog.records if r.name == "wrpc_stub.wire.transport"]
        assert any("Loopback invoke wrpc-examples:hello/handler.hello" in m for m in messages)


# ---------------------------------------------------------------------------
# serve_one
# ---------------------------------------------------------------------------


class TestServeOne:
    """Tests for the child-side dispatch."""

    def test_dispatch(self) -> None:
        """The handler's response is written verbatim."""
        reader = BytesIO(encode_string(HELLO_TARGET) + encode_string("hello"))
        writer = BytesIO()
        assert serve_one(reader, writer, HELLO_HANDLERS) == 0
        assert writer.getvalue() == encode_string("hello from Python")

    def test_trailing_params(self) -> None:
        """Bytes after the header are the parameters."""
        seen: list[bytes] = []

        def handler(params: bytes) -> bytes:
            seen.append(params)
            return b"\x00"

        reader = BytesIO(encode_string("t:p/i") + encode_string("f") + b"\x02hi")
        assert serve_one(reader, BytesIO(), {("t:p/i", "f"): handler}) == 0
        assert seen == [b"\x02hi"]

    def test_unknown_function(self, caplog: pytest.LogCaptureFixture) -> None:
        """No handler: status 1, nothing written, error logged."""
        reader = BytesIO(encode_string(HELLO_TARGET) + encode_string("goodbye"))
        writer = BytesIO()
        with caplog.at_level(logging.ERROR, logger="wrpc_stub.rpc"):
            assert serve_one(reader, writer, HELLO_HANDLERS) == 1
        assert writer.getvalue() == b""
        record = next(r for r in caplog.records if r.getMessage() == "no handler for invocation")
        assert record.function == "goodbye"  # type: ignore[attr-defined]

    def test_bad_header(self, caplog: pytest.LogCaptureFixture) -> None:
        """A truncated header is rejected with status 1."""
        with caplog.at_level(logging.ERROR, logger="wrpc_stub.rpc"):
            assert serve_one(BytesIO(b"\x05wr"), BytesIO(), HELLO_HANDLERS) == 1
        assert any(r.getMessage() == "failed to read invocation header" for r in caplog.records)


# ---------------------------------------------------------------------------
# SubprocessInvoker
# ---------------------------------------------------------------------------


class TestSubprocessInvoker:
    """End-to-end tests against a child process serving fixture handlers."""

    def test_hello(self, fixture_cmd: list[str]) -> None:
        """The hello binding works across a process boundary."""
        assert hello(SubprocessInvoker(fixture_cmd)) == "hello from fixture"

    def test_cli_server(self, serve_cmd: list[str]) -> None:
        """The packaged ``serve`` command answers hello."""
        assert hello(SubprocessInvoker(serve_cmd)) == "hello from a subprocess"

    def test_params(self, fixture_cmd: list[str]) -> None:
        """Parameters written at invoke time reach the child."""
        inv = SubprocessInvoker(fixture_cmd)
        assert invoke(inv, FIXTURE_TARGET, "echo", UnitCodec(), StringCodec()) == ""
        assert invoke(inv, FIXTURE_TARGET, "echo", StringCodec(), StringCodec(), args="ping") == "\x04ping"

    @pytest.mark.parametrize(
        ("function", "expected"),
        [("empty", ""), ("unicode", "grüße, 世界")],
    )
    def test_values(self, fixture_cmd: list[str], function: str, expected: str) -> None:
        """String results decode across the pipe."""
        assert invoke(SubprocessInvoker(fixture_cmd), FIXTURE_TARGET, function, UnitCodec(), StringCodec()) == expected

    @pytest.mark.parametrize(
        ("function", "stage", "cause"),
        [
            ("invalid-utf8", Stage.UTF8, Utf8Error),
            ("truncated", Stage.BODY, TruncatedBodyError),
            ("overflow", Stage.LENGTH, LengthOverflowError),
        ],
    )
    def test_decode_failures(self, fixture_cmd: list[str], function: str, stage: Stage, cause: type) -> None:
        """Malformed results fail at the expected stage."""
        with pytest.raises(ResultError) as exc_info:
            invoke(SubprocessInvoker(fixture_cmd), FIXTURE_TARGET, function, UnitCodec(), StringCodec())
        assert exc_info.value.stage == stage
        assert isinstance(exc_info.value.__cause__, cause)

    def test_unknown_function(self, fixture_cmd: list[str], caplog: pytest.LogCaptureFixture) -> None:
        """The child exits 1 without output; the exit is only logged."""
        with caplog.at_level(logging.ERROR, logger="wrpc_stub.rpc"), pytest.raises(ResultError) as exc_info:
            invoke(SubprocessInvoker(fixture_cmd), FIXTURE_TARGET, "missing", UnitCodec(), StringCodec())
        assert isinstance(exc_info.value.__cause__, StreamReadError)
        assert any(r.getMessage() == "failed to close reader" for r in caplog.records)

    def test_nonzero_exit_after_result(self, fixture_cmd: list[str], caplog: pytest.LogCaptureFixture) -> None:
        """A failing close after a good result does not change the outcome."""
        inv = SubprocessInvoker([*fixture_cmd, "--exit-status", "3"])
        with caplog.at_level(logging.ERROR, logger="wrpc_stub.rpc"):
            assert hello(inv) == "hello from fixture"
        record = next(r for r in caplog.records if r.getMessage() == "failed to close reader")
        assert "exit status 3" in record.err  # type: ignore[attr-defined]

    def test_child_stdout_close_raises_on_failure(self, fixture_cmd: list[str]) -> None:
        """Closing the incoming stream reports a non-zero exit."""
        outgoing, incoming = SubprocessInvoker(fixture_cmd).invoke(FIXTURE_TARGET, "missing", b"")
        outgoing.close()
        assert incoming.read(1) == b""
        with pytest.raises(subprocess.CalledProcessError):
            incoming.close()
        incoming.close()

    def test_child_exits_before_reading_request(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A failed request write reaps the child and closes both pipes."""
        spawned: list[subprocess.Popen[bytes]] = []

        class _RecordingPopen(subprocess.Popen):  # type: ignore[type-arg]
            def __init__(self, *args: Any, **kwargs: Any) -> None:
                super().__init__(*args, **kwargs)
                spawned.append(self)

        monkeypatch.setattr(_transport.subprocess, "Popen", _RecordingPopen)
        inv = SubprocessInvoker([sys.executable, "-c", "pass"])
        # Larger than any pipe buffer, so the write cannot complete before the child exits.
        params = b"\x00" * (8 << 20)
        with pytest.raises(InvocationError) as exc_info, InvocationSession(inv, FIXTURE_TARGET, "hello", params):
            pass
        assert isinstance(exc_info.value.__cause__, OSError)
        [proc] = spawned
        assert proc.returncode is not None
        assert proc.stdin is not None and proc.stdin.closed
        assert proc.stdout is not None and proc.stdout.closed
