"""Shared test fixtures for wrpc-stub tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from wrpc_stub.bindings import HELLO_HANDLERS
from wrpc_stub.rpc import LoopbackInvoker

_SERVE_FIXTURE = str(Path(__file__).parent / "serve_fixture_pipe.py")


class ChunkedReader:
    """Incoming stream that returns at most ``chunk`` bytes per read.

    Records every requested size and how often ``close`` was called.
    """

    def __init__(self, data: bytes, chunk: int = 1, *, close_error: Exception | None = None) -> None:
        self._data = data
        self._pos = 0
        self._chunk = chunk
        self._close_error = close_error
        self.requests: list[int] = []
        self.close_count = 0

    @property
    def consumed(self) -> int:
        """Number of bytes handed out so far."""
        return self._pos

    def read(self, n: int, /) -> bytes:
        self.requests.append(n)
        out = self._data[self._pos : self._pos + min(n, self._chunk)]
        self._pos += len(out)
        return out

    def close(self) -> None:
        self.close_count += 1
        if self._close_error is not None:
            raise self._close_error


class FailingReader:
    """Incoming stream whose reads raise after ``good`` bytes."""

    def __init__(self, data: bytes, good: int, error: OSError) -> None:
        self._data = data
        self._pos = 0
        self._good = good
        self._error = error

    def read(self, n: int, /) -> bytes:
        if self._pos >= self._good:
            raise self._error
        out = self._data[self._pos : min(self._pos + n, self._good)]
        self._pos += len(out)
        return out

    def close(self) -> None:
        pass


class RecordingWriter:
    """Outgoing stream that records writes and closes."""

    def __init__(self, *, close_error: Exception | None = None) -> None:
        self.written = bytearray()
        self.close_count = 0
        self._close_error = close_error

    def write(self, data: bytes, /) -> int:
        self.written += data
        return len(data)

    def close(self) -> None:
        self.close_count += 1
        if self._close_error is not None:
            raise self._close_error


class StaticInvoker:
    """Invoker that hands out a fixed stream pair and records calls."""

    def __init__(self, incoming: ChunkedReader, outgoing: RecordingWriter | None = None) -> None:
        self.incoming = incoming
        self.outgoing = outgoing if outgoing is not None else RecordingWriter()
        self.calls: list[tuple[str, str, bytes]] = []

    def invoke(self, target: str, function: str, params: bytes) -> tuple[RecordingWriter, ChunkedReader]:
        self.calls.append((target, function, params))
        return self.outgoing, self.incoming


@pytest.fixture
def chunked_reader() -> type[ChunkedReader]:
    """The short-reading incoming stream class."""
    return ChunkedReader


@pytest.fixture
def failing_reader() -> type[FailingReader]:
    """The incoming stream class whose reads raise ``OSError``."""
    return FailingReader


@pytest.fixture
def recording_writer() -> type[RecordingWriter]:
    """The recording outgoing stream class."""
    return RecordingWriter


@pytest.fixture
def static_invoker() -> type[StaticInvoker]:
    """The fixed-stream invoker class."""
    return StaticInvoker


@pytest.fixture
def hello_invoker() -> LoopbackInvoker:
    """Loopback invoker serving the default ``hello`` handler."""
    return LoopbackInvoker(HELLO_HANDLERS)


@pytest.fixture(scope="session")
def fixture_cmd() -> list[str]:
    """Command that serves one invocation of the fixture handlers."""
    return [sys.executable, _SERVE_FIXTURE]


@pytest.fixture(scope="session")
def serve_cmd() -> list[str]:
    """Command that serves one ``hello`` invocation through the CLI."""
    return [sys.executable, "-m", "wrpc_stub", "serve", "--greeting", "hello from a subprocess"]
