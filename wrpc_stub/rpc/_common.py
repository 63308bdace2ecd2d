"""Constants, errors, and decode options for the invocation core."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Final

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_logger = logging.getLogger("wrpc_stub.rpc")

MAX_U32: Final[int] = 0xFFFF_FFFF
"""Largest value a varint length prefix may encode."""

MAX_VARINT_BYTES: Final[int] = 5
"""Upper bound on bytes consumed for one length prefix (5 * 7 >= 32 bits)."""


# ---------------------------------------------------------------------------
# Stage enum
# ---------------------------------------------------------------------------


class Stage(Enum):
    """Step of an invocation at which a failure occurred.

    Members:
        INVOKE: The invoker could not establish the stream pair.
        LENGTH: Reading the varint length prefix.
        BODY: Reading the value bytes that follow the prefix.
        UTF8: Validating the value bytes as UTF-8 text.

    """

    INVOKE = "invoke"
    LENGTH = "length"
    BODY = "body"
    UTF8 = "utf8"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class WrpcError(Exception):
    """Base class for every failure surfaced by an invocation."""

    stage: Stage = Stage.INVOKE

    def __init__(self, message: str, *, stage: Stage | None = None) -> None:
        """Initialize with a short description of the step that failed."""
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class InvocationError(WrpcError):
    """Raised when the invoker fails to open the outgoing/incoming stream pair."""


class DecodeError(WrpcError):
    """Raised when a value cannot be decoded from the incoming stream."""

    stage = Stage.LENGTH


class StreamReadError(DecodeError):
    """The stream failed (or ended cleanly) before the first length byte."""


class TruncatedStreamError(DecodeError):
    """End of stream reached in the middle of a value."""


class LengthOverflowError(DecodeError):
    """The length prefix does not fit in 32 bits (or exceeds the configured limit)."""


class BodyReadError(DecodeError):
    """The value bytes following the length prefix could not be read.

    Attributes:
        expected: Number of bytes the length prefix declared.
        received: Number of bytes actually read before the failure.

    """

    stage = Stage.BODY

    def __init__(self, message: str, *, expected: int, received: int) -> None:
        """Initialize with the declared and received byte counts."""
        super().__init__(message)
        self.expected = expected
        self.received = received


class TruncatedBodyError(BodyReadError, TruncatedStreamError):
    """End of stream reached before the declared number of value bytes."""

    stage = Stage.BODY


class Utf8Error(DecodeError):
    """Value bytes were read but are not valid UTF-8.

    The raw bytes are kept for diagnostics.  ``value`` is a lossless
    ``surrogateescape`` decoding of them and must not be treated as valid
    text.
    """

    stage = Stage.UTF8

    def __init__(self, message: str, *, raw: bytes) -> None:
        """Initialize with the offending byte sequence."""
        super().__init__(message)
        self.raw = raw

    @property
    def value(self) -> str:
        """The raw bytes reinterpreted as a string (diagnostic only)."""
        return self.raw.decode("utf-8", errors="surrogateescape")


class ResultError(WrpcError):
    """Raised when a result value of an invocation fails to decode.

    The underlying :class:`DecodeError` is available as ``__cause__``; its
    stage is copied onto this error.
    """

    def __init__(self, index: int, cause: DecodeError) -> None:
        """Initialize with the result position and the decode failure."""
        super().__init__(f"failed to read result {index}: {cause}", stage=cause.stage)
        self.index = index
        self.cause = cause

    @property
    def value(self) -> str | None:
        """Diagnostic value for UTF-8 failures, otherwise ``None``."""
        if isinstance(self.cause, Utf8Error):
            return self.cause.value
        return None


# ---------------------------------------------------------------------------
# Decode options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DecodeOptions:
    """Tunables for reading values off an incoming stream.

    Attributes:
        read_until_full: Keep calling ``read`` until the declared number of
            bytes has arrived.  When ``False`` a single ``read`` call must
            return the whole value or the decode fails.
        max_string_length: Reject length prefixes above this value before
            allocating.  Defaults to the full 32-bit range.

    """

    read_until_full: bool = True
    max_string_length: int = MAX_U32

    def __post_init__(self) -> None:
        """Validate the length limit."""
        if not 0 <= self.max_string_length <= MAX_U32:
            raise ValueError(f"max_string_length must be in [0, {MAX_U32}], got {self.max_string_length}")

    @classmethod
    def relaxed(cls) -> DecodeOptions:
        """Single-read mode: one ``read`` per value, short reads fail."""
        return cls(read_until_full=False)


DEFAULT_DECODE_OPTIONS: Final[DecodeOptions] = DecodeOptions()
