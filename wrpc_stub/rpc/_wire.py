"""Value codec: varint length prefixes and UTF-8 string bodies.

Wire format of a string value::

    [1-5 byte little-endian base-128 length][length raw UTF-8 bytes]

Each length byte carries 7 payload bits (least significant group first);
bit 7 set means another byte follows.  Lengths are bounded to 32 bits.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING, Protocol

import structlog

from wrpc_stub.rpc._common import (
    DEFAULT_DECODE_OPTIONS,
    MAX_U32,
    MAX_VARINT_BYTES,
    BodyReadError,
    DecodeOptions,
    LengthOverflowError,
    StreamReadError,
    TruncatedBodyError,
    TruncatedStreamError,
    Utf8Error,
)
from wrpc_stub.rpc._debug import fmt_bytes, wire_codec_logger

if TYPE_CHECKING:
    from wrpc_stub.rpc._transport import IncomingStream

__all__ = [
    "Decoder",
    "Encoder",
    "StringCodec",
    "U32Codec",
    "UnitCodec",
    "encode_length",
    "encode_string",
    "read_length",
    "read_string",
]

# Codec trace logging - enable with WRPC_CODEC_DEBUG=1
_CODEC_DEBUG = os.environ.get("WRPC_CODEC_DEBUG", "").lower() in ("1", "true", "yes")
_codec_log: structlog.stdlib.BoundLogger | None = None


def _get_codec_log() -> structlog.stdlib.BoundLogger:
    """Get or create the codec trace logger, configured to write to stderr."""
    global _codec_log
    if _codec_log is None:
        structlog.configure(
            processors=[
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.dev.ConsoleRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(0),
            logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        )
        _codec_log = structlog.get_logger().bind(component="codec")
    return _codec_log


# ---------------------------------------------------------------------------
# Length prefix
# ---------------------------------------------------------------------------


def read_length(stream: IncomingStream) -> int:
    """Decode one varint length prefix from *stream*.

    Reads one byte at a time and never consumes more than five bytes.

    Raises:
        StreamReadError: The stream raised ``OSError``, or ended before the
            first byte.
        TruncatedStreamError: The stream ended after at least one
            continuation byte.
        LengthOverflowError: The encoded value does not fit in 32 bits.

    """
    x = 0
    s = 0
    for i in range(MAX_VARINT_BYTES):
        if _CODEC_DEBUG:
            _get_codec_log().debug("reading string length byte", i=i)
        try:
            chunk = stream.read(1)
        except OSError as exc:
            raise StreamReadError("failed to read string length byte") from exc
        if not chunk:
            if i > 0:
                raise TruncatedStreamError(
                    f"failed to read string length byte: stream ended after {i} continuation byte(s)"
                ) from EOFError("unexpected end of stream")
            raise StreamReadError("failed to read string length byte") from EOFError("end of stream")
        b = chunk[0]
        if s == 28 and b > 0x0F:
            raise LengthOverflowError("string length overflows a 32-bit integer")
        if b < 0x80:
            x |= b << s
            if wire_codec_logger.isEnabledFor(logging.DEBUG):
                wire_codec_logger.debug("Length prefix decoded: %d (%d byte(s))", x, i + 1)
            return x
        x |= (b & 0x7F) << s
        s += 7
    raise LengthOverflowError("string length overflows a 32-bit integer")


def encode_length(n: int) -> bytes:
    """Encode *n* as a varint length prefix.

    Raises:
        ValueError: If *n* is outside ``[0, 2**32 - 1]``.

    """
    if not 0 <= n <= MAX_U32:
        raise ValueError(f"length must be in [0, {MAX_U32}], got {n}")
    out = bytearray()
    while n >= 0x80:
        out.append((n & 0x7F) | 0x80)
        n >>= 7
    out.append(n)
    return bytes(out)


# ---------------------------------------------------------------------------
# String body
# ---------------------------------------------------------------------------


def _read_exact(stream: IncomingStream, n: int) -> bytes:
    """Read exactly *n* bytes, looping over short reads."""
    buf = bytearray()
    while len(buf) < n:
        try:
            chunk = stream.read(n - len(buf))
        except OSError as exc:
            raise BodyReadError("failed to read string bytes", expected=n, received=len(buf)) from exc
        if not chunk:
            raise TruncatedBodyError(
                f"failed to read string bytes: stream ended after {len(buf)} of {n} bytes",
                expected=n,
                received=len(buf),
            ) from EOFError("unexpected end of stream")
        buf += chunk
    return bytes(buf)


def _read_once(stream: IncomingStream, n: int) -> bytes:
    """Read *n* bytes with a single ``read`` call; a short read fails."""
    try:
        data = stream.read(n)
    except OSError as exc:
        raise BodyReadError("failed to read string bytes", expected=n, received=0) from exc
    if len(data) < n:
        raise BodyReadError(
            f"failed to read string bytes: short read of {len(data)} of {n} bytes",
            expected=n,
            received=len(data),
        )
    return bytes(data)


def read_string(stream: IncomingStream, options: DecodeOptions | None = None) -> str:
    """Decode one length-prefixed UTF-8 string from *stream*.

    Raises:
        DecodeError: Any of the length prefix failures from
            :func:`read_length`, :class:`BodyReadError` when the body cannot
            be read in full, or :class:`Utf8Error` when it is not valid text.

    """
    opts = options or DEFAULT_DECODE_OPTIONS
    n = read_length(stream)
    if n > opts.max_string_length:
        raise LengthOverflowError(f"string length {n} exceeds limit of {opts.max_string_length}")
    if _CODEC_DEBUG:
        _get_codec_log().debug("reading string bytes", len=n)
    if n == 0:
        data = b""
    elif opts.read_until_full:
        data = _read_exact(stream, n)
    else:
        data = _read_once(stream, n)
    if wire_codec_logger.isEnabledFor(logging.DEBUG):
        wire_codec_logger.debug("String body read: %s", fmt_bytes(data))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise Utf8Error("string is not valid UTF-8", raw=data) from exc


def encode_string(value: str) -> bytes:
    """Encode *value* as a length-prefixed UTF-8 string."""
    body = value.encode("utf-8")
    return encode_length(len(body)) + body


# ---------------------------------------------------------------------------
# Encodable / decodable value kinds
# ---------------------------------------------------------------------------


class Encoder[T](Protocol):
    """A value kind that can be written to an outgoing stream."""

    def encode(self, value: T) -> bytes:
        """Return the wire encoding of *value*."""
        ...


class Decoder[T](Protocol):
    """A value kind that can be read off an incoming stream."""

    def decode(self, stream: IncomingStream, options: DecodeOptions | None = None) -> T:
        """Read one value from *stream*."""
        ...


class StringCodec:
    """Length-prefixed UTF-8 string."""

    def encode(self, value: str) -> bytes:
        """Return the length-prefixed encoding of *value*."""
        return encode_string(value)

    def decode(self, stream: IncomingStream, options: DecodeOptions | None = None) -> str:
        """Read one string from *stream*."""
        return read_string(stream, options)


class U32Codec:
    """Unsigned 32-bit integer, encoded as a bare varint."""

    def encode(self, value: int) -> bytes:
        """Return the varint encoding of *value*."""
        return encode_length(value)

    def decode(self, stream: IncomingStream, options: DecodeOptions | None = None) -> int:
        """Read one varint from *stream*."""
        return read_length(stream)


class UnitCodec:
    """The empty tuple: zero bytes on the wire.

    Used as the parameter encoding of zero-argument functions.
    """

    def encode(self, value: tuple[()] = ()) -> bytes:
        """Return ``b""``."""
        if value != ():
            raise ValueError(f"unit value must be (), got {value!r}")
        return b""

    def decode(self, stream: IncomingStream, options: DecodeOptions | None = None) -> tuple[()]:
        """Read nothing and return ``()``."""
        return ()
