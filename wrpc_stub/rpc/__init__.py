# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Invocation core: value codec, invokers, and the session lifecycle.

A remote call is opened through an :class:`Invoker`, which returns an
outgoing parameter stream and an incoming result stream.  An
:class:`InvocationSession` owns both for the duration of the call.

Wire Protocol
-------------
Values are self-describing.  A string is a varint length followed by that
many UTF-8 bytes::

    [len: 1-5 bytes, 7 bits each, LSB group first, bit 7 = more][len bytes]

Lengths are bounded to 32 bits; the fifth byte may contribute at most four
payload bits.  Results follow one another with no extra framing.

**Zero-argument call**::

    Client: invoke(target, function, b"") -> (outgoing, incoming)
    Client: outgoing.close()                      # no parameters
    Client: read result 0 from incoming
    Client: incoming.close()                      # always, even on failure

Errors
------
Every failure is a :class:`WrpcError` carrying the :class:`Stage` that
failed.  Decode failures are wrapped in :class:`ResultError` with the
original :class:`DecodeError` as ``__cause__``.  Stream close failures are
logged and never raised.
"""

from __future__ import annotations

from wrpc_stub.rpc._common import (
    DEFAULT_DECODE_OPTIONS,
    MAX_U32,
    BodyReadError,
    DecodeError,
    DecodeOptions,
    InvocationError,
    LengthOverflowError,
    ResultError,
    Stage,
    StreamReadError,
    TruncatedBodyError,
    TruncatedStreamError,
    Utf8Error,
    WrpcError,
)
from wrpc_stub.rpc._session import InvocationSession, invoke
from wrpc_stub.rpc._transport import (
    Handler,
    Handlers,
    IncomingStream,
    Invoker,
    LoopbackInvoker,
    OutgoingStream,
    SubprocessInvoker,
    serve_one,
    serve_stdio,
)
from wrpc_stub.rpc._wire import (
    Decoder,
    Encoder,
    StringCodec,
    U32Codec,
    UnitCodec,
    encode_length,
    encode_string,
    read_length,
    read_string,
)

__all__ = [
    "DEFAULT_DECODE_OPTIONS",
    "MAX_U32",
    "BodyReadError",
    "DecodeError",
    "DecodeOptions",
    "Decoder",
    "Encoder",
    "Handler",
    "Handlers",
    "IncomingStream",
    "InvocationError",
    "InvocationSession",
    "Invoker",
    "LengthOverflowError",
    "LoopbackInvoker",
    "OutgoingStream",
    "ResultError",
    "Stage",
    "StreamReadError",
    "StringCodec",
    "SubprocessInvoker",
    "TruncatedBodyError",
    "TruncatedStreamError",
    "U32Codec",
    "UnitCodec",
    "Utf8Error",
    "WrpcError",
    "encode_length",
    "encode_string",
    "invoke",
    "read_length",
    "read_string",
    "serve_one",
    "serve_stdio",
]
