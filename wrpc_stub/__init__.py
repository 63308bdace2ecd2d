# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Client stubs for wRPC functions built on a self-describing value codec."""

from wrpc_stub.bindings import HELLO_FUNCTION, HELLO_TARGET, hello, hello_handler
from wrpc_stub.rpc import (
    BodyReadError,
    DecodeError,
    Decoder,
    DecodeOptions,
    Encoder,
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
    TruncatedStreamError,
    U32Codec,
    UnitCodec,
    Utf8Error,
    WrpcError,
    encode_length,
    encode_string,
    invoke,
    read_length,
    read_string,
    serve_stdio,
)

__all__ = [
    "HELLO_FUNCTION",
    "HELLO_TARGET",
    "BodyReadError",
    "DecodeError",
    "DecodeOptions",
    "Decoder",
    "Encoder",
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
    "hello",
    "hello_handler",
    "invoke",
    "read_length",
    "read_string",
    "serve_stdio",
]
