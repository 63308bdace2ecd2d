# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Invocation session and the generic ``invoke`` primitive."""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

from wrpc_stub.rpc._common import DecodeError, DecodeOptions, InvocationError, ResultError, _logger
from wrpc_stub.rpc._debug import fmt_bytes, fmt_call, wire_session_logger
from wrpc_stub.rpc._transport import IncomingStream, Invoker, OutgoingStream
from wrpc_stub.rpc._wire import Decoder, Encoder


class InvocationSession:
    """Context manager owning the stream pair of one remote call.

    Entering the context invokes the function and acquires the outgoing
    and incoming streams; leaving it always closes the incoming stream,
    whether the body returned, a decode failed, or anything else was
    raised::

        with InvocationSession(invoker, "wrpc-examples:hello/handler", "hello") as session:
            session.finish_params()
            greeting = session.read_result(StringCodec())

    Close failures are reported to the session logger and never raised.

    Not thread-safe: a session and its streams belong to a single caller.
    """

    __slots__ = ("_function", "_incoming", "_invoker", "_logger", "_outgoing", "_params", "_target")

    def __init__(
        self,
        invoker: Invoker,
        target: str,
        function: str,
        params: bytes = b"",
        *,
        logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
    ) -> None:
        """Initialize with the invoker, call address, and encoded parameters.

        Args:
            invoker: Mechanism that opens the stream pair.
            target: Namespaced interface name, e.g.
                ``"wrpc-examples:hello/handler"``.
            function: Function name on *target*.
            params: Already-encoded parameter bytes (empty for
                zero-argument functions).
            logger: Receives cleanup diagnostics.  Defaults to
                ``wrpc_stub.rpc``.

        """
        self._invoker = invoker
        self._target = target
        self._function = function
        self._params = params
        self._logger = logger if logger is not None else _logger
        self._outgoing: OutgoingStream | None = None
        self._incoming: IncomingStream | None = None

    def __enter__(self) -> InvocationSession:
        """Invoke the function and take ownership of its streams.

        Raises:
            InvocationError: The invoker failed; no streams were acquired.

        """
        if wire_session_logger.isEnabledFor(logging.DEBUG):
            wire_session_logger.debug(
                "Session open: %s, params=%s",
                fmt_call(self._target, self._function),
                fmt_bytes(self._params),
            )
        try:
            self._outgoing, self._incoming = self._invoker.invoke(self._target, self._function, self._params)
        except Exception as exc:
            raise InvocationError(f"failed to invoke `{self._function}`: {exc}") from exc
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the incoming stream."""
        self.close()

    @property
    def target(self) -> str:
        """Namespaced interface name being invoked."""
        return self._target

    @property
    def function(self) -> str:
        """Function name being invoked."""
        return self._function

    @property
    def incoming(self) -> IncomingStream:
        """The result stream.

        Raises:
            RuntimeError: The session is not open.

        """
        if self._incoming is None:
            raise RuntimeError("invocation session is not open")
        return self._incoming

    def finish_params(self) -> None:
        """Close the outgoing stream: no further parameter bytes follow."""
        outgoing, self._outgoing = self._outgoing, None
        if outgoing is None:
            return
        try:
            outgoing.close()
        except Exception as exc:
            self._logger.debug(
                "failed to close outgoing stream",
                extra={"instance": self._target, "function": self._function, "err": str(exc)},
            )

    def read_result[T](self, decoder: Decoder[T], index: int = 0, options: DecodeOptions | None = None) -> T:
        """Decode result number *index* from the incoming stream.

        Raises:
            ResultError: The value could not be decoded; the
                :class:`DecodeError` is chained as ``__cause__``.

        """
        try:
            value = decoder.decode(self.incoming, options)
        except DecodeError as exc:
            raise ResultError(index, exc) from exc
        if wire_session_logger.isEnabledFor(logging.DEBUG):
            wire_session_logger.debug("Session result %d: %r", index, value)
        return value

    def close(self) -> None:
        """Release both streams; safe to call more than once."""
        self.finish_params()
        incoming, self._incoming = self._incoming, None
        if incoming is None:
            return
        if wire_session_logger.isEnabledFor(logging.DEBUG):
            wire_session_logger.debug("Session close: %s", fmt_call(self._target, self._function))
        try:
            incoming.close()
        except Exception as exc:
            self._logger.error(
                "failed to close reader",
                extra={"instance": self._target, "function": self._function, "err": str(exc)},
            )


def invoke[P, R](
    invoker: Invoker,
    target: str,
    function: str,
    params: Encoder[P],
    result: Decoder[R],
    *,
    args: P = (),  # type: ignore[assignment]
    options: DecodeOptions | None = None,
    logger: logging.Logger | logging.LoggerAdapter[Any] | None = None,
) -> R:
    """Call *function* on *target* and decode its single result.

    Args:
        invoker: Mechanism that opens the stream pair.
        target: Namespaced interface name.
        function: Function name on *target*.
        params: Encoding of the parameter tuple.
        result: Decoding of the result value.
        args: Parameter value passed to ``params.encode``; ``()`` for
            zero-argument functions.
        options: Decode tunables.
        logger: Receives cleanup diagnostics.

    Returns:
        The decoded result.

    Raises:
        InvocationError: The invoker failed.
        ResultError: The result could not be decoded.

    """
    encoded = params.encode(args)
    with InvocationSession(invoker, target, function, encoded, logger=logger) as session:
        session.finish_params()
        return session.read_result(result, 0, options)
