"""Bindings for the ``wrpc-examples:hello/handler`` interface.

Client side: :func:`hello`.  Server side: :func:`hello_handler` and
:data:`HELLO_HANDLERS`, usable with :class:`~wrpc_stub.rpc.LoopbackInvoker`
or :func:`~wrpc_stub.rpc.serve_stdio`.
"""

from __future__ import annotations

from typing import Final

from wrpc_stub.rpc import DecodeOptions, Handler, Handlers, Invoker, StringCodec, UnitCodec, encode_string, invoke

HELLO_TARGET: Final[str] = "wrpc-examples:hello/handler"
HELLO_FUNCTION: Final[str] = "hello"
DEFAULT_GREETING: Final[str] = "hello from Python"


def hello(invoker: Invoker, *, options: DecodeOptions | None = None) -> str:
    """Call ``hello`` and return the greeting."""
    return invoke(invoker, HELLO_TARGET, HELLO_FUNCTION, UnitCodec(), StringCodec(), options=options)


def hello_handler(greeting: str = DEFAULT_GREETING) -> Handler:
    """Return a server-side ``hello`` that always answers *greeting*."""
    response = encode_string(greeting)

    def _handle(params: bytes) -> bytes:
        return response

    return _handle


HELLO_HANDLERS: Final[Handlers] = {(HELLO_TARGET, HELLO_FUNCTION): hello_handler()}
