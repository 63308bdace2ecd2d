"""Client and server bindings for concrete wRPC interfaces."""

from wrpc_stub.bindings.hello import DEFAULT_GREETING, HELLO_FUNCTION, HELLO_HANDLERS, HELLO_TARGET, hello, hello_handler

__all__ = [
    "DEFAULT_GREETING",
    "HELLO_FUNCTION",
    "HELLO_HANDLERS",
    "HELLO_TARGET",
    "hello",
    "hello_handler",
]
