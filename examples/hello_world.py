"""Minimal wrpc-stub example: serve ``hello`` and call it in-process.

The handler runs behind a loopback invoker, so no subprocess or network is
needed.  The second half opens an InvocationSession by hand to show the
stream lifecycle that ``hello()`` wraps.

Run::

    python examples/hello_world.py
"""

from __future__ import annotations

from wrpc_stub import HELLO_TARGET, InvocationSession, LoopbackInvoker, StringCodec, hello, hello_handler


def main() -> None:
    """Run the example."""
    # 1. Register a server-side handler under (target, function).
    invoker = LoopbackInvoker({(HELLO_TARGET, "hello"): hello_handler("Hello, World!")})

    # 2. Call it through the generated binding.
    print(hello(invoker))  # Hello, World!

    # 3. The same call, one step at a time.
    with InvocationSession(invoker, HELLO_TARGET, "hello") as session:
        session.finish_params()  # zero arguments: close the parameter stream right away
        print(session.read_result(StringCodec()))  # Hello, World!


if __name__ == "__main__":
    main()
