"""Call ``hello`` on a server running in a child process.

Each invocation spawns ``python -m wrpc_stub serve``, writes the request on
its stdin, and decodes the greeting from its stdout.

Run::

    python examples/subprocess_client.py
"""

from __future__ import annotations

import logging
import sys

from wrpc_stub import ResultError, SubprocessInvoker, hello


def main() -> None:
    """Run the example."""
    logging.basicConfig(level=logging.WARNING)
    invoker = SubprocessInvoker([sys.executable, "-m", "wrpc_stub", "serve", "--greeting", "hello from a child"])
    try:
        print(hello(invoker))
    except ResultError as e:
        print(f"call failed at {e.stage.value}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
