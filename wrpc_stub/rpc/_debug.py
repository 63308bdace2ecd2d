"""Debug logging infrastructure for wire protocol diagnostics.

Provides logger instances under the ``wrpc_stub.wire.*`` hierarchy and
formatting helpers for raw byte payloads.  Enabling
``logging.getLogger("wrpc_stub.wire").setLevel(logging.DEBUG)`` shows every
length prefix, value body and stream lifecycle event of an invocation.

All formatting helpers return ``str`` and never log directly.
They are designed to be called inside ``isEnabledFor`` guards so
there is zero overhead when debug logging is disabled.
"""

from __future__ import annotations

import logging

# ---------------------------------------------------------------------------
# Logger hierarchy: wrpc_stub.wire.*
# ---------------------------------------------------------------------------

wire_codec_logger = logging.getLogger("wrpc_stub.wire.codec")
"""Length prefix and value body decoding."""

wire_session_logger = logging.getLogger("wrpc_stub.wire.session")
"""Invocation session lifecycle."""

wire_transport_logger = logging.getLogger("wrpc_stub.wire.transport")
"""Invoker lifecycle (loopback, subprocess)."""

# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

_MAX_BYTES_SHOWN = 32
"""Maximum number of bytes rendered by fmt_bytes before truncating."""


def fmt_bytes(data: bytes | bytearray | memoryview) -> str:
    """Format a byte payload as hex with its length.

    Returns:
        ``"05 68 65 6c 6c 6f (6 bytes)"``, truncated with ``...`` after
        32 bytes, or ``"(empty)"``.

    """
    n = len(data)
    if n == 0:
        return "(empty)"
    shown = bytes(data[:_MAX_BYTES_SHOWN]).hex(" ")
    if n > _MAX_BYTES_SHOWN:
        shown += " ..."
    return f"{shown} ({n} bytes)"


def fmt_call(target: str, function: str) -> str:
    """Format an invocation address.

    Returns:
        ``"wrpc-examples:hello/handler.hello"``

    """
    return f"{target}.{function}"
