# © Copyright 2025-2026, Query.Farm LLC - https://query.farm
# SPDX-License-Identifier: Apache-2.0

"""Logging setup and JSON formatter for structured output.

Provides :class:`WrpcJsonFormatter`, a :class:`logging.Formatter` subclass
that serializes log records as single-line JSON objects.  All ``extra``
fields attached to a record (for example the ``instance`` and ``function``
of a failed stream close) are included automatically.  Records logged with
a :class:`~wrpc_stub.rpc.WrpcError` also carry the failing ``stage``.

This module is **not** auto-imported by ``wrpc_stub``; import it explicitly::

    from wrpc_stub.logging_utils import WrpcJsonFormatter
"""

from __future__ import annotations

import json
import logging
from typing import IO

from wrpc_stub.rpc._common import WrpcError

__all__ = ["WrpcJsonFormatter", "configure_logging"]

# Build the set of attribute names that every LogRecord has by default.
# Anything *not* in this set was injected via ``extra``.
_DEFAULT_RECORD_ATTRS: frozenset[str] = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()) | {
    "message",
    "asctime",
}

_RESERVED_KEYS: frozenset[str] = frozenset({"timestamp", "level", "logger", "message", "exception", "stack_info", "stage"})

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class WrpcJsonFormatter(logging.Formatter):
    """JSON formatter that emits all structured extra fields.

    Standard fields (``timestamp``, ``level``, ``logger``, ``message``) are
    always present and cannot be overwritten by extra fields with the same
    name.  Every other non-default attribute on the ``LogRecord`` is emitted
    as an additional key.

    Exception information is included under the ``"exception"`` key when
    present; for a :class:`WrpcError` the decode or invoke stage it failed
    at is added as ``"stage"``.  Non-serializable values are coerced to
    strings via ``default=str``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a single-line JSON string."""
        record.message = record.getMessage()
        obj: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            **{k: v for k, v in record.__dict__.items() if k not in _DEFAULT_RECORD_ATTRS and k not in _RESERVED_KEYS},
        }
        if record.exc_info and record.exc_info[1]:
            obj["exception"] = self.formatException(record.exc_info)
            if isinstance(record.exc_info[1], WrpcError):
                obj["stage"] = record.exc_info[1].stage.value
        if record.stack_info:
            obj["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(obj, default=str)


def configure_logging(level: int | str = logging.WARNING, *, json_format: bool = False, stream: IO[str] | None = None) -> logging.Handler:
    """Attach a stderr handler to the ``wrpc_stub`` logger hierarchy.

    Args:
        level: Level for the ``wrpc_stub`` logger.
        json_format: Emit records through :class:`WrpcJsonFormatter`
            instead of plain text.
        stream: Destination; defaults to ``sys.stderr``.

    Returns:
        The installed handler, so callers can remove it again.

    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(WrpcJsonFormatter() if json_format else logging.Formatter(_TEXT_FORMAT))
    root = logging.getLogger("wrpc_stub")
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    return handler
