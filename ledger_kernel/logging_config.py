"""
Structured JSON logging for the ledger engine.

Each record is one JSON object: the event name in ``message``, the fields
bound through ``LogContext`` and the ``extra`` payload of the call.  Bound
fields tie a record to the business document being processed
(``document_type`` and ``document_id``), the journal entry being written,
the acting user and the correlation id shared by every entry a document
produces.  Money and quantities are integers and are written unchanged.

Usage::

    logger = get_logger("services.inventory_layers")
    with LogContext.bind(document_type="invoice", document_id=invoice.id):
        logger.info("layer_depleted", extra={"quantity": 4, "total_cost": 400})

SQLAlchemy's own ``sqlalchemy.engine`` logger can be routed through the
same handler with ``configure_logging(sql_level=logging.INFO)`` so that
statements interleave with the ledger events that issued them.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import dataclasses
import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from ledger_kernel.exceptions import IntegrityViolation

LOGGER_PREFIX = "ledger_kernel"
SQL_LOGGER = "sqlalchemy.engine"

CONTEXT_FIELDS = (
    "correlation_id",
    "actor_id",
    "entry_id",
    "document_type",
    "document_id",
    "trace_id",
)

_context: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default={})


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


def _checked(fields: Mapping[str, Any]) -> dict[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
    return {name: str(value) for name, value in fields.items() if value is not None}


class LogContext:
    """
    Per-task log fields held in a single context variable.

    Values are stringified on the way in, so UUID ids can be bound as-is.
    Only the names in ``CONTEXT_FIELDS`` are accepted.
    """

    @staticmethod
    def set(**fields: Any) -> None:
        _context.set({**_context.get(), **_checked(fields)})

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set({})

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Overlay ``fields`` for the duration of the block."""
        token = _context.set({**_context.get(), **_checked(fields)})
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=str)
    return str(obj)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
        fields["exc_fatal"] = isinstance(exc, IntegrityViolation)
    for name, value in vars(exc).items():
        if not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line per record; bound context wins over ``extra`` keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``ledger_kernel`` namespace."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
    sql_level: int | None = None,
) -> logging.Handler:
    """
    Install one JSON handler on the ``ledger_kernel`` logger.

    Later calls are no-ops and return the handler installed first.  With
    ``sql_level`` set, SQLAlchemy's engine logger shares that handler.
    """
    global _installed
    with _lock:
        if _installed is not None:
            return _installed
        installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        installed.setFormatter(StructuredFormatter())

        ledger_logger = logging.getLogger(LOGGER_PREFIX)
        ledger_logger.setLevel(level)
        ledger_logger.propagate = False
        ledger_logger.addHandler(installed)

        if sql_level is not None:
            sql_logger = logging.getLogger(SQL_LOGGER)
            sql_logger.setLevel(sql_level)
            sql_logger.propagate = False
            sql_logger.addHandler(installed)

        _installed = installed
        return installed


def reset_logging() -> None:
    """Detach the installed handler from both loggers.  For tests."""
    global _installed
    with _lock:
        if _installed is not None:
            for name in (LOGGER_PREFIX, SQL_LOGGER):
                logger = logging.getLogger(name)
                if _installed in logger.handlers:
                    logger.removeHandler(_installed)
        _installed = None
        logging.getLogger(LOGGER_PREFIX).setLevel(logging.WARNING)
        sql_logger = logging.getLogger(SQL_LOGGER)
        sql_logger.setLevel(logging.NOTSET)
        sql_logger.propagate = True
