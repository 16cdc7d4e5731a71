"""
Structured JSON logging for the expense kernel.

Every line is one JSON object.  The envelope always opens with
``ts``, ``level``, ``logger`` and ``event`` (the log message, which the
kernel writes as a snake_case event name such as ``expense_decided``).
The decision fields ``expense_id``, ``actor_id``, ``operation`` and
``verdict`` follow whenever they are known, taken from the record's
``extra`` first and from the bound LogContext second.  Remaining extras
are appended flat.

Kernel exceptions logged with ``exc_info`` are rendered as an ``error``
object carrying their code, retryability and structured attributes, so
a refused or failed decision can be filtered on ``error.code`` without
parsing the traceback.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "DECISION_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, TextIO
from uuid import UUID

_LOGGER_PREFIX = "expense_kernel"

# Bound per request by the workflow facade.
CONTEXT_FIELDS = ("correlation_id", "operation", "actor_id", "expense_id")

# Promoted to the front of every line, in this order.
DECISION_FIELDS = ("expense_id", "actor_id", "operation", "verdict")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("expense_log_context", default=_EMPTY)


def _as_text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class LogContext:
    """Request-scoped fields (``CONTEXT_FIELDS``) added to every log line.

    Backed by a single ContextVar holding a read-only mapping, so each
    thread and each asyncio task sees its own bindings.
    """

    @staticmethod
    def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context field(s): {sorted(unknown)}")
        merged = dict(_context.get())
        merged.update({k: _as_text(v) for k, v in fields.items() if v is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set fields for the rest of the current context. None values are skipped."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a block, then restore the previous ones."""
        token = _context.set(cls._merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    """json.dumps hook for the value types the kernel logs."""
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    raise TypeError(f"{type(value).__name__} is not loggable as JSON")


def _error_payload(exc: BaseException) -> dict[str, Any]:
    error: dict[str, Any] = {
        "type": type(exc).__name__,
        "message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        error["code"] = code
        error["retryable"] = bool(getattr(exc, "retryable", False))
        error["fields"] = {
            k: v for k, v in vars(exc).items()
            if not k.startswith("_") and k not in ("code", "retryable")
        }
    return error


class StructuredFormatter(logging.Formatter):
    """Formats each record as one JSON line with the decision envelope."""

    def format(self, record: logging.LogRecord) -> str:
        extras = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        context = _context.get()

        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        for name in DECISION_FIELDS:
            if name in extras:
                payload[name] = extras.pop(name)
            elif name in context:
                payload[name] = context[name]
        for name, value in context.items():
            payload.setdefault(name, value)
        for name, value in extras.items():
            payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload["error"] = _error_payload(record.exc_info[1])
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``expense_kernel`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def _kernel_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if getattr(h, "_expense_kernel", False)]


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    mapping = logging.getLevelNamesMapping()
    try:
        return mapping[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level!r}") from None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> logging.Handler:
    """Install the JSON handler on the ``expense_kernel`` logger.

    Idempotent: if a kernel handler is already installed it is returned
    unchanged and ``level``, ``stream`` and ``handler`` are ignored.
    Handlers added by other tools (test log capture, for instance) are
    left alone.
    """
    root = logging.getLogger(_LOGGER_PREFIX)
    installed = _kernel_handlers(root)
    if installed:
        return installed[0]

    resolved = _resolve_level(level)
    chosen = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    chosen.setFormatter(StructuredFormatter())
    chosen._expense_kernel = True  # type: ignore[attr-defined]

    root.setLevel(resolved)
    root.propagate = False
    root.addHandler(chosen)
    return chosen


def reset_logging() -> None:
    """Remove the kernel handler and restore default propagation. For tests."""
    root = logging.getLogger(_LOGGER_PREFIX)
    for h in _kernel_handlers(root):
        root.removeHandler(h)
    root.setLevel(logging.NOTSET)
    root.propagate = True
