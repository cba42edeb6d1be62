from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULT_LOG_FILE = "server.log"
SECURITY_LOG_FILE = "security.log"
SECURITY_LOGGER_NAME = "cowrite.security"
_REQUEST_ID_VAR: ContextVar[str | None] = ContextVar("cowrite_request_id", default=None)
_CONTEXT_FILTER: logging.Filter | None = None

_RESERVED_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "request_id",
    }
)


class StructuredJsonFormatter(logging.Formatter):
    """Render log records as structured JSON lines."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None)
        if request_id:
            payload["request_id"] = request_id

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS
        }
        if extras:
            payload["extra"] = _serialise_extra(extras)

        return json.dumps(payload, ensure_ascii=True)


class RequestContextFilter(logging.Filter):
    """Inject the current request id into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        rid = get_request_id()
        if rid:
            record.request_id = rid
        elif not hasattr(record, "request_id"):
            record.request_id = None
        return True


def _serialise_extra(data: Dict[str, Any]) -> Dict[str, Any]:
    serialised: Dict[str, Any] = {}
    for key, value in data.items():
        try:
            json.dumps(value)
            serialised[key] = value
        except (TypeError, ValueError):
            serialised[key] = repr(value)
    return serialised


def set_request_id(value: str | None) -> Token:
    """Set the current request id for log records."""
    return _REQUEST_ID_VAR.set(value)


def get_request_id() -> str | None:
    return _REQUEST_ID_VAR.get()


def reset_request_id(token: Token) -> None:
    """Restore the previous request id context."""
    try:
        _REQUEST_ID_VAR.reset(token)
    except (RuntimeError, ValueError):
        pass


def _coerce_level(level: str) -> int:
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else logging.INFO


def _apply_context_filter(logger: logging.Logger) -> None:
    global _CONTEXT_FILTER
    if _CONTEXT_FILTER is None:
        _CONTEXT_FILTER = RequestContextFilter()
    if _CONTEXT_FILTER not in logger.filters:
        logger.addFilter(_CONTEXT_FILTER)


def _rotating_handler(path: Path, formatter: logging.Formatter, max_bytes: int) -> logging.Handler:
    handler = RotatingFileHandler(
        str(path), maxBytes=max_bytes, backupCount=5, encoding="utf-8"
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    return handler


def init_logging(
    log_dir: str | os.PathLike[str] | None = None,
    *,
    level: str = "INFO",
    filename: str = DEFAULT_LOG_FILE,
) -> Optional[Path]:
    """
    Initialise root logging with structured JSON output.

    Always logs to stderr. When ``log_dir`` is given, also writes a rotating
    ``server.log`` and routes the ``cowrite.security`` audit logger to its own
    ``security.log`` instead of the root handlers. Returns the server log path.
    """

    root_logger = logging.getLogger()
    root_logger.setLevel(_coerce_level(level))
    _apply_context_filter(root_logger)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        try:
            handler.close()
        except Exception:
            pass

    formatter = StructuredJsonFormatter()
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.addFilter(RequestContextFilter())
    root_logger.addHandler(stream_handler)

    security_logger = logging.getLogger(SECURITY_LOGGER_NAME)
    security_logger.setLevel(logging.INFO)
    _apply_context_filter(security_logger)

    if log_dir is None:
        security_logger.propagate = True
        return None

    base = Path(log_dir).expanduser().resolve()
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / filename
    root_logger.addHandler(_rotating_handler(log_path, formatter, 5 * 1024 * 1024))

    security_logger.propagate = False
    if not any(
        getattr(h, "_cowrite_security", False) for h in security_logger.handlers
    ):
        security_handler = _rotating_handler(
            base / SECURITY_LOG_FILE, formatter, 1_000_000
        )
        security_handler._cowrite_security = True  # type: ignore[attr-defined]
        security_logger.addHandler(security_handler)
    return log_path


__all__ = [
    "StructuredJsonFormatter",
    "RequestContextFilter",
    "init_logging",
    "set_request_id",
    "get_request_id",
    "reset_request_id",
]
