"""
Structured logging.

JSON lines on stdout, enriched with the current request id and with
sensitive fields (passwords, tokens, secrets) redacted before they are
written.
"""

import json
import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# LogRecord attributes that are not user-supplied extras.
_RESERVED_ATTRS = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "created", "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "message", "taskName",
}

SENSITIVE_KEYS = {
    "password",
    "new_password",
    "old_password",
    "current_password",
    "password_hash",
    "secret",
    "jwt_secret",
    "token",
    "access_token",
    "refresh_token",
    "reset_token",
    "authorization",
}

REDACTED = "***"

_HANDLER_NAME = "authcore-stdout"


def redact(value: Any, key: Optional[str] = None, depth: int = 0) -> Any:
    """Replace values stored under sensitive keys, recursing into containers."""
    if key is not None and key.lower() in SENSITIVE_KEYS:
        return REDACTED
    if depth > 4:
        return "..."
    if isinstance(value, dict):
        return {str(k): redact(v, str(k), depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v, None, depth + 1) for v in value]
    return value


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            payload["request_id"] = request_id

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = redact(value, key)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": traceback.format_exception(*record.exc_info),
            }

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", use_json: bool = True) -> logging.Logger:
    """
    Configure the `authcore` logger tree.

    Safe to call more than once: the stdout handler is installed only once
    and later calls just update its level and format.
    """
    root = logging.getLogger("authcore")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.propagate = False

    handler = next((h for h in root.handlers if h.get_name() == _HANDLER_NAME), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(_HANDLER_NAME)
        root.addHandler(handler)

    handler.setFormatter(
        JSONFormatter()
        if use_json
        else logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    )
    return root
