"""
Logging setup for the sharing service.

Two output shapes, chosen from the app config:
    DEBUG or TESTING  → one readable line per record, with a short
                        ``[session:abc user=3 visibility_changed]`` tag
    otherwise         → one JSON object per record for the log shipper

Access decisions are logged with a fixed set of context attributes
(``resource_type``, ``resource_id``, ``user_id``, ``event``), built by
``log_context`` and passed through ``extra=``. Request timing adds the
HTTP fields. Both formatters pick these up when present.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Attributes set by request timing (middleware/timing.py)
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")

# Attributes set by log_context() on access-control and audit records
ACCESS_FIELDS = ("user_id", "resource_type", "resource_id", "event")

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "alembic", "flask_limiter")


def log_context(resource_type=None, resource_id=None, user_id=None, event=None) -> dict:
    """``extra=`` payload for records about one resource.

    Anonymous callers are logged as ``user_id=None``, which both formatters
    omit. Resource ids are stringified so session and project keys look
    alike in the JSON stream.
    """
    return {
        "resource_type": resource_type,
        "resource_id": None if resource_id is None else str(resource_id),
        "user_id": user_id,
        "event": event,
    }


def _fields(record, names):
    return {k: getattr(record, k) for k in names if getattr(record, k, None) is not None}


class JSONFormatter(logging.Formatter):
    """Flat JSON: base keys, then request fields, then access fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        entry.update(_fields(record, REQUEST_FIELDS))
        entry.update(_fields(record, ACCESS_FIELDS))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured single line for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _tag(record) -> str:
        ctx = _fields(record, ACCESS_FIELDS)
        if not ctx:
            return ""
        parts = []
        if "resource_type" in ctx:
            parts.append(f"{ctx['resource_type']}:{ctx.get('resource_id', '?')}")
        if "user_id" in ctx:
            parts.append(f"user={ctx['user_id']}")
        if "event" in ctx:
            parts.append(ctx["event"])
        return " [" + " ".join(parts) + "]"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        duration = getattr(record, "duration_ms", None)
        dur = f" [{duration:.0f}ms]" if duration is not None else ""
        line = (
            f"{color}{ts} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}{self._tag(record)}{dur}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger.

    LOG_LEVEL comes from the app config, then the environment; the default
    is INFO for JSON output and DEBUG otherwise.
    """
    readable = app.config.get("DEBUG", False) or app.config.get("TESTING", False)
    level_name = (
        app.config.get("LOG_LEVEL")
        or os.getenv("LOG_LEVEL")
        or ("DEBUG" if readable else "INFO")
    )
    level = getattr(logging, str(level_name).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ReadableFormatter() if readable else JSONFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not app.config.get("TESTING", False):
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "readable" if readable else "JSON")
