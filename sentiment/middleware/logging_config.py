"""
Structured logging for the survey service.

Every record emitted while a request is active is stamped with the request
id and the caller's company / employee (see RequestContextFilter), so
service-layer log lines can be filtered per tenant without each call site
passing ``extra=``. Explicit ``extra`` values win over the stamped ones.

Output:
  - production:             one JSON object per line (JSONFormatter)
  - development / testing:  coloured single line (ReadableFormatter)
  - level:                  LOG_LEVEL env var
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_app_context, has_request_context

# Record attributes copied into JSON lines when set.
_CONTEXT_FIELDS = (
    "request_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "company_id",
    "employee_id",
    "run_id",
    "analysis_endpoint",
)

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


class RequestContextFilter(logging.Filter):
    """Stamp records with request id, company and employee from ``flask.g``."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not (has_app_context() and has_request_context()):
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "company_id", None) is None:
            record.company_id = getattr(g, "company_id", None)
        if getattr(record, "employee_id", None) is None:
            caller = getattr(g, "caller", None)
            record.employee_id = caller.employee_code if caller is not None else None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update({
            key: getattr(record, key)
            for key in _CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Single coloured line with the tenant context in brackets."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        tags = []
        for key, label in (("company_id", "company"), ("employee_id", "employee"), ("run_id", "run")):
            value = getattr(record, key, None)
            if value is not None:
                tags.append(f"{label}={value}")
        context = f" [{' '.join(tags)}]" if tags else ""

        duration = getattr(record, "duration_ms", None)
        timing = f" [{duration:.0f}ms]" if duration is not None else ""

        line = (
            f"{color}{stamp} {record.levelname:<8}{self.RESET} "
            f"{record.name}{context}: {record.getMessage()}{timing}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger.

    Called first in ``create_app`` so every later step logs through it.
    Re-running it (one app per test session, several in scripts) replaces
    the handler instead of stacking duplicates.
    """
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if production else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info("Logging ready: level=%s format=%s", level_name, "json" if production else "text")
