"""
Logging setup for ReqBridge.

One stderr handler on the root logger. Records are written either as a
single JSON object per line (production, or LOG_FORMAT=json) or as a short
coloured line for the console. Inside a request every record is tagged with
the request id and the logged-in user so that AI calls, emails and analysis
runs can be traced back to the request that caused them.
"""

import json
import logging
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# LogRecord attributes that end up in the JSON payload when set
_CONTEXT_KEYS = (
    "request_id",
    "user_id",
    "project_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "provider",
    "purpose",
)

_QUIET_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine", "anthropic", "openai", "google_genai")


class RequestContextFilter(logging.Filter):
    """Fill ``request_id`` and ``user_id`` from ``flask.g`` when not given explicitly."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = g.get("request_id")
        if getattr(record, "user_id", None) is None:
            record.user_id = g.get("user_id")
        return True


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(
            (key, getattr(record, key))
            for key in _CONTEXT_KEYS
            if getattr(record, key, None) is not None
        )
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """``12:00:01 WARNING  app.services.analysis_service: msg (req 3f2a9c)``"""

    _LEVEL_COLOURS = {
        logging.DEBUG: "\033[2m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    _RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        colour = self._LEVEL_COLOURS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{stamp} {colour}{record.levelname:<8}{self._RESET} {record.name}: {record.getMessage()}"
        request_id = getattr(record, "request_id", None)
        if request_id:
            line += f" (req {request_id})"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install the root handler according to LOG_LEVEL / LOG_FORMAT."""
    testing = app.config.get("TESTING", False)
    production = not app.debug and not testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    as_json = production or str(app.config.get("LOG_FORMAT", "")).lower() == "json"

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if as_json else ConsoleFormatter())
    handler.addFilter(RequestContextFilter())

    # create_app runs once per test; replace rather than stack handlers
    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not testing:
        app.logger.info("Logging at %s (%s)", level_name, "json" if as_json else "console")
