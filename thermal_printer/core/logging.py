"""
Logging utilities for the thermal print service.

- RequestIdFilter attaches request_id and path when in a Flask request context
- JsonFormatter emits structured logs when THERMALPRINTER_JSON_LOGS=true
- configure_logging() initializes root logging with journald or console and
  integrates with Flask's logger
"""

from __future__ import annotations

import logging
import os


class RequestIdFilter(logging.Filter):
    """
    Attach request-scoped metadata (request_id, path) to log records.
    Worker threads run outside a request and get "-" for both.
    """

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            from flask import g, has_request_context, request  # lazy import

            record.request_id = g.request_id if has_request_context() and hasattr(g, "request_id") else "-"
            record.path = request.path if has_request_context() else "-"
        except Exception:
            record.request_id = "-"
            record.path = "-"
        return True


class JsonFormatter(logging.Formatter):
    """
    Minimal JSON formatter with timestamp, level, logger, message, request_id and path.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        from json import dumps

        base = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        path = getattr(record, "path", None)
        if path is not None:
            base["path"] = path
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return dumps(base, ensure_ascii=False)


def configure_logging() -> logging.Logger:
    """
    Configure root logging for the application.

    Behavior:
    - Sets root logger to INFO (THERMALPRINTER_LOG_LEVEL overrides)
    - Clears any existing handlers to avoid duplicates on reload
    - Chooses JSON or plain formatter based on THERMALPRINTER_JSON_LOGS
    - Prefers systemd's JournalHandler, falls back to StreamHandler
    - Adds RequestIdFilter so formatters can reference %(request_id)s
    - Ensures Flask app logger propagates to root

    Returns the configured root logger.
    """
    root = logging.getLogger()
    level = os.environ.get("THERMALPRINTER_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    root.handlers = []

    json_logs = os.environ.get("THERMALPRINTER_JSON_LOGS", "false").lower() in ("1", "true", "yes")
    formatter: logging.Formatter
    if json_logs:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(request_id)s %(name)s: %(message)s")

    try:
        from systemd.journal import JournalHandler  # type: ignore

        handler: logging.Handler = JournalHandler()
        handler.setFormatter(formatter)
    except Exception:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    try:
        flask_logger = logging.getLogger("flask.app")
        flask_logger.handlers = []
        flask_logger.propagate = True
    except Exception:
        pass

    return root


__all__ = ["JsonFormatter", "RequestIdFilter", "configure_logging"]
