"""
Shared helpers for the HTTP blueprints.

- ``services()`` returns the service container attached by ``create_app``
- ``ok`` / ``fail`` build the ``{success, data|message, timestamp}`` envelope
- ``register_error_handlers`` maps queue and validation errors to 4xx
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify
from pydantic import ValidationError

from thermal_printer.core.config import PrinterConfigStore
from thermal_printer.core.session import SessionIdGenerator
from thermal_printer.printing.errors import (
    DuplicateSessionError,
    JobNotFoundError,
    JobStateError,
    PrinterNotFoundError,
)
from thermal_printer.printing.executor import PrintExecutor
from thermal_printer.printing.jobs import iso, utc_now
from thermal_printer.printing.monitoring import MonitoringService
from thermal_printer.printing.queue import QueueService

EXTENSION_KEY = "thermal_printer"


@dataclass
class Services:
    config_store: PrinterConfigStore
    monitoring: MonitoringService
    queue: QueueService
    executor: PrintExecutor
    session_ids: SessionIdGenerator


def services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def timestamp() -> str:
    return iso(utc_now())  # type: ignore[return-value]


def ok(data: Any = None, status: int = 200, message: Optional[str] = None, **extra: Any):
    body: Dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    body["timestamp"] = timestamp()
    return jsonify(body), status


def fail(message: str, status: int = 400):
    return jsonify({"success": False, "message": message, "timestamp": timestamp()}), status


def validation_message(e: ValidationError) -> str:
    """Concise message from the first pydantic error."""
    try:
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        msg = first.get("msg") or str(e)
        return f"{loc}: {msg}" if loc else msg
    except Exception:
        return str(e)


def register_error_handlers(bp: Blueprint) -> None:
    @bp.errorhandler(ValidationError)
    def _validation(e: ValidationError):
        return fail(validation_message(e), 400)

    @bp.errorhandler(PrinterNotFoundError)
    @bp.errorhandler(JobNotFoundError)
    def _not_found(e: Exception):
        return fail(str(e), 404)

    @bp.errorhandler(DuplicateSessionError)
    @bp.errorhandler(JobStateError)
    def _conflict(e: Exception):
        return fail(str(e), 400)


__all__ = ["EXTENSION_KEY", "Services", "fail", "ok", "register_error_handlers", "services", "timestamp"]
