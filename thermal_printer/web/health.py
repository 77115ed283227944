from __future__ import annotations

"""
Health endpoint for the print service.

This blueprint exposes `/healthz`, reporting:
- Overall status ("ok" or "degraded")
- Worker and queue status from the queue engine
- Number of configured printers
- Count of current high-severity alerts
"""

from typing import Any, Dict

from flask import Blueprint

from .common import services

health_bp = Blueprint("health", __name__)


@health_bp.get("/healthz")
def healthz():
    svc = services()
    status: Dict[str, Any] = {"status": "ok"}
    status.update(svc.queue.worker_status())

    try:
        printers = svc.config_store.get_all_printers()
    except RuntimeError:
        status["status"] = "degraded"
        status["reason"] = "config_unreadable"
        return status, 200
    status["printers_configured"] = len(printers)
    if not printers:
        status["status"] = "degraded"
        status["reason"] = "no_printers"
        return status, 200

    if svc.queue.running and status["workers_alive"] < len(status["workers"]):
        status["status"] = "degraded"
        status["reason"] = "worker_down"

    high = [a for a in svc.monitoring.get_alerts() if a.severity == "high"]
    status["high_alerts"] = len(high)
    return status, 200
