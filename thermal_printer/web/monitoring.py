from __future__ import annotations

"""
Monitoring endpoints.

- GET    /monitoring/metrics                    : performance metrics + queue stats
- GET    /monitoring/job/<sessionId>/history    : event history of a job
- GET    /monitoring/health                     : health of all printers
- GET    /monitoring/health/<printerId>         : health of one printer
- GET    /monitoring/alerts?severity=           : derived alerts
- GET    /monitoring/dashboard                  : overview for dashboards
- DELETE /monitoring/cleanup?hours=             : prune old job histories
- GET    /monitoring/stats/usage                : current metrics, optionally per printer
"""

from flask import Blueprint, request

from .common import fail, ok, register_error_handlers, services

monitoring_bp = Blueprint("monitoring", __name__, url_prefix="/monitoring")
register_error_handlers(monitoring_bp)


@monitoring_bp.get("/metrics")
def metrics():
    svc = services()
    return ok(
        {
            "performance": svc.monitoring.get_performance_metrics(),
            "queues": svc.queue.get_queue_stats(),
        }
    )


@monitoring_bp.get("/job/<session_id>/history")
def job_history(session_id: str):
    events = services().monitoring.get_job_history(session_id)
    return ok({"sessionId": session_id, "events": [e.to_dict() for e in events], "totalEvents": len(events)})


@monitoring_bp.get("/health")
def printers_health():
    svc = services()
    printers = []
    for health in svc.monitoring.get_all_printer_health():
        entry = health.to_dict()
        entry["printerName"] = svc.config_store.get_printer_name(health.printer_id)
        printers.append(entry)
    online = sum(1 for p in printers if p["isOnline"])
    return ok(
        {
            "printers": printers,
            "summary": {"total": len(printers), "online": online, "offline": len(printers) - online},
        }
    )


@monitoring_bp.get("/health/<printer_id>")
def printer_health(printer_id: str):
    svc = services()
    health = svc.monitoring.get_printer_health(printer_id)
    if health is None:
        return fail(f"No health data for printer '{printer_id}'", 404)
    data = health.to_dict()
    data["printerName"] = svc.config_store.get_printer_name(printer_id)
    return ok(data)


@monitoring_bp.get("/alerts")
def alerts():
    items = services().monitoring.get_alerts()
    severity = request.args.get("severity")
    if severity:
        items = [a for a in items if a.severity == severity]
    return ok(
        {
            "alerts": [a.to_dict() for a in items],
            "summary": {
                "total": len(items),
                "high": sum(1 for a in items if a.severity == "high"),
                "medium": sum(1 for a in items if a.severity == "medium"),
                "low": sum(1 for a in items if a.severity == "low"),
            },
        }
    )


@monitoring_bp.get("/dashboard")
def dashboard():
    """
    Overview combining metrics, queue counters, health and alerts.
    Times are reported in whole seconds.
    """
    svc = services()
    perf = svc.monitoring.get_performance_metrics()
    stats = svc.queue.get_queue_stats()
    healths = svc.monitoring.get_all_printer_health()
    current_alerts = svc.monitoring.get_alerts()

    printers = []
    for health in healths:
        queue = svc.queue.get_printer_queue(health.printer_id)
        printers.append(
            {
                "id": health.printer_id,
                "name": svc.config_store.get_printer_name(health.printer_id),
                "status": "online" if health.is_online else "offline",
                "queueLength": len(queue.jobs) if queue else 0,
                "isProcessing": queue.is_processing if queue else False,
                "successRate": round(health.success_rate),
                "averageTime": round(health.average_processing_time / 1000),
            }
        )

    by_status = stats["jobsByStatus"]
    return ok(
        {
            "overview": {
                "totalJobs": perf["totalJobs"],
                "successRate": perf["successRate"],
                "averageProcessingTime": round(perf["averageProcessingTime"] / 1000),
                "activePrinters": sum(1 for h in healths if h.is_online),
                "totalPrinters": len(healths),
            },
            "queues": {
                "totalQueued": by_status["queued"],
                "totalPrinting": by_status["printing"],
                "totalCompleted": by_status["completed"],
                "totalFailed": by_status["failed"],
                "totalCancelled": by_status["cancelled"],
            },
            "alerts": {
                "total": len(current_alerts),
                "critical": sum(1 for a in current_alerts if a.severity == "high"),
                "warnings": sum(1 for a in current_alerts if a.severity == "medium"),
            },
            "printers": printers,
        }
    )


@monitoring_bp.delete("/cleanup")
def cleanup():
    try:
        hours = float(request.args.get("hours", 24))
    except ValueError:
        return fail("hours must be a number", 400)
    if hours < 0:
        return fail("hours must be non-negative", 400)
    removed = services().monitoring.cleanup_history(hours)
    return ok(
        {"cleanedJobs": removed, "hoursKept": hours},
        message=f"Cleanup finished: {removed} records removed",
    )


@monitoring_bp.get("/stats/usage")
def usage_stats():
    """
    Current metrics only; no per-period history is kept.
    """
    period = request.args.get("period", "day")
    printer_id = request.args.get("printerId") or None
    perf = services().monitoring.get_performance_metrics()
    if printer_id:
        perf["printerMetrics"] = [m for m in perf["printerMetrics"] if m["printerId"] == printer_id]
    return ok({"period": period, "printerId": printer_id or "all", "metrics": perf})
