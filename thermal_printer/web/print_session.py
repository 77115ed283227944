from __future__ import annotations

"""
Print session endpoints.

- POST   /print/session              : queue a print job (202 + Location)
- GET    /print/status/<sessionId>   : job status with queue position
- GET    /print/monitor/<sessionId>  : status plus polling hints
- DELETE /print/cancel/<sessionId>   : cancel a queued or printing job
- GET    /print/queue/<printerId>    : queue contents of a printer
- DELETE /print/queue/<printerId>    : cancel all queued jobs of a printer
- GET    /print/stats                : queue statistics
- GET    /print/sessions             : job list (status, printerId, limit filters)
- POST   /print/retry/<sessionId>    : resubmit a failed job at high priority
"""

from typing import Any, Dict

from flask import Blueprint, current_app, request, url_for

from thermal_printer.printing.errors import PrinterNotFoundError
from thermal_printer.printing.jobs import iso

from . import schemas
from .common import fail, ok, register_error_handlers, services

print_bp = Blueprint("print", __name__, url_prefix="/print")
register_error_handlers(print_bp)

POLL_INTERVAL_MS = 2000


@print_bp.post("/session")
def create_session():
    """
    Validate a print session, queue it, and return its initial status.
    """
    if not request.is_json:
        return fail("Expected application/json body", 415)
    svc = services()
    data = request.get_json(silent=True) or {}
    req = schemas.PrintSessionRequest.model_validate(
        data,
        context={
            "limits": {
                "MAX_CONTENT_ITEMS": current_app.config["MAX_CONTENT_ITEMS"],
                "MAX_VALUE_LEN": current_app.config["MAX_VALUE_LEN"],
            }
        },
    )

    if req.session_id is not None and not svc.session_ids.is_valid(req.session_id):
        return fail("Invalid sessionId format", 400)

    printer_id = req.printer_id
    if not printer_id:
        printers = svc.config_store.get_all_printers()
        if not printers:
            return fail("No printer configured", 400)
        printer_id = str(printers[0].get("id"))

    printer_cfg = svc.config_store.get_printer_config(printer_id)
    if printer_cfg is None:
        return fail(f"Printer '{printer_id}' not found", 400)

    try:
        job = svc.queue.add_job(printer_id, req.content_payload(), priority=req.priority, session_id=req.session_id)
    except PrinterNotFoundError as e:
        return fail(str(e), 400)
    except ValueError as e:
        return fail(f"Failed to queue print job: {e}", 400)

    status = svc.queue.get_job_status(job.session_id)
    payload = schemas.PrintSessionResponse(
        sessionId=job.session_id,
        printerId=job.printer_id,
        printerName=str(printer_cfg.get("name") or printer_id),
        status=job.status.value,
        queuePosition=status.queue_position if status else 0,
        estimatedWaitTime=status.estimated_wait_time if status else 0,
        createdAt=iso(job.created_at),
    )
    current_app.logger.info("POST /print/session accepted %s -> %s", job.session_id, printer_id)
    resp, code = ok(payload.model_dump(by_alias=True), 202)
    resp.headers["Location"] = url_for("print.session_status", session_id=job.session_id)
    return resp, code


@print_bp.get("/status/<session_id>")
def session_status(session_id: str):
    status = services().queue.get_job_status(session_id)
    if status is None:
        return fail(f"Session '{session_id}' not found", 404)
    return ok(status.to_dict())


@print_bp.get("/monitor/<session_id>")
def monitor_session(session_id: str):
    """
    Current status plus a suggested polling interval; there is no push channel.
    """
    status = services().queue.get_job_status(session_id)
    if status is None:
        return fail(f"Session '{session_id}' not found", 404)
    data = status.to_dict()
    data.update(isRealTime=False, refreshInterval=POLL_INTERVAL_MS)
    return ok(data)


@print_bp.delete("/cancel/<session_id>")
def cancel_session(session_id: str):
    body = schemas.CancelJobRequest.model_validate(request.get_json(silent=True) or {})
    if not services().queue.cancel_job(session_id, body.reason):
        return fail(f"Session '{session_id}' not found or cannot be cancelled", 404)
    return ok(
        message=f"Session '{session_id}' cancelled",
        reason=body.reason or "No reason given",
    )


@print_bp.get("/queue/<printer_id>")
def printer_queue(printer_id: str):
    svc = services()
    printer_cfg = svc.config_store.get_printer_config(printer_id)
    if printer_cfg is None:
        return fail(f"Printer '{printer_id}' not found", 404)
    printer_name = str(printer_cfg.get("name") or printer_id)

    queue, positions = svc.queue.get_queue_positions(printer_id)
    if queue is None:
        return ok(
            {
                "printerId": printer_id,
                "printerName": printer_name,
                "jobs": [],
                "isProcessing": False,
                "currentJob": None,
                "lastActivity": None,
            }
        )

    jobs = []
    for job in queue.jobs:
        position, wait = positions.get(job.session_id, (0, 0))
        entry = job.to_dict()
        entry["queuePosition"] = position
        entry["estimatedWaitTime"] = wait
        jobs.append(entry)
    current: Any = None
    if queue.current_job is not None:
        current = {
            "sessionId": queue.current_job.session_id,
            "status": queue.current_job.status.value,
            "startedAt": iso(queue.current_job.started_at),
        }
    return ok(
        {
            "printerId": printer_id,
            "printerName": printer_name,
            "jobs": jobs,
            "isProcessing": queue.is_processing,
            "currentJob": current,
            "lastActivity": iso(queue.last_activity),
        }
    )


@print_bp.delete("/queue/<printer_id>")
def clear_queue(printer_id: str):
    svc = services()
    printer_cfg = svc.config_store.get_printer_config(printer_id)
    if printer_cfg is None:
        return fail(f"Printer '{printer_id}' not found", 404)
    cancelled = svc.queue.clear_printer_queue(printer_id)
    return ok(
        message=f"Queue of printer '{printer_cfg.get('name') or printer_id}' cleared",
        cancelledJobs=cancelled,
    )


@print_bp.get("/stats")
def queue_stats():
    svc = services()
    stats: Dict[str, Any] = svc.queue.get_queue_stats()
    for entry in stats["printerStats"]:
        entry["printerName"] = svc.config_store.get_printer_name(entry["printerId"])
    return ok(stats)


@print_bp.get("/sessions")
def list_sessions():
    status_arg = request.args.get("status")
    statuses = [s for s in status_arg.split(",") if s.strip()] if status_arg else None
    printer_id = request.args.get("printerId") or None
    try:
        limit = int(request.args.get("limit", 100))
    except ValueError:
        return fail("limit must be an integer", 400)

    sessions, total = services().queue.list_jobs(statuses=statuses, printer_id=printer_id, limit=limit)
    return ok(
        {
            "sessions": [s.to_dict() for s in sessions],
            "total": total,
            "filters": {"status": statuses, "printerId": printer_id, "limit": limit},
        }
    )


@print_bp.post("/retry/<session_id>")
def retry_session(session_id: str):
    """
    Resubmit a failed session. The new job gets a new session id and high priority.
    """
    new_job = services().queue.retry_job(session_id)
    return ok(
        {
            "originalSessionId": session_id,
            "newSessionId": new_job.session_id,
            "printerId": new_job.printer_id,
            "status": new_job.status.value,
            "priority": new_job.priority,
        },
        message="Session resubmitted",
    )
