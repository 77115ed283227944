from __future__ import annotations

"""
Printer configuration endpoints.

- GET  /printers              : configured printers and default settings
- POST /printers/config       : replace and persist the printer configuration
- POST /printers/reload       : re-read the configuration file from disk
- GET  /printers/<id>         : one printer record
- POST /printers/<id>/test    : open and close a connection to the printer
"""

from flask import Blueprint, current_app, request

from . import schemas
from .common import fail, ok, register_error_handlers, services

printers_bp = Blueprint("printers", __name__, url_prefix="/printers")
register_error_handlers(printers_bp)


@printers_bp.get("")
def list_printers():
    store = services().config_store
    printers = store.get_all_printers()
    return ok({"printers": printers, "defaultSettings": store.get_default_settings(), "count": len(printers)})


@printers_bp.post("/config")
def update_config():
    """
    Replace the printer list and persist it. Omitted ``defaultSettings`` keep
    their current values. Queues are created for newly added printers.
    """
    if not request.is_json:
        return fail("Expected application/json body", 415)
    svc = services()
    req = schemas.PrinterConfigRequest.model_validate(request.get_json(silent=True) or {})
    data = req.to_config()
    data.setdefault("defaultSettings", svc.config_store.get_default_settings())
    try:
        svc.config_store.save(data)
    except OSError as e:
        current_app.logger.error("Saving printer config to %s failed: %s", svc.config_store.path, e)
        return fail("Failed to save printer configuration", 500)
    added = svc.queue.sync_printers()
    current_app.logger.info("POST /printers/config saved %d printers", len(data["printers"]))
    return ok(data, message="Configuration updated", addedPrinters=added)


@printers_bp.post("/reload")
def reload_config():
    svc = services()
    try:
        data = svc.config_store.reload()
    except RuntimeError as e:
        return fail(str(e), 500)
    added = svc.queue.sync_printers()
    return ok(data, message="Configuration reloaded", addedPrinters=added)


@printers_bp.get("/<printer_id>")
def get_printer(printer_id: str):
    cfg = services().config_store.get_printer_config(printer_id)
    if cfg is None:
        return fail(f"Printer '{printer_id}' not found", 404)
    return ok(cfg)


@printers_bp.post("/<printer_id>/test")
def test_printer(printer_id: str):
    svc = services()
    test_id = svc.session_ids.generate_custom("test")
    result = svc.executor.test_connection(printer_id)
    result["testId"] = test_id
    current_app.logger.info(
        "POST /printers/%s/test %s connected=%s", printer_id, test_id, result.get("connected")
    )
    return ok(result)
