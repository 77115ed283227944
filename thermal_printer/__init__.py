"""
Thermal print service package

This module provides an application factory with explicit wiring:
- Configures logging via thermal_printer.core.logging
- Builds the service objects (config store, monitoring, queue engine, executor)
  and attaches them to app.extensions["thermal_printer"]
- Registers the JSON blueprints
- Optionally starts the per-printer workers and the monitoring cleanup thread
"""

from __future__ import annotations

import atexit
import uuid
from typing import Optional

from flask import Flask, g

from thermal_printer.core.config import PrinterConfigStore, env_bool, env_float, env_int, get_config_path
from thermal_printer.core.logging import configure_logging
from thermal_printer.core.session import SessionIdGenerator
from thermal_printer.printing.executor import PrintExecutor
from thermal_printer.printing.monitoring import MonitoringService
from thermal_printer.printing.queue import QueueService
from thermal_printer.web import health_bp, monitoring_bp, print_bp, printers_bp
from thermal_printer.web.common import EXTENSION_KEY, Services


def _default_config() -> dict:
    return {
        "PRINTER_CONFIG_PATH": get_config_path(),
        # Inline printer configuration; when set, the config file is not read
        "PRINTER_CONFIG": None,
        "POLL_INTERVAL": env_float("THERMALPRINTER_POLL_INTERVAL", 1.0),
        "REMOVAL_DELAY": env_float("THERMALPRINTER_REMOVAL_DELAY", 60.0),
        "WAIT_PER_JOB": env_float("THERMALPRINTER_WAIT_PER_JOB", 10.0),
        "MEASURED_WAIT": env_bool("THERMALPRINTER_MEASURED_WAIT", False),
        "CLEANUP_INTERVAL": env_float("THERMALPRINTER_CLEANUP_INTERVAL", 3600.0),
        "MAX_CONTENT_ITEMS": env_int("THERMALPRINTER_MAX_CONTENT_ITEMS", 200),
        "MAX_VALUE_LEN": env_int("THERMALPRINTER_MAX_VALUE_LEN", 10 * 1024 * 1024),
        "MAX_CONTENT_LENGTH": env_int("THERMALPRINTER_MAX_CONTENT_LENGTH", 16 * 1024 * 1024),  # 16 MiB
    }


def _set_request_id() -> None:
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def create_app(
    config_overrides: Optional[dict] = None,
    register_worker: bool = True,
    executor: Optional[PrintExecutor] = None,
    monitoring: Optional[MonitoringService] = None,
    config_store: Optional[PrinterConfigStore] = None,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: values to inject into app.config over the env-driven defaults
    - register_worker: if True, starts printer workers and the monitoring cleanup thread
    - executor / monitoring / config_store: replacements for the default services (tests)

    Returns:
    - Flask app instance
    """
    app = Flask("thermal_printer")
    app.config.update(_default_config())
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging()
    app.url_map.strict_slashes = False

    @app.before_request
    def _before_request():
        _set_request_id()

    if config_store is None:
        config_store = PrinterConfigStore(
            path=app.config["PRINTER_CONFIG_PATH"],
            data=app.config["PRINTER_CONFIG"],
        )
    if monitoring is None:
        monitoring = MonitoringService(cleanup_interval=float(app.config["CLEANUP_INTERVAL"]))
    if executor is None:
        executor = PrintExecutor(config_store)
    session_ids = SessionIdGenerator()
    queue = QueueService(
        config_store,
        executor,
        monitoring,
        session_ids=session_ids,
        poll_interval=float(app.config["POLL_INTERVAL"]),
        removal_delay=float(app.config["REMOVAL_DELAY"]),
        wait_per_job=float(app.config["WAIT_PER_JOB"]),
        measured_wait=bool(app.config["MEASURED_WAIT"]),
    )
    app.extensions[EXTENSION_KEY] = Services(
        config_store=config_store,
        monitoring=monitoring,
        queue=queue,
        executor=executor,
        session_ids=session_ids,
    )

    for bp in (print_bp, monitoring_bp, printers_bp, health_bp):
        app.register_blueprint(bp)

    if register_worker:
        queue.start()
        monitoring.start()
        atexit.register(queue.stop)
        atexit.register(monitoring.stop)
        app.logger.info("Printer workers started")

    app.logger.info("Thermal print service app created")
    return app


__all__ = ["create_app"]
