"""
Per-printer background worker.

Each configured printer gets one PrinterWorker: a daemon thread that calls
the queue engine's ``process_next(printer_id)`` on a fixed polling interval
until stopped. The tick itself blocks while a job prints, so a worker never
overlaps two iterations for the same printer.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PrinterWorker:
    """Cancellable periodic thread driving one printer queue."""

    def __init__(self, printer_id: str, tick: Callable[[str], object], interval: float = 1.0):
        self.printer_id = printer_id
        self.interval = interval
        self._tick = tick
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return bool(self._thread) and self._thread.is_alive()  # type: ignore[union-attr]

    def _run(self) -> None:
        """
        Worker loop. Never raises; logs and keeps polling.
        """
        while not self._stop.wait(self.interval):
            try:
                self._tick(self.printer_id)
            except Exception as e:
                logger.exception(f"Worker for printer {self.printer_id} failed: {e}")

    def start(self) -> None:
        """
        Start the worker thread (idempotent).
        """
        if self.is_alive:
            return
        self._stop.clear()
        t = threading.Thread(target=self._run, daemon=True, name=f"printer-worker-{self.printer_id}")
        t.start()
        self._thread = t
        logger.info("Print worker started for printer %s", self.printer_id)

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        Signal the loop to exit and wait for it. A job already printing is
        allowed to finish; the join gives up after ``timeout`` seconds.
        """
        self._stop.set()
        t = self._thread
        if t and t is not threading.current_thread():
            t.join(timeout)
        self._thread = None
        logger.info("Print worker stopped for printer %s", self.printer_id)

    def status(self) -> dict:
        return {"printerId": self.printer_id, "alive": self.is_alive, "interval": self.interval}


__all__ = ["PrinterWorker"]
