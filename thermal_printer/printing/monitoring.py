"""
Job monitoring and printer health aggregation.

MonitoringService is a pure observer: the queue engine calls
``record_job_event`` after every status transition and this module keeps

- a bounded per-session event history
- per-printer health (online flag, last seen, success/error counters,
  smoothed processing time, a coarse load estimate)

Metrics and alerts are derived on demand from that state. A background
thread prunes old histories periodically.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional

from .jobs import JobEvent, JobStatus, iso, utc_now

logger = logging.getLogger(__name__)

MAX_HISTORY_PER_JOB = 50
SMOOTHING_FACTOR = 0.2
LOAD_STEP = 20
OFFLINE_AFTER = timedelta(minutes=5)
ERROR_RATE_MIN_SAMPLES = 10
ERROR_RATE_THRESHOLD = 20.0
HIGH_LOAD_THRESHOLD = 80
SEVERITY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass
class PrinterHealthStatus:
    printer_id: str
    is_online: bool
    last_seen: datetime
    error_count: int = 0
    success_count: int = 0
    average_processing_time: float = 0.0  # milliseconds
    current_load: int = 0

    @property
    def total_jobs(self) -> int:
        return self.success_count + self.error_count

    @property
    def success_rate(self) -> float:
        total = self.total_jobs
        return (self.success_count / total) * 100 if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "printerId": self.printer_id,
            "isOnline": self.is_online,
            "lastSeen": iso(self.last_seen),
            "errorCount": self.error_count,
            "successCount": self.success_count,
            "averageProcessingTime": self.average_processing_time,
            "currentLoad": self.current_load,
        }


@dataclass(frozen=True)
class Alert:
    type: str
    severity: str
    printer_id: str
    message: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "printerId": self.printer_id,
            "message": self.message,
            "timestamp": iso(self.timestamp),
        }


class MonitoringService:
    """Records job events and derives health, metrics and alerts."""

    def __init__(
        self,
        *,
        max_history_per_job: int = MAX_HISTORY_PER_JOB,
        cleanup_interval: float = 3600.0,
        cleanup_hours: float = 24.0,
    ):
        self.max_history_per_job = max_history_per_job
        self.cleanup_interval = cleanup_interval
        self.cleanup_hours = cleanup_hours
        self._history: Dict[str, Deque[JobEvent]] = {}
        self._health: Dict[str, PrinterHealthStatus] = {}
        self._started: Dict[str, datetime] = {}  # session_id -> printing timestamp
        self._durations: Dict[str, float] = {}  # session_id -> milliseconds
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ----- Event intake ----------------------------------------------------

    def record_job_event(self, event: JobEvent) -> None:
        with self._lock:
            history = self._history.get(event.session_id)
            if history is None:
                history = deque(maxlen=self.max_history_per_job)
                self._history[event.session_id] = history
            history.append(event)

            self._update_health(event)

            if event.status is JobStatus.PRINTING:
                self._started[event.session_id] = event.timestamp
            elif event.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                started = self._started.get(event.session_id)
                if started is not None and event.session_id not in self._durations:
                    elapsed = max(0.0, (event.timestamp - started).total_seconds() * 1000)
                    self._durations[event.session_id] = elapsed
                    self._update_processing_time(event.printer_id, elapsed)

        previous = event.previous_status.value if event.previous_status else "new"
        logger.info("Job %s: %s -> %s", event.session_id, previous, event.status.value)
        if event.status is JobStatus.FAILED:
            logger.error("Job %s failed: %s", event.session_id, event.error)
        elif event.status is JobStatus.COMPLETED:
            logger.info("Job %s completed successfully", event.session_id)

    def _update_health(self, event: JobEvent) -> None:
        health = self._health.get(event.printer_id)
        if health is None:
            health = PrinterHealthStatus(printer_id=event.printer_id, is_online=True, last_seen=event.timestamp)
            self._health[event.printer_id] = health
        health.last_seen = event.timestamp
        health.is_online = True

        if event.status is JobStatus.COMPLETED:
            health.success_count += 1
        elif event.status is JobStatus.FAILED:
            health.error_count += 1

        if event.status is JobStatus.PRINTING:
            health.current_load = min(100, health.current_load + LOAD_STEP)
        elif event.status.is_terminal and event.previous_status is JobStatus.PRINTING:
            health.current_load = max(0, health.current_load - LOAD_STEP)

    def _update_processing_time(self, printer_id: str, sample_ms: float) -> None:
        health = self._health.get(printer_id)
        if health is None:
            return
        if not health.average_processing_time:
            health.average_processing_time = sample_ms
        else:
            health.average_processing_time = (
                health.average_processing_time * (1 - SMOOTHING_FACTOR) + sample_ms * SMOOTHING_FACTOR
            )

    # ----- Queries ---------------------------------------------------------

    def get_job_history(self, session_id: str) -> List[JobEvent]:
        with self._lock:
            return list(self._history.get(session_id, ()))

    def get_printer_health(self, printer_id: str) -> Optional[PrinterHealthStatus]:
        with self._lock:
            health = self._health.get(printer_id)
            return PrinterHealthStatus(**asdict(health)) if health else None

    def get_all_printer_health(self) -> List[PrinterHealthStatus]:
        with self._lock:
            return [PrinterHealthStatus(**asdict(h)) for h in self._health.values()]

    def average_processing_time(self, printer_id: str) -> float:
        """Smoothed processing time for a printer in milliseconds (0 when unknown)."""
        with self._lock:
            health = self._health.get(printer_id)
            return health.average_processing_time if health else 0.0

    def get_performance_metrics(self) -> Dict[str, Any]:
        with self._lock:
            finished = 0
            successful = 0
            total_time = 0.0
            for session_id, history in self._history.items():
                if not history:
                    continue
                last = history[-1]
                if last.status not in (JobStatus.COMPLETED, JobStatus.FAILED):
                    continue
                finished += 1
                if last.status is JobStatus.COMPLETED:
                    successful += 1
                total_time += self._durations.get(session_id, 0.0)

            printer_metrics = []
            for health in self._health.values():
                entry = health.to_dict()
                entry["successRate"] = health.success_rate
                printer_metrics.append(entry)

            return {
                "totalJobs": len(self._history),
                "averageProcessingTime": total_time / finished if finished else 0.0,
                "successRate": (successful / finished) * 100 if finished else 0.0,
                "printerMetrics": printer_metrics,
            }

    def get_alerts(self, now: Optional[datetime] = None) -> List[Alert]:
        now = now or utc_now()
        alerts: List[Alert] = []
        with self._lock:
            for printer_id, health in self._health.items():
                since_seen = now - health.last_seen
                if since_seen > OFFLINE_AFTER:
                    minutes = round(since_seen.total_seconds() / 60)
                    alerts.append(
                        Alert("printer_offline", "high", printer_id, f"Printer {printer_id} offline for {minutes} minutes", now)
                    )

                total = health.total_jobs
                if total > ERROR_RATE_MIN_SAMPLES:
                    error_rate = (health.error_count / total) * 100
                    if error_rate > ERROR_RATE_THRESHOLD:
                        alerts.append(
                            Alert(
                                "high_error_rate",
                                "medium",
                                printer_id,
                                f"High error rate: {error_rate:.1f}% ({health.error_count}/{total})",
                                now,
                            )
                        )

                if health.current_load > HIGH_LOAD_THRESHOLD:
                    alerts.append(Alert("high_load", "low", printer_id, f"High load: {health.current_load}%", now))

        alerts.sort(key=lambda a: SEVERITY_ORDER.get(a.severity, 0), reverse=True)
        return alerts

    # ----- Maintenance -----------------------------------------------------

    def cleanup_history(self, older_than_hours: float = 24, now: Optional[datetime] = None) -> int:
        """
        Drop sessions whose every recorded event is older than the cutoff.
        Returns the number of sessions removed.
        """
        cutoff = (now or utc_now()) - timedelta(hours=older_than_hours)
        removed = 0
        with self._lock:
            for session_id in list(self._history):
                history = self._history[session_id]
                if all(event.timestamp < cutoff for event in history):
                    del self._history[session_id]
                    self._started.pop(session_id, None)
                    self._durations.pop(session_id, None)
                    removed += 1
        if removed:
            logger.info("History cleanup: %d sessions removed", removed)
        return removed

    def _cleanup_loop(self) -> None:
        while not self._stop.wait(self.cleanup_interval):
            try:
                self.cleanup_history(self.cleanup_hours)
            except Exception as e:
                logger.exception(f"History cleanup failed: {e}")

    def start(self) -> None:
        """Start the periodic history cleanup thread (idempotent)."""
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        t = threading.Thread(target=self._cleanup_loop, daemon=True, name="thermal-printer-monitoring")
        t.start()
        self._thread = t
        logger.info("Monitoring cleanup thread started (every %.0fs)", self.cleanup_interval)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            self._thread = None


__all__ = ["Alert", "MAX_HISTORY_PER_JOB", "MonitoringService", "PrinterHealthStatus"]
