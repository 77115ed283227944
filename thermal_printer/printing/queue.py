"""
Per-printer print job queue engine.

QueueService owns two keyed containers:
- printer_id -> PrinterQueue (priority ordered, FIFO within a priority)
- session_id -> PrintJob (global job table, kept for status queries)

One PrinterWorker per printer calls ``process_next``; at most one job per
printer is printing at any time. All reads and writes of queue/job state
happen under a single reentrant lock, and the lock is released while the
executor transmits, so HTTP calls are never blocked by a slow printer.

Cancellation of a printing job is logical only: the job is marked
cancelled immediately, the transmission already in flight runs to its end,
and the worker leaves the cancelled status untouched when it returns.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable
from dataclasses import replace
from typing import Any, Dict, List, Optional, Protocol, Tuple

from thermal_printer.core.config import PrinterConfigStore
from thermal_printer.core.session import SessionIdGenerator

from .errors import DuplicateSessionError, JobNotFoundError, JobStateError, PrinterNotFoundError
from .jobs import (
    PRIORITIES,
    PRIORITY_HIGH,
    PRIORITY_NORMAL,
    ContentItem,
    JobEvent,
    JobStatus,
    JobStatusResponse,
    PrinterQueue,
    PrintJob,
    freeze_content,
    iso,
    utc_now,
)
from .worker import PrinterWorker

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "Cancelled by user"
CLEAR_QUEUE_REASON = "Queue cleared by administrator"
RETRY_PRIORITY = PRIORITY_HIGH


class JobExecutor(Protocol):
    def execute(self, job: PrintJob) -> None: ...


class JobEventListener(Protocol):
    def record_job_event(self, event: JobEvent) -> None: ...


class QueueService:
    """Owns printer queues, the job table and the per-printer workers."""

    def __init__(
        self,
        config_store: PrinterConfigStore,
        executor: JobExecutor,
        monitoring: Optional[JobEventListener] = None,
        *,
        session_ids: Optional[SessionIdGenerator] = None,
        poll_interval: float = 1.0,
        removal_delay: float = 60.0,
        wait_per_job: float = 10.0,
        measured_wait: bool = False,
    ):
        self.config_store = config_store
        self.executor = executor
        self.monitoring = monitoring
        self.session_ids = session_ids or SessionIdGenerator()
        self.poll_interval = poll_interval
        self.removal_delay = removal_delay
        self.wait_per_job = wait_per_job
        self.measured_wait = measured_wait

        self._queues: Dict[str, PrinterQueue] = {}
        self._jobs: Dict[str, PrintJob] = {}
        self._workers: Dict[str, PrinterWorker] = {}
        # printer_id -> [(monotonic deadline, session_id)] of finished jobs awaiting removal
        self._removals: Dict[str, List[Tuple[float, str]]] = {}
        self._lock = threading.RLock()
        self._running = False

    # ----- Lifecycle -------------------------------------------------------

    def start(self) -> None:
        """Create queues for every configured printer and start their workers."""
        with self._lock:
            self._running = True
            for printer in self.config_store.get_all_printers():
                printer_id = printer.get("id")
                if printer_id:
                    self._ensure_queue(printer_id)
            for printer_id in list(self._queues):
                self._ensure_worker(printer_id)
        logger.info("Queue service started with %d printer queues", len(self._queues))

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        with self._lock:
            self._running = False
            workers = list(self._workers.values())
            self._workers.clear()
        for worker in workers:
            worker.stop(timeout)
        logger.info("Queue service stopped")

    def sync_printers(self) -> List[str]:
        """
        Create queues (and workers, when running) for printers added to the
        configuration since start. Existing queues are left alone so jobs of a
        removed printer can still drain or be cancelled. Returns the new ids.
        """
        added = []
        with self._lock:
            for printer in self.config_store.get_all_printers():
                printer_id = printer.get("id")
                if printer_id and printer_id not in self._queues:
                    self._ensure_queue(printer_id)
                    added.append(printer_id)
        if added:
            logger.info("Queues added for printers: %s", ", ".join(added))
        return added

    @property
    def running(self) -> bool:
        return self._running

    def worker_status(self) -> Dict[str, Any]:
        with self._lock:
            workers = [w.status() for w in self._workers.values()]
            queued = sum(len(q.queued_jobs()) for q in self._queues.values())
        return {
            "running": self._running,
            "workers": workers,
            "workers_alive": sum(1 for w in workers if w["alive"]),
            "queue_size": queued,
        }

    def _ensure_queue(self, printer_id: str) -> PrinterQueue:
        queue = self._queues.get(printer_id)
        if queue is None:
            queue = PrinterQueue(printer_id=printer_id)
            self._queues[printer_id] = queue
            logger.info("Queue initialized for printer %s", printer_id)
        if self._running:
            self._ensure_worker(printer_id)
        return queue

    def _ensure_worker(self, printer_id: str) -> None:
        worker = self._workers.get(printer_id)
        if worker is None:
            worker = PrinterWorker(printer_id, self.process_next, interval=self.poll_interval)
            self._workers[printer_id] = worker
        worker.start()

    def _emit(self, event: JobEvent) -> None:
        if self.monitoring is None:
            return
        try:
            self.monitoring.record_job_event(event)
        except Exception as e:
            logger.exception(f"Monitoring failed to record event for {event.session_id}: {e}")

    # ----- Public operations -----------------------------------------------

    def add_job(
        self,
        printer_id: str,
        content: Iterable[ContentItem],
        priority: Optional[int] = None,
        session_id: Optional[str] = None,
    ) -> PrintJob:
        """
        Queue a new job for ``printer_id`` and return a snapshot of it.

        Raises:
            PrinterNotFoundError if the printer is not configured.
            DuplicateSessionError if ``session_id`` is already known.
            ValueError for a priority outside 1..3.
        """
        if priority is None:
            priority = PRIORITY_NORMAL
        if priority not in PRIORITIES:
            raise ValueError(f"priority must be one of {PRIORITIES}, got {priority!r}")
        if self.config_store.get_printer_config(printer_id) is None:
            raise PrinterNotFoundError(printer_id)
        frozen = freeze_content(content)

        with self._lock:
            if session_id is None:
                session_id = self.session_ids.generate()
                while session_id in self._jobs:
                    session_id = self.session_ids.generate()
            elif session_id in self._jobs:
                raise DuplicateSessionError(session_id)

            job = PrintJob(session_id=session_id, printer_id=printer_id, content=frozen, priority=priority)
            queue = self._ensure_queue(printer_id)
            queue.insert_by_priority(job)
            queue.touch(job.created_at)
            self._jobs[session_id] = job
            self._emit(JobEvent(session_id, printer_id, JobStatus.QUEUED, job.created_at))
            snapshot = replace(job)

        logger.info("Job %s added to queue of printer %s (priority %d)", session_id, printer_id, priority)
        return snapshot

    def get_job(self, session_id: str) -> Optional[PrintJob]:
        with self._lock:
            job = self._jobs.get(session_id)
            return replace(job) if job else None

    def get_job_status(self, session_id: str) -> Optional[JobStatusResponse]:
        """
        Status with queue context. ``queue_position`` is the 1-based index
        among the printer's queued jobs (0 when not queued) and
        ``estimated_wait_time`` is in seconds; both are derived per call.
        """
        with self._lock:
            job = self._jobs.get(session_id)
            if job is None:
                return None
            position = 0
            wait = 0
            queue = self._queues.get(job.printer_id)
            if queue is not None and job.status is JobStatus.QUEUED:
                queued = queue.queued_jobs()
                position = next((i for i, j in enumerate(queued, start=1) if j is job), 0)
                wait = self._estimate_wait(job.printer_id, position)
            response = JobStatusResponse(
                session_id=job.session_id,
                status=job.status,
                printer_id=job.printer_id,
                printer_name="",
                priority=job.priority,
                created_at=job.created_at,
                started_at=job.started_at,
                completed_at=job.completed_at,
                error=job.error,
                queue_position=position,
                estimated_wait_time=wait,
            )
        return replace(response, printer_name=self.config_store.get_printer_name(response.printer_id))

    def _estimate_wait(self, printer_id: str, position: int) -> int:
        per_job = self.wait_per_job
        if self.measured_wait and self.monitoring is not None:
            measured = getattr(self.monitoring, "average_processing_time", None)
            avg_ms = measured(printer_id) if callable(measured) else 0.0
            if avg_ms > 0:
                per_job = avg_ms / 1000.0
        return max(0, int(round((position - 1) * per_job)))

    def cancel_job(self, session_id: str, reason: Optional[str] = None) -> bool:
        """
        Cancel a queued or printing job. Returns False for unknown or
        already terminal jobs.
        """
        with self._lock:
            job = self._jobs.get(session_id)
            if job is None or job.is_terminal:
                return False
            now = utc_now()
            queue = self._queues.get(job.printer_id)
            if job.status is JobStatus.QUEUED and queue is not None:
                queue.jobs = [j for j in queue.jobs if j is not job]
            previous = job.cancel(reason or DEFAULT_CANCEL_REASON, now)
            if queue is not None:
                queue.touch(now)
            self._emit(
                JobEvent(session_id, job.printer_id, JobStatus.CANCELLED, now, previous_status=previous, error=job.error)
            )

        if previous is JobStatus.PRINTING:
            logger.warning("Job %s cancelled while printing; the transmission in flight is not interrupted", session_id)
        logger.info("Job %s cancelled: %s", session_id, reason or "no reason given")
        return True

    def get_printer_queue(self, printer_id: str) -> Optional[PrinterQueue]:
        with self._lock:
            queue = self._queues.get(printer_id)
            if queue is None:
                return None
            self._prune_finished(queue)
            return queue.snapshot()

    def get_queue_positions(
        self, printer_id: str
    ) -> Tuple[Optional[PrinterQueue], Dict[str, Tuple[int, int]]]:
        """
        Queue snapshot plus ``{session_id: (position, wait seconds)}`` for its
        queued jobs, both taken under one lock so they agree.
        """
        with self._lock:
            queue = self._queues.get(printer_id)
            if queue is None:
                return None, {}
            self._prune_finished(queue)
            positions = {
                job.session_id: (position, self._estimate_wait(printer_id, position))
                for position, job in enumerate(queue.queued_jobs(), start=1)
            }
            return queue.snapshot(), positions

    def clear_printer_queue(self, printer_id: str) -> int:
        """Cancel every queued (not printing) job of a printer. Returns the count."""
        with self._lock:
            queue = self._queues.get(printer_id)
            if queue is None:
                return 0
            now = utc_now()
            queued = queue.queued_jobs()
            for job in queued:
                previous = job.cancel(CLEAR_QUEUE_REASON, now)
                self._emit(
                    JobEvent(job.session_id, printer_id, JobStatus.CANCELLED, now, previous_status=previous, error=job.error)
                )
            queue.jobs = [j for j in queue.jobs if j.status is not JobStatus.CANCELLED]
            queue.touch(now)

        logger.info("Queue of printer %s cleared: %d jobs cancelled", printer_id, len(queued))
        return len(queued)

    def get_queue_stats(self) -> Dict[str, Any]:
        with self._lock:
            by_status = {status.value: 0 for status in JobStatus}
            for job in self._jobs.values():
                by_status[job.status.value] += 1
            printer_stats = []
            for printer_id, queue in self._queues.items():
                self._prune_finished(queue)
                printer_stats.append(
                    {
                        "printerId": printer_id,
                        "queueLength": len(queue.jobs),
                        "isProcessing": queue.is_processing,
                        "currentJob": queue.current_job.session_id if queue.current_job else None,
                        "lastActivity": iso(queue.last_activity),
                    }
                )
            return {
                "totalQueues": len(self._queues),
                "totalJobs": len(self._jobs),
                "jobsByStatus": by_status,
                "printerStats": printer_stats,
            }

    def list_jobs(
        self,
        statuses: Optional[Iterable[str]] = None,
        printer_id: Optional[str] = None,
        limit: int = 100,
    ) -> Tuple[List[JobStatusResponse], int]:
        """
        Job statuses newest first, optionally filtered by status values and
        printer. Returns (page, total matching).
        """
        wanted = {str(s).strip().lower() for s in statuses} if statuses else None
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda j: j.created_at, reverse=True)
            ids = [
                j.session_id
                for j in jobs
                if (printer_id is None or j.printer_id == printer_id) and (wanted is None or j.status.value in wanted)
            ]
            total = len(ids)
            page = [self.get_job_status(sid) for sid in ids[: max(0, limit)]]
        return [s for s in page if s is not None], total

    def retry_job(self, session_id: str) -> PrintJob:
        """
        Re-submit a failed job as a new job with a new session id and high
        priority. The failed job itself is left untouched.
        """
        with self._lock:
            job = self._jobs.get(session_id)
            if job is None:
                raise JobNotFoundError(session_id)
            if job.status is not JobStatus.FAILED:
                raise JobStateError(f"Session '{session_id}' is not in failed state")
            printer_id, content = job.printer_id, job.content
        new_job = self.add_job(printer_id, content, priority=RETRY_PRIORITY)
        logger.info("Job %s retried as %s", session_id, new_job.session_id)
        return new_job

    # ----- Worker iteration ------------------------------------------------

    def process_next(self, printer_id: str) -> Optional[JobStatus]:
        """
        Run one worker iteration for a printer: print the head queued job.

        Returns the job's final status, or None when there was nothing to do.
        Executor failures become failed jobs; nothing is raised.
        """
        with self._lock:
            queue = self._queues.get(printer_id)
            if queue is None:
                return None
            self._prune_finished(queue)
            if queue.is_processing:
                return None
            job = next((j for j in queue.jobs if j.status is JobStatus.QUEUED), None)
            if job is None:
                return None
            now = utc_now()
            previous = job.start(now)
            queue.is_processing = True
            queue.current_job = job
            queue.touch(now)
            self._emit(JobEvent(job.session_id, printer_id, JobStatus.PRINTING, now, previous_status=previous))

        logger.info("Processing job %s on printer %s", job.session_id, printer_id)
        error: Optional[str] = None
        try:
            self.executor.execute(job)
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.exception(f"Job {job.session_id} failed: {error}")

        with self._lock:
            try:
                now = utc_now()
                if job.status is JobStatus.CANCELLED:
                    logger.info("Job %s finished after cancellation; keeping cancelled status", job.session_id)
                elif error is None:
                    job.complete(now)
                    self._emit(
                        JobEvent(job.session_id, printer_id, JobStatus.COMPLETED, now, previous_status=JobStatus.PRINTING)
                    )
                else:
                    job.fail(error, now)
                    self._emit(
                        JobEvent(
                            job.session_id,
                            printer_id,
                            JobStatus.FAILED,
                            now,
                            previous_status=JobStatus.PRINTING,
                            error=job.error,
                        )
                    )
            finally:
                queue.is_processing = False
                queue.current_job = None
                queue.touch()
                self._schedule_removal(queue, job)
            return job.status

    def _schedule_removal(self, queue: PrinterQueue, job: PrintJob) -> None:
        deadline = time.monotonic() + self.removal_delay
        self._removals.setdefault(queue.printer_id, []).append((deadline, job.session_id))
        if self.removal_delay <= 0:
            self._prune_finished(queue)

    def _prune_finished(self, queue: PrinterQueue) -> None:
        pending = self._removals.get(queue.printer_id)
        if not pending:
            return
        now = time.monotonic()
        due = {sid for deadline, sid in pending if deadline <= now}
        if not due:
            return
        self._removals[queue.printer_id] = [(d, sid) for d, sid in pending if sid not in due]
        queue.jobs = [j for j in queue.jobs if not (j.session_id in due and j.is_terminal)]


__all__ = [
    "CLEAR_QUEUE_REASON",
    "DEFAULT_CANCEL_REASON",
    "RETRY_PRIORITY",
    "JobEventListener",
    "JobExecutor",
    "QueueService",
]
