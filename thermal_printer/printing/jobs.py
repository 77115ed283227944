"""
Print job model.

PrintJob carries its own lifecycle transitions (queued -> printing ->
completed/failed, or -> cancelled from either non-terminal state). The queue
engine is the only owner of these objects; everything handed out to callers
is a snapshot.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .errors import JobStateError

PRIORITY_HIGH = 1
PRIORITY_NORMAL = 2
PRIORITY_LOW = 3
PRIORITIES = (PRIORITY_HIGH, PRIORITY_NORMAL, PRIORITY_LOW)

ContentItem = Mapping[str, Any]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


class JobStatus(str, Enum):
    QUEUED = "queued"
    PRINTING = "printing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})


def freeze_content(content: Iterable[ContentItem]) -> Tuple[Dict[str, Any], ...]:
    """Copy content items so later mutation by the caller cannot reach a queued job."""
    return tuple(copy.deepcopy(dict(item)) for item in content)


@dataclass
class PrintJob:
    """A single print request and its lifecycle state."""

    session_id: str
    printer_id: str
    content: Tuple[Dict[str, Any], ...] = ()
    priority: int = PRIORITY_NORMAL
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def start(self, now: Optional[datetime] = None) -> JobStatus:
        """Mark job as printing. Returns the previous status."""
        if self.status is not JobStatus.QUEUED:
            raise JobStateError(f"Cannot start job {self.session_id} in status {self.status.value}")
        previous = self.status
        self.status = JobStatus.PRINTING
        self.started_at = now or utc_now()
        return previous

    def complete(self, now: Optional[datetime] = None) -> None:
        if self.status is not JobStatus.PRINTING:
            raise JobStateError(f"Cannot complete job {self.session_id} in status {self.status.value}")
        self.status = JobStatus.COMPLETED
        self.completed_at = now or utc_now()

    def fail(self, error: str, now: Optional[datetime] = None) -> None:
        if self.status is not JobStatus.PRINTING:
            raise JobStateError(f"Cannot fail job {self.session_id} in status {self.status.value}")
        self.status = JobStatus.FAILED
        self.error = error or "Print failed"
        self.completed_at = now or utc_now()

    def cancel(self, reason: str, now: Optional[datetime] = None) -> JobStatus:
        """Mark job as cancelled. Returns the previous status."""
        if self.is_terminal:
            raise JobStateError(f"Cannot cancel job {self.session_id} in status {self.status.value}")
        previous = self.status
        self.status = JobStatus.CANCELLED
        self.error = reason
        self.completed_at = now or utc_now()
        return previous

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "printerId": self.printer_id,
            "status": self.status.value,
            "priority": self.priority,
            "createdAt": iso(self.created_at),
            "startedAt": iso(self.started_at),
            "completedAt": iso(self.completed_at),
            "error": self.error,
        }


@dataclass
class PrinterQueue:
    """Ordered jobs of one printer plus its processing flags."""

    printer_id: str
    jobs: List[PrintJob] = field(default_factory=list)
    is_processing: bool = False
    current_job: Optional[PrintJob] = None
    last_activity: datetime = field(default_factory=utc_now)

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_activity = now or utc_now()

    def queued_jobs(self) -> List[PrintJob]:
        return [j for j in self.jobs if j.status is JobStatus.QUEUED]

    def insert_by_priority(self, job: PrintJob) -> int:
        """
        Insert before the first job with a numerically greater priority,
        otherwise append. Returns the insertion index.
        """
        index = len(self.jobs)
        for i, existing in enumerate(self.jobs):
            if existing.status is JobStatus.QUEUED and existing.priority > job.priority:
                index = i
                break
        self.jobs.insert(index, job)
        return index

    def snapshot(self) -> "PrinterQueue":
        current = replace(self.current_job) if self.current_job else None
        return PrinterQueue(
            printer_id=self.printer_id,
            jobs=[replace(j) for j in self.jobs],
            is_processing=self.is_processing,
            current_job=current,
            last_activity=self.last_activity,
        )


@dataclass(frozen=True)
class JobEvent:
    """One status transition of a job."""

    session_id: str
    printer_id: str
    status: JobStatus
    timestamp: datetime = field(default_factory=utc_now)
    previous_status: Optional[JobStatus] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "printerId": self.printer_id,
            "status": self.status.value,
            "previousStatus": self.previous_status.value if self.previous_status else None,
            "timestamp": iso(self.timestamp),
            "error": self.error,
        }


@dataclass(frozen=True)
class JobStatusResponse:
    """Status of a job with queue context derived at query time."""

    session_id: str
    status: JobStatus
    printer_id: str
    printer_name: str
    priority: int
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    queue_position: int = 0
    estimated_wait_time: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "status": self.status.value,
            "printerId": self.printer_id,
            "printerName": self.printer_name,
            "priority": self.priority,
            "createdAt": iso(self.created_at),
            "startedAt": iso(self.started_at),
            "completedAt": iso(self.completed_at),
            "error": self.error,
            "queuePosition": self.queue_position,
            "estimatedWaitTime": self.estimated_wait_time,
        }


__all__ = [
    "PRIORITIES",
    "PRIORITY_HIGH",
    "PRIORITY_LOW",
    "PRIORITY_NORMAL",
    "TERMINAL_STATUSES",
    "ContentItem",
    "JobEvent",
    "JobStatus",
    "JobStatusResponse",
    "PrintJob",
    "PrinterQueue",
    "freeze_content",
    "iso",
    "utc_now",
]
