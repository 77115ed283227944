"""
Exceptions raised by the job queue engine.

Web handlers translate these into HTTP status codes; worker threads never
let them escape.
"""

from __future__ import annotations


class QueueError(Exception):
    """Base class for job queue errors."""


class PrinterNotFoundError(QueueError, LookupError):
    def __init__(self, printer_id: str):
        super().__init__(f"Printer '{printer_id}' not found")
        self.printer_id = printer_id


class JobNotFoundError(QueueError, LookupError):
    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found")
        self.session_id = session_id


class DuplicateSessionError(QueueError, ValueError):
    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' already exists")
        self.session_id = session_id


class JobStateError(QueueError, ValueError):
    """Operation not allowed in the job's current status."""


__all__ = [
    "DuplicateSessionError",
    "JobNotFoundError",
    "JobStateError",
    "PrinterNotFoundError",
    "QueueError",
]
