"""
Printing subsystem for the thermal print service.

This package groups printing-related functionality:

- jobs: PrintJob / PrinterQueue / JobEvent model and job status values
- queue: per-printer job queue engine
- worker: per-printer polling thread
- monitoring: job event history, printer health, metrics and alerts
- executor: python-escpos rendering and transmission
- render: table layout, image and PDF rasterization

For convenience, common names are re-exported for easy import.
"""

from .errors import *
from .jobs import *
from .monitoring import *
from .queue import *
from .executor import *
from .render import *
from .worker import *
