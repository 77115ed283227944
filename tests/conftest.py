# Ensure the repository root is on sys.path so `thermal_printer` can be imported in tests.

import sys
from pathlib import Path


def _ensure_repo_root_on_syspath() -> None:
    # This file lives at: <repo_root>/tests/conftest.py
    # We want to add <repo_root> to sys.path (if not already present).
    here = Path(__file__).resolve()
    repo_root = here.parent.parent
    repo_str = str(repo_root)
    if repo_str not in sys.path:
        sys.path.insert(0, repo_str)


_ensure_repo_root_on_syspath()

import copy
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from thermal_printer.core.config import PrinterConfigStore
from thermal_printer.printing.monitoring import MonitoringService
from thermal_printer.printing.queue import QueueService

PRINTERS_CFG: Dict[str, Any] = {
    "printers": [
        {
            "id": "kitchen",
            "name": "Kitchen 80mm",
            "type": "epson",
            "connectionType": "network",
            "address": "10.0.0.5:9100",
            "charPerLine": 48,
            "width": 80,
            "printableWidth": 72,
            "characterSet": "PC852_LATIN2",
            "timeout": 3000,
        },
        {
            "id": "bar",
            "name": "Bar 58mm",
            "type": "epson",
            "connectionType": "usb",
            "address": "0x04b8:0x0e28",
            "charPerLine": 32,
            "width": 58,
            "printableWidth": 48,
        },
    ],
    "defaultSettings": {"charPerLine": 48, "printableWidth": 72, "timeout": 5000},
}


class FakePrinter:
    """Captures python-escpos calls as (method, args, kwargs) tuples."""

    def __init__(self):
        self.calls: List[Tuple[str, tuple, dict]] = []
        self.closed = False

    def _record(self, name: str, *args, **kwargs):
        self.calls.append((name, args, kwargs))

    def text(self, s: str):
        self._record("text", s)

    def set(self, **kwargs):
        self._record("set", **kwargs)

    def image(self, img):
        self._record("image", img)

    def qr(self, data: str, **kwargs):
        self._record("qr", data, **kwargs)

    def barcode(self, code: str, bc: str, **kwargs):
        self._record("barcode", code, bc, **kwargs)

    def cut(self):
        self._record("cut")

    def buzzer(self):
        self._record("buzzer")

    def cashdraw(self, pin):
        self._record("cashdraw", pin)

    def charcode(self, code: str):
        self._record("charcode", code)

    def open(self):
        self._record("open")

    def close(self):
        self.closed = True

    def names(self) -> List[str]:
        return [c[0] for c in self.calls]

    def texts(self) -> List[str]:
        return [c[1][0] for c in self.calls if c[0] == "text"]


class RecordingExecutor:
    """Stands in for PrintExecutor: records jobs, optionally fails or runs a hook."""

    def __init__(self):
        self.executed: List[str] = []
        self.fail_with: Optional[Exception] = None
        self.during: Optional[Callable[[Any], None]] = None

    def execute(self, job) -> None:
        self.executed.append(job.session_id)
        if self.during is not None:
            self.during(job)
        if self.fail_with is not None:
            raise self.fail_with

    def test_connection(self, printer_id: str) -> Dict[str, Any]:
        return {"connected": True, "printer": printer_id}


@pytest.fixture
def printer_cfg() -> Dict[str, Any]:
    return copy.deepcopy(PRINTERS_CFG)


@pytest.fixture
def config_store(printer_cfg) -> PrinterConfigStore:
    return PrinterConfigStore(data=printer_cfg)


@pytest.fixture
def executor() -> RecordingExecutor:
    return RecordingExecutor()


@pytest.fixture
def monitoring() -> MonitoringService:
    return MonitoringService()


@pytest.fixture
def engine(config_store, executor, monitoring) -> QueueService:
    return QueueService(config_store, executor, monitoring, removal_delay=60.0, wait_per_job=10.0)


@pytest.fixture
def app(printer_cfg, executor):
    from thermal_printer import create_app

    app = create_app(
        config_overrides={"PRINTER_CONFIG": printer_cfg, "TESTING": True},
        register_worker=False,
        executor=executor,
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()
