from datetime import datetime, timedelta, timezone

import pytest

from thermal_printer.printing.jobs import JobEvent, JobStatus
from thermal_printer.printing.monitoring import MonitoringService

T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def _run(mon, sid, printer="kitchen", start=T0, seconds=1.0, status=JobStatus.COMPLETED):
    mon.record_job_event(JobEvent(sid, printer, JobStatus.QUEUED, start))
    mon.record_job_event(JobEvent(sid, printer, JobStatus.PRINTING, start, previous_status=JobStatus.QUEUED))
    end = start + timedelta(seconds=seconds)
    error = "boom" if status is JobStatus.FAILED else None
    mon.record_job_event(JobEvent(sid, printer, status, end, previous_status=JobStatus.PRINTING, error=error))


def test_processing_time_is_exponentially_smoothed():
    mon = MonitoringService()
    _run(mon, "s1", seconds=1)
    assert mon.average_processing_time("kitchen") == pytest.approx(1000.0)
    _run(mon, "s2", seconds=2)
    assert mon.average_processing_time("kitchen") == pytest.approx(1000 * 0.8 + 2000 * 0.2)
    assert mon.average_processing_time("unknown") == 0.0


def test_duplicate_terminal_event_is_not_counted_twice_for_timing():
    mon = MonitoringService()
    _run(mon, "s1", seconds=1)
    mon.record_job_event(
        JobEvent("s1", "kitchen", JobStatus.COMPLETED, T0 + timedelta(seconds=9), previous_status=JobStatus.PRINTING)
    )
    assert mon.average_processing_time("kitchen") == pytest.approx(1000.0)


def test_health_counters_and_load():
    mon = MonitoringService()
    _run(mon, "ok1")
    _run(mon, "bad1", status=JobStatus.FAILED)
    health = mon.get_printer_health("kitchen")
    assert health.success_count == 1
    assert health.error_count == 1
    assert health.success_rate == pytest.approx(50.0)
    assert health.current_load == 0
    assert health.is_online is True
    assert health.last_seen == T0 + timedelta(seconds=1)

    mon.record_job_event(JobEvent("p1", "kitchen", JobStatus.PRINTING, T0, previous_status=JobStatus.QUEUED))
    assert mon.get_printer_health("kitchen").current_load == 20


def test_health_is_returned_as_copy():
    mon = MonitoringService()
    _run(mon, "s1")
    mon.get_printer_health("kitchen").success_count = 99
    assert mon.get_printer_health("kitchen").success_count == 1
    assert mon.get_printer_health("missing") is None


def test_history_is_bounded_per_job():
    mon = MonitoringService(max_history_per_job=3)
    for i in range(5):
        mon.record_job_event(JobEvent("s1", "kitchen", JobStatus.QUEUED, T0 + timedelta(seconds=i)))
    history = mon.get_job_history("s1")
    assert len(history) == 3
    assert history[0].timestamp == T0 + timedelta(seconds=2)
    assert mon.get_job_history("missing") == []


def test_offline_alert_after_six_minutes_of_silence():
    mon = MonitoringService()
    _run(mon, "s1", seconds=0)
    alerts = mon.get_alerts(now=T0 + timedelta(minutes=6))
    assert [(a.type, a.severity, a.printer_id) for a in alerts] == [("printer_offline", "high", "kitchen")]
    assert "6 minutes" in alerts[0].message
    assert mon.get_alerts(now=T0 + timedelta(minutes=4)) == []


def test_error_rate_alert_needs_more_than_ten_jobs():
    mon = MonitoringService()
    for i in range(5):
        _run(mon, f"ok{i}")
    for i in range(5):
        _run(mon, f"bad{i}", status=JobStatus.FAILED)
    now = T0 + timedelta(seconds=5)
    assert mon.get_alerts(now=now) == []

    _run(mon, "ok-last")
    alerts = mon.get_alerts(now=now)
    assert [a.type for a in alerts] == ["high_error_rate"]
    assert alerts[0].severity == "medium"


def test_high_load_alert_and_severity_ordering():
    mon = MonitoringService()
    for i in range(5):
        mon.record_job_event(JobEvent(f"p{i}", "kitchen", JobStatus.PRINTING, T0, previous_status=JobStatus.QUEUED))
    assert mon.get_printer_health("kitchen").current_load == 100

    alerts = mon.get_alerts(now=T0 + timedelta(minutes=10))
    assert [a.severity for a in alerts] == ["high", "low"]
    assert alerts[1].type == "high_load"


def test_performance_metrics():
    mon = MonitoringService()
    _run(mon, "a", seconds=1)
    _run(mon, "b", seconds=3)
    _run(mon, "c", seconds=2, status=JobStatus.FAILED)
    mon.record_job_event(JobEvent("d", "bar", JobStatus.QUEUED, T0))

    metrics = mon.get_performance_metrics()
    assert metrics["totalJobs"] == 4
    assert metrics["averageProcessingTime"] == pytest.approx(2000.0)
    assert metrics["successRate"] == pytest.approx(200 / 3)
    kitchen = next(m for m in metrics["printerMetrics"] if m["printerId"] == "kitchen")
    assert kitchen["successCount"] == 2
    assert kitchen["errorCount"] == 1


def test_empty_metrics_are_zero():
    metrics = MonitoringService().get_performance_metrics()
    assert metrics == {"totalJobs": 0, "averageProcessingTime": 0.0, "successRate": 0.0, "printerMetrics": []}


def test_cleanup_drops_only_fully_expired_sessions():
    mon = MonitoringService()
    _run(mon, "old", start=T0 - timedelta(hours=30))
    _run(mon, "new", start=T0 - timedelta(hours=1))
    removed = mon.cleanup_history(24, now=T0)
    assert removed == 1
    assert mon.get_job_history("old") == []
    assert len(mon.get_job_history("new")) == 3


def test_cleanup_thread_start_stop():
    mon = MonitoringService(cleanup_interval=0.01)
    mon.start()
    mon.start()
    mon.stop(timeout=2)
