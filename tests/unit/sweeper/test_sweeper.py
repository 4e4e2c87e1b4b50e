"""Tests for the Sweeper run loop and its scheduler."""

import threading
import time
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from authsentry.common.exceptions import SweepPartialFailure
from authsentry.data.schemas.alert import AlertKind, SweepReport
from authsentry.data.stores.base import EventHistoryStore
from authsentry.sweeper.detectors import detect_ip_flood
from authsentry.sweeper.scheduler import SweepScheduler
from authsentry.sweeper.sweeper import Sweeper, job_lock


WINDOW = timedelta(hours=1)


def failing_detector(events, ctx):
    raise RuntimeError("detector exploded")


class ReversedStore(EventHistoryStore):
    """Store that returns matches newest first."""

    def __init__(self, events):
        self.events = list(events)

    def record(self, event):
        self.events.append(event)
        return event.event_id

    def query(self, query):
        return sorted(
            (e for e in self.events if query.matches(e)),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    def prune(self, before):
        return 0


@pytest.fixture
def sweeper(event_store, sink):
    return Sweeper(event_store, sink=sink, job_name="unit_sweep")


class TestSweeper:
    """Tests for Sweeper.sweep."""

    def test_ip_flood_end_to_end(self, sweeper, event_store, sink, make_event, now):
        for i in range(6):
            event_store.record(make_event(minutes=-5 + i * 0.8, ip="10.0.0.1", success=False))

        report = sweeper.sweep(WINDOW, now)

        assert len(report.alerts) == 1
        assert report.alerts[0].kind == AlertKind.IP_FLOOD
        assert report.alerts[0].count == 6
        assert report.errors == {}
        assert report.events_scanned == 6
        assert report.skipped is False
        assert report.cancelled is False
        assert sink.alerts == report.alerts

    def test_window_is_closed(self, sweeper, event_store, make_event, now):
        event_store.record(make_event(minutes=-60))  # window start
        event_store.record(make_event(minutes=0))  # window end
        event_store.record(make_event(minutes=-61))  # outside

        report = sweeper.sweep(WINDOW, now)

        assert report.events_scanned == 2
        assert report.window_start == now - WINDOW
        assert report.window_end == now

    def test_empty_window(self, sweeper, now):
        report = sweeper.sweep(WINDOW, now)

        assert report.alerts == []
        assert report.events_scanned == 0

    def test_unsorted_store_is_sorted_before_detection(self, sink, make_event, now):
        events = [make_event(minutes=-9 + i * 0.5, ip="10.0.0.5") for i in range(11)]
        events.append(make_event(minutes=-1, ip="10.0.0.6"))
        sweeper = Sweeper(ReversedStore(events), sink=sink, job_name="unit_sweep")

        report = sweeper.sweep(WINDOW, now)

        brute_force = report.alerts_of(AlertKind.BRUTE_FORCE)
        assert len(brute_force) == 1
        assert brute_force[0].subject == "10.0.0.5"

    def test_detector_failure_is_isolated(self, event_store, sink, make_event, now):
        for i in range(6):
            event_store.record(make_event(minutes=-5 + i, ip="10.0.0.1", success=False))
        sweeper = Sweeper(
            event_store,
            sink=sink,
            job_name="unit_sweep",
            detectors={"broken": failing_detector, "ip_flood": detect_ip_flood},
        )

        report = sweeper.sweep(WINDOW, now)

        assert report.errors == {"broken": "RuntimeError: detector exploded"}
        assert len(report.alerts) == 1
        assert report.has_errors

        with pytest.raises(SweepPartialFailure) as exc_info:
            report.raise_for_errors()
        assert exc_info.value.report is report
        assert exc_info.value.details["failed_detectors"] == ["broken"]

    def test_sink_failure_does_not_stop_sweep(self, event_store, make_event, now):
        sink = MagicMock()
        sink.emit.side_effect = IOError("sink down")
        for i in range(6):
            event_store.record(make_event(minutes=-5 + i, ip="10.0.0.1", success=False))
        sweeper = Sweeper(event_store, sink=sink, job_name="unit_sweep")

        report = sweeper.sweep(WINDOW, now)

        assert len(report.alerts) == 1
        assert report.errors == {}
        sink.emit.assert_called_once()

    def test_concurrent_run_is_skipped(self, sweeper, event_store, make_event, now):
        event_store.record(make_event(minutes=-5))
        lock = job_lock("unit_sweep")

        lock.acquire()
        try:
            report = sweeper.sweep(WINDOW, now)
        finally:
            lock.release()

        assert report.skipped is True
        assert report.events_scanned == 0
        assert report.alerts == []

    def test_lock_released_after_run(self, sweeper, now):
        sweeper.sweep(WINDOW, now)
        assert sweeper.sweep(WINDOW, now).skipped is False

    def test_locks_are_per_job(self):
        assert job_lock("job_a") is job_lock("job_a")
        assert job_lock("job_a") is not job_lock("job_b")

    def test_cancelled_before_start(self, sweeper, event_store, make_event, now):
        for i in range(6):
            event_store.record(make_event(minutes=-5 + i, ip="10.0.0.1", success=False))
        cancel = threading.Event()
        cancel.set()

        report = sweeper.sweep(WINDOW, now, cancel_event=cancel)

        assert report.cancelled is True
        assert report.alerts == []

    def test_timeout_stops_run(self, sweeper, event_store, make_event, now):
        event_store.record(make_event(minutes=-5))

        report = sweeper.sweep(WINDOW, now, timeout=0)

        assert report.cancelled is True

    def test_overlapping_sweeps_repeat_alert_ids(self, sweeper, event_store, make_event, now):
        for i in range(6):
            event_store.record(make_event(minutes=-5 + i, ip="10.0.0.1", success=False))

        first = sweeper.sweep(WINDOW, now)
        second = sweeper.sweep(WINDOW, now + timedelta(minutes=10))

        assert [a.alert_id for a in first.alerts] == [a.alert_id for a in second.alerts]


class TestSweepScheduler:
    """Tests for SweepScheduler."""

    def test_run_once_passes_stop_event(self, now):
        report = SweepReport(window_start=now, window_end=now)
        job = MagicMock(return_value=report)
        scheduler = SweepScheduler(job, interval_seconds=60)

        assert scheduler.run_once() is report
        assert scheduler.runs == 1
        assert scheduler.last_report is report
        assert isinstance(job.call_args.kwargs["cancel_event"], threading.Event)

    def test_failed_run_is_logged_not_raised(self):
        job = MagicMock(side_effect=RuntimeError("store down"))
        scheduler = SweepScheduler(job, interval_seconds=60)

        assert scheduler.run_once() is None
        assert scheduler.runs == 0

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            SweepScheduler(MagicMock(), interval_seconds=0)

    def test_start_and_stop(self, now):
        ran = threading.Event()

        def job(cancel_event):
            ran.set()
            return SweepReport(window_start=now, window_end=now)

        scheduler = SweepScheduler(job, interval_seconds=0.01, run_immediately=True)
        scheduler.start()
        try:
            assert ran.wait(timeout=2.0)
            assert scheduler.is_running
        finally:
            scheduler.stop(timeout=2.0)

        assert not scheduler.is_running
        assert scheduler.runs >= 1

    def test_stop_cancels_running_sweep(self, now):
        started = threading.Event()
        seen = {}

        def job(cancel_event):
            started.set()
            seen["cancelled"] = cancel_event.wait(timeout=2.0)
            return SweepReport(window_start=now, window_end=now, cancelled=True)

        scheduler = SweepScheduler(job, interval_seconds=60, run_immediately=True)
        scheduler.start()
        assert started.wait(timeout=2.0)

        begin = time.monotonic()
        scheduler.stop(timeout=2.0)

        assert seen["cancelled"] is True
        assert time.monotonic() - begin < 2.0
