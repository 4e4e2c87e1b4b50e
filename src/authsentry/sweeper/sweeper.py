"""Sweeper - scheduled batch pass over recent login history."""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional

from authsentry.alerting.sinks import AlertSink, LoggingAlertSink
from authsentry.common.constants import SweepConstants
from authsentry.data.schemas.alert import Alert, SweepReport
from authsentry.data.stores.base import EventHistoryStore, EventQuery
from authsentry.scoring.rules import RiskRules
from authsentry.sweeper.detectors import DETECTORS, Detector, SweepCancelled, SweepContext

logger = logging.getLogger(__name__)


# Run-level locks, one per job name, shared by every Sweeper in the process
_job_locks: Dict[str, threading.Lock] = {}
_job_locks_guard = threading.Lock()


def job_lock(job_name: str) -> threading.Lock:
    """Get the run lock for a job name, creating it on first use."""
    with _job_locks_guard:
        if job_name not in _job_locks:
            _job_locks[job_name] = threading.Lock()
        return _job_locks[job_name]


class Sweeper:
    """Runs every detector over one fetched window of events.

    Detectors are independent: one that raises is recorded in the
    report's errors and the others still run. Alerts go to the sink as
    each detector finishes; sink failures are logged and never stop the
    sweep. Only one run per job name executes at a time; a concurrent
    call returns a skipped report without touching the store.
    """

    def __init__(
        self,
        event_store: EventHistoryStore,
        sink: Optional[AlertSink] = None,
        rules: Optional[RiskRules] = None,
        job_name: str = SweepConstants.JOB_NAME,
        detectors: Optional[Mapping[str, Detector]] = None,
    ):
        """Initialize sweeper.

        Args:
            event_store: History to sweep
            sink: Alert destination. Logs alerts if not provided.
            rules: Rule table supplying detector thresholds
            job_name: Key for the run-level lock
            detectors: Name -> detector mapping, run in order. Defaults to all four.
        """
        self.event_store = event_store
        self.sink = sink or LoggingAlertSink()
        self.rules = rules or RiskRules()
        self.job_name = job_name
        self.detectors = dict(detectors) if detectors is not None else dict(DETECTORS)

    def sweep(
        self,
        window: timedelta,
        now: datetime,
        cancel_event: Optional[threading.Event] = None,
        timeout: Optional[float] = None,
    ) -> SweepReport:
        """Sweep the closed window [now - window, now].

        Args:
            window: Length of the window to sweep
            now: Window end; every time comparison uses it
            cancel_event: Set to stop the run cooperatively
            timeout: Seconds after which the run stops itself

        Returns:
            SweepReport with alerts, per-detector errors and run flags

        Raises:
            StoreUnavailable: If the window cannot be fetched
        """
        window_start = now - window
        lock = job_lock(self.job_name)

        if not lock.acquire(blocking=False):
            logger.info(f"Sweep {self.job_name} already running, skipping")
            return SweepReport(window_start=window_start, window_end=now, skipped=True)

        try:
            return self._run(window_start, now, cancel_event, timeout)
        finally:
            lock.release()

    def _run(
        self,
        window_start: datetime,
        now: datetime,
        cancel_event: Optional[threading.Event],
        timeout: Optional[float],
    ) -> SweepReport:
        started = time.perf_counter()
        ctx = SweepContext(
            window_start=window_start,
            window_end=now,
            thresholds=self.rules.sweep,
            cancel_event=cancel_event,
            deadline=time.monotonic() + timeout if timeout is not None else None,
        )

        events = self.event_store.query(
            EventQuery(start=window_start, end=now, end_inclusive=True)
        )
        # Adjacency detectors require time order; sorted() is stable
        events = sorted(events, key=lambda event: event.timestamp)

        alerts: List[Alert] = []
        errors: Dict[str, str] = {}
        cancelled = False

        for name, detector in self.detectors.items():
            if ctx.should_stop():
                cancelled = True
                break

            try:
                found = detector(events, ctx)
            except SweepCancelled:
                cancelled = True
                break
            except Exception as e:
                logger.exception(f"Sweep detector {name} failed: {type(e).__name__}: {e}")
                errors[name] = f"{type(e).__name__}: {e}"
                continue

            for alert in found:
                self._emit(alert)
            alerts.extend(found)

        report = SweepReport(
            window_start=window_start,
            window_end=now,
            alerts=alerts,
            errors=errors,
            events_scanned=len(events),
            cancelled=cancelled,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

        if cancelled:
            logger.warning(
                f"Sweep {self.job_name} stopped early after {len(alerts)} alerts",
                extra={"job_name": self.job_name},
            )
        logger.info(
            f"Sweep {self.job_name} scanned {report.events_scanned} events, "
            f"{len(alerts)} alerts, {len(errors)} detector errors",
            extra={"job_name": self.job_name, "window_start": window_start.isoformat()},
        )
        return report

    def _emit(self, alert: Alert) -> None:
        try:
            self.sink.emit(alert)
        except Exception as e:
            logger.error(
                f"Alert sink failed for {alert.alert_id}: {type(e).__name__}: {e}",
                extra={"alert_id": alert.alert_id},
            )
