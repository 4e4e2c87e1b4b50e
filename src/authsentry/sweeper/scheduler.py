"""Sweep scheduler - runs a sweep on a fixed interval in a background thread."""

import logging
import threading
from typing import Callable, Optional

from authsentry.common.constants import SweepConstants
from authsentry.data.schemas.alert import SweepReport

logger = logging.getLogger(__name__)

# Called with the scheduler's stop event so a running sweep can be cancelled
SweepJob = Callable[..., SweepReport]


class SweepScheduler:
    """Background thread that invokes a sweep job every `interval_seconds`.

    stop() also cancels a sweep in progress through the stop event.
    """

    def __init__(
        self,
        job: SweepJob,
        interval_seconds: float = SweepConstants.DEFAULT_INTERVAL_SECONDS,
        run_immediately: bool = False,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.job = job
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0
        self.last_report: Optional[SweepReport] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="SweepScheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Sweep scheduler started, interval {self.interval_seconds}s")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Sweep scheduler did not stop cleanly")
        logger.info(f"Sweep scheduler stopped after {self.runs} runs")

    def run_once(self) -> Optional[SweepReport]:
        """Run the job once; failures are logged and the schedule continues."""
        try:
            report = self.job(cancel_event=self._stop_event)
        except Exception as e:
            logger.exception(f"Scheduled sweep failed: {type(e).__name__}: {e}")
            return None

        self.runs += 1
        self.last_report = report
        if report.has_errors:
            logger.warning(
                f"Scheduled sweep finished with detector errors: {sorted(report.errors)}"
            )
        return report

    def _loop(self) -> None:
        if self.run_immediately:
            self.run_once()

        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()
