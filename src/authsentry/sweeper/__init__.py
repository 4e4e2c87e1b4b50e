"""Aggregate pattern sweeper - detectors, run lock and scheduler."""

from authsentry.sweeper.detectors import (
    DETECTORS,
    SweepCancelled,
    SweepContext,
    detect_account_takeover_probe,
    detect_brute_force,
    detect_ip_flood,
    detect_ua_flood,
)
from authsentry.sweeper.sweeper import Sweeper, job_lock
from authsentry.sweeper.scheduler import SweepScheduler

__all__ = [
    "DETECTORS",
    "SweepCancelled",
    "SweepContext",
    "detect_account_takeover_probe",
    "detect_brute_force",
    "detect_ip_flood",
    "detect_ua_flood",
    "Sweeper",
    "job_lock",
    "SweepScheduler",
]
