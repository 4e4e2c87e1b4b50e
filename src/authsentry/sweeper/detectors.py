"""Aggregate pattern detectors run by the sweeper.

Every detector receives the same window of events, already sorted by
timestamp (stable, so ties keep store order). Groupings use insertion-
ordered dicts, so alerts come out in first-seen order of their subject.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from authsentry.common.constants import SweepConstants
from authsentry.data.schemas.alert import Alert, AlertKind
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.scoring.rules import SweepThresholds


class SweepCancelled(Exception):
    """Raised inside a detector when the run was cancelled or timed out."""


@dataclass
class SweepContext:
    """Window, thresholds and cancellation state shared by all detectors."""
    window_start: datetime
    window_end: datetime
    thresholds: SweepThresholds
    cancel_event: Optional[threading.Event] = None
    deadline: Optional[float] = None  # time.monotonic() value
    check_every: int = SweepConstants.CANCEL_CHECK_EVERY

    @property
    def now(self) -> datetime:
        return self.window_end

    def should_stop(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def checkpoint(self, index: int) -> None:
        """Raise SweepCancelled every `check_every` events once stopped."""
        if index % self.check_every == 0 and self.should_stop():
            raise SweepCancelled()

    def alert(
        self,
        kind: AlertKind,
        subject: str,
        count: int,
        first_seen: datetime,
        detail: Dict,
    ) -> Alert:
        return Alert.create(
            kind=kind,
            subject=subject,
            window_start=self.window_start,
            window_end=self.window_end,
            count=count,
            first_seen=first_seen,
            detail=detail,
        )


Detector = Callable[[Sequence[LoginEvent], SweepContext], List[Alert]]


def _group(
    events: Sequence[LoginEvent],
    ctx: SweepContext,
    key: Callable[[LoginEvent], str],
    include: Callable[[LoginEvent], bool] = lambda event: True,
) -> Dict[str, List[LoginEvent]]:
    groups: Dict[str, List[LoginEvent]] = {}
    for index, event in enumerate(events):
        ctx.checkpoint(index)
        if include(event):
            groups.setdefault(key(event), []).append(event)
    return groups


def _span_detail(group: List[LoginEvent]) -> Dict:
    first, last = group[0].timestamp, group[-1].timestamp
    return {
        "last_seen": last.isoformat(),
        "span_seconds": (last - first).total_seconds(),
    }


def detect_ip_flood(events: Sequence[LoginEvent], ctx: SweepContext) -> List[Alert]:
    """Failed events grouped by IP; an IP over the threshold floods."""
    groups = _group(events, ctx, key=lambda e: e.ip, include=lambda e: not e.success)
    return [
        ctx.alert(AlertKind.IP_FLOOD, ip, len(group), group[0].timestamp, _span_detail(group))
        for ip, group in groups.items()
        if len(group) > ctx.thresholds.ip_flood_failures
    ]


def detect_ua_flood(events: Sequence[LoginEvent], ctx: SweepContext) -> List[Alert]:
    """All events grouped by exact user-agent string, any outcome."""
    groups = _group(events, ctx, key=lambda e: e.user_agent)
    alerts = []
    for agent, group in groups.items():
        if len(group) <= ctx.thresholds.ua_flood_events:
            continue
        detail = _span_detail(group)
        detail["distinct_ips"] = len({e.ip for e in group})
        detail["failures"] = sum(1 for e in group if not e.success)
        alerts.append(ctx.alert(AlertKind.UA_FLOOD, agent, len(group), group[0].timestamp, detail))
    return alerts


def detect_brute_force(events: Sequence[LoginEvent], ctx: SweepContext) -> List[Alert]:
    """Runs of adjacent same-IP events in time order.

    A run ends when the next event comes from another IP. It raises an
    alert when it is longer than the threshold and the time from its
    first event to the event that ended it is under the limit. The run
    still open at the end of the window is measured against `now`.
    Interleaved traffic from another IP splits a burst into separate runs.
    """
    max_duration = timedelta(minutes=ctx.thresholds.brute_force_max_minutes)
    alerts: List[Alert] = []

    def close_run(run: List[LoginEvent], ended_at: datetime) -> None:
        duration = ended_at - run[0].timestamp
        if len(run) > ctx.thresholds.brute_force_run_length and duration < max_duration:
            alerts.append(ctx.alert(
                AlertKind.BRUTE_FORCE,
                run[0].ip,
                len(run),
                run[0].timestamp,
                {
                    "last_seen": run[-1].timestamp.isoformat(),
                    "duration_seconds": duration.total_seconds(),
                    "failures": sum(1 for e in run if not e.success),
                },
            ))

    run: List[LoginEvent] = []
    for index, event in enumerate(events):
        ctx.checkpoint(index)
        if run and event.ip != run[0].ip:
            close_run(run, event.timestamp)
            run = []
        run.append(event)

    if run:
        close_run(run, ctx.now)

    return alerts


def detect_account_takeover_probe(events: Sequence[LoginEvent], ctx: SweepContext) -> List[Alert]:
    """Distinct user ids targeted from one IP, in first-seen order."""
    targets: Dict[str, Dict[str, None]] = {}
    attempts: Dict[str, List[LoginEvent]] = {}
    for index, event in enumerate(events):
        ctx.checkpoint(index)
        attempts.setdefault(event.ip, []).append(event)
        if event.user_id is not None:
            targets.setdefault(event.ip, {})[event.user_id] = None

    alerts = []
    for ip, users in targets.items():
        if len(users) <= ctx.thresholds.account_takeover_users:
            continue
        group = attempts[ip]
        detail = _span_detail(group)
        detail["user_ids"] = list(users)
        detail["attempts"] = len(group)
        alerts.append(ctx.alert(
            AlertKind.ACCOUNT_TAKEOVER_PROBE, ip, len(users), group[0].timestamp, detail
        ))
    return alerts


# Detector name -> function, in run order
DETECTORS: Dict[str, Detector] = {
    "ip_flood": detect_ip_flood,
    "ua_flood": detect_ua_flood,
    "brute_force": detect_brute_force,
    "account_takeover_probe": detect_account_takeover_probe,
}
