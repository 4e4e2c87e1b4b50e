"""Baseline builder - per-user rolling statistics from the history stores.

Every window is half-open: [as_of - window, as_of). An event carrying the
event_id being scored is left out, so assessing an event that is already
recorded gives the same verdict as assessing it before recording. The
velocity counts then add the scored attempt itself exactly once.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence

from authsentry.common.constants import BaselineConstants
from authsentry.data.schemas.baseline import (
    DeviceChange,
    TimePatterns,
    UserBaseline,
    VelocityCounts,
)
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.stores.base import EventHistoryStore, EventQuery, FingerprintStore
from authsentry.scoring.rules import RiskRules

logger = logging.getLogger(__name__)


def utc_hour(moment: datetime) -> int:
    """Hour of day in UTC."""
    return moment.astimezone(timezone.utc).hour


def _distinct(values: Iterable[str]) -> List[str]:
    """Distinct values in first-seen order."""
    return list(dict.fromkeys(values))


def login_frequency(events: Sequence[LoginEvent], as_of: datetime) -> float:
    """Events per hour since the first event; 0 when there are none."""
    if not events:
        return 0.0
    hours = (as_of - events[0].timestamp).total_seconds() / 3600
    return len(events) / max(hours, 1.0)


def time_patterns(events: Sequence[LoginEvent]) -> TimePatterns:
    if not events:
        return TimePatterns()

    hours = [utc_hour(event.timestamp) for event in events]
    histogram = Counter(hours)
    # Ties go to the hour seen first
    most_common_hour = max(dict.fromkeys(hours), key=lambda hour: histogram[hour])

    return TimePatterns(
        histogram=dict(sorted(histogram.items())),
        most_common_hour=most_common_hour,
        spread=max(hours) - min(hours),
        night_logins=sum(
            1 for hour in hours
            if hour >= BaselineConstants.NIGHT_START_HOUR
            or hour <= BaselineConstants.NIGHT_END_HOUR
        ),
    )


def success_rate(events: Sequence[LoginEvent]) -> float:
    """Percent of successful events, 2 decimals."""
    if not events:
        return 0.0
    successes = sum(1 for event in events if event.success)
    return round(successes / len(events) * 100, 2)


def ip_consistency(events: Sequence[LoginEvent]) -> float:
    """1 - distinct IPs / total events, 2 decimals."""
    if not events:
        return 0.0
    distinct_ips = len({event.ip for event in events})
    return round(1.0 - distinct_ips / len(events), 2)


def fingerprint_stability(fingerprints: Sequence[DeviceFingerprint]) -> float:
    """Share of fingerprints carrying the most frequent user-agent, 2 decimals."""
    if not fingerprints:
        return 0.0
    agents = Counter(fp.user_agent for fp in fingerprints)
    return round(agents.most_common(1)[0][1] / len(fingerprints), 2)


def device_changes(fingerprints: Sequence[DeviceFingerprint]) -> List[DeviceChange]:
    """Consecutive fingerprints (oldest first) whose user-agent differs."""
    ordered = sorted(fingerprints, key=lambda fp: fp.created_at)
    return [
        DeviceChange(
            timestamp=current.created_at,
            from_user_agent=previous.user_agent,
            to_user_agent=current.user_agent,
        )
        for previous, current in zip(ordered, ordered[1:])
        if previous.user_agent != current.user_agent
    ]


class BaselineBuilder:
    """Computes UserBaseline views on demand.

    Read-only against both stores; safe to call concurrently for
    unrelated users.
    """

    def __init__(
        self,
        event_store: EventHistoryStore,
        fingerprint_store: FingerprintStore,
        rules: Optional[RiskRules] = None,
    ):
        self.event_store = event_store
        self.fingerprint_store = fingerprint_store
        self.rules = rules or RiskRules()

    def baseline(
        self,
        user_id: Optional[str],
        as_of: datetime,
        window: Optional[timedelta] = None,
        exclude_event_id: Optional[str] = None,
    ) -> UserBaseline:
        """Build the behavioral baseline for one user.

        Args:
            user_id: User to summarize; None yields an empty baseline
            as_of: Exclusive upper bound of every window
            window: Behavior window, defaults to the rule table's behavior_days
            exclude_event_id: Event to leave out of every count

        Returns:
            UserBaseline with all ratios 0 when there is no history
        """
        window = window or timedelta(days=self.rules.baseline.behavior_days)
        if user_id is None:
            return UserBaseline(as_of=as_of, window_days=max(window.days, 1))

        user_events = self._user_events(user_id, as_of, window, exclude_event_id)
        return self._build(user_id, as_of, window, user_events)

    def for_event(self, event: LoginEvent, as_of: Optional[datetime] = None) -> UserBaseline:
        """Build the baseline for the event's user, plus velocity counts.

        as_of defaults to the event's own timestamp.
        """
        as_of = as_of or event.timestamp
        window = timedelta(days=self.rules.baseline.behavior_days)
        windows = self.rules.windows

        if event.user_id is None:
            baseline = UserBaseline(as_of=as_of, window_days=max(window.days, 1))
            user_events: List[LoginEvent] = []
        else:
            user_events = self._user_events(event.user_id, as_of, window, event.event_id)
            baseline = self._build(event.user_id, as_of, window, user_events)

        rapid_start = as_of - timedelta(minutes=windows.rapid_attempts_minutes)
        hour_start = as_of - timedelta(hours=1)
        failures_start = as_of - timedelta(minutes=windows.ip_failures_minutes)
        ip_failures = self.event_store.query(EventQuery(
            start=failures_start,
            end=as_of,
            ip=event.ip,
            success=False,
        ))

        # The attempt being scored counts once toward its own velocity.
        # Its stored copy, if any, is already filtered out by event_id.
        def itself(start: datetime, applies: bool = True) -> int:
            return int(applies and start <= event.timestamp <= as_of)

        has_user = event.user_id is not None
        velocity = VelocityCounts(
            user_attempts=(
                sum(1 for e in user_events if e.timestamp >= rapid_start)
                + itself(rapid_start, has_user)
            ),
            user_attempts_last_hour=(
                sum(1 for e in user_events if e.timestamp >= hour_start)
                + itself(hour_start, has_user)
            ),
            ip_failures=(
                sum(
                    1 for e in ip_failures
                    if event.event_id is None or e.event_id != event.event_id
                )
                + itself(failures_start, not event.success)
            ),
        )

        return baseline.model_copy(update={"velocity": velocity})

    def _user_events(
        self,
        user_id: str,
        as_of: datetime,
        window: timedelta,
        exclude_event_id: Optional[str],
    ) -> List[LoginEvent]:
        """Single read covering the widest user window in use."""
        windows = self.rules.windows
        span = max(
            window,
            timedelta(days=windows.user_agent_days),
            timedelta(minutes=windows.rapid_attempts_minutes),
            timedelta(hours=1),
        )
        events = self.event_store.query(EventQuery(
            start=as_of - span, end=as_of, user_id=user_id
        ))
        if exclude_event_id is None:
            return events
        return [e for e in events if e.event_id != exclude_event_id]

    def _build(
        self,
        user_id: str,
        as_of: datetime,
        window: timedelta,
        user_events: List[LoginEvent],
    ) -> UserBaseline:
        behavior_start = as_of - window
        ua_start = as_of - timedelta(days=self.rules.windows.user_agent_days)
        behavior = [e for e in user_events if e.timestamp >= behavior_start]
        ua_events = [e for e in user_events if e.timestamp >= ua_start]

        fingerprints = self.fingerprint_store.query(
            user_id,
            as_of - timedelta(days=self.rules.baseline.fingerprint_days),
            as_of,
        )
        mismatch_start = as_of - timedelta(days=BaselineConstants.DEVICE_MISMATCH_WINDOW_DAYS)

        last_success = next((e for e in reversed(behavior) if e.success), None)
        stability = fingerprint_stability(fingerprints)
        consistency = ip_consistency(behavior)

        baseline = UserBaseline(
            user_id=user_id,
            as_of=as_of,
            window_days=max(window.days, 1),
            event_count=len(behavior),
            login_frequency=login_frequency(behavior, as_of),
            time_patterns=time_patterns(behavior),
            success_rate=success_rate(behavior),
            ip_consistency=consistency,
            distinct_ips=_distinct(e.ip for e in behavior),
            last_success_ip=last_success.ip if last_success else None,
            last_success_at=last_success.timestamp if last_success else None,
            recent_user_agents=_distinct(e.user_agent for e in ua_events),
            fingerprint_count=len(fingerprints),
            fingerprint_stability=stability,
            fingerprint_user_agents=_distinct(
                fp.user_agent for fp in fingerprints if fp.created_at >= mismatch_start
            ),
            device_changes=device_changes(fingerprints),
            consistency_score=(stability + consistency) / 2 if fingerprints else 0.0,
        )

        logger.debug(
            f"Built baseline for {user_id}: {baseline.event_count} events, "
            f"{baseline.fingerprint_count} fingerprints",
            extra={"user_id": user_id, "as_of": as_of.isoformat()},
        )
        return baseline
