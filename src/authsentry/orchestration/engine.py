"""Risk Engine - the two operations exposed to callers.

assess_risk scores one login event inline with authentication.
run_sweep is the scheduled entry point for aggregate detection.

Error Handling:
- Malformed events raise InvalidEvent; no score is fabricated
- Store timeouts and failures raise StoreUnavailable (retryable)
- Detector failures are reported in the SweepReport, never raised here
"""

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import ValidationError

from authsentry.alerting.sinks import AlertSink, build_alert_sink
from authsentry.baseline.calculator import BaselineBuilder
from authsentry.common.config.settings import Config, get_config
from authsentry.common.constants import StoreConstants, SweepConstants
from authsentry.common.exceptions import InvalidEvent, StoreUnavailable
from authsentry.data.schemas.alert import SweepReport
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.schemas.risk_assessment import RiskAssessment
from authsentry.data.stores.base import EventHistoryStore, FingerprintStore
from authsentry.data.stores.bounded import BoundedEventStore, BoundedFingerprintStore
from authsentry.data.stores.memory import InMemoryEventStore, InMemoryFingerprintStore
from authsentry.monitoring.metrics import MetricsCollector
from authsentry.scoring.predicates import RulePredicate, never
from authsentry.scoring.rules import RiskRules, load_rules
from authsentry.scoring.scorer import RiskScorer
from authsentry.sweeper.sweeper import Sweeper

logger = logging.getLogger(__name__)


def _require_aware(moment: datetime, name: str) -> datetime:
    if moment.tzinfo is None or moment.utcoffset() is None:
        raise InvalidEvent(f"{name} must be timezone-aware", details={"field": name})
    return moment


class RiskEngine:
    """Facade over baseline, scorer and sweeper.

    Store reads go through time-bounded proxies on a shared executor,
    so no call blocks longer than the configured store timeout.
    """

    def __init__(
        self,
        event_store: EventHistoryStore,
        fingerprint_store: FingerprintStore,
        rules: Optional[RiskRules] = None,
        sink: Optional[AlertSink] = None,
        unusual_ip: RulePredicate = never,
        fingerprint_changed: RulePredicate = never,
        store_timeout: float = StoreConstants.DEFAULT_TIMEOUT_SECONDS,
        sweep_window: timedelta = timedelta(minutes=SweepConstants.DEFAULT_WINDOW_MINUTES),
        sweep_timeout: Optional[float] = SweepConstants.DEFAULT_TIMEOUT_SECONDS,
        metrics: Optional[MetricsCollector] = None,
        job_name: str = SweepConstants.JOB_NAME,
    ):
        """Initialize the engine.

        Args:
            event_store: Event history collaborator
            fingerprint_store: Fingerprint collaborator
            rules: Rule table. Uses the built-in defaults if not provided.
            sink: Alert sink for sweeps. Logs alerts if not provided.
            unusual_ip: Predicate backing the unusual_ip rule
            fingerprint_changed: Predicate backing the fingerprint_changed rule
            store_timeout: Seconds any single store call may take
            sweep_window: Default window for run_sweep
            sweep_timeout: Seconds after which a sweep stops itself
            metrics: Optional CloudWatch collector
            job_name: Run-lock key for sweeps
        """
        self.rules = rules or RiskRules()
        self.event_store = BoundedEventStore(event_store, timeout=store_timeout)
        self.fingerprint_store = BoundedFingerprintStore(fingerprint_store, timeout=store_timeout)
        self.sweep_window = sweep_window
        self.sweep_timeout = sweep_timeout
        self.metrics = metrics

        self.baselines = BaselineBuilder(self.event_store, self.fingerprint_store, self.rules)
        self.scorer = RiskScorer(
            self.rules,
            unusual_ip=unusual_ip,
            fingerprint_changed=fingerprint_changed,
        )
        self.sweeper = Sweeper(self.event_store, sink=sink, rules=self.rules, job_name=job_name)

    @classmethod
    def from_config(
        cls,
        config: Optional[Config] = None,
        event_store: Optional[EventHistoryStore] = None,
        fingerprint_store: Optional[FingerprintStore] = None,
        **kwargs: Any,
    ) -> "RiskEngine":
        """Build an engine from configuration.

        In-memory stores are used when none are given.

        Raises:
            ConfigurationError: If the rule table or alert sink settings are invalid
        """
        config = config or get_config()
        rules = load_rules(config.rules_file, default_path=config.default_rules_file)

        metrics = None
        if config.metrics_enabled:
            metrics = MetricsCollector(
                namespace=config.metrics_namespace,
                region=config.aws_region,
                batch_size=config.metrics_batch_size,
            )

        if "sink" not in kwargs:
            kwargs["sink"] = build_alert_sink(config)
        return cls(
            event_store=event_store or InMemoryEventStore(),
            fingerprint_store=fingerprint_store or InMemoryFingerprintStore(),
            rules=rules,
            store_timeout=config.store_timeout_seconds,
            sweep_window=timedelta(minutes=config.sweep_window_minutes),
            sweep_timeout=config.sweep_timeout_seconds,
            metrics=metrics,
            **kwargs,
        )

    # Ingestion

    def record_event(self, event: Union[LoginEvent, Mapping[str, Any]]) -> str:
        """Append an event to history and return its id."""
        return self.event_store.record(self._coerce_event(event))

    def record_fingerprint(self, fingerprint: DeviceFingerprint) -> str:
        """Store a fingerprint and return its hash."""
        return self.fingerprint_store.record(fingerprint)

    # Operations

    def assess_risk(
        self,
        event: Union[LoginEvent, Mapping[str, Any]],
        now: Optional[datetime] = None,
    ) -> RiskAssessment:
        """Score a login event against the user's history.

        Args:
            event: LoginEvent or a mapping that validates into one
            now: Point in time to take the baseline at. Defaults to the
                event's timestamp, so repeated calls are reproducible.

        Returns:
            RiskAssessment

        Raises:
            InvalidEvent: If the event is missing fields or malformed
            StoreUnavailable: If history cannot be read in time
        """
        started = time.perf_counter()
        login_event = self._coerce_event(event)
        as_of = _require_aware(now, "now") if now is not None else login_event.timestamp

        try:
            baseline = self.baselines.for_event(login_event, as_of)
        except StoreUnavailable as e:
            logger.error(
                f"Risk assessment aborted, {e.details.get('store_name')} unavailable",
                extra={"event_id": login_event.event_id, "user_id": login_event.user_id},
            )
            self._record_metric(lambda m: m.record_store_unavailable(e.details.get("store_name", "unknown")))
            raise

        assessment = self.scorer.score(login_event, baseline)
        latency_ms = (time.perf_counter() - started) * 1000

        if assessment.requires_action:
            logger.warning(
                f"{assessment.level.value} risk login for user {login_event.user_id} "
                f"from {login_event.ip}: score={assessment.score}",
                extra={
                    "event_id": login_event.event_id,
                    "user_id": login_event.user_id,
                    "ip": login_event.ip,
                    "factors": assessment.factors,
                },
            )
        else:
            logger.debug(
                f"Assessed login {login_event.event_id}: {assessment.level.value} ({assessment.score})"
            )

        self._record_metric(lambda m: m.record_assessment(assessment, latency_ms))
        return assessment

    def run_sweep(
        self,
        window: Optional[timedelta] = None,
        now: Optional[datetime] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SweepReport:
        """Sweep recent history for aggregate attack patterns.

        Args:
            window: Window length. Uses the configured sweep window if not provided.
            now: Window end. Uses the current UTC time if not provided.
            cancel_event: Set to stop the sweep cooperatively

        Returns:
            SweepReport; call raise_for_errors() to turn detector failures
            into SweepPartialFailure

        Raises:
            StoreUnavailable: If the window cannot be fetched
        """
        window = window or self.sweep_window
        now = _require_aware(now, "now") if now is not None else datetime.now(timezone.utc)

        report = self.sweeper.sweep(
            window, now, cancel_event=cancel_event, timeout=self.sweep_timeout
        )
        self._record_metric(lambda m: m.record_sweep(report))
        return report

    def purge_expired(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Apply the retention policy to both stores.

        Events older than 90 days and fingerprints older than 30 days
        are removed.

        Returns:
            Number of records removed per store
        """
        now = _require_aware(now, "now") if now is not None else datetime.now(timezone.utc)
        removed = {
            "events": self.event_store.prune(
                now - timedelta(days=StoreConstants.EVENT_RETENTION_DAYS)
            ),
            "fingerprints": self.fingerprint_store.prune(
                now - timedelta(days=StoreConstants.FINGERPRINT_RETENTION_DAYS)
            ),
        }
        logger.info(
            f"Retention purge removed {removed['events']} events and "
            f"{removed['fingerprints']} fingerprints"
        )
        return removed

    def shutdown(self) -> None:
        """Flush metrics and stop the alert sink."""
        self.sweeper.sink.shutdown()
        if self.metrics is not None:
            try:
                self.metrics.shutdown()
            except IOError as e:
                logger.error(f"Failed to flush metrics on shutdown: {e}")
        logger.info("RiskEngine shutdown complete")

    def _coerce_event(self, event: Union[LoginEvent, Mapping[str, Any]]) -> LoginEvent:
        if isinstance(event, LoginEvent):
            return event
        if not isinstance(event, Mapping):
            raise InvalidEvent(
                "Login event must be a LoginEvent or a mapping",
                details={"received": type(event).__name__},
            )
        try:
            return LoginEvent.model_validate(dict(event))
        except ValidationError as e:
            raise InvalidEvent(
                f"Invalid login event: {e.error_count()} error(s)",
                details={
                    "errors": e.errors(
                        include_url=False, include_context=False, include_input=False
                    )
                },
            ) from e

    def _record_metric(self, record) -> None:
        if self.metrics is None:
            return
        try:
            record(self.metrics)
        except IOError as e:
            # Metrics never fail an assessment or a sweep
            logger.error(f"Failed to record metrics: {e}")
