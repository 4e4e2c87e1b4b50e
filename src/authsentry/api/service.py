"""Risk Service - glue between the API layer and the RiskEngine.

Transforms request schemas into domain objects and owns the optional
sweep scheduler, so the gateway never touches engine internals.
"""

import logging
from datetime import timedelta
from typing import Optional

from authsentry.api.schemas import (
    AssessRiskRequest,
    FingerprintRequest,
    LoginEventRequest,
    SweepRequest,
)
from authsentry.common.config.settings import Config, get_config
from authsentry.data.schemas.alert import SweepReport
from authsentry.data.schemas.device_fingerprint import DeviceFingerprint
from authsentry.data.schemas.risk_assessment import RiskAssessment
from authsentry.orchestration.engine import RiskEngine
from authsentry.sweeper.scheduler import SweepScheduler

logger = logging.getLogger(__name__)


class RiskService:
    """Service for scoring logins and running sweeps over HTTP."""

    def __init__(
        self,
        engine: Optional[RiskEngine] = None,
        config: Optional[Config] = None,
    ):
        """Initialize the service.

        Args:
            engine: Risk engine. Built from configuration if not provided.
            config: Configuration. Uses the global config if not provided.
        """
        self.config = config or get_config()
        self.engine = engine or RiskEngine.from_config(self.config)
        self.scheduler: Optional[SweepScheduler] = None

    def start_scheduler(self) -> None:
        """Start hourly (or configured) sweeps in the background."""
        if self.scheduler is None:
            self.scheduler = SweepScheduler(
                self.engine.run_sweep,
                interval_seconds=self.config.sweep_interval_seconds,
            )
        self.scheduler.start()

    def shutdown(self) -> None:
        """Stop the scheduler and flush the engine's sinks."""
        if self.scheduler is not None:
            self.scheduler.stop(timeout=self.config.sweep_timeout_seconds)
        self.engine.shutdown()
        logger.info("RiskService shutdown complete")

    def assess(self, request: AssessRiskRequest) -> RiskAssessment:
        """Score an event; optionally record it afterwards.

        Raises:
            InvalidEvent: If the event is malformed
            StoreUnavailable: If history cannot be read in time
        """
        event = request.event.model_dump()
        assessment = self.engine.assess_risk(event, now=request.now)

        if request.record:
            self.engine.record_event(event)

        return assessment

    def record_event(self, request: LoginEventRequest) -> str:
        return self.engine.record_event(request.model_dump())

    def record_fingerprint(self, request: FingerprintRequest) -> str:
        """Hash the payload and store the fingerprint.

        Raises:
            DuplicateFingerprint: If a fingerprint with the same hash already exists
        """
        fingerprint = DeviceFingerprint.from_payload(
            request.payload,
            ip=request.ip,
            user_agent=request.user_agent,
            created_at=request.created_at,
            user_id=request.user_id,
            session_id=request.session_id,
        )
        return self.engine.record_fingerprint(fingerprint)

    def sweep(self, request: SweepRequest) -> SweepReport:
        """Run a sweep on demand.

        Raises:
            SweepPartialFailure: If raise_on_errors is set and a detector failed
        """
        window = timedelta(minutes=request.window_minutes) if request.window_minutes else None
        report = self.engine.run_sweep(window=window, now=request.now)
        if request.raise_on_errors:
            report.raise_for_errors()
        return report
