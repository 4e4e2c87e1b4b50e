"""Security analyzer - advisory anomalies attached to an assessment.

Anomalies explain what looked odd about an event. They never change the
score or the level.
"""

from typing import Dict, List

from authsentry.common.constants import AnalysisConstants
from authsentry.data.schemas.baseline import UserBaseline
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.scoring.predicates import (
    RulePredicate,
    device_mismatch,
    evaluate_predicate,
    never,
)
from authsentry.signals.signatures import BOT_SIGNATURES, TOOL_SIGNATURES
from authsentry.signals.user_agent import classify, is_suspicious_agent, matched_signatures


SUSPICIOUS_USER_AGENT = "Suspicious user agent pattern"
UNUSUAL_FREQUENCY = "Unusual login frequency"
GEOGRAPHIC_ANOMALY = "Geographic anomaly"
DEVICE_MISMATCH = "Device fingerprint mismatch"


class SecurityAnalyzer:
    """Collects advisory anomalies for a single event."""

    def __init__(
        self,
        geographic_anomaly: RulePredicate = never,
        frequency_threshold: int = AnalysisConstants.UNUSUAL_FREQUENCY_THRESHOLD,
    ):
        self.geographic_anomaly = geographic_anomaly
        self.frequency_threshold = frequency_threshold

    def detect_anomalies(self, event: LoginEvent, baseline: UserBaseline) -> List[str]:
        """Return anomaly descriptions in a fixed order.

        Raises:
            StoreUnavailable: If the geographic provider could not answer
        """
        anomalies: List[str] = []

        if is_suspicious_agent(event.user_agent):
            anomalies.append(SUSPICIOUS_USER_AGENT)

        if self._unusual_frequency(baseline):
            anomalies.append(UNUSUAL_FREQUENCY)

        geographic = evaluate_predicate(
            "geographic_anomaly", self.geographic_anomaly, event, baseline
        )
        if geographic:
            anomalies.append(GEOGRAPHIC_ANOMALY)

        if device_mismatch(event, baseline):
            anomalies.append(DEVICE_MISMATCH)

        return anomalies

    def _unusual_frequency(self, baseline: UserBaseline) -> bool:
        if baseline.velocity is None:
            return False
        return baseline.velocity.user_attempts_last_hour > self.frequency_threshold

    def analyze_user_agent(self, user_agent: str) -> Dict[str, object]:
        """Classification plus the signatures behind a suspicious verdict."""
        profile = classify(user_agent)
        return {
            **profile.model_dump(),
            "is_suspicious": is_suspicious_agent(user_agent),
            "matched_signatures": (
                matched_signatures(user_agent, BOT_SIGNATURES)
                + matched_signatures(user_agent, TOOL_SIGNATURES)
            ),
        }
