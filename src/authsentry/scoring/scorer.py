"""Risk Scorer - weighted rule evaluation for a single login event."""

from datetime import timezone
from typing import Callable, Dict, List, Optional

from authsentry.common.exceptions import InvalidEvent
from authsentry.data.schemas.baseline import UserBaseline
from authsentry.data.schemas.login_event import LoginEvent
from authsentry.data.schemas.risk_assessment import RiskAssessment, RiskLevel
from authsentry.scoring.analyzer import SecurityAnalyzer
from authsentry.scoring.predicates import RulePredicate, evaluate_predicate, never
from authsentry.scoring.rules import (
    FINGERPRINT_CHANGED,
    RAPID_ATTEMPTS,
    RECENT_IP_FAILURES,
    RULE_ORDER,
    UNUSUAL_IP,
    UNUSUAL_TIME,
    UNUSUAL_USER_AGENT,
    RiskRules,
)
from authsentry.signals.user_agent import similar_agents


STEP_UP_AUTH = "Require additional authentication (step-up)"
RATE_LIMIT = "Apply rate limiting to this account"
VERIFY_LOCATION = "Verify user location"
BLOCK_PENDING_REVIEW = "Block access pending manual review"

# Decimal places kept on the final score; cancels float drift at bracket edges
SCORE_PRECISION = 4


class RiskScorer:
    """Additive rule scorer.

    Each rule contributes its weight when it fires. The sum is clamped
    to 1.0, so several simultaneous triggers saturate quickly. The result
    is a pure function of (event, baseline, rule table).
    """

    def __init__(
        self,
        rules: Optional[RiskRules] = None,
        unusual_ip: RulePredicate = never,
        fingerprint_changed: RulePredicate = never,
        analyzer: Optional[SecurityAnalyzer] = None,
    ):
        """Initialize scorer.

        Args:
            rules: Rule table. Uses the built-in defaults if not provided.
            unusual_ip: Predicate backing the unusual_ip rule
            fingerprint_changed: Predicate backing the fingerprint_changed rule
            analyzer: Advisory anomaly detector. Uses the default if not provided.
        """
        self.rules = rules or RiskRules()
        self.analyzer = analyzer or SecurityAnalyzer()
        self._rules: Dict[str, Callable[[LoginEvent, UserBaseline], bool]] = {
            UNUSUAL_IP: unusual_ip,
            UNUSUAL_USER_AGENT: self._unusual_user_agent,
            RAPID_ATTEMPTS: self._rapid_attempts,
            RECENT_IP_FAILURES: self._recent_ip_failures,
            FINGERPRINT_CHANGED: fingerprint_changed,
            UNUSUAL_TIME: self._unusual_time,
        }

    def score(self, event: LoginEvent, baseline: UserBaseline) -> RiskAssessment:
        """Score one event against the user's baseline.

        Args:
            event: Validated login event
            baseline: Baseline built for this event (velocity counts included)

        Returns:
            RiskAssessment with score, level, factors and recommendations

        Raises:
            InvalidEvent: If the event or baseline is missing or malformed
        """
        if not isinstance(event, LoginEvent):
            raise InvalidEvent(
                "Expected a LoginEvent",
                details={"received": type(event).__name__},
            )
        if not isinstance(baseline, UserBaseline):
            raise InvalidEvent(
                "Expected a UserBaseline for the event",
                details={"received": type(baseline).__name__},
            )

        factors = self.evaluate(event, baseline)
        raw_score = sum(self.rules.weight(name) for name in factors)
        score = round(min(raw_score, 1.0), SCORE_PRECISION)

        return RiskAssessment(
            score=score,
            level=self.level_for(score),
            factors=factors,
            recommendations=self.recommend(score, factors),
            anomalies=self.analyzer.detect_anomalies(event, baseline),
            event_id=event.event_id,
            assessed_at=baseline.as_of,
        )

    def evaluate(self, event: LoginEvent, baseline: UserBaseline) -> List[str]:
        """Names of the rules that fire, in evaluation order.

        Raises:
            StoreUnavailable: If a rule predicate could not be evaluated
        """
        return [
            name for name in RULE_ORDER
            if evaluate_predicate(name, self._rules[name], event, baseline)
        ]

    def level_for(self, score: float) -> RiskLevel:
        levels = self.rules.levels
        if score >= levels.critical:
            return RiskLevel.CRITICAL
        if score >= levels.high:
            return RiskLevel.HIGH
        if score >= levels.medium:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def recommend(self, score: float, factors: List[str]) -> List[str]:
        thresholds = self.rules.recommendations
        recommendations: List[str] = []

        if score > thresholds.step_up_above:
            recommendations.append(STEP_UP_AUTH)
        if RAPID_ATTEMPTS in factors:
            recommendations.append(RATE_LIMIT)
        if UNUSUAL_IP in factors:
            recommendations.append(VERIFY_LOCATION)
        if score > thresholds.block_above:
            recommendations.append(BLOCK_PENDING_REVIEW)

        return recommendations

    # Built-in rules

    def _unusual_user_agent(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        # No history means nothing to compare against
        if not baseline.recent_user_agents:
            return False
        return not any(
            similar_agents(event.user_agent, agent)
            for agent in baseline.recent_user_agents
        )

    def _rapid_attempts(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        if baseline.velocity is None:
            return False
        return baseline.velocity.user_attempts > self.rules.windows.rapid_attempts_threshold

    def _recent_ip_failures(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        if baseline.velocity is None:
            return False
        return baseline.velocity.ip_failures > self.rules.windows.ip_failures_threshold

    def _unusual_time(self, event: LoginEvent, baseline: UserBaseline) -> bool:
        windows = self.rules.windows
        hour = event.timestamp.astimezone(timezone.utc).hour
        if windows.unusual_hour_start <= windows.unusual_hour_end:
            return windows.unusual_hour_start <= hour <= windows.unusual_hour_end
        # Range wraps past midnight
        return hour >= windows.unusual_hour_start or hour <= windows.unusual_hour_end
