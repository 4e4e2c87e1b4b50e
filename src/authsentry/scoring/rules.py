"""Rule table - weights, windows and thresholds for scoring and sweeping.

Loaded from config/risk_rules.yaml and validated with Pydantic. The built-in
defaults reproduce the shipped YAML so the engine also runs without it.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from authsentry.common.constants import BaselineConstants
from authsentry.common.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


# Rule names, in evaluation order
UNUSUAL_IP = "unusual_ip"
UNUSUAL_USER_AGENT = "unusual_user_agent"
RAPID_ATTEMPTS = "rapid_attempts"
RECENT_IP_FAILURES = "recent_ip_failures"
FINGERPRINT_CHANGED = "fingerprint_changed"
UNUSUAL_TIME = "unusual_time"

RULE_ORDER: Tuple[str, ...] = (
    UNUSUAL_IP,
    UNUSUAL_USER_AGENT,
    RAPID_ATTEMPTS,
    RECENT_IP_FAILURES,
    FINGERPRINT_CHANGED,
    UNUSUAL_TIME,
)

DEFAULT_WEIGHTS: Dict[str, float] = {
    UNUSUAL_IP: 0.3,
    UNUSUAL_USER_AGENT: 0.2,
    RAPID_ATTEMPTS: 0.4,
    RECENT_IP_FAILURES: 0.3,
    FINGERPRINT_CHANGED: 0.2,
    UNUSUAL_TIME: 0.1,
}


class RulesMetadata(BaseModel):
    version: str = Field(default="1.0.0")
    description: Optional[str] = Field(default=None)


class RuleWindows(BaseModel):
    """Windows and thresholds the per-event rules evaluate against."""
    rapid_attempts_minutes: int = Field(default=5, ge=1)
    rapid_attempts_threshold: int = Field(default=3, ge=0, description="Fires when count exceeds this")
    ip_failures_minutes: int = Field(default=60, ge=1)
    ip_failures_threshold: int = Field(default=2, ge=0, description="Fires when count exceeds this")
    user_agent_days: int = Field(default=BaselineConstants.USER_AGENT_WINDOW_DAYS, ge=1)
    unusual_hour_start: int = Field(default=2, ge=0, le=23)
    unusual_hour_end: int = Field(default=6, ge=0, le=23, description="Inclusive")


class LevelThresholds(BaseModel):
    """Lower bounds of each level bracket; low starts at 0."""
    medium: float = Field(default=0.3, ge=0.0, le=1.0)
    high: float = Field(default=0.6, ge=0.0, le=1.0)
    critical: float = Field(default=0.8, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _ascending(self) -> "LevelThresholds":
        if not (self.medium <= self.high <= self.critical):
            raise ValueError("level thresholds must satisfy medium <= high <= critical")
        return self


class RecommendationThresholds(BaseModel):
    """Scores strictly above these trigger the matching recommendation."""
    step_up_above: float = Field(default=0.6, ge=0.0, le=1.0)
    block_above: float = Field(default=0.8, ge=0.0, le=1.0)


class BaselineWindows(BaseModel):
    behavior_days: int = Field(default=BaselineConstants.BEHAVIOR_WINDOW_DAYS, ge=1)
    fingerprint_days: int = Field(default=BaselineConstants.FINGERPRINT_WINDOW_DAYS, ge=1)


class SweepThresholds(BaseModel):
    """Detector thresholds; every detector fires when its count exceeds the threshold."""
    ip_flood_failures: int = Field(default=5, ge=0)
    ua_flood_events: int = Field(default=10, ge=0)
    brute_force_run_length: int = Field(default=10, ge=0)
    brute_force_max_minutes: int = Field(default=10, ge=1)
    account_takeover_users: int = Field(default=5, ge=0)


class RiskRules(BaseModel):
    """Complete rule table."""
    metadata: RulesMetadata = Field(default_factory=RulesMetadata)
    weights: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    windows: RuleWindows = Field(default_factory=RuleWindows)
    levels: LevelThresholds = Field(default_factory=LevelThresholds)
    recommendations: RecommendationThresholds = Field(default_factory=RecommendationThresholds)
    baseline: BaselineWindows = Field(default_factory=BaselineWindows)
    sweep: SweepThresholds = Field(default_factory=SweepThresholds)

    model_config = {"frozen": True}

    @field_validator("weights")
    @classmethod
    def _known_weights(cls, weights: Dict[str, float]) -> Dict[str, float]:
        unknown = set(weights) - set(RULE_ORDER)
        if unknown:
            raise ValueError(f"unknown rules in weight table: {sorted(unknown)}")
        negative = [name for name, weight in weights.items() if weight < 0]
        if negative:
            raise ValueError(f"weights must be non-negative: {sorted(negative)}")
        merged = dict(DEFAULT_WEIGHTS)
        merged.update(weights)
        return merged

    @property
    def version(self) -> str:
        return self.metadata.version

    def weight(self, rule: str) -> float:
        return self.weights[rule]


def load_rules(path: Optional[Path] = None, default_path: Optional[Path] = None) -> RiskRules:
    """Load and validate the rule table from YAML.

    An explicitly requested file must exist. When only the default location
    is given and the file is absent, the built-in defaults are used.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    if path is None:
        if default_path is None or not Path(default_path).exists():
            logger.info("No rule table file found, using built-in defaults")
            return RiskRules()
        path = Path(default_path)

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(
            f"Rule table not found: {path}", details={"path": str(path)}
        )

    try:
        with open(path, "r") as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Rule table is not valid YAML: {e}", details={"path": str(path)}
        ) from e

    try:
        rules = RiskRules.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigurationError(
            f"Rule table failed validation: {e.error_count()} error(s)",
            details={"path": str(path), "errors": e.errors(include_url=False, include_context=False)},
        ) from e

    logger.info(f"Loaded rule table version {rules.version} from {path}")
    return rules
