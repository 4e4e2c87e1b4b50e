"""Per-event risk scoring - rule table, predicates and scorer."""

from authsentry.scoring.rules import DEFAULT_WEIGHTS, RULE_ORDER, RiskRules, load_rules
from authsentry.scoring.predicates import (
    DeviceMismatchPredicate,
    GeoIPProvider,
    GeoPoint,
    ImpossibleTravelPredicate,
    RulePredicate,
    StaticGeoIPProvider,
    haversine_km,
    never,
)
from authsentry.scoring.analyzer import SecurityAnalyzer
from authsentry.scoring.scorer import RiskScorer

__all__ = [
    "DEFAULT_WEIGHTS",
    "RULE_ORDER",
    "RiskRules",
    "load_rules",
    "DeviceMismatchPredicate",
    "GeoIPProvider",
    "GeoPoint",
    "ImpossibleTravelPredicate",
    "RulePredicate",
    "StaticGeoIPProvider",
    "haversine_km",
    "never",
    "SecurityAnalyzer",
    "RiskScorer",
]
