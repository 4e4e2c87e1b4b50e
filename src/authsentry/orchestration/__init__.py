"""Orchestration - the RiskEngine facade."""

from authsentry.orchestration.engine import RiskEngine

__all__ = ["RiskEngine"]
