"""Signal extractors - pure features derived from a raw event."""

from authsentry.signals.user_agent import (
    UserAgentProfile,
    agent_family,
    classify,
    is_bot,
    is_suspicious_agent,
    similar_agents,
)

__all__ = [
    "UserAgentProfile",
    "agent_family",
    "classify",
    "is_bot",
    "is_suspicious_agent",
    "similar_agents",
]
