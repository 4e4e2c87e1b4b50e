"""User-agent signal extraction.

Pure functions over the raw User-Agent string. Total over any input,
including the empty string.
"""

from typing import List

from pydantic import BaseModel, Field

from authsentry.signals.signatures import (
    BOT_SIGNATURES,
    BROWSER_SIGNATURES,
    DEFAULT_DEVICE_TYPE,
    DEVICE_TYPE_SIGNATURES,
    MOBILE_PATTERN,
    OS_SIGNATURES,
    TOOL_SIGNATURES,
    UNKNOWN,
    SignatureTable,
)


class UserAgentProfile(BaseModel):
    """Normalized classification of a User-Agent string."""

    browser: str = Field(default=UNKNOWN)
    os: str = Field(default=UNKNOWN)
    device_type: str = Field(default=UNKNOWN)
    is_mobile: bool = Field(default=False)
    is_bot: bool = Field(default=False)

    model_config = {"frozen": True}


def first_match(user_agent: str, table: SignatureTable, default: str = UNKNOWN) -> str:
    """Return the label of the first signature that matches, else default."""
    for pattern, label in table:
        if pattern.search(user_agent):
            return label
    return default


def matched_signatures(user_agent: str, table: SignatureTable) -> List[str]:
    """Return every label in the table whose pattern matches."""
    return [label for pattern, label in table if pattern.search(user_agent)]


def is_bot(user_agent: str) -> bool:
    """Known crawler/bot tokens, case-insensitive."""
    return bool(user_agent) and any(p.search(user_agent) for p, _ in BOT_SIGNATURES)


def is_suspicious_agent(user_agent: str) -> bool:
    """Bot tokens plus scripted HTTP clients (curl, wget, python, java)."""
    if not user_agent:
        return False
    return is_bot(user_agent) or any(p.search(user_agent) for p, _ in TOOL_SIGNATURES)


def classify(user_agent: str) -> UserAgentProfile:
    """Classify a User-Agent string into browser, OS and device type.

    Blank input classifies as Unknown across the board and never as a bot.
    """
    if not user_agent or not user_agent.strip():
        return UserAgentProfile()

    return UserAgentProfile(
        browser=first_match(user_agent, BROWSER_SIGNATURES),
        os=first_match(user_agent, OS_SIGNATURES),
        device_type=first_match(user_agent, DEVICE_TYPE_SIGNATURES, DEFAULT_DEVICE_TYPE),
        is_mobile=bool(MOBILE_PATTERN.search(user_agent)),
        is_bot=is_bot(user_agent),
    )


def agent_family(user_agent: str) -> str:
    """First whitespace-delimited token, used for coarse agent similarity."""
    tokens = user_agent.split()
    return tokens[0] if tokens else ""


def similar_agents(first: str, second: str) -> bool:
    """Two agents are similar when their first tokens are equal."""
    return agent_family(first) == agent_family(second)
