"""Signature tables for user-agent classification.

Each table is an ordered list of (pattern, label) pairs evaluated
first-match-wins. New signatures are added here, not in code.
"""

import re
from typing import List, Tuple

SignatureTable = List[Tuple[re.Pattern, str]]


def _table(entries: List[Tuple[str, str]], flags: int = 0) -> SignatureTable:
    return [(re.compile(pattern, flags), label) for pattern, label in entries]


# Edge agents also carry "Chrome/", and Chrome agents also carry "Safari/".
# The more specific token is listed first on purpose; checking Chrome first
# would report every Edge agent as Chrome.
BROWSER_SIGNATURES: SignatureTable = _table([
    (r"Edge|Edg/", "Edge"),
    (r"Chrome|CriOS", "Chrome"),
    (r"Firefox|FxiOS", "Firefox"),
    (r"Safari", "Safari"),
])

# Android agents also carry "Linux", and iOS agents carry "like Mac OS X".
# Mobile platforms come before the desktop ones for the same reason.
OS_SIGNATURES: SignatureTable = _table([
    (r"Android", "Android"),
    (r"iPhone|iPad", "iOS"),
    (r"Windows", "Windows"),
    (r"Mac", "macOS"),
    (r"Linux", "Linux"),
])

MOBILE_PATTERN = re.compile(r"Mobile|Android|iPhone|iPad")
TABLET_PATTERN = re.compile(r"iPad|Tablet")

DEVICE_TYPE_SIGNATURES: SignatureTable = [
    (MOBILE_PATTERN, "Mobile"),
    (TABLET_PATTERN, "Tablet"),
]

BOT_SIGNATURES: SignatureTable = _table([
    (r"bot", "bot"),
    (r"crawler", "crawler"),
    (r"spider", "spider"),
    (r"scraper", "scraper"),
], flags=re.IGNORECASE)

# Automation tooling that is not a crawler but rarely a human login
TOOL_SIGNATURES: SignatureTable = _table([
    (r"curl", "curl"),
    (r"wget", "wget"),
    (r"python", "python"),
    (r"java", "java"),
], flags=re.IGNORECASE)

UNKNOWN = "Unknown"
DEFAULT_DEVICE_TYPE = "Desktop"
