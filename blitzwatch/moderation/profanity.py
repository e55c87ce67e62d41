"""
Profanity filter for community messages.

Best-effort screen against a fixed list of German insults; it is not
exhaustive and makes no promise of decency.
"""

import re
from typing import List, Optional, Pattern

DISALLOWED_TERMS: List[str] = [
    "arschloch",
    "scheiße",
    "scheisse",
    "fick",
    "hurensohn",
    "wichser",
    "fotze",
    "nutte",
    "bastard",
    "idiot",
    "vollpfosten",
]

DEFAULT_MASK = "*"

_PATTERNS: List[Pattern] = [
    re.compile(re.escape(term), re.IGNORECASE) for term in DISALLOWED_TERMS
]


def contains_disallowed(text: Optional[str]) -> bool:
    """Return True if any disallowed term occurs in the text."""
    if not text:
        return False

    return any(pattern.search(text) for pattern in _PATTERNS)


def redact(text: Optional[str], mask: str = DEFAULT_MASK) -> Optional[str]:
    """
    Mask every disallowed term with a run of the mask character.

    The result has the same length as the input and untouched text keeps
    its position. Redacting twice gives the same result as redacting once.

    Args:
        text: Text to filter
        mask: Single non-alphanumeric mask character

    Returns:
        Redacted text (None and empty strings pass through)
    """
    if len(mask) != 1 or mask.isalnum():
        raise ValueError(f"Mask must be a single non-alphanumeric character: {mask!r}")

    if not text:
        return text

    filtered = text
    for pattern in _PATTERNS:
        filtered = pattern.sub(lambda match: mask * len(match.group(0)), filtered)

    return filtered
