"""
German license plate detection.

Scans free text for strings following the national plate grammar
(district code, hyphen, letters, digits, optional E/H suffix) so that a
report naming a civilian patrol car can be held for confirmation.
"""

import re
from typing import Any, List

from blitzwatch.core.constants import LANDSHUT_PREFIXES

# Format: XX-YY 1234, X-YY 1234 or XXX-Y 1234, with optional E (electric)
# or H (historic) suffix
GERMAN_PLATE_REGEX = re.compile(
    r"^[A-ZÄÖÜ]{1,3}-[A-ZÄÖÜ]{1,2}\s?[0-9]{1,4}[EH]?$",
    re.IGNORECASE,
)

_FORMAT_REGEX = re.compile(r"([A-ZÄÖÜ]+)-([A-ZÄÖÜ]+)\s*([0-9]+)", re.IGNORECASE)


def is_valid_plate(plate: Any) -> bool:
    """Whole-string match against the plate grammar."""
    if not plate or not isinstance(plate, str):
        return False

    return GERMAN_PLATE_REGEX.match(plate.strip().upper()) is not None


def is_landshut_plate(plate: Any) -> bool:
    """Check whether a valid plate belongs to a Landshut-area district."""
    if not is_valid_plate(plate):
        return False

    prefix = plate.strip().split("-")[0].upper()
    return prefix in LANDSHUT_PREFIXES


def extract_plates(text: Any) -> List[str]:
    """
    Find every plate mentioned in a piece of text.

    Each whitespace-separated word is tested on its own and joined with
    its right neighbour, which catches "LA-AB 1234" written with a space.
    Results are uppercase, deduplicated, in order of first occurrence.

    Args:
        text: Free text, e.g. a report description

    Returns:
        List of detected plates
    """
    if not text or not isinstance(text, str):
        return []

    words = text.upper().split()
    plates: List[str] = []

    for i, word in enumerate(words):
        if GERMAN_PLATE_REGEX.match(word):
            plates.append(word)

        if i < len(words) - 1:
            combined = f"{word} {words[i + 1]}"
            if GERMAN_PLATE_REGEX.match(combined):
                plates.append(combined)

    return list(dict.fromkeys(plates))


def format_plate(plate: Any) -> str:
    """
    Normalize a plate to uppercase with one space before the digits.

    >>> format_plate("la-ab1234")
    'LA-AB 1234'
    """
    if not plate or not isinstance(plate, str):
        return ""

    formatted = plate.strip().upper()
    return _FORMAT_REGEX.sub(r"\1-\2 \3", formatted, count=1)
