"""
BlitzWatch - Moderation Module
License plate detection, profanity filtering and the publication gate.
"""

from blitzwatch.moderation.plates import (
    extract_plates,
    format_plate,
    is_landshut_plate,
    is_valid_plate,
)
from blitzwatch.moderation.profanity import (
    contains_disallowed,
    redact,
)
from blitzwatch.moderation.gate import (
    DetectionResult,
    ModerationGate,
    ReportSubmission,
    SubmissionState,
)

__all__ = [
    # Plates
    "extract_plates",
    "format_plate",
    "is_landshut_plate",
    "is_valid_plate",
    # Profanity
    "contains_disallowed",
    "redact",
    # Gate
    "DetectionResult",
    "ModerationGate",
    "ReportSubmission",
    "SubmissionState",
]
