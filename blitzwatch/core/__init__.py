"""
BlitzWatch - Core Utilities
Central configuration, policy constants, errors and the point codec.
"""

from blitzwatch.core.config import settings
from blitzwatch.core.constants import (
    VOTE_THRESHOLD,
    RECENT_FETCH_LIMIT,
    MESSAGE_FETCH_LIMIT,
    FALLBACK_COORDS,
)
from blitzwatch.core.errors import (
    BlitzWatchError,
    ValidationError,
    NotFoundError,
    StoreError,
    ModerationBlocked,
    ModerationPending,
    IdentityRequiredError,
)
from blitzwatch.core.geo_codec import GeoPoint, encode, decode

__all__ = [
    "settings",
    "VOTE_THRESHOLD",
    "RECENT_FETCH_LIMIT",
    "MESSAGE_FETCH_LIMIT",
    "FALLBACK_COORDS",
    "BlitzWatchError",
    "ValidationError",
    "NotFoundError",
    "StoreError",
    "ModerationBlocked",
    "ModerationPending",
    "IdentityRequiredError",
    "GeoPoint",
    "encode",
    "decode",
]
