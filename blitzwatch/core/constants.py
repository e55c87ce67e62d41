"""
BlitzWatch - Constants and Policy Values
Fixed policy values shared by the report lifecycle and moderation gates.
"""

from typing import List, Tuple

# =============================================================================
# REPORT LIFECYCLE
# =============================================================================

# Votes after which a report is presumed stale and removed
VOTE_THRESHOLD: int = 15

# Size of the full fetch used to (re)build the local report cache
RECENT_FETCH_LIMIT: int = 100

# Size of the community feed history fetch
MESSAGE_FETCH_LIMIT: int = 100

# Deleted report ids remembered to ignore late change events
TOMBSTONE_LIMIT: int = 1000

# =============================================================================
# GEOGRAPHIC DEFAULTS
# =============================================================================

# Fallback submission coordinate for the served area, Landshut (lat, lon)
FALLBACK_COORDS: Tuple[float, float] = (48.5376, 12.1511)

# Spatial reference of persisted points (WGS 84)
SRID: int = 4326

# =============================================================================
# LICENSE PLATES
# =============================================================================

# District codes of Landshut and its neighbouring districts
LANDSHUT_PREFIXES: List[str] = [
    "LA", "DGF", "VIB", "MAI", "KEH", "MAL", "ROT", "VIT",
]

# =============================================================================
# NOTIFICATIONS
# =============================================================================

NEW_REPORT_TITLE: str = "📸 Neuer Blitzer"
NO_DETAILS_TEXT: str = "Kein Zusatz"
ANONYMOUS_AUTHOR: str = "Anonym"
