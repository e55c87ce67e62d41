"""
BlitzWatch - Geospatial Point Codec
Encodes coordinates to and from the store's ``POINT(<lon> <lat>)`` text.
"""

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional, Tuple

_NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"

# Longitude first, as stored by PostGIS. An EWKT "SRID=4326;" prefix is tolerated.
POINT_PATTERN = re.compile(
    rf"^\s*(?:SRID=\d+\s*;\s*)?POINT\s*\(\s*({_NUMBER})\s+({_NUMBER})\s*\)\s*$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class GeoPoint:
    """Geographic point with latitude and longitude."""
    latitude: float
    longitude: float

    def to_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def to_tuple_lonlat(self) -> Tuple[float, float]:
        """Return as (longitude, latitude) for GeoJSON compatibility."""
        return (self.longitude, self.latitude)


def format_coordinate(value: float) -> str:
    """
    Render a coordinate in shortest round-trip decimal form.

    Integral values drop the trailing ``.0`` so that ``12.0`` is written as
    ``12``, matching the text the store produces.
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Coordinate must be finite: {value}")
    if value == 0:
        return "0"
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))

    text = repr(value)
    if "e" in text or "E" in text:
        # plain decimal notation, never exponent form
        text = format(Decimal(text), "f")
    return text


def encode(latitude: float, longitude: float) -> str:
    """
    Encode a coordinate pair as point text.

    Args:
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees

    Returns:
        Text of the form ``POINT(<lon> <lat>)``
    """
    return f"POINT({format_coordinate(longitude)} {format_coordinate(latitude)})"


def encode_point(point: GeoPoint) -> str:
    """Encode a GeoPoint as point text."""
    return encode(point.latitude, point.longitude)


def decode(text: Any) -> Optional[GeoPoint]:
    """
    Parse point text back into a GeoPoint.

    Range checking is left to the map renderer.

    Args:
        text: Point text, possibly missing or malformed

    Returns:
        GeoPoint, or None when the input does not match the grammar
    """
    if not text or not isinstance(text, str):
        return None

    match = POINT_PATTERN.match(text)
    if not match:
        return None

    longitude = float(match.group(1))
    latitude = float(match.group(2))
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None

    return GeoPoint(latitude=latitude, longitude=longitude)
