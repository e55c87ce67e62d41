"""
SQLAlchemy models for BlitzWatch
Uses GeoAlchemy2 for PostGIS spatial types
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    CheckConstraint, Column, DateTime, Index, Integer, String, Text
)
from sqlalchemy.orm import declarative_base
from geoalchemy2 import Geometry
from geoalchemy2.shape import from_shape, to_shape
from shapely.geometry import Point

from blitzwatch.core import geo_codec
from blitzwatch.core.constants import SRID
from blitzwatch.crowdsource.models import ChatMessage, Report, ReportKind

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportRecord(Base):
    """
    Speed camera or patrol car sighting.

    Only ``votes`` changes after insert; rows reaching the vote threshold
    are deleted.
    """
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=_new_id)

    type = Column(String(20), nullable=False)
    street = Column(Text, nullable=False)
    description = Column(Text)
    license_plate = Column(String(20))

    # Location (PostGIS point)
    coordinates = Column(Geometry("POINT", srid=SRID, spatial_index=False), nullable=True)

    votes = Column(Integer, nullable=False, default=0)
    user_id = Column(String(36))
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("votes >= 0", name="ck_reports_votes_non_negative"),
        Index("idx_report_coordinates", coordinates, postgresql_using="gist"),
        Index("idx_report_created_at", created_at),
    )

    def __repr__(self):
        return f"<ReportRecord({self.id}, type={self.type}, votes={self.votes})>"

    @classmethod
    def from_input(
        cls,
        kind: ReportKind,
        street: str,
        description: Optional[str],
        encoded_location: str,
        vote_count: int,
        author_id: Optional[str],
        license_plate: Optional[str] = None,
    ) -> "ReportRecord":
        """Create a row from lifecycle input. Raises ValueError on bad point text."""
        point = geo_codec.decode(encoded_location)
        if point is None:
            raise ValueError(f"Invalid point text: {encoded_location!r}")

        return cls(
            type=kind.value,
            street=street,
            description=description,
            license_plate=license_plate,
            coordinates=from_shape(Point(point.longitude, point.latitude), srid=SRID),
            votes=vote_count,
            user_id=author_id,
        )

    def to_report(self) -> Report:
        """Convert to the lifecycle's Report."""
        location = None
        if self.coordinates is not None:
            shape = to_shape(self.coordinates)
            location = geo_codec.encode(shape.y, shape.x)

        return Report(
            id=self.id,
            kind=ReportKind(self.type),
            street=self.street,
            description=self.description,
            location=location,
            vote_count=self.votes or 0,
            created_at=self.created_at or _utcnow(),
            author_id=self.user_id,
            license_plate=self.license_plate,
        )


class MessageRecord(Base):
    """Community chat message, stored already redacted."""
    __tablename__ = "community_messages"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("idx_message_created_at", created_at),
    )

    def __repr__(self):
        return f"<MessageRecord({self.id}, user={self.user_id})>"

    def to_message(self) -> ChatMessage:
        return ChatMessage(
            id=self.id,
            text=self.message,
            author_id=self.user_id,
            created_at=self.created_at or _utcnow(),
        )
