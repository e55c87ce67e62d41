"""
Report and chat data model for crowdsourced sightings
Types shared by the lifecycle, the community feed and the stores
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Union

from blitzwatch.core import geo_codec
from blitzwatch.core.constants import ANONYMOUS_AUTHOR, VOTE_THRESHOLD
from blitzwatch.core.geo_codec import GeoPoint


class ReportKind(Enum):
    """What was sighted. Values are the store's wire names."""
    FIXED_CAMERA = "blitzer"
    CIVILIAN_PATROL = "zivilstreife"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    raise ValueError(f"Invalid timestamp: {value!r}")


@dataclass(frozen=True)
class Report:
    """
    Sighting of a speed camera or civilian patrol car.

    Every field except ``vote_count`` is fixed once the store has
    created the record.
    """
    id: str
    kind: ReportKind
    street: str
    location: Optional[str]
    vote_count: int = 0
    description: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    author_id: Optional[str] = None
    license_plate: Optional[str] = None

    @property
    def point(self) -> Optional[GeoPoint]:
        """Decoded location, or None if it is missing or unparseable."""
        return geo_codec.decode(self.location)

    @property
    def is_retired(self) -> bool:
        return self.vote_count >= VOTE_THRESHOLD

    @property
    def vote_label(self) -> str:
        return f"{self.vote_count}/{VOTE_THRESHOLD} Votes"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a row using the store's column names."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "street": self.street,
            "description": self.description,
            "coordinates": self.location,
            "votes": self.vote_count,
            "user_id": self.author_id,
            "license_plate": self.license_plate,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        """Create a Report from a store row. Raises ValueError on bad rows."""
        if not data.get("id") or not data.get("street"):
            raise ValueError(f"Incomplete report row: {data!r}")

        votes = int(data.get("votes") or 0)
        if votes < 0:
            raise ValueError(f"Negative vote count: {votes}")

        return cls(
            id=str(data["id"]),
            kind=ReportKind(data.get("type")),
            street=data["street"],
            description=data.get("description"),
            location=data.get("coordinates"),
            vote_count=votes,
            created_at=_parse_timestamp(data.get("created_at") or _utcnow()),
            author_id=data.get("user_id"),
            license_plate=data.get("license_plate"),
        )


@dataclass
class ReportInput:
    """User input for a new report, before the store assigns an id."""
    kind: ReportKind
    street: str
    description: Optional[str] = None
    location: Optional[GeoPoint] = None  # explicit map tap, wins over device location
    author_id: Optional[str] = None
    license_plate: Optional[str] = None


@dataclass(frozen=True)
class ChatMessage:
    """Community feed entry. Text is stored already redacted."""
    id: str
    text: str
    author_id: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def author_label(self) -> str:
        if not self.author_id:
            return ANONYMOUS_AUTHOR
        return f"User {self.author_id[:6]}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.author_id,
            "message": self.text,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
        if not data.get("id") or data.get("message") is None:
            raise ValueError(f"Incomplete message row: {data!r}")

        return cls(
            id=str(data["id"]),
            text=data["message"],
            author_id=data.get("user_id"),
            created_at=_parse_timestamp(data.get("created_at") or _utcnow()),
        )


# =============================================================================
# CHANGE EVENTS
# =============================================================================

@dataclass(frozen=True)
class Inserted:
    report: Report


@dataclass(frozen=True)
class Updated:
    report: Report


@dataclass(frozen=True)
class Deleted:
    report_id: str


ChangeEvent = Union[Inserted, Updated, Deleted]

Unsubscribe = Callable[[], None]


# =============================================================================
# STORE CONTRACTS
# =============================================================================

class ReportStore(Protocol):
    """Persistent report collection with change notifications."""

    async def insert(
        self,
        kind: ReportKind,
        street: str,
        description: Optional[str],
        encoded_location: str,
        vote_count: int,
        author_id: Optional[str],
        license_plate: Optional[str] = None,
    ) -> Report: ...

    async def fetch(self, report_id: str) -> Optional[Report]: ...

    async def update_vote_count(self, report_id: str, new_count: int) -> Optional[Report]:
        """Set the count. Returns None if the report no longer exists."""

    async def delete(self, report_id: str) -> None: ...

    async def list_recent(self, limit: int) -> List[Report]: ...

    def subscribe(
        self,
        on_insert: Callable[[Report], None],
        on_update: Callable[[Report], None],
        on_delete: Callable[[str], None],
    ) -> Unsubscribe: ...


class MessageStore(Protocol):
    """Persistent community message collection with insert notifications."""

    async def insert_message(self, author_id: str, text: str) -> ChatMessage: ...

    async def list_recent_messages(self, limit: int) -> List[ChatMessage]: ...

    def subscribe_messages(self, on_insert: Callable[[ChatMessage], None]) -> Unsubscribe: ...


LocationProvider = Callable[[], Awaitable[Optional[GeoPoint]]]
