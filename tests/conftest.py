"""
Pytest configuration and fixtures
"""
import pytest
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from blitzwatch.core.geo_codec import GeoPoint
from blitzwatch.crowdsource.feed import CommunityFeed
from blitzwatch.crowdsource.lifecycle import ReportLifecycle
from blitzwatch.crowdsource.models import Report, ReportInput, ReportKind
from blitzwatch.database.memory import InMemoryReportStore
from blitzwatch.moderation.gate import ModerationGate


@pytest.fixture
def store():
    """In-memory store with spies on the write operations."""
    store = InMemoryReportStore()
    store.insert = AsyncMock(wraps=store.insert)
    store.update_vote_count = AsyncMock(wraps=store.update_vote_count)
    store.delete = AsyncMock(wraps=store.delete)
    store.insert_message = AsyncMock(wraps=store.insert_message)
    return store


@pytest.fixture
def device_location():
    """Device location inside Landshut."""
    return GeoPoint(latitude=48.54, longitude=12.15)


@pytest.fixture
def lifecycle(store, device_location):
    """Lifecycle whose device location is always available."""
    async def locate():
        return device_location

    return ReportLifecycle(store, location_provider=locate)


@pytest.fixture
def feed(store):
    return CommunityFeed(store)


@pytest.fixture
def gate(lifecycle, feed):
    return ModerationGate(lifecycle, feed)


@pytest.fixture
def camera_input():
    """Fixed camera report without description."""
    return ReportInput(kind=ReportKind.FIXED_CAMERA, street="Altstadt 15")


@pytest.fixture
def patrol_input():
    """Civilian patrol report naming a plate."""
    return ReportInput(
        kind=ReportKind.CIVILIAN_PATROL,
        street="Niedermayerstraße",
        description="Zivil in LA-AB 1234 gesehen",
        author_id="user-1",
    )


@pytest.fixture
def make_report():
    """Factory for reports with ascending creation times."""
    base = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)

    def _make(report_id: str, votes: int = 0, minutes: int = 0, **kwargs) -> Report:
        return Report(
            id=report_id,
            kind=kwargs.pop("kind", ReportKind.FIXED_CAMERA),
            street=kwargs.pop("street", "Altstadt 15"),
            location=kwargs.pop("location", "POINT(12.1511 48.5376)"),
            vote_count=votes,
            created_at=base + timedelta(minutes=minutes),
            **kwargs
        )

    return _make
