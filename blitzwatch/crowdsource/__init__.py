"""
BlitzWatch - Crowdsource Module
Sighting reports, their vote-driven lifecycle and the community feed.
"""

from blitzwatch.crowdsource.models import (
    ChatMessage,
    ChangeEvent,
    Deleted,
    Inserted,
    MessageStore,
    Report,
    ReportInput,
    ReportKind,
    ReportStore,
    Updated,
)
from blitzwatch.crowdsource.lifecycle import ReportLifecycle
from blitzwatch.crowdsource.feed import CommunityFeed

__all__ = [
    # Models
    "Report",
    "ReportKind",
    "ReportInput",
    "ChatMessage",
    "ChangeEvent",
    "Inserted",
    "Updated",
    "Deleted",
    "ReportStore",
    "MessageStore",
    # Lifecycle
    "ReportLifecycle",
    # Feed
    "CommunityFeed",
]
