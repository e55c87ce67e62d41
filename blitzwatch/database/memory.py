"""
In-process report and message store
Same contract as the SQL store, with change fan-out to subscribers
"""

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Set

from blitzwatch.core.constants import VOTE_THRESHOLD
from blitzwatch.core.errors import StoreError
from blitzwatch.crowdsource.models import ChatMessage, Report, ReportKind, Unsubscribe
from blitzwatch.database.changes import ChangeFeed

logger = logging.getLogger(__name__)


class InMemoryReportStore:
    """
    Report and message store held in memory.

    Subscribers are notified synchronously, in write order, after each
    write. Every operation yields to the event loop once so that
    concurrent callers interleave the way they would against a remote
    store. ``fail_next`` makes the next call of an operation raise
    StoreError.
    """

    def __init__(self):
        self.changes = ChangeFeed()
        self._reports: Dict[str, Report] = {}
        self._messages: Dict[str, ChatMessage] = {}
        self._last_created: Optional[datetime] = None
        self._failures: Set[str] = set()

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    async def insert(
        self,
        kind: ReportKind,
        street: str,
        description: Optional[str],
        encoded_location: str,
        vote_count: int,
        author_id: Optional[str],
        license_plate: Optional[str] = None,
    ) -> Report:
        await self._enter("insert")

        report = Report(
            id=str(uuid.uuid4()),
            kind=kind,
            street=street,
            description=description,
            location=encoded_location,
            vote_count=vote_count,
            created_at=self._timestamp(),
            author_id=author_id,
            license_plate=license_plate,
        )
        self._reports[report.id] = report

        self.changes.report_inserted(report)
        return report

    async def fetch(self, report_id: str) -> Optional[Report]:
        await self._enter("fetch")
        return self._reports.get(report_id)

    async def update_vote_count(self, report_id: str, new_count: int) -> Optional[Report]:
        await self._enter("update_vote_count")

        current = self._reports.get(report_id)
        if current is None:
            logger.debug(f"Vote update for missing report {report_id}")
            return None

        report = replace(current, vote_count=new_count)
        self._reports[report_id] = report

        self.changes.report_updated(report)
        return report

    async def delete(self, report_id: str) -> None:
        await self._enter("delete")

        if self._reports.pop(report_id, None) is None:
            return

        self.changes.report_deleted(report_id)

    async def list_recent(self, limit: int) -> List[Report]:
        await self._enter("list_recent")

        active = [r for r in self._reports.values() if r.vote_count < VOTE_THRESHOLD]
        active.sort(key=lambda r: r.created_at, reverse=True)
        return active[:limit]

    def subscribe(
        self,
        on_insert: Callable[[Report], None],
        on_update: Callable[[Report], None],
        on_delete: Callable[[str], None],
    ) -> Unsubscribe:
        return self.changes.subscribe(on_insert, on_update, on_delete)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    async def insert_message(self, author_id: str, text: str) -> ChatMessage:
        await self._enter("insert_message")

        message = ChatMessage(
            id=str(uuid.uuid4()),
            text=text,
            author_id=author_id,
            created_at=self._timestamp(),
        )
        self._messages[message.id] = message

        self.changes.message_inserted(message)
        return message

    async def list_recent_messages(self, limit: int) -> List[ChatMessage]:
        await self._enter("list_recent_messages")

        recent = sorted(self._messages.values(), key=lambda m: m.created_at, reverse=True)
        return recent[:limit]

    def subscribe_messages(self, on_insert: Callable[[ChatMessage], None]) -> Unsubscribe:
        return self.changes.subscribe_messages(on_insert)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def fail_next(self, operation: str) -> None:
        """Make the next call of ``operation`` raise StoreError."""
        self._failures.add(operation)

    async def _enter(self, operation: str) -> None:
        await asyncio.sleep(0)
        if operation in self._failures:
            self._failures.discard(operation)
            logger.debug(f"Injected failure: {operation}")
            raise StoreError(f"{operation} failed")

    def _timestamp(self) -> datetime:
        # strictly increasing, so insertion order is also creation order
        now = datetime.now(timezone.utc)
        if self._last_created is not None and now <= self._last_created:
            now = self._last_created + timedelta(microseconds=1)
        self._last_created = now
        return now
