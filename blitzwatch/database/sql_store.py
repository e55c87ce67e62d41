"""
PostgreSQL/PostGIS report store
Runs blocking SQLAlchemy sessions off the event loop and fans out changes
made through this store to its subscribers
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from blitzwatch.core.constants import VOTE_THRESHOLD
from blitzwatch.core.errors import StoreError
from blitzwatch.crowdsource.models import ChatMessage, Report, ReportKind, Unsubscribe
from .changes import ChangeFeed
from .connection import DatabaseConnection
from .models import MessageRecord, ReportRecord

logger = logging.getLogger(__name__)


class SqlReportStore:
    """
    Report and message store backed by PostgreSQL with PostGIS.

    Vote updates take a row lock and retire the row at the threshold in the
    same transaction. Deletes are idempotent and the recent
    listing never returns rows at or over the vote threshold, so a report
    whose delete has not landed yet is still never listed.
    """

    def __init__(self, db: DatabaseConnection):
        self.db = db
        self.changes = ChangeFeed()

    async def _run(self, action: str, fn: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            logger.error(f"Report store {action} failed: {e}")
            raise StoreError(f"{action} failed: {e}") from e
        except ValueError as e:
            raise StoreError(f"{action} rejected: {e}") from e

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
        report = await self._run(
            "insert", self._insert_sync,
            kind, street, description, encoded_location, vote_count, author_id, license_plate,
        )
        self.changes.report_inserted(report)
        return report

    def _insert_sync(self, *fields: Any) -> Report:
        with self.db.get_session() as session:
            record = ReportRecord.from_input(*fields)
            session.add(record)
            session.flush()
            return record.to_report()

    async def fetch(self, report_id: str) -> Optional[Report]:
        return await self._run("fetch", self._fetch_sync, report_id)

    def _fetch_sync(self, report_id: str) -> Optional[Report]:
        with self.db.get_session() as session:
            record = session.get(ReportRecord, report_id)
            return record.to_report() if record is not None else None

    async def update_vote_count(self, report_id: str, new_count: int) -> Optional[Report]:
        """
        Set the vote count under a row lock.

        A count at the vote threshold deletes the row in the same
        transaction, so concurrent voters crossing the threshold retire the
        report exactly once. Returns None if the row is already gone.
        """
        report, retired = await self._run("update", self._update_sync, report_id, new_count)
        if report is None:
            return None

        self.changes.report_updated(report)
        if retired:
            self.changes.report_deleted(report_id)
        return report

    def _update_sync(self, report_id: str, new_count: int) -> Tuple[Optional[Report], bool]:
        with self.db.get_session() as session:
            record = session.get(ReportRecord, report_id, with_for_update=True)
            if record is None:
                return None, False
            record.votes = new_count
            session.flush()
            report = record.to_report()

            retired = new_count >= VOTE_THRESHOLD
            if retired:
                session.delete(record)
            return report, retired

    async def delete(self, report_id: str) -> None:
        deleted = await self._run("delete", self._delete_sync, report_id)
        if deleted:
            self.changes.report_deleted(report_id)

    def _delete_sync(self, report_id: str) -> int:
        with self.db.get_session() as session:
            record = session.get(ReportRecord, report_id)
            if record is None:
                return 0
            session.delete(record)
            return 1

    async def list_recent(self, limit: int) -> List[Report]:
        return await self._run("list", self._list_sync, limit)

    def _list_sync(self, limit: int) -> List[Report]:
        query = (
            select(ReportRecord)
            .where(ReportRecord.votes < VOTE_THRESHOLD)
            .order_by(ReportRecord.created_at.desc())
            .limit(limit)
        )
        with self.db.get_session() as session:
            return [record.to_report() for record in session.scalars(query)]

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
        message = await self._run("insert message", self._insert_message_sync, author_id, text)
        self.changes.message_inserted(message)
        return message

    def _insert_message_sync(self, author_id: str, text: str) -> ChatMessage:
        with self.db.get_session() as session:
            record = MessageRecord(user_id=author_id, message=text)
            session.add(record)
            session.flush()
            return record.to_message()

    async def list_recent_messages(self, limit: int) -> List[ChatMessage]:
        return await self._run("list messages", self._list_messages_sync, limit)

    def _list_messages_sync(self, limit: int) -> List[ChatMessage]:
        query = (
            select(MessageRecord)
            .order_by(MessageRecord.created_at.desc())
            .limit(limit)
        )
        with self.db.get_session() as session:
            return [record.to_message() for record in session.scalars(query)]

    def subscribe_messages(self, on_insert: Callable[[ChatMessage], None]) -> Unsubscribe:
        return self.changes.subscribe_messages(on_insert)
