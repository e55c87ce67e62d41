"""
Report lifecycle for crowdsourced sightings
Creates, votes on and retires reports, and keeps the local report cache in
step with the shared store
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from collections import OrderedDict
from typing import Any, AsyncIterator, Awaitable, Dict, List, Optional

from blitzwatch.alerts.notifier import ReportNotifier
from blitzwatch.core import geo_codec
from blitzwatch.core.constants import (
    FALLBACK_COORDS,
    RECENT_FETCH_LIMIT,
    TOMBSTONE_LIMIT,
    VOTE_THRESHOLD,
)
from blitzwatch.core.errors import NotFoundError, StoreError, ValidationError
from blitzwatch.core.geo_codec import GeoPoint
from blitzwatch.crowdsource.models import (
    ChangeEvent,
    Deleted,
    Inserted,
    LocationProvider,
    Report,
    ReportInput,
    ReportKind,
    ReportStore,
    Updated,
)

logger = logging.getLogger(__name__)

FALLBACK_LOCATION = GeoPoint(latitude=FALLBACK_COORDS[0], longitude=FALLBACK_COORDS[1])


async def _call_store(action: str, call: Awaitable[Any]) -> Any:
    """Await a store call, surfacing every failure as StoreError."""
    try:
        return await call
    except StoreError as e:
        logger.error(f"Store {action} failed: {e}")
        raise
    except Exception as e:
        logger.error(f"Store {action} failed: {e}")
        raise StoreError(f"{action} failed: {e}") from e


class ReportLifecycle:
    """
    Authoritative per-session view of active reports.

    Owns the local report cache. Content moderation happens before
    ``create`` is called; the lifecycle itself is agnostic about content.
    """

    def __init__(
        self,
        store: ReportStore,
        location_provider: Optional[LocationProvider] = None,
        notifier: Optional[ReportNotifier] = None
    ):
        """
        Initialize the lifecycle.

        Args:
            store: Backing report store
            location_provider: Coroutine function returning the device location
            notifier: Announces reports first seen through the change stream
        """
        self.store = store
        self.location_provider = location_provider
        self.notifier = notifier

        self._reports: Dict[str, Report] = {}
        self._vote_locks: Dict[str, asyncio.Lock] = {}
        # ids are never reused, so late events for deleted reports can be ignored.
        # Oldest first, capped at tombstone_limit.
        self._deleted: "OrderedDict[str, None]" = OrderedDict()
        self.tombstone_limit = TOMBSTONE_LIMIT

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def create(self, report_input: ReportInput) -> Report:
        """
        Create a new report with zero votes.

        Args:
            report_input: Moderated user input

        Returns:
            Report as stored

        Raises:
            ValidationError: street is blank or kind is unknown
            StoreError: the store rejected the insert
        """
        if not isinstance(report_input.kind, ReportKind):
            raise ValidationError("kind", f"Unknown report kind: {report_input.kind!r}")

        street = (report_input.street or "").strip()
        if not street:
            raise ValidationError("street", "Bitte geben Sie die Straße ein.")

        point = await self._resolve_location(report_input)
        description = report_input.description or None
        license_plate = (
            report_input.license_plate
            if report_input.kind == ReportKind.CIVILIAN_PATROL else None
        )

        report = await _call_store("insert", self.store.insert(
            report_input.kind,
            street,
            description,
            geo_codec.encode_point(point),
            0,
            report_input.author_id,
            license_plate=license_plate,
        ))

        self._upsert(report, announce=False)
        logger.info(f"New report created: {report.id} ({report.kind.value}) on {street}")

        return report

    async def vote(self, report_id: str) -> Report:
        """
        Add one confirmation vote to a report.

        The count is read from the store, not the cache. Reaching the vote
        threshold retires the report: it leaves the cache before the store
        delete is issued, so it is never listed with a retiring count.

        Args:
            report_id: Id of a report in the local cache

        Returns:
            Report with the incremented count

        Raises:
            NotFoundError: the report is not cached, no longer stored, or was
                retired by another client while this vote was in flight
            StoreError: reading, updating or deleting failed
        """
        if report_id not in self._reports:
            raise NotFoundError(report_id)

        lock = self._vote_locks.setdefault(report_id, asyncio.Lock())
        try:
            async with lock:
                current = await _call_store("fetch", self.store.fetch(report_id))
                if current is None:
                    self._remove(report_id)
                    raise NotFoundError(report_id)

                new_count = current.vote_count + 1
                updated = await _call_store(
                    "update", self.store.update_vote_count(report_id, new_count)
                )
                if updated is None:
                    # another client retired it between our read and write
                    self._remove(report_id)
                    logger.info(f"Report {report_id} already retired")
                    raise NotFoundError(report_id)

                if new_count >= VOTE_THRESHOLD:
                    self._remove(report_id)
                    logger.info(f"Report {report_id} reached {new_count} votes, retiring")
                    await _call_store("delete", self.store.delete(report_id))
                else:
                    self._upsert(updated, announce=False)
                    logger.info(f"Report {report_id} voted: {new_count}/{VOTE_THRESHOLD}")
        finally:
            if report_id in self._deleted:
                self._vote_locks.pop(report_id, None)

        return updated

    async def refresh(self) -> List[Report]:
        """
        Replace the cache with the most recent reports from the store.

        Used on session start and to recover from a dropped subscription.
        """
        reports = await _call_store("list", self.store.list_recent(RECENT_FETCH_LIMIT))
        self._reports = {r.id: r for r in reports if not r.is_retired}

        logger.info(f"Report cache refreshed: {len(self._reports)} active reports")
        return self.list()

    # -------------------------------------------------------------------------
    # Change stream
    # -------------------------------------------------------------------------

    def reconcile(self, event: ChangeEvent) -> None:
        """
        Merge one change notification into the cache.

        Duplicate and out-of-order delivery are tolerated: an insert for a
        known id acts as an update, a delete for an unknown id does nothing,
        and counts never move backwards. Malformed events are dropped.
        """
        if isinstance(event, (Inserted, Updated)):
            self._upsert(event.report, announce=isinstance(event, Inserted))
        elif isinstance(event, Deleted) and event.report_id:
            self._remove(event.report_id)
        else:
            logger.debug(f"Dropping malformed change event: {event!r}")

    @asynccontextmanager
    async def connect(self) -> AsyncIterator["ReportLifecycle"]:
        """
        Subscribe to store changes for the duration of a session.

        The subscription is released on every exit path.
        """
        unsubscribe = self.store.subscribe(
            lambda report: self.reconcile(Inserted(report)),
            lambda report: self.reconcile(Updated(report)),
            lambda report_id: self.reconcile(Deleted(report_id)),
        )
        logger.info("Subscribed to report changes")

        try:
            await self.refresh()
            yield self
        finally:
            unsubscribe()
            logger.info("Unsubscribed from report changes")

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list(self) -> List[Report]:
        """Active reports, newest first."""
        return sorted(
            self._reports.values(),
            key=lambda r: r.created_at,
            reverse=True
        )

    def get(self, report_id: str) -> Optional[Report]:
        """Get cached report by ID."""
        return self._reports.get(report_id)

    def __len__(self) -> int:
        return len(self._reports)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _resolve_location(self, report_input: ReportInput) -> GeoPoint:
        if report_input.location is not None:
            return report_input.location

        if self.location_provider is not None:
            try:
                location = await self.location_provider()
            except Exception as e:
                logger.warning(f"Device location unavailable: {e}")
                location = None
            if location is not None:
                return location

        return FALLBACK_LOCATION

    def _upsert(self, report: Any, announce: bool) -> None:
        if not isinstance(report, Report) or not report.id:
            logger.debug(f"Dropping malformed report: {report!r}")
            return

        if report.id in self._deleted:
            return

        if report.is_retired:
            self._remove(report.id)
            return

        cached = self._reports.get(report.id)
        if cached is not None and cached.vote_count > report.vote_count:
            # stale update delivered late
            return

        self._reports[report.id] = report

        if cached is None and announce and self.notifier is not None:
            self.notifier.notify_new_report(report)

    def _remove(self, report_id: str) -> None:
        self._reports.pop(report_id, None)
        self._deleted[report_id] = None
        self._deleted.move_to_end(report_id)
        while len(self._deleted) > self.tombstone_limit:
            self._deleted.popitem(last=False)

        lock = self._vote_locks.get(report_id)
        if lock is not None and not lock.locked():
            del self._vote_locks[report_id]
