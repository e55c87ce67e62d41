"""
Tests for the report lifecycle
"""
import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from blitzwatch.core.constants import VOTE_THRESHOLD
from blitzwatch.core.errors import NotFoundError, StoreError, ValidationError
from blitzwatch.core.geo_codec import GeoPoint
from blitzwatch.crowdsource.lifecycle import ReportLifecycle
from blitzwatch.crowdsource.models import Deleted, Inserted, ReportInput, ReportKind, Updated


class TestCreate:
    """Test suite for report creation."""

    @pytest.mark.asyncio
    async def test_end_to_end_scenario(self, store, lifecycle, camera_input):
        """Test create, vote to the threshold, and final delete."""
        async with lifecycle.connect():
            report = await lifecycle.create(camera_input)

            store.insert.assert_awaited_once_with(
                ReportKind.FIXED_CAMERA, "Altstadt 15", None, "POINT(12.15 48.54)", 0, None,
                license_plate=None,
            )
            assert report.vote_count == 0
            assert lifecycle.list() == [report]

            for _ in range(VOTE_THRESHOLD):
                await lifecycle.vote(report.id)

        store.delete.assert_awaited_once_with(report.id)
        assert lifecycle.list() == []
        assert await store.fetch(report.id) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("street", ["", "   ", "\t\n"])
    async def test_blank_street_rejected(self, store, lifecycle, street):
        """Test blank street raises ValidationError without a store call."""
        with pytest.raises(ValidationError):
            await lifecycle.create(ReportInput(kind=ReportKind.FIXED_CAMERA, street=street))

        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_kind_rejected(self, store, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create(ReportInput(kind="blitzer", street="Altstadt 15"))

        store.insert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_location(self, store):
        """Test the served-area fallback without a device location."""
        lifecycle = ReportLifecycle(store)

        report = await lifecycle.create(
            ReportInput(kind=ReportKind.FIXED_CAMERA, street="Altstadt 15")
        )

        assert report.location == "POINT(12.1511 48.5376)"

    @pytest.mark.asyncio
    async def test_failing_location_provider_falls_back(self, store):
        """Test a location failure degrades to the fallback."""
        lifecycle = ReportLifecycle(
            store, location_provider=AsyncMock(side_effect=PermissionError("denied"))
        )

        report = await lifecycle.create(
            ReportInput(kind=ReportKind.FIXED_CAMERA, street="Altstadt 15")
        )

        assert report.point == GeoPoint(latitude=48.5376, longitude=12.1511)

    @pytest.mark.asyncio
    async def test_explicit_location_wins(self, lifecycle):
        """Test a tapped map location overrides the device location."""
        report = await lifecycle.create(ReportInput(
            kind=ReportKind.FIXED_CAMERA,
            street="Podewilsstraße",
            location=GeoPoint(latitude=48.53, longitude=12.16),
        ))

        assert report.location == "POINT(12.16 48.53)"

    @pytest.mark.asyncio
    async def test_plate_only_kept_for_patrol(self, lifecycle):
        """Test fixed cameras never carry a license plate."""
        camera = await lifecycle.create(ReportInput(
            kind=ReportKind.FIXED_CAMERA, street="Altstadt 15", license_plate="LA-AB 1234"
        ))
        patrol = await lifecycle.create(ReportInput(
            kind=ReportKind.CIVILIAN_PATROL, street="Altstadt 15", license_plate="LA-AB 1234"
        ))

        assert camera.license_plate is None
        assert patrol.license_plate == "LA-AB 1234"

    @pytest.mark.asyncio
    async def test_store_failure_not_retried(self, store, lifecycle, camera_input):
        """Test store errors surface once, without retry."""
        store.fail_next("insert")

        with pytest.raises(StoreError):
            await lifecycle.create(camera_input)

        assert store.insert.await_count == 1
        assert lifecycle.list() == []


class TestVote:
    """Test suite for voting and retirement."""

    async def _report_with_votes(self, store, lifecycle, camera_input, votes):
        report = await lifecycle.create(camera_input)
        if votes:
            await store.update_vote_count(report.id, votes)
        return report

    @pytest.mark.asyncio
    async def test_vote_below_threshold_keeps_report(self, store, lifecycle, camera_input):
        """Test 13 -> 14 leaves the report listed with 14 votes."""
        async with lifecycle.connect():
            report = await self._report_with_votes(store, lifecycle, camera_input, 13)

            updated = await lifecycle.vote(report.id)

            assert updated.vote_count == 14
            assert [r.vote_count for r in lifecycle.list()] == [14]
            store.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vote_reaching_threshold_retires(self, store, lifecycle, camera_input):
        """Test 14 -> 15 removes the report."""
        async with lifecycle.connect():
            report = await self._report_with_votes(store, lifecycle, camera_input, 14)

            updated = await lifecycle.vote(report.id)

            assert updated.vote_count == VOTE_THRESHOLD
            assert lifecycle.list() == []
            store.delete.assert_awaited_once_with(report.id)

    @pytest.mark.asyncio
    async def test_vote_reads_store_not_cache(self, store, lifecycle, camera_input):
        """Test the increment starts from the stored count."""
        report = await lifecycle.create(camera_input)
        # changed by another client while this one was not listening
        await store.update_vote_count(report.id, 7)

        updated = await lifecycle.vote(report.id)

        assert updated.vote_count == 8
        store.update_vote_count.assert_awaited_with(report.id, 8)

    @pytest.mark.asyncio
    async def test_vote_unknown_report(self, store, lifecycle):
        """Test voting an id outside the cache."""
        with pytest.raises(NotFoundError):
            await lifecycle.vote("missing")

        store.update_vote_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_vote_report_deleted_elsewhere(self, store, lifecycle, camera_input):
        """Test a report gone from the store is dropped from the cache."""
        report = await lifecycle.create(camera_input)
        await store.delete(report.id)

        with pytest.raises(NotFoundError):
            await lifecycle.vote(report.id)

        assert lifecycle.get(report.id) is None
        store.update_vote_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_failure_not_retried(self, store, lifecycle, camera_input):
        """Test a failed update is surfaced and not repeated."""
        report = await lifecycle.create(camera_input)
        store.fail_next("update_vote_count")

        with pytest.raises(StoreError):
            await lifecycle.vote(report.id)

        assert store.update_vote_count.await_count == 1
        assert (await store.fetch(report.id)).vote_count == 0

    @pytest.mark.asyncio
    async def test_failed_delete_never_lists_retired_report(self, store, lifecycle, camera_input):
        """Test the retiring report stays hidden when its delete fails."""
        async with lifecycle.connect():
            report = await self._report_with_votes(store, lifecycle, camera_input, 14)
            store.fail_next("delete")

            with pytest.raises(StoreError):
                await lifecycle.vote(report.id)

            assert lifecycle.list() == []
            await lifecycle.refresh()
            assert lifecycle.list() == []

    @pytest.mark.asyncio
    async def test_concurrent_votes_serialized(self, store, lifecycle, camera_input):
        """Test two votes from one client do not lose an update."""
        report = await lifecycle.create(camera_input)

        await asyncio.gather(lifecycle.vote(report.id), lifecycle.vote(report.id))

        assert (await store.fetch(report.id)).vote_count == 2
        assert lifecycle.get(report.id).vote_count == 2

    @pytest.mark.asyncio
    async def test_vote_racing_retirement(self, store, camera_input):
        """Test a client whose read is overtaken by another client's retiring vote."""
        read_done = asyncio.Event()
        resume = asyncio.Event()

        class PausingStore:
            """Pauses right after the first fetch."""

            def __getattr__(self, name):
                return getattr(store, name)

            async def fetch(self, report_id):
                current = await store.fetch(report_id)
                if not read_done.is_set():
                    read_done.set()
                    await resume.wait()
                return current

        client_a = ReportLifecycle(store)
        client_b = ReportLifecycle(PausingStore())
        report = await client_a.create(camera_input)
        await store.update_vote_count(report.id, 14)
        await client_b.refresh()

        pending_vote = asyncio.create_task(client_b.vote(report.id))
        await read_done.wait()
        retired = await client_a.vote(report.id)
        resume.set()

        with pytest.raises(NotFoundError):
            await pending_vote

        assert retired.vote_count == VOTE_THRESHOLD
        assert client_b.list() == []
        assert client_b.get(report.id) is None
        assert await store.fetch(report.id) is None
        store.delete.assert_awaited_once_with(report.id)

    @pytest.mark.asyncio
    async def test_two_clients_cross_threshold(self, store, camera_input):
        """Test both clients voting from 14 end with the report deleted."""
        client_a = ReportLifecycle(store)
        client_b = ReportLifecycle(store)

        async with client_a.connect(), client_b.connect():
            report = await client_a.create(camera_input)
            await store.update_vote_count(report.id, 14)

            outcomes = await asyncio.gather(
                client_a.vote(report.id),
                client_b.vote(report.id),
                return_exceptions=True,
            )

            for outcome in outcomes:
                if isinstance(outcome, Exception):
                    assert isinstance(outcome, NotFoundError)
                else:
                    assert outcome.vote_count == VOTE_THRESHOLD
            assert client_a.list() == []
            assert client_b.list() == []
            assert await store.fetch(report.id) is None

    @pytest.mark.asyncio
    async def test_retiring_count_never_observed(self, store, lifecycle, camera_input):
        """Test no listing ever shows a report at the threshold."""
        observed = []

        def probe(*_):
            observed.extend(r.vote_count for r in lifecycle.list())

        async with lifecycle.connect():
            store.subscribe(probe, probe, probe)
            report = await lifecycle.create(camera_input)
            for _ in range(VOTE_THRESHOLD):
                await lifecycle.vote(report.id)
                observed.extend(r.vote_count for r in lifecycle.list())

        assert observed
        assert max(observed) < VOTE_THRESHOLD


class TestReconcile:
    """Test suite for change-event reconciliation."""

    def setup_method(self):
        """Setup test fixtures."""
        self.store = MagicMock()
        self.lifecycle = ReportLifecycle(self.store)

    def test_insert_twice_is_idempotent(self, make_report):
        """Test a duplicate insert leaves the list unchanged."""
        report = make_report("r1")

        self.lifecycle.reconcile(Inserted(report))
        once = self.lifecycle.list()
        self.lifecycle.reconcile(Inserted(report))

        assert self.lifecycle.list() == once == [report]

    def test_delete_unknown_is_noop(self, make_report):
        """Test deleting an absent id changes nothing."""
        self.lifecycle.reconcile(Inserted(make_report("r1")))

        self.lifecycle.reconcile(Deleted("missing"))

        assert [r.id for r in self.lifecycle.list()] == ["r1"]

    def test_update_replaces(self, make_report):
        self.lifecycle.reconcile(Inserted(make_report("r1", votes=2)))

        self.lifecycle.reconcile(Updated(make_report("r1", votes=3)))

        assert self.lifecycle.get("r1").vote_count == 3

    def test_update_for_unknown_adds(self, make_report):
        """Test an update arriving before its insert."""
        self.lifecycle.reconcile(Updated(make_report("r1", votes=1)))

        assert self.lifecycle.get("r1").vote_count == 1

    def test_stale_update_ignored(self, make_report):
        """Test counts never move backwards."""
        self.lifecycle.reconcile(Updated(make_report("r1", votes=5)))

        self.lifecycle.reconcile(Updated(make_report("r1", votes=4)))

        assert self.lifecycle.get("r1").vote_count == 5

    def test_update_at_threshold_removes(self, make_report):
        """Test a retiring count removes the report before its delete arrives."""
        self.lifecycle.reconcile(Inserted(make_report("r1", votes=14)))

        self.lifecycle.reconcile(Updated(make_report("r1", votes=VOTE_THRESHOLD)))

        assert self.lifecycle.list() == []

    def test_late_insert_after_delete_ignored(self, make_report):
        """Test out-of-order delivery does not resurrect a report."""
        self.lifecycle.reconcile(Deleted("r1"))

        self.lifecycle.reconcile(Inserted(make_report("r1")))

        assert self.lifecycle.list() == []

    def test_deleted_ids_bounded(self, make_report):
        """Test only the most recent deleted ids are remembered."""
        self.lifecycle.tombstone_limit = 2

        for report_id in ("r1", "r2", "r3"):
            self.lifecycle.reconcile(Deleted(report_id))

        assert list(self.lifecycle._deleted) == ["r2", "r3"]
        self.lifecycle.reconcile(Inserted(make_report("r3")))
        assert self.lifecycle.list() == []

    @pytest.mark.parametrize("event", [
        None,
        "INSERT",
        {"id": "r1"},
        Inserted(report=None),
        Updated(report="r1"),
        Deleted(report_id=""),
    ])
    def test_malformed_events_dropped(self, event, make_report):
        """Test malformed events never raise."""
        self.lifecycle.reconcile(Inserted(make_report("r1")))

        self.lifecycle.reconcile(event)

        assert [r.id for r in self.lifecycle.list()] == ["r1"]

    def test_list_newest_first(self, make_report):
        """Test list ordering by creation time, descending."""
        self.lifecycle.reconcile(Inserted(make_report("old", minutes=0)))
        self.lifecycle.reconcile(Inserted(make_report("new", minutes=30)))
        self.lifecycle.reconcile(Inserted(make_report("mid", minutes=10)))

        assert [r.id for r in self.lifecycle.list()] == ["new", "mid", "old"]

    def test_new_report_notifies_once(self, make_report):
        """Test the notifier hears about each new report once."""
        notifier = MagicMock()
        lifecycle = ReportLifecycle(self.store, notifier=notifier)
        report = make_report("r1")

        lifecycle.reconcile(Inserted(report))
        lifecycle.reconcile(Inserted(report))
        lifecycle.reconcile(Updated(make_report("r2")))

        notifier.notify_new_report.assert_called_once_with(report)


class TestSession:
    """Test suite for refresh and the scoped subscription."""

    @pytest.mark.asyncio
    async def test_refresh_replaces_cache(self, store, lifecycle, camera_input, make_report):
        """Test a full fetch drops entries the store no longer has."""
        stored = await store.insert(ReportKind.FIXED_CAMERA, "Altstadt 15", None,
                                    "POINT(12.15 48.54)", 0, None)
        lifecycle.reconcile(Inserted(make_report("ghost")))

        reports = await lifecycle.refresh()

        assert [r.id for r in reports] == [stored.id]

    @pytest.mark.asyncio
    async def test_refresh_bounded(self, store, lifecycle):
        """Test the full fetch asks for the most recent 100 reports."""
        store.list_recent = AsyncMock(return_value=[])

        await lifecycle.refresh()

        store.list_recent.assert_awaited_once_with(100)

    @pytest.mark.asyncio
    async def test_connect_receives_other_clients_reports(self, store, camera_input):
        """Test reports created elsewhere arrive through the subscription."""
        viewer = ReportLifecycle(store)
        author = ReportLifecycle(store)

        async with viewer.connect():
            report = await author.create(camera_input)

            assert [r.id for r in viewer.list()] == [report.id]

    @pytest.mark.asyncio
    async def test_subscription_released_on_exit(self, store, lifecycle):
        async with lifecycle.connect():
            assert store.changes.subscriber_count == 1

        assert store.changes.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_subscription_released_on_error(self, store, lifecycle):
        """Test the subscription is released when the session fails."""
        with pytest.raises(RuntimeError):
            async with lifecycle.connect():
                raise RuntimeError("screen crashed")

        assert store.changes.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_subscription_released_when_refresh_fails(self, store, lifecycle):
        store.fail_next("list_recent")

        with pytest.raises(StoreError):
            async with lifecycle.connect():
                pass

        assert store.changes.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_no_events_after_exit(self, store, camera_input):
        """Test a closed session stops reconciling."""
        viewer = ReportLifecycle(store)
        author = ReportLifecycle(store)

        async with viewer.connect():
            pass
        await author.create(camera_input)

        assert viewer.list() == []
