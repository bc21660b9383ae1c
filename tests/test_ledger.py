"""Tests for the trip ledger: validation, write serialization, persistence."""

import asyncio
from dataclasses import replace
from datetime import date

import pytest

from schengen_tracker.errors import ValidationError
from schengen_tracker.ledger import TripLedger
from schengen_tracker.models import SyncStatus, TripCategory, TripSource

USER = "alice"


class TestValidation:
    async def test_end_before_start_rejected(self, ledger, make_trip):
        with pytest.raises(ValidationError):
            await ledger.add(USER, make_trip(date(2024, 1, 10), date(2024, 1, 1)))
        assert ledger.trips(USER) == []

    async def test_lower_case_country_rejected(self, ledger, make_trip):
        with pytest.raises(ValidationError):
            await ledger.add(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2), country="fr"))

    async def test_import_needs_source_ref(self, ledger, make_trip):
        trip = make_trip(date(2024, 1, 1), date(2024, 1, 2), source=TripSource.PHOTO_IMPORT)
        with pytest.raises(ValidationError):
            await ledger.add(USER, trip)

    async def test_writes_are_marked_pending(self, ledger, make_trip):
        trip = make_trip(date(2024, 1, 1), date(2024, 1, 2))
        trip.sync_status = SyncStatus.SYNCED
        stored = await ledger.add(USER, trip)
        assert stored.sync_status == SyncStatus.PENDING

        synced = await ledger.set_sync_status(USER, stored.id, SyncStatus.SYNCED)
        assert synced.sync_status == SyncStatus.SYNCED

        updated = await ledger.update(USER, replace(synced, notes="edited"))
        assert updated.sync_status == SyncStatus.PENDING
        assert ledger.get(USER, stored.id).notes == "edited"


class TestReadsAndWrites:
    async def test_snapshots_are_copies(self, ledger, make_trip):
        await ledger.add(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2)))
        snapshot = ledger.trips(USER)
        snapshot[0].country_code = "DE"
        assert ledger.trips(USER)[0].country_code == "FR"

    async def test_trips_sorted_and_per_user(self, ledger, make_trip):
        await ledger.add(USER, make_trip(date(2024, 3, 1), date(2024, 3, 2)))
        await ledger.add(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2)))
        await ledger.add("bob", make_trip(date(2024, 2, 1), date(2024, 2, 2)))
        assert [t.start_date for t in ledger.trips(USER)] == [date(2024, 1, 1), date(2024, 3, 1)]
        assert len(ledger.trips("bob")) == 1

    async def test_delete(self, ledger, make_trip):
        stored = await ledger.add(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2)))
        assert await ledger.delete(USER, stored.id)
        assert not await ledger.delete(USER, stored.id)

    async def test_update_unknown_trip(self, ledger, make_trip):
        with pytest.raises(KeyError):
            await ledger.update(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2)))

    async def test_lookups(self, ledger, make_trip):
        imported = await ledger.add(USER, make_trip(
            date(2024, 6, 1), date(2024, 6, 5), source=TripSource.PHOTO_IMPORT, source_ref="photo:FR:abc",
        ))
        manual = await ledger.add(USER, make_trip(date(2024, 6, 4), None))

        assert ledger.find_by_source_ref(USER, TripSource.PHOTO_IMPORT, "photo:FR:abc").id == imported.id
        assert ledger.find_by_source_ref(USER, TripSource.CALENDAR_IMPORT, "photo:FR:abc") is None

        overlapping = ledger.find_overlapping(USER, "FR", date(2024, 6, 5), date(2024, 6, 30))
        assert {t.id for t in overlapping} == {imported.id, manual.id}
        others = ledger.find_overlapping(USER, "FR", date(2024, 6, 5), date(2024, 6, 30),
                                         exclude_source=TripSource.PHOTO_IMPORT)
        assert [t.id for t in others] == [manual.id]
        assert ledger.find_overlapping(USER, "DE", date(2024, 6, 1), date(2024, 6, 30)) == []


class TestTransactions:
    async def test_failed_block_rolls_back(self, ledger, make_trip):
        await ledger.add(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2)))
        with pytest.raises(RuntimeError):
            async with ledger.transaction(USER) as writer:
                writer.add(make_trip(date(2024, 2, 1), date(2024, 2, 2)))
                raise RuntimeError("boom")
        assert len(ledger.trips(USER)) == 1

    async def test_unwritable_ledger_file_rolls_back(self, tmp_path, make_trip):
        ledger = TripLedger(tmp_path / "trips.json")
        ledger.path = tmp_path  # a directory, so saving fails

        with pytest.raises(OSError):
            await ledger.add(USER, make_trip(date(2024, 1, 1), date(2024, 1, 2)))
        assert ledger.trips(USER) == []

    async def test_writers_are_serialized(self, ledger, make_trip):
        order = []
        release = asyncio.Event()

        async def slow_import():
            async with ledger.transaction(USER) as writer:
                order.append("import started")
                await release.wait()
                writer.add(make_trip(date(2024, 1, 1), date(2024, 1, 2)))
                order.append("import done")

        async def manual_edit():
            await ledger.add(USER, make_trip(date(2024, 3, 1), date(2024, 3, 2)))
            order.append("edit done")

        first = asyncio.create_task(slow_import())
        await asyncio.sleep(0)
        second = asyncio.create_task(manual_edit())
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert order == ["import started"]

        release.set()
        await asyncio.gather(first, second)
        assert order == ["import started", "import done", "edit done"]


class TestPresence:
    async def test_opens_extends_and_keeps(self, ledger):
        opened = await ledger.record_presence(USER, "fr", date(2024, 6, 1))
        assert (opened.start_date, opened.end_date) == (date(2024, 6, 1), date(2024, 6, 1))
        assert opened.category == TripCategory.SCHENGEN
        assert opened.source == TripSource.MANUAL
        assert opened.notes == "Auto-detected in France"

        same = await ledger.record_presence(USER, "FR", date(2024, 6, 1))
        assert same.id == opened.id

        extended = await ledger.record_presence(USER, "FR", date(2024, 6, 2))
        assert extended.id == opened.id
        assert extended.end_date == date(2024, 6, 2)
        assert len(ledger.trips(USER)) == 1

    async def test_day_inside_a_later_trip_is_not_claimed_by_the_earlier_one(self, ledger, make_trip):
        first = await ledger.add(USER, make_trip(date(2024, 6, 1), date(2024, 6, 1)))
        second = await ledger.add(USER, make_trip(date(2024, 6, 2), date(2024, 6, 5)))

        covering = await ledger.record_presence(USER, "FR", date(2024, 6, 2))

        assert covering.id == second.id
        assert ledger.get(USER, first.id).end_date == date(2024, 6, 1)
        assert len(ledger.trips(USER)) == 2

    async def test_non_schengen_presence(self, ledger):
        trip = await ledger.record_presence(USER, "GB", date(2024, 6, 1))
        assert trip.category == TripCategory.NON_SCHENGEN


class TestPersistence:
    async def test_reload_from_disk(self, tmp_path, make_trip):
        path = tmp_path / "trips.json"
        stored = await TripLedger(path).add(USER, make_trip(date(2024, 1, 1), None))

        [reloaded] = TripLedger(path).trips(USER)
        assert reloaded.id == stored.id
        assert reloaded.end_date is None
        assert reloaded.category == TripCategory.SCHENGEN

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "trips.json"
        path.write_text("{not json")
        with pytest.raises(ValidationError):
            TripLedger(path)


class TestImportTrips:
    async def test_rows_are_added_and_repeats_skipped(self, ledger, make_trip):
        existing = await ledger.add(USER, make_trip(date(2024, 3, 1), date(2024, 3, 5)))
        rows = [
            (2, make_trip(date(2024, 3, 1), date(2024, 3, 5))),
            (3, make_trip(date(2024, 4, 1), date(2024, 4, 3), country="DE")),
            (4, make_trip(date(2024, 5, 2), date(2024, 5, 1))),
        ]

        result = await ledger.import_trips(USER, rows)

        assert [t.country_code for t in result.imported] == ["DE"]
        assert [(s.row, s.existing_trip_id) for s in result.skipped] == [(2, existing.id)]
        assert [e.row for e in result.errors] == [4]
        assert "before start_date" in result.errors[0].message
        assert len(ledger.trips(USER)) == 2

    async def test_duplicates_allowed_on_request(self, ledger, make_trip):
        await ledger.add(USER, make_trip(date(2024, 3, 1), date(2024, 3, 5)))

        result = await ledger.import_trips(
            USER, [(2, make_trip(date(2024, 3, 1), date(2024, 3, 5)))], skip_duplicates=False,
        )

        assert len(result.imported) == 1
        assert len(ledger.trips(USER)) == 2

    async def test_repeated_row_within_one_file(self, ledger, make_trip):
        rows = [(2, make_trip(date(2024, 3, 1), date(2024, 3, 5))),
                (3, make_trip(date(2024, 3, 1), date(2024, 3, 5)))]
        result = await ledger.import_trips(USER, rows)

        assert len(result.imported) == 1
        assert [s.row for s in result.skipped] == [3]
