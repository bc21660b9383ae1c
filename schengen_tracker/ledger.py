"""Per-user trip ledger with single-writer discipline and JSON persistence."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

from schengen_tracker.assemble.dedup import find_same_trip
from schengen_tracker.errors import ValidationError
from schengen_tracker.models import RowIssue, SyncStatus, Trip, TripCategory, TripImportResult, TripSource
from schengen_tracker.normalize.countries import is_schengen, name_for
from schengen_tracker.output import trip_from_record, trip_to_record

logger = logging.getLogger(__name__)

_COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")


def validate_trip(trip: Trip):
    """Reject malformed trips. Nothing is corrected silently."""
    if not isinstance(trip.start_date, date):
        raise ValidationError("start_date is required")
    if trip.end_date is not None:
        if not isinstance(trip.end_date, date):
            raise ValidationError("end_date must be a date")
        if trip.end_date < trip.start_date:
            raise ValidationError(
                f"end_date {trip.end_date.isoformat()} is before start_date {trip.start_date.isoformat()}"
            )
    if not _COUNTRY_CODE_RE.match(trip.country_code or ""):
        raise ValidationError(f"Invalid country code {trip.country_code!r} (expected ISO alpha-2, upper case)")
    if trip.source != TripSource.MANUAL and not trip.source_ref:
        raise ValidationError(f"Imported trip ({trip.source.value}) needs a source_ref")


class LedgerWriter:
    """Write access to one user's trips, handed out by TripLedger.transaction()."""

    def __init__(self, ledger: TripLedger, user_id: str):
        self._ledger = ledger
        self.user_id = user_id

    @property
    def _trips(self) -> List[Trip]:
        return self._ledger._data.setdefault(self.user_id, [])

    def snapshot(self) -> List[Trip]:
        return [replace(t) for t in self._trips]

    def add(self, trip: Trip) -> Trip:
        validate_trip(trip)
        if any(t.id == trip.id for t in self._trips):
            raise ValidationError(f"Trip {trip.id} already exists")
        stored = replace(trip, sync_status=SyncStatus.PENDING)
        self._trips.append(stored)
        return replace(stored)

    def update(self, trip: Trip) -> Trip:
        validate_trip(trip)
        for i, existing in enumerate(self._trips):
            if existing.id == trip.id:
                stored = replace(trip, sync_status=SyncStatus.PENDING)
                self._trips[i] = stored
                return replace(stored)
        raise KeyError(trip.id)

    def delete(self, trip_id: str) -> bool:
        before = len(self._trips)
        self._trips[:] = [t for t in self._trips if t.id != trip_id]
        return len(self._trips) < before

    def set_sync_status(self, trip_id: str, status: SyncStatus) -> Trip:
        for existing in self._trips:
            if existing.id == trip_id:
                existing.sync_status = status
                return replace(existing)
        raise KeyError(trip_id)


class TripLedger:
    """Canonical store of confirmed trips.

    Reads return copies and need no locking. All writes for a user go through
    one asyncio.Lock, so a manual edit and an import commit cannot interleave.
    With a path, every committed write is persisted as JSON.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else None
        self._data: Dict[str, List[Trip]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._load()

    # --- persistence ---

    def _load(self):
        if self.path is None or not self.path.exists():
            return
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise ValidationError(f"Unreadable ledger file {self.path}: {exc}") from exc
        for user_id, records in (raw.get("users") or {}).items():
            self._data[user_id] = [trip_from_record(r) for r in records]

    def _save(self):
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "users": {
                user_id: [trip_to_record(t) for t in trips]
                for user_id, trips in self._data.items()
            }
        }
        self.path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    # --- reads ---

    def trips(self, user_id: str) -> List[Trip]:
        return sorted(
            (replace(t) for t in self._data.get(user_id, [])),
            key=lambda t: (t.start_date, t.end_date or date.max),
        )

    def get(self, user_id: str, trip_id: str) -> Optional[Trip]:
        for t in self._data.get(user_id, []):
            if t.id == trip_id:
                return replace(t)
        return None

    def find_by_source_ref(self, user_id: str, source: TripSource, source_ref: str) -> Optional[Trip]:
        for t in self._data.get(user_id, []):
            if t.source == source and t.source_ref == source_ref:
                return replace(t)
        return None

    def find_overlapping(
        self,
        user_id: str,
        country_code: str,
        start: date,
        end: date,
        exclude_source: Optional[TripSource] = None,
    ) -> List[Trip]:
        return [
            replace(t) for t in self._data.get(user_id, [])
            if t.country_code == country_code
            and t.source != exclude_source
            and t.overlaps(start, end)
        ]

    # --- writes ---

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[LedgerWriter]:
        """Exclusive write access to a user's trips; persisted on clean exit.

        If the block raises or the ledger cannot be saved, the in-memory
        changes made inside the block are rolled back.
        """
        async with self._lock_for(user_id):
            backup = [replace(t) for t in self._data.get(user_id, [])]
            writer = LedgerWriter(self, user_id)
            try:
                yield writer
                self._save()
            except BaseException:
                self._data[user_id] = backup
                raise

    async def add(self, user_id: str, trip: Trip) -> Trip:
        async with self.transaction(user_id) as w:
            return w.add(trip)

    async def update(self, user_id: str, trip: Trip) -> Trip:
        async with self.transaction(user_id) as w:
            return w.update(trip)

    async def delete(self, user_id: str, trip_id: str) -> bool:
        async with self.transaction(user_id) as w:
            return w.delete(trip_id)

    async def set_sync_status(self, user_id: str, trip_id: str, status: SyncStatus) -> Trip:
        async with self.transaction(user_id) as w:
            return w.set_sync_status(trip_id, status)

    async def import_trips(
        self,
        user_id: str,
        rows: Iterable[Tuple[int, Trip]],
        skip_duplicates: bool = True,
    ) -> TripImportResult:
        """Add trips parsed from a file, row by row.

        Invalid rows are reported and skipped. With `skip_duplicates`, a row
        matching an existing trip's country and dates is skipped too.
        """
        result = TripImportResult()
        async with self.transaction(user_id) as w:
            for row, trip in rows:
                try:
                    validate_trip(trip)
                except ValidationError as exc:
                    result.errors.append(RowIssue(row, str(exc)))
                    continue
                if skip_duplicates:
                    conflict = find_same_trip(w.snapshot(), trip)
                    if conflict is not None:
                        result.skipped.append(RowIssue(row, conflict.reason, conflict.existing_trip_id))
                        continue
                try:
                    result.imported.append(w.add(trip))
                except ValidationError as exc:
                    result.errors.append(RowIssue(row, str(exc)))
        logger.info(
            "Trip import for %s: %d imported, %d skipped, %d errors",
            user_id, len(result.imported), len(result.skipped), len(result.errors),
        )
        return result

    async def record_presence(self, user_id: str, country_code: str, day: date) -> Trip:
        """Note that the user was in `country_code` on `day` (e.g. from a location fix).

        A trip in that country covering the day is left alone; otherwise one
        that ended the day before is extended; otherwise a one-day trip is opened.
        """
        country_code = country_code.upper()
        async with self.transaction(user_id) as w:
            same_country = [t for t in w._trips if t.country_code == country_code]
            for trip in same_country:
                if trip.start_date <= day and (trip.end_date is None or trip.end_date >= day):
                    return replace(trip)
            for trip in same_country:
                if trip.end_date == day - timedelta(days=1):
                    logger.info("Extending trip %s in %s to %s", trip.id, country_code, day)
                    return w.update(replace(trip, end_date=day))

            category = TripCategory.SCHENGEN if is_schengen(country_code) else TripCategory.NON_SCHENGEN
            return w.add(Trip(
                country_code=country_code,
                start_date=day,
                end_date=day,
                category=category,
                notes=f"Auto-detected in {name_for(country_code) or country_code}",
            ))
