"""Detect candidates that are already in the ledger: re-scans and cross-source repeats."""

from typing import Iterable, Optional

from schengen_tracker.errors import CommitConflict
from schengen_tracker.models import CandidateTrip, Trip

DUPLICATE = "duplicate"
OVERLAP = "overlap"


def _same_import(trip: Trip, candidate: CandidateTrip) -> bool:
    """Same source and at least one underlying photo/event already imported."""
    if trip.source != candidate.kind.trip_source:
        return False
    if trip.source_ref and trip.source_ref == candidate.source_ref:
        return True
    return not set(trip.signal_refs).isdisjoint(candidate.source_refs)


def _covered_by_other_source(trip: Trip, candidate: CandidateTrip) -> bool:
    """A trip recorded some other way already covers this country and period."""
    if trip.source == candidate.kind.trip_source:
        return False
    if trip.country_code.upper() != candidate.country_code.upper():
        return False
    return trip.overlaps(candidate.start_date, candidate.end_date)


def find_conflict(existing: Iterable[Trip], candidate: CandidateTrip) -> Optional[CommitConflict]:
    """Return why `candidate` must not be inserted, or None. Existing records win."""
    existing = list(existing)

    # Phase 1: re-import of signals already in the ledger
    for trip in existing:
        if _same_import(trip, candidate):
            return CommitConflict(DUPLICATE, trip.id)

    # Phase 2: same country and dates already recorded from another source
    for trip in existing:
        if _covered_by_other_source(trip, candidate):
            return CommitConflict(OVERLAP, trip.id)

    return None


def find_same_trip(existing: Iterable[Trip], trip: Trip) -> Optional[CommitConflict]:
    """A stored trip with the same country and dates, whatever its source."""
    for other in existing:
        if (
            other.country_code == trip.country_code
            and other.start_date == trip.start_date
            and other.end_date == trip.end_date
        ):
            return CommitConflict(DUPLICATE, other.id)
    return None
