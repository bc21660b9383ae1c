"""Rolling-window Schengen day counting. Pure functions over trip snapshots."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Set

from schengen_tracker.config import (
    CAUTION_THRESHOLD,
    DANGER_THRESHOLD,
    MAX_STAY_DAYS,
    WARNING_THRESHOLD,
    WINDOW_DAYS,
)
from schengen_tracker.models import ComplianceStatus, ComplianceWindow, Trip, TripCategory


@dataclass(frozen=True)
class Thresholds:
    caution: int = CAUTION_THRESHOLD
    warning: int = WARNING_THRESHOLD
    danger: int = DANGER_THRESHOLD
    max_days: int = MAX_STAY_DAYS
    window_days: int = WINDOW_DAYS


DEFAULT_THRESHOLDS = Thresholds()


def status_for(days_used: int, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> ComplianceStatus:
    if days_used >= thresholds.danger:
        return ComplianceStatus.DANGER
    if days_used >= thresholds.warning:
        return ComplianceStatus.WARNING
    if days_used >= thresholds.caution:
        return ComplianceStatus.CAUTION
    return ComplianceStatus.SAFE


def window_start_for(reference: date, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> date:
    return reference - timedelta(days=thresholds.window_days - 1)


def _schengen(trips: Iterable[Trip]) -> List[Trip]:
    return [t for t in trips if t.category == TripCategory.SCHENGEN]


def _covered_days(trips: Iterable[Trip], start: date, end: date, through: date) -> Set[date]:
    """Days in [start, end] covered by any trip; ongoing trips run through `through`."""
    days: Set[date] = set()
    for trip in trips:
        first = max(trip.start_date, start)
        last = min(trip.effective_end(through), end)
        d = first
        while d <= last:
            days.add(d)
            d += timedelta(days=1)
    return days


def counted_days(
    trips: Iterable[Trip],
    reference: date,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Set[date]:
    """Distinct Schengen days inside [reference - 179, reference]."""
    return _covered_days(_schengen(trips), window_start_for(reference, thresholds), reference, reference)


def days_used(trips: Iterable[Trip], reference: date, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> int:
    return len(counted_days(trips, reference, thresholds))


def next_free_date(
    trips: Iterable[Trip],
    reference: date,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[date]:
    """First date after `reference` on which the count drops because old days leave the window.

    Ongoing trips are taken to stop at `reference`; planned trips after it
    still count as they come into the window.
    """
    schengen = _schengen(trips)
    window = thresholds.window_days
    horizon_end = reference + timedelta(days=window)
    covered = _covered_days(schengen, window_start_for(reference, thresholds), horizon_end, reference)

    current = sum(1 for d in covered if d <= reference)
    if current == 0:
        return None

    count = current
    day = reference
    for _ in range(window):
        day += timedelta(days=1)
        leaving = day - timedelta(days=window)
        if leaving in covered:
            count -= 1
        if day in covered:
            count += 1
        if count < current:
            return day
    return None


def compute_window(
    trips: Iterable[Trip],
    reference: Optional[date] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> ComplianceWindow:
    """ComplianceWindow for `reference` (default today). Works for past and future dates."""
    reference = reference or date.today()
    trips = list(trips)
    used = days_used(trips, reference, thresholds)
    return ComplianceWindow(
        reference_date=reference,
        window_start=window_start_for(reference, thresholds),
        window_end=reference,
        days_used=used,
        days_remaining=max(0, thresholds.max_days - used),
        status=status_for(used, thresholds),
        next_free_date=next_free_date(trips, reference, thresholds),
    )


def compliance_history(
    trips: Iterable[Trip],
    end: Optional[date] = None,
    days: int = 180,
    step: Optional[int] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> List[ComplianceWindow]:
    """Windows sampled over the `days` before `end`, oldest first.

    Sampled daily for periods up to 90 days, weekly beyond that; `end` itself
    is always the last sample.
    """
    end = end or date.today()
    trips = list(trips)
    step = step or (7 if days > 90 else 1)
    offsets = list(range(days, 0, -step)) + [0]
    return [compute_window(trips, end - timedelta(days=i), thresholds) for i in offsets]


def _planned(entry: date, exit_: date) -> Trip:
    return Trip(country_code="EU", start_date=entry, end_date=exit_, category=TripCategory.SCHENGEN)


def preview_stay(
    trips: Iterable[Trip],
    entry: date,
    exit_: date,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> ComplianceWindow:
    """Window on the last day of a hypothetical Schengen stay.

    During a continuous stay the count never falls, so the last day is the
    worst day.
    """
    if exit_ < entry:
        raise ValueError("exit date is before entry date")
    return compute_window(list(trips) + [_planned(entry, exit_)], exit_, thresholds)


def max_stay_from(
    trips: Iterable[Trip],
    entry: date,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> int:
    """Longest continuous stay starting on `entry` that never exceeds the limit. 0 if none."""
    window = thresholds.window_days
    eve = entry - timedelta(days=1)
    covered = _covered_days(
        _schengen(trips),
        window_start_for(eve, thresholds),
        entry + timedelta(days=thresholds.max_days),
        eve,
    )
    # Sliding count: start from the window ending the day before entry
    used = sum(1 for d in covered if d <= eve)

    length = 0
    for n in range(thresholds.max_days):
        day = entry + timedelta(days=n)
        if day - timedelta(days=window) in covered:
            used -= 1
        covered.add(day)
        used += 1
        if used > thresholds.max_days:
            break
        length = n + 1
    return length


def earliest_entry_for(
    trips: Iterable[Trip],
    length: int,
    after: Optional[date] = None,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> Optional[date]:
    """First date on/after `after` when a stay of `length` days fits, None if never."""
    if length < 1 or length > thresholds.max_days:
        return None
    after = after or date.today()
    trips = list(trips)
    for offset in range(2 * thresholds.window_days):
        day = after + timedelta(days=offset)
        if max_stay_from(trips, day, thresholds) >= length:
            return day
    return None
