"""Core signal-based trip assembly: resolved RawSignals → CandidateTrips."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Optional, Tuple

from schengen_tracker.config import CALENDAR_MERGE_TOLERANCE_DAYS, PHOTO_MERGE_TOLERANCE_DAYS
from schengen_tracker.models import CandidateTrip, Country, RawSignal, SignalKind
from schengen_tracker.normalize.countries import is_schengen

ResolvedSignal = Tuple[RawSignal, Optional[Country]]


@dataclass
class DayEntry:
    """One country observation covering [start, end]."""
    kind: SignalKind
    country: Country
    start: date
    end: date
    source_ids: List[str] = field(default_factory=list)

    @property
    def evidence_count(self) -> int:
        return len(self.source_ids)


# ---------------------------------------------------------------------------
# Step 1: Reduce signals to day entries
# ---------------------------------------------------------------------------

def _photo_day_entries(pairs: List[ResolvedSignal]) -> List[DayEntry]:
    """One entry per calendar day. The first resolved country of the day wins;
    every photo taken that day counts as evidence for it."""
    by_day: "OrderedDict[date, List[ResolvedSignal]]" = OrderedDict()
    for sig, country in pairs:
        by_day.setdefault(sig.capture_date, []).append((sig, country))

    entries = []
    for day, day_pairs in by_day.items():
        winner = next((country for _, country in day_pairs if country is not None), None)
        if winner is None:
            continue  # nothing resolvable that day
        entries.append(DayEntry(
            kind=SignalKind.PHOTO,
            country=winner,
            start=day,
            end=day,
            source_ids=[
                sig.source_id for sig, country in day_pairs
                if country is None or country.code == winner.code
            ],
        ))
    return entries


def _calendar_entries(pairs: List[ResolvedSignal]) -> List[DayEntry]:
    """Calendar events keep their own span; no per-day reduction."""
    return [
        DayEntry(
            kind=SignalKind.CALENDAR,
            country=country,
            start=sig.capture_date,
            end=sig.span_end,
            source_ids=[sig.source_id],
        )
        for sig, country in pairs
        if country is not None
    ]


def to_day_entries(pairs: Iterable[ResolvedSignal]) -> List[DayEntry]:
    ordered = sorted(pairs, key=lambda p: p[0].capture_date)
    photos = [p for p in ordered if p[0].kind == SignalKind.PHOTO]
    calendar = [p for p in ordered if p[0].kind == SignalKind.CALENDAR]
    entries = _photo_day_entries(photos) + _calendar_entries(calendar)
    return sorted(entries, key=lambda e: (e.start, e.end))


# ---------------------------------------------------------------------------
# Step 2: Walk day entries, growing candidate trips
# ---------------------------------------------------------------------------

def _tolerance(kind: SignalKind, photo_tolerance: int, calendar_tolerance: int) -> int:
    return photo_tolerance if kind == SignalKind.PHOTO else calendar_tolerance


def _open_candidate(entry: DayEntry) -> CandidateTrip:
    return CandidateTrip(
        country_code=entry.country.code,
        country_name=entry.country.name,
        start_date=entry.start,
        end_date=entry.end,
        kind=entry.kind,
        evidence_count=entry.evidence_count,
        sample_evidence_ref=entry.source_ids[0] if entry.source_ids else "",
        is_schengen=is_schengen(entry.country.code),
        source_refs=list(entry.source_ids),
    )


def merge_entries(
    entries: List[DayEntry],
    photo_tolerance: int = PHOTO_MERGE_TOLERANCE_DAYS,
    calendar_tolerance: int = CALENDAR_MERGE_TOLERANCE_DAYS,
) -> List[CandidateTrip]:
    """Same country and a gap within tolerance → extend; otherwise close and open.

    The gap is the number of uncovered days in between, so with a photo
    tolerance of 2, entries on the 1st and the 4th still form one trip.
    Overlapping calendar spans have a negative gap and always merge.
    """
    candidates: List[CandidateTrip] = []
    current: Optional[CandidateTrip] = None

    for entry in entries:
        if current is not None:
            # Days with no evidence between the trip's end and this entry
            gap_days = (entry.start - current.end_date).days - 1
            tolerance = _tolerance(entry.kind, photo_tolerance, calendar_tolerance)
            if entry.country.code == current.country_code and gap_days <= tolerance:
                if entry.end > current.end_date:
                    current.end_date = entry.end
                current.evidence_count += entry.evidence_count
                current.source_refs.extend(entry.source_ids)
                continue
            candidates.append(current)
        current = _open_candidate(entry)

    if current is not None:
        candidates.append(current)

    return sorted(candidates, key=lambda c: c.start_date)


def assemble_candidates(
    pairs: Iterable[ResolvedSignal],
    photo_tolerance: int = PHOTO_MERGE_TOLERANCE_DAYS,
    calendar_tolerance: int = CALENDAR_MERGE_TOLERANCE_DAYS,
) -> List[CandidateTrip]:
    """Full assembly: resolved signals → day entries → merged candidate trips."""
    entries = to_day_entries(pairs)
    return merge_entries(entries, photo_tolerance, calendar_tolerance)
