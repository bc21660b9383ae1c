"""Tests for turning resolved signals into candidate trips."""

from datetime import date

from schengen_tracker.assemble.trip_assembler import assemble_candidates
from schengen_tracker.models import Coordinate, Country, RawSignal, SignalKind

FR = Country("FR", "France")
DE = Country("DE", "Germany")
GB = Country("GB", "United Kingdom")


def photo(source_id, day, country):
    sig = RawSignal(kind=SignalKind.PHOTO, source_id=source_id, capture_date=day,
                    coordinate=Coordinate(1.0, 1.0))
    return sig, country


def event(source_id, start, end, country):
    sig = RawSignal(kind=SignalKind.CALENDAR, source_id=source_id, capture_date=start, end_date=end)
    return sig, country


class TestPhotoAssembly:
    def test_gap_within_tolerance_merges(self):
        pairs = [
            photo("a", date(2024, 6, 1), FR),
            photo("b", date(2024, 6, 2), FR),
            photo("c", date(2024, 6, 5), FR),
        ]
        [trip] = assemble_candidates(pairs)
        assert (trip.country_code, trip.start_date, trip.end_date) == ("FR", date(2024, 6, 1), date(2024, 6, 5))
        assert trip.evidence_count == 3
        assert trip.sample_evidence_ref == "a"
        assert trip.is_schengen

    def test_longer_gap_splits(self):
        pairs = [photo("a", date(2024, 6, 1), FR), photo("b", date(2024, 6, 5), FR)]
        trips = assemble_candidates(pairs)
        assert [(t.start_date, t.end_date) for t in trips] == [
            (date(2024, 6, 1), date(2024, 6, 1)),
            (date(2024, 6, 5), date(2024, 6, 5)),
        ]

    def test_first_resolved_country_of_the_day_wins(self):
        pairs = [
            photo("a", date(2024, 6, 1), None),
            photo("b", date(2024, 6, 1), DE),
            photo("c", date(2024, 6, 1), FR),
        ]
        [trip] = assemble_candidates(pairs)
        assert trip.country_code == "DE"
        # the skipped photo counts, the French one does not
        assert trip.evidence_count == 2

    def test_country_change_closes_the_trip(self):
        pairs = [
            photo("a", date(2024, 6, 1), FR),
            photo("b", date(2024, 6, 2), FR),
            photo("c", date(2024, 6, 3), GB),
        ]
        trips = assemble_candidates(pairs)
        assert [t.country_code for t in trips] == ["FR", "GB"]
        assert not trips[1].is_schengen

    def test_unresolved_days_are_dropped(self):
        assert assemble_candidates([photo("a", date(2024, 6, 1), None)]) == []

    def test_input_order_does_not_matter(self):
        pairs = [photo("c", date(2024, 6, 3), FR), photo("a", date(2024, 6, 1), FR)]
        [trip] = assemble_candidates(pairs)
        assert trip.start_date == date(2024, 6, 1)

    def test_source_ref_is_stable(self):
        first = assemble_candidates([photo("a", date(2024, 6, 1), FR), photo("b", date(2024, 6, 2), FR)])
        again = assemble_candidates([photo("b", date(2024, 6, 2), FR), photo("a", date(2024, 6, 1), FR)])
        assert first[0].source_ref == again[0].source_ref
        assert first[0].id != again[0].id
        assert first[0].source_ref.startswith("photo:FR:")


class TestCalendarAssembly:
    def test_adjacent_events_merge(self):
        pairs = [
            event("e1", date(2024, 6, 1), date(2024, 6, 2), FR),
            event("e2", date(2024, 6, 4), date(2024, 6, 5), FR),
        ]
        [trip] = assemble_candidates(pairs)
        assert (trip.start_date, trip.end_date) == (date(2024, 6, 1), date(2024, 6, 5))
        assert trip.kind == SignalKind.CALENDAR

    def test_two_day_gap_splits(self):
        pairs = [
            event("e1", date(2024, 6, 1), date(2024, 6, 2), FR),
            event("e2", date(2024, 6, 5), date(2024, 6, 5), FR),
        ]
        assert len(assemble_candidates(pairs)) == 2

    def test_overlapping_events_merge(self):
        pairs = [
            event("e1", date(2024, 6, 1), date(2024, 6, 10), FR),
            event("e2", date(2024, 6, 3), date(2024, 6, 4), FR),
        ]
        [trip] = assemble_candidates(pairs)
        assert trip.end_date == date(2024, 6, 10)
        assert trip.evidence_count == 2

    def test_custom_tolerance(self):
        pairs = [
            event("e1", date(2024, 6, 1), date(2024, 6, 1), FR),
            event("e2", date(2024, 6, 5), date(2024, 6, 5), FR),
        ]
        assert len(assemble_candidates(pairs, calendar_tolerance=3)) == 1

    def test_unresolved_events_are_dropped(self):
        pairs = [event("e1", date(2024, 6, 1), date(2024, 6, 2), None)]
        assert assemble_candidates(pairs) == []

    def test_to_trip(self):
        [candidate] = assemble_candidates([event("e1", date(2024, 6, 1), date(2024, 6, 2), DE)])
        trip = candidate.to_trip()
        assert trip.country_code == "DE"
        assert trip.source.value == "calendar_import"
        assert trip.source_ref == candidate.source_ref
        assert trip.notes == "Imported from 1 calendar events"
