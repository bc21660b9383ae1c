"""Tests for timestamp parsing and event spans."""

from datetime import date, datetime

import pytest
from dateutil import tz

from schengen_tracker.normalize.date_parser import event_span, parse_date, parse_datetime, parse_iso_date

UTC = tz.UTC
TOKYO = tz.gettz("Asia/Tokyo")


@pytest.mark.parametrize("raw,expected", [
    ("2024:06:01 10:20:30", datetime(2024, 6, 1, 10, 20, 30)),
    ("20240601", datetime(2024, 6, 1)),
    ("2024-06-01T10:00:00", datetime(2024, 6, 1, 10, 0)),
    ("June 1, 2024 10:00", datetime(2024, 6, 1, 10, 0)),
])
def test_formats(raw, expected):
    assert parse_datetime(raw) == expected


@pytest.mark.parametrize("raw", [None, "", "unknown", "tbd", "2024:13:45 00:00:00"])
def test_unparseable(raw):
    assert parse_datetime(raw) is None


def test_aware_values_move_to_local_zone():
    # 23:30 UTC is already the next day in Tokyo
    assert parse_date("20240601T233000Z", TOKYO) == date(2024, 6, 2)
    assert parse_date("2024-06-01T23:30:00+00:00", UTC) == date(2024, 6, 1)


def test_strict_iso_dates():
    assert parse_iso_date("2024-02-29") == date(2024, 2, 29)
    with pytest.raises(ValueError):
        parse_iso_date("2023-02-29")


def test_all_day_end_is_exclusive():
    assert event_span("2024-06-01", "2024-06-04", all_day=True) == (date(2024, 6, 1), date(2024, 6, 3))


def test_midnight_end_is_exclusive():
    assert event_span("2024-06-01T18:00:00", "2024-06-03T00:00:00") == (date(2024, 6, 1), date(2024, 6, 2))


def test_single_day_all_day_event():
    assert event_span("2024-06-01", "2024-06-02", all_day=True) == (date(2024, 6, 1), date(2024, 6, 1))


def test_reversed_end_clamped():
    assert event_span("2024-06-05T10:00:00", "2024-06-01T10:00:00") == (date(2024, 6, 5), date(2024, 6, 5))


def test_missing_start():
    assert event_span(None, "2024-06-01") is None
