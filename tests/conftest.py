"""Shared fixtures and fakes: geocoder double, trip factory, in-memory ledger."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional, Tuple

import pytest

from schengen_tracker.errors import GeocodeFailure
from schengen_tracker.ledger import TripLedger
from schengen_tracker.models import Coordinate, Country, Trip, TripCategory, TripSource
from schengen_tracker.normalize.countries import is_schengen, name_for
from schengen_tracker.normalize.geocoder import ReverseGeocoder


class FakeGeocoder(ReverseGeocoder):
    """Answers from a fixed table keyed by (lat, lng); records every call."""

    def __init__(self, places: Optional[Dict[Tuple[float, float], str]] = None,
                 failing: Tuple[Tuple[float, float], ...] = ()):
        self.places = dict(places or {})
        self.failing = set(failing)
        self.calls: List[Coordinate] = []

    async def reverse(self, coordinate: Coordinate) -> Optional[Country]:
        self.calls.append(coordinate)
        key = (coordinate.lat, coordinate.lng)
        if key in self.failing:
            raise GeocodeFailure("provider unavailable")
        code = self.places.get(key)
        if code is None:
            return None
        return Country(code, name_for(code) or code)


@pytest.fixture
def make_trip():
    def _make(start: date, end: Optional[date], country: str = "FR",
              source: TripSource = TripSource.MANUAL, source_ref: str = "") -> Trip:
        return Trip(
            country_code=country,
            start_date=start,
            end_date=end,
            category=TripCategory.SCHENGEN if is_schengen(country) else TripCategory.NON_SCHENGEN,
            source=source,
            source_ref=source_ref,
        )
    return _make


@pytest.fixture
def ledger() -> TripLedger:
    return TripLedger()
