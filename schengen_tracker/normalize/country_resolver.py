"""Resolve free text or coordinates to a country."""

import asyncio
import logging
import re
import time
from typing import List, Optional, Tuple

from schengen_tracker.config import GEOCODE_MIN_DELAY_SECONDS
from schengen_tracker.errors import GeocodeFailure
from schengen_tracker.models import Coordinate, Country, RawSignal
from schengen_tracker.normalize.cache import MISSING, GeocodeCache
from schengen_tracker.normalize.countries import (
    CITY_TO_COUNTRY,
    COUNTRY_ALIASES,
    COUNTRY_NAMES,
    name_for,
)
from schengen_tracker.normalize.geocoder import ReverseGeocoder

logger = logging.getLogger(__name__)


def _build_terms() -> List[Tuple[str, str, "re.Pattern[str]"]]:
    terms = {}
    for code, name in COUNTRY_NAMES.items():
        terms[name.lower()] = code
    terms.update(COUNTRY_ALIASES)
    terms.update(CITY_TO_COUNTRY)
    return [
        (term, code, re.compile(r"(?<!\w)" + re.escape(term) + r"(?!\w)"))
        for term, code in terms.items()
    ]


_TERMS = _build_terms()


def resolve_from_text(text: str) -> Optional[Country]:
    """Find a country or city name in free text.

    Matching is case-insensitive on whole words. When several terms appear,
    the longest one wins ("Czech Republic" over "Czech", "Luxembourg City"
    over "Luxembourg"); equal lengths go to the earliest occurrence.
    """
    if not text:
        return None

    lowered = text.lower()
    best: Optional[Tuple[int, int, str]] = None  # (length, -position, code)

    for term, code, pattern in _TERMS:
        if term not in lowered:
            continue
        m = pattern.search(lowered)
        if not m:
            continue
        rank = (len(term), -m.start(), code)
        if best is None or rank[:2] > best[:2]:
            best = rank

    if best is None:
        return None
    code = best[2]
    return Country(code, name_for(code) or code)


class CountryResolver:
    """Text lookups plus cached, rate-limited reverse geocoding.

    One resolver per import session: the lock serializes provider calls and
    `min_delay` seconds are enforced between consecutive calls.
    """

    def __init__(
        self,
        geocoder: Optional[ReverseGeocoder] = None,
        cache: Optional[GeocodeCache] = None,
        min_delay: float = GEOCODE_MIN_DELAY_SECONDS,
        sleep=asyncio.sleep,
    ):
        self.geocoder = geocoder
        self.cache = cache if cache is not None else GeocodeCache()
        self.min_delay = min_delay
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: Optional[float] = None
        self.provider_calls = 0
        self.cache_hits = 0

    def resolve_from_text(self, text: str) -> Optional[Country]:
        return resolve_from_text(text)

    async def resolve_from_coordinates(self, lat: float, lng: float) -> Optional[Country]:
        coordinate = Coordinate(lat, lng)

        cached = self.cache.lookup(coordinate)
        if cached is not MISSING:
            self.cache_hits += 1
            return cached

        if self.geocoder is None:
            return None

        async with self._lock:
            # Another caller may have filled the cache while we waited
            cached = self.cache.lookup(coordinate)
            if cached is not MISSING:
                self.cache_hits += 1
                return cached

            await self._respect_rate_limit()
            try:
                country = await self.geocoder.reverse(coordinate)
            except GeocodeFailure as exc:
                logger.warning("Geocoding failed for %.4f,%.4f: %s", lat, lng, exc)
                return None
            finally:
                self._last_call = time.monotonic()
                self.provider_calls += 1

            self.cache.put(coordinate, country)
            return country

    async def resolve(self, signal: RawSignal) -> Optional[Country]:
        """Resolve whatever location a signal carries. None means drop it."""
        if signal.coordinate is not None:
            return await self.resolve_from_coordinates(signal.coordinate.lat, signal.coordinate.lng)
        return self.resolve_from_text(signal.text) or self.resolve_from_text(signal.title)

    async def _respect_rate_limit(self):
        if self._last_call is None or self.min_delay <= 0:
            return
        elapsed = time.monotonic() - self._last_call
        if elapsed < self.min_delay:
            await self._sleep(self.min_delay - elapsed)
