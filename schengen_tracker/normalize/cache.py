"""Coordinate-keyed geocode cache to avoid repeat reverse-geocoding calls."""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from schengen_tracker.config import GEOCODE_PRECISION
from schengen_tracker.models import Coordinate, Country

logger = logging.getLogger(__name__)

MISSING = object()


def cache_key(coordinate: Coordinate, precision: int = GEOCODE_PRECISION) -> str:
    lat, lng = coordinate.rounded(precision)
    return f"{lat:.{precision}f},{lng:.{precision}f}"


class GeocodeCache:
    """Session-scoped by default; pass a path to keep results across sessions.

    Unresolvable coordinates are cached as None so they are not retried.
    """

    def __init__(self, path: Optional[Path] = None, precision: int = GEOCODE_PRECISION):
        self.path = path
        self.precision = precision
        self._data: Dict[str, Optional[Tuple[str, str]]] = {}
        self._load()

    def _load(self):
        if self.path is not None and self.path.exists():
            try:
                self._data = json.loads(self.path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Ignoring unreadable geocode cache %s: %s", self.path, exc)
                self._data = {}

    def lookup(self, coordinate: Coordinate):
        """Return the cached Country, None for a cached miss, or MISSING."""
        key = cache_key(coordinate, self.precision)
        if key not in self._data:
            return MISSING
        value = self._data[key]
        return Country(*value) if value else None

    def put(self, coordinate: Coordinate, country: Optional[Country]):
        self._data[cache_key(coordinate, self.precision)] = tuple(country) if country else None
        self._save()

    def _save(self):
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(self._data, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    def __len__(self):
        return len(self._data)

    def __contains__(self, coordinate: Coordinate) -> bool:
        return cache_key(coordinate, self.precision) in self._data
