"""Photo-based signal collection: geotagged media → RawSignals."""

from __future__ import annotations

import asyncio
import csv
import logging
from dataclasses import dataclass
from datetime import date, tzinfo
from pathlib import Path
from typing import List, Optional, Sequence

from schengen_tracker.config import PHOTO_BATCH_SIZE
from schengen_tracker.errors import SourceUnavailable
from schengen_tracker.extract.base import DeviceProvider, SignalCollector
from schengen_tracker.models import Coordinate, RawSignal, SignalKind
from schengen_tracker.normalize.date_parser import parse_date

logger = logging.getLogger(__name__)


@dataclass
class PhotoRecord:
    id: str
    taken_at: object  # str | date | datetime
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def has_gps(self) -> bool:
        if self.lat is None or self.lng is None:
            return False
        # Libraries report "no fix" as 0,0
        return not (self.lat == 0.0 and self.lng == 0.0)


class InMemoryPhotoProvider(DeviceProvider[PhotoRecord]):
    def __init__(self, photos: Sequence[PhotoRecord], granted: bool = True,
                 local_tz: Optional[tzinfo] = None):
        self.photos = list(photos)
        self.granted = granted
        self.local_tz = local_tz

    async def request_permission(self) -> bool:
        return self.granted

    async def fetch(self, start: date, end: date) -> List[PhotoRecord]:
        selected = []
        for photo in self.photos:
            taken = parse_date(photo.taken_at, self.local_tz)
            if taken and start <= taken <= end:
                selected.append((taken, photo))
        selected.sort(key=lambda pair: pair[0])
        return [photo for _, photo in selected]


def _float_or_none(raw: Optional[str]) -> Optional[float]:
    if raw is None or not str(raw).strip():
        return None
    try:
        return float(raw)
    except ValueError:
        return None


class CsvPhotoProvider(InMemoryPhotoProvider):
    """Photo metadata export: CSV with id, taken_at, lat, lng columns."""

    def __init__(self, path: Path, local_tz: Optional[tzinfo] = None):
        self.path = Path(path)
        super().__init__([], granted=True, local_tz=local_tz)

    def _read_photos(self) -> List[PhotoRecord]:
        photos = []
        with self.path.open(newline="", encoding="utf-8") as f:
            for i, row in enumerate(csv.DictReader(f)):
                taken_at = row.get("taken_at") or row.get("date_taken")
                if not taken_at:
                    continue
                photos.append(PhotoRecord(
                    id=row.get("id") or f"{self.path.name}#{i}",
                    taken_at=taken_at,
                    lat=_float_or_none(row.get("lat") or row.get("latitude")),
                    lng=_float_or_none(row.get("lng") or row.get("longitude")),
                ))
        return photos

    async def fetch(self, start: date, end: date) -> List[PhotoRecord]:
        if not self.path.exists():
            raise SourceUnavailable(f"No photo export at {self.path}")
        try:
            self.photos = await asyncio.to_thread(self._read_photos)
        except (OSError, csv.Error, UnicodeDecodeError) as exc:
            raise SourceUnavailable(f"Unreadable photo export {self.path}: {exc}") from exc
        return await super().fetch(start, end)


class PhotoSignalCollector(SignalCollector[PhotoRecord]):
    kind = SignalKind.PHOTO
    batch_size = PHOTO_BATCH_SIZE

    def __init__(self, provider: DeviceProvider[PhotoRecord], local_tz: Optional[tzinfo] = None):
        super().__init__(provider)
        self.local_tz = local_tz

    def to_signal(self, item: PhotoRecord, start: date, end: date) -> Optional[RawSignal]:
        if not item.has_gps:
            return None
        taken = parse_date(item.taken_at, self.local_tz)
        if taken is None or not (start <= taken <= end):
            return None
        return RawSignal(
            kind=SignalKind.PHOTO,
            source_id=item.id,
            capture_date=taken,
            coordinate=Coordinate(item.lat, item.lng),
        )
