"""Calendar-based signal collection: travel-looking events → RawSignals."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import date, tzinfo
from pathlib import Path
from typing import List, Optional, Sequence

from bs4 import BeautifulSoup

from schengen_tracker.config import CALENDAR_BATCH_SIZE
from schengen_tracker.errors import SourceUnavailable
from schengen_tracker.extract.base import DeviceProvider, SignalCollector
from schengen_tracker.models import RawSignal, SignalKind
from schengen_tracker.normalize.countries import CITY_TO_COUNTRY, COUNTRY_NAMES
from schengen_tracker.normalize.date_parser import event_span

logger = logging.getLogger(__name__)

# Generic travel terms; country and city names are added below
_TRAVEL_TERMS = [
    # Direct travel
    "flight", "fly", "plane", "airport", "boarding",
    "train", "eurostar", "tgv", "rail",
    "hotel", "airbnb", "booking", "accommodation", "check-in",
    "vacation", "holiday", "trip", "travel",
    "departure", "arrival",
    # Business travel
    "conference", "meeting in", "visit to",
    "business trip", "work travel", "offsite",
]

TRAVEL_KEYWORDS = sorted(
    set(_TRAVEL_TERMS)
    | {name.lower() for name in COUNTRY_NAMES.values()}
    | set(CITY_TO_COUNTRY),
)

# Whole words, plural allowed: "flights" matches "flight", "Parish" does not match "paris"
_KEYWORD_RE = re.compile(
    r"(?<!\w)(?:" + "|".join(re.escape(k) for k in sorted(TRAVEL_KEYWORDS, key=len, reverse=True)) + r")(?:s|es)?(?!\w)",
)


@dataclass
class CalendarEvent:
    id: str
    title: str
    start: object  # str | date | datetime, as exported
    end: object = None
    location: str = ""
    description: str = ""  # may be HTML
    all_day: bool = False
    calendar_name: str = ""


def plain_text(html: str) -> str:
    """Strip markup from an event description."""
    if not html:
        return ""
    if "<" not in html:
        return html
    soup = BeautifulSoup(html, "html.parser")
    for s in soup(["script", "style"]):
        s.decompose()
    return soup.get_text(separator=" ", strip=True)


def is_travel_related(title: str, location: str, description: str = "") -> bool:
    search_text = f"{title} {location} {plain_text(description)}".lower()
    return bool(_KEYWORD_RE.search(search_text))


class InMemoryCalendarProvider(DeviceProvider[CalendarEvent]):
    def __init__(self, events: Sequence[CalendarEvent], granted: bool = True,
                 local_tz: Optional[tzinfo] = None):
        self.events = list(events)
        self.granted = granted
        self.local_tz = local_tz

    async def request_permission(self) -> bool:
        return self.granted

    async def fetch(self, start: date, end: date) -> List[CalendarEvent]:
        selected = []
        for ev in self.events:
            span = event_span(ev.start, ev.end, ev.all_day, self.local_tz)
            if span and start <= span[0] <= end:
                selected.append((span[0], ev))
        selected.sort(key=lambda pair: pair[0])
        return [ev for _, ev in selected]


class JsonCalendarProvider(InMemoryCalendarProvider):
    """Calendar export file: a JSON list of event objects."""

    def __init__(self, path: Path, local_tz: Optional[tzinfo] = None):
        self.path = Path(path)
        super().__init__([], granted=True, local_tz=local_tz)

    async def request_permission(self) -> bool:
        return True

    async def fetch(self, start: date, end: date) -> List[CalendarEvent]:
        if not self.path.exists():
            raise SourceUnavailable(f"No calendar export at {self.path}")
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            raw = json.loads(text)
        except (json.JSONDecodeError, OSError) as exc:
            raise SourceUnavailable(f"Unreadable calendar export {self.path}: {exc}") from exc

        self.events = []
        for i, item in enumerate(raw if isinstance(raw, list) else []):
            if not isinstance(item, dict) or not item.get("start"):
                continue
            self.events.append(CalendarEvent(
                id=str(item.get("id") or item.get("uid") or f"{self.path.name}#{i}"),
                title=item.get("title") or item.get("summary") or "",
                start=item["start"],
                end=item.get("end"),
                location=item.get("location") or "",
                description=item.get("description") or "",
                all_day=bool(item.get("all_day", False)),
                calendar_name=item.get("calendar") or "",
            ))
        return await super().fetch(start, end)


class CalendarSignalCollector(SignalCollector[CalendarEvent]):
    kind = SignalKind.CALENDAR
    batch_size = CALENDAR_BATCH_SIZE

    def __init__(self, provider: DeviceProvider[CalendarEvent], local_tz: Optional[tzinfo] = None):
        super().__init__(provider)
        self.local_tz = local_tz

    def to_signal(self, item: CalendarEvent, start: date, end: date) -> Optional[RawSignal]:
        if not is_travel_related(item.title, item.location, item.description):
            return None
        span = event_span(item.start, item.end, item.all_day, self.local_tz)
        if span is None or not (start <= span[0] <= end):
            return None
        return RawSignal(
            kind=SignalKind.CALENDAR,
            source_id=item.id,
            capture_date=span[0],
            end_date=span[1],
            text=item.location,
            title=item.title,
        )
