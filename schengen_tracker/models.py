"""Data models for the Schengen tracker."""

from __future__ import annotations
import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import NamedTuple, Optional


def new_id() -> str:
    return uuid.uuid4().hex


class TripCategory(str, Enum):
    SCHENGEN = "schengen"
    NON_SCHENGEN = "non_schengen"


class TripSource(str, Enum):
    MANUAL = "manual"
    CALENDAR_IMPORT = "calendar_import"
    PHOTO_IMPORT = "photo_import"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


class ComplianceStatus(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    WARNING = "warning"
    DANGER = "danger"

    @property
    def level(self) -> int:
        return _STATUS_LEVELS[self]


_STATUS_LEVELS = {
    ComplianceStatus.SAFE: 0,
    ComplianceStatus.CAUTION: 1,
    ComplianceStatus.WARNING: 2,
    ComplianceStatus.DANGER: 3,
}


class SignalKind(str, Enum):
    CALENDAR = "calendar"
    PHOTO = "photo"

    @property
    def trip_source(self) -> TripSource:
        if self is SignalKind.CALENDAR:
            return TripSource.CALENDAR_IMPORT
        return TripSource.PHOTO_IMPORT


class ImportPhase(str, Enum):
    SCANNING = "scanning"
    GEOCODING = "geocoding"
    GROUPING = "grouping"
    COMPLETE = "complete"


class SessionState(str, Enum):
    IDLE = "idle"
    PERMISSION_PENDING = "permission_pending"
    SCANNING = "scanning"
    REVIEWING = "reviewing"
    COMMITTING = "committing"
    COMPLETE = "complete"
    ERROR = "error"


class Country(NamedTuple):
    code: str  # ISO-3166 alpha-2, upper case
    name: str


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def rounded(self, precision: int) -> tuple[float, float]:
        return round(self.lat, precision), round(self.lng, precision)


@dataclass
class Trip:
    country_code: str
    start_date: date
    end_date: Optional[date] = None  # None = ongoing
    category: TripCategory = TripCategory.SCHENGEN
    source: TripSource = TripSource.MANUAL
    source_ref: str = ""  # dedup key for imported trips
    signal_refs: list[str] = field(default_factory=list)  # ids of the photos/events it came from
    notes: str = ""
    sync_status: SyncStatus = SyncStatus.PENDING
    id: str = field(default_factory=new_id)

    @property
    def is_ongoing(self) -> bool:
        return self.end_date is None

    @property
    def is_schengen(self) -> bool:
        return self.category == TripCategory.SCHENGEN

    def effective_end(self, through: date) -> date:
        """End date, with an ongoing trip treated as running through `through`."""
        return self.end_date if self.end_date is not None else through

    def duration_days(self, through: Optional[date] = None) -> int:
        end = self.effective_end(through or date.today())
        return (end - self.start_date).days + 1

    def overlaps(self, start: date, end: date) -> bool:
        own_end = self.end_date if self.end_date is not None else date.max
        return self.start_date <= end and start <= own_end


@dataclass
class RawSignal:
    """A single dated location hint from a device source. Never persisted."""
    kind: SignalKind
    source_id: str
    capture_date: date
    end_date: Optional[date] = None  # calendar events carry their own span
    coordinate: Optional[Coordinate] = None  # photos
    text: str = ""  # calendar event location
    title: str = ""  # calendar event title, used when the location says nothing

    @property
    def span_end(self) -> date:
        if self.end_date is None or self.end_date < self.capture_date:
            return self.capture_date
        return self.end_date


@dataclass
class CandidateTrip:
    country_code: str
    country_name: str
    start_date: date
    end_date: date
    kind: SignalKind
    evidence_count: int = 0
    sample_evidence_ref: str = ""
    is_schengen: bool = False
    source_refs: list[str] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def source_ref(self) -> str:
        """Stable dedup key: same country and same underlying signals give the same ref."""
        digest = hashlib.sha1("|".join(sorted(self.source_refs)).encode("utf-8")).hexdigest()
        return f"{self.kind.value}:{self.country_code}:{digest[:16]}"

    def to_trip(self) -> Trip:
        if self.kind == SignalKind.PHOTO:
            notes = f"Imported from {self.evidence_count} photos"
        else:
            notes = f"Imported from {self.evidence_count} calendar events"
        return Trip(
            country_code=self.country_code,
            start_date=self.start_date,
            end_date=self.end_date,
            category=TripCategory.SCHENGEN if self.is_schengen else TripCategory.NON_SCHENGEN,
            source=self.kind.trip_source,
            source_ref=self.source_ref,
            signal_refs=sorted(self.source_refs),
            notes=notes,
        )


@dataclass(frozen=True)
class ComplianceWindow:
    reference_date: date
    window_start: date
    window_end: date
    days_used: int
    days_remaining: int
    status: ComplianceStatus
    next_free_date: Optional[date] = None


@dataclass
class AlertSettings:
    user_id: str
    enabled: bool = True
    last_notified_status: ComplianceStatus = ComplianceStatus.SAFE


@dataclass(frozen=True)
class Alert:
    user_id: str
    status: ComplianceStatus
    previous_status: ComplianceStatus
    days_used: int
    days_remaining: int
    subject: str
    message: str


@dataclass(frozen=True)
class ImportProgress:
    current: int
    total: int
    phase: ImportPhase

    @property
    def percentage(self) -> float:
        return self.current / self.total if self.total > 0 else 0.0


@dataclass(frozen=True)
class SkippedCandidate:
    candidate_id: str
    reason: str  # "duplicate" | "overlap"
    existing_trip_id: str = ""


@dataclass(frozen=True)
class FailedCandidate:
    candidate_id: str
    error: str


@dataclass
class CommitResult:
    inserted: list[Trip] = field(default_factory=list)
    skipped: list[SkippedCandidate] = field(default_factory=list)
    failed: list[FailedCandidate] = field(default_factory=list)


@dataclass(frozen=True)
class RowIssue:
    row: int  # 1-based, header is row 1
    message: str
    existing_trip_id: str = ""


@dataclass
class TripImportResult:
    imported: list[Trip] = field(default_factory=list)
    skipped: list[RowIssue] = field(default_factory=list)
    errors: list[RowIssue] = field(default_factory=list)
