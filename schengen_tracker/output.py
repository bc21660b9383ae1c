"""Record conversion and output formatters: JSON records, CSV, human-readable text."""

import csv
import io
import json
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from schengen_tracker.config import MAX_STAY_DAYS
from schengen_tracker.errors import ValidationError
from schengen_tracker.models import (
    CandidateTrip,
    CommitResult,
    ComplianceStatus,
    ComplianceWindow,
    RowIssue,
    SyncStatus,
    Trip,
    TripCategory,
    TripImportResult,
    TripSource,
)
from schengen_tracker.normalize.countries import code_for, is_schengen, name_for
from schengen_tracker.normalize.date_parser import parse_iso_date


def _date_str(d: Optional[date]) -> Optional[str]:
    return d.isoformat() if d is not None else None


# ---------------------------------------------------------------------------
# Wire records
# ---------------------------------------------------------------------------

def trip_to_record(trip: Trip) -> Dict[str, Any]:
    record = {
        "id": trip.id,
        "start_date": trip.start_date.isoformat(),
        "end_date": _date_str(trip.end_date),
        "country": trip.country_code,
        "category": trip.category.value,
        "source": trip.source.value,
        "sync_status": trip.sync_status.value,
    }
    if trip.source_ref:
        record["source_ref"] = trip.source_ref
    if trip.signal_refs:
        record["signal_refs"] = list(trip.signal_refs)
    if trip.notes:
        record["notes"] = trip.notes
    return record


def trip_from_record(record: Dict[str, Any]) -> Trip:
    """Parse a trip record. Malformed values raise ValidationError."""
    try:
        end_raw = record.get("end_date")
        kwargs = dict(
            country_code=record["country"],
            start_date=parse_iso_date(record["start_date"]),
            end_date=parse_iso_date(end_raw) if end_raw else None,
            category=TripCategory(record.get("category", TripCategory.SCHENGEN.value)),
            source=TripSource(record.get("source", TripSource.MANUAL.value)),
            source_ref=record.get("source_ref") or "",
            signal_refs=[str(s) for s in record.get("signal_refs") or []],
            notes=record.get("notes") or "",
            sync_status=SyncStatus(record.get("sync_status", SyncStatus.PENDING.value)),
        )
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"Malformed trip record {record!r}: {exc}") from exc
    if record.get("id"):
        kwargs["id"] = str(record["id"])
    return Trip(**kwargs)


def window_to_record(window: ComplianceWindow) -> Dict[str, Any]:
    return {
        "days_used": window.days_used,
        "days_remaining": window.days_remaining,
        "window_start": window.window_start.isoformat(),
        "window_end": window.window_end.isoformat(),
        "status": window.status.value,
        "next_free_date": _date_str(window.next_free_date),
    }


def candidate_to_record(candidate: CandidateTrip) -> Dict[str, Any]:
    return {
        "id": candidate.id,
        "country_code": candidate.country_code,
        "country_name": candidate.country_name,
        "start_date": candidate.start_date.isoformat(),
        "end_date": candidate.end_date.isoformat(),
        "evidence_count": candidate.evidence_count,
        "is_schengen": candidate.is_schengen,
    }


def commit_result_to_record(result: CommitResult) -> Dict[str, Any]:
    return {
        "inserted": [trip_to_record(t) for t in result.inserted],
        "skipped": [{"candidate_id": s.candidate_id, "reason": s.reason} for s in result.skipped],
        "failed": [{"candidate_id": f.candidate_id, "error": f.error} for f in result.failed],
    }


def to_json(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

_TRIP_COLUMNS = ["id", "start_date", "end_date", "country", "category", "source", "source_ref", "notes", "sync_status"]


def trips_to_csv(trips: List[Trip]) -> str:
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_TRIP_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for trip in trips:
        row = {col: "" for col in _TRIP_COLUMNS}
        row.update({k: v if v is not None else "" for k, v in trip_to_record(trip).items()})
        writer.writerow(row)
    return buf.getvalue()


def trips_from_csv(text: str) -> Tuple[List[Tuple[int, Trip]], List[RowIssue]]:
    """Parse a trip CSV into (row number, Trip) pairs plus rows that could not be read.

    Reads what `trips_to_csv` writes, but only start_date and country are
    required. Country may be an ISO code or a country name; a missing
    category is derived from Schengen membership. Rows are not validated
    against the ledger here.
    """
    reader = csv.DictReader(io.StringIO(text))
    missing = {"start_date", "country"} - set(reader.fieldnames or [])
    if missing:
        raise ValidationError(f"CSV is missing columns: {', '.join(sorted(missing))}")

    trips: List[Tuple[int, Trip]] = []
    errors: List[RowIssue] = []
    for row_number, row in enumerate(reader, start=2):
        record = {k: v.strip() for k, v in row.items() if k and v and v.strip()}
        if not record:
            continue

        country = record.get("country", "")
        code = country.upper() if len(country) == 2 else (code_for(country) or country)
        record["country"] = code
        if "category" not in record:
            schengen = is_schengen(code)
            record["category"] = (TripCategory.SCHENGEN if schengen else TripCategory.NON_SCHENGEN).value

        try:
            trips.append((row_number, trip_from_record(record)))
        except ValidationError as exc:
            errors.append(RowIssue(row_number, str(exc)))
    return trips, errors


# ---------------------------------------------------------------------------
# Human-readable text
# ---------------------------------------------------------------------------

_STATUS_LABELS = {
    ComplianceStatus.SAFE: "SAFE",
    ComplianceStatus.CAUTION: "CAUTION",
    ComplianceStatus.WARNING: "WARNING",
    ComplianceStatus.DANGER: "DANGER",
}


def format_status(window: ComplianceWindow) -> str:
    lines = [
        f"Schengen status on {window.reference_date.isoformat()}: {_STATUS_LABELS[window.status]}",
        f"  Window:    {window.window_start.isoformat()} → {window.window_end.isoformat()}",
        f"  Used:      {window.days_used} / {MAX_STAY_DAYS} days",
        f"  Remaining: {window.days_remaining} days",
    ]
    if window.next_free_date:
        lines.append(f"  Next day frees up on {window.next_free_date.isoformat()}")
    return "\n".join(lines)


def format_history(windows: List[ComplianceWindow]) -> str:
    lines = []
    for w in windows:
        bar = "#" * (w.days_used * 40 // MAX_STAY_DAYS) if MAX_STAY_DAYS else ""
        lines.append(f"  {w.reference_date.isoformat()}  {w.days_used:>3}  {bar:<40}  {w.status.value}")
    return "\n".join(lines)


def format_trips(trips: List[Trip]) -> str:
    if not trips:
        return "No trips recorded."
    lines = []
    for t in trips:
        end = _date_str(t.end_date) or "ongoing"
        country = name_for(t.country_code) or t.country_code
        marker = "S" if t.category == TripCategory.SCHENGEN else " "
        lines.append(f"  [{marker}] {t.start_date.isoformat()} → {end:<10}  {country} ({t.source.value})")
    return "\n".join(lines)


def format_candidates(candidates: List[CandidateTrip], selected_ids: Optional[set] = None) -> str:
    if not candidates:
        return "No trips detected."
    selected_ids = selected_ids or set()
    lines = []
    for i, c in enumerate(candidates, start=1):
        mark = "x" if c.id in selected_ids else " "
        zone = "Schengen" if c.is_schengen else "non-Schengen"
        lines.append(
            f"  {i:>3}. [{mark}] {c.start_date.isoformat()} → {c.end_date.isoformat()}  "
            f"{c.country_name} ({zone}, {c.duration_days}d, {c.evidence_count} signals)"
        )
    return "\n".join(lines)


def format_commit_result(result: CommitResult) -> str:
    lines = [f"Inserted {len(result.inserted)}, skipped {len(result.skipped)}, failed {len(result.failed)}."]
    for s in result.skipped:
        lines.append(f"  skipped {s.candidate_id}: {s.reason}")
    for f in result.failed:
        lines.append(f"  failed  {f.candidate_id}: {f.error}")
    return "\n".join(lines)


def format_import_result(result: TripImportResult) -> str:
    lines = [
        f"Imported {len(result.imported)}, skipped {len(result.skipped)} duplicates, "
        f"{len(result.errors)} errors."
    ]
    for issue in result.skipped:
        lines.append(f"  row {issue.row}: duplicate of trip {issue.existing_trip_id}")
    for issue in result.errors:
        lines.append(f"  row {issue.row}: {issue.message}")
    return "\n".join(lines)
