#!/usr/bin/env python3
"""CLI entry point for the Schengen tracker.

Usage:
    python track_trips.py status [--date 2024-06-01]
    python track_trips.py history [--days 180]
    python track_trips.py preview --entry 2024-07-01 --exit 2024-07-14
    python track_trips.py import photo --file photos.csv --start 2024-01-01 --end 2024-06-30 [--yes]
    python track_trips.py import calendar --file events.json --start 2024-01-01 --end 2024-06-30
    python track_trips.py trips [--format text|csv|json]
    python track_trips.py add --country FR --start 2024-05-01 --end 2024-05-10
    python track_trips.py import-trips --file trips.csv [--allow-duplicates]

Global options:
    --ledger PATH   Trip ledger JSON file (default: trips.json in the project root)
    --user ID       Ledger user (default: $TRACKER_USER_ID or "me")
    --verbose       Log progress to stderr
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from schengen_tracker.compliance.calculator import (
    compliance_history,
    compute_window,
    earliest_entry_for,
    max_stay_from,
    preview_stay,
)
from schengen_tracker.config import DEFAULT_USER_ID, GEOCODE_CACHE_PATH, LEDGER_PATH
from schengen_tracker.errors import TrackerError
from schengen_tracker.extract.calendar_source import CalendarSignalCollector, JsonCalendarProvider
from schengen_tracker.extract.photo_source import CsvPhotoProvider, PhotoSignalCollector
from schengen_tracker.ledger import TripLedger
from schengen_tracker.models import ImportProgress, Trip, TripCategory
from schengen_tracker.normalize.cache import GeocodeCache
from schengen_tracker.normalize.countries import is_schengen
from schengen_tracker.normalize.country_resolver import CountryResolver
from schengen_tracker.normalize.date_parser import parse_iso_date
from schengen_tracker.normalize.geocoder import NominatimGeocoder
from schengen_tracker.output import (
    candidate_to_record,
    commit_result_to_record,
    format_candidates,
    format_commit_result,
    format_history,
    format_import_result,
    format_status,
    format_trips,
    to_json,
    trip_to_record,
    trips_from_csv,
    trips_to_csv,
    window_to_record,
)
from schengen_tracker.pipeline import ImportSession

logger = logging.getLogger("track_trips")


def _date_arg(raw: str):
    try:
        return parse_iso_date(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc))


def _print_progress(progress: ImportProgress):
    logger.info("  %s: %d/%d", progress.phase.value, progress.current, progress.total)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_status(args, ledger: TripLedger):
    window = compute_window(ledger.trips(args.user), args.date)
    if args.json:
        print(to_json(window_to_record(window)))
    else:
        print(format_status(window))


def cmd_history(args, ledger: TripLedger):
    windows = compliance_history(ledger.trips(args.user), args.date, days=args.days)
    if args.json:
        print(to_json([window_to_record(w) for w in windows]))
    else:
        print(format_history(windows))


def cmd_preview(args, ledger: TripLedger):
    trips = ledger.trips(args.user)
    window = preview_stay(trips, args.entry, args.exit)
    length = (args.exit - args.entry).days + 1
    print(f"Planned stay: {args.entry.isoformat()} → {args.exit.isoformat()} ({length} days)")
    print(format_status(window))

    longest = max_stay_from(trips, args.entry)
    print(f"  Longest stay possible from {args.entry.isoformat()}: {longest} days")
    if longest < length:
        earliest = earliest_entry_for(trips, length, after=args.entry)
        if earliest:
            print(f"  Earliest entry for a {length}-day stay: {earliest.isoformat()}")
        else:
            print(f"  A {length}-day stay does not fit in any window")


def cmd_trips(args, ledger: TripLedger):
    trips = ledger.trips(args.user)
    if args.format == "csv":
        sys.stdout.write(trips_to_csv(trips))
    elif args.format == "json":
        print(to_json([trip_to_record(t) for t in trips]))
    else:
        print(format_trips(trips))


async def cmd_add(args, ledger: TripLedger):
    code = args.country.upper()
    trip = Trip(
        country_code=code,
        start_date=args.start,
        end_date=args.end,
        category=TripCategory.SCHENGEN if is_schengen(code) else TripCategory.NON_SCHENGEN,
        notes=args.notes or "",
    )
    stored = await ledger.add(args.user, trip)
    print(f"Added trip {stored.id}")
    print(format_trips([stored]))


def _confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


async def cmd_import(args, ledger: TripLedger):
    if args.source == "calendar":
        collector = CalendarSignalCollector(JsonCalendarProvider(Path(args.file)))
        geocoder = None
    else:
        collector = PhotoSignalCollector(CsvPhotoProvider(Path(args.file)))
        geocoder = NominatimGeocoder()

    resolver = CountryResolver(geocoder=geocoder, cache=GeocodeCache(GEOCODE_CACHE_PATH))
    session = ImportSession(args.user, ledger, collector, resolver)
    try:
        candidates = await session.scan(args.start, args.end, on_progress=_print_progress)
    finally:
        if geocoder is not None:
            await geocoder.aclose()

    if args.json and not args.yes:
        print(to_json([candidate_to_record(c) for c in candidates]))
        return

    if not args.json:
        print(f"Detected {len(candidates)} trips:")
        print(format_candidates(candidates, session.selected))
    if not session.selected:
        print("Nothing selected.", file=sys.stderr if args.json else sys.stdout)
        return

    if not args.yes and not _confirm(f"Add {len(session.selected)} selected trips? [y/N] "):
        session.cancel_review()
        print("Import cancelled.")
        return

    result = await session.commit()
    if args.json:
        print(to_json(commit_result_to_record(result)))
    else:
        print(format_commit_result(result))


async def cmd_import_trips(args, ledger: TripLedger):
    text = Path(args.file).read_text(encoding="utf-8")
    rows, parse_errors = trips_from_csv(text)
    result = await ledger.import_trips(args.user, rows, skip_duplicates=not args.allow_duplicates)
    result.errors = sorted(parse_errors + result.errors, key=lambda issue: issue.row)
    if args.json:
        print(to_json({
            "imported": [trip_to_record(t) for t in result.imported],
            "skipped": [{"row": s.row, "existing_trip_id": s.existing_trip_id} for s in result.skipped],
            "errors": [{"row": e.row, "error": e.message} for e in result.errors],
        }))
    else:
        print(format_import_result(result))


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Track Schengen 90/180 compliance and detect trips from calendar and photo exports.",
    )
    parser.add_argument("--ledger", default=str(LEDGER_PATH), help="Trip ledger JSON file")
    parser.add_argument("--user", default=DEFAULT_USER_ID, help=f"Ledger user (default: {DEFAULT_USER_ID})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress to stderr")
    parser.add_argument("--json", action="store_true", help="Machine-readable output")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="Current 90/180 window")
    p.add_argument("--date", type=_date_arg, default=None, help="Reference date (default: today)")

    p = sub.add_parser("history", help="Days used over time")
    p.add_argument("--date", type=_date_arg, default=None, help="Last sampled date (default: today)")
    p.add_argument("--days", type=int, default=180, help="Period to sample (default: 180)")

    p = sub.add_parser("preview", help="Check a planned stay")
    p.add_argument("--entry", type=_date_arg, required=True)
    p.add_argument("--exit", type=_date_arg, required=True)

    p = sub.add_parser("import", help="Detect trips from an export file")
    p.add_argument("source", choices=["calendar", "photo"])
    p.add_argument("--file", required=True, help="Calendar JSON or photo CSV export")
    p.add_argument("--start", type=_date_arg, required=True)
    p.add_argument("--end", type=_date_arg, required=True)
    p.add_argument("--yes", "-y", action="store_true", help="Commit pre-selected trips without asking")

    p = sub.add_parser("trips", help="List recorded trips")
    p.add_argument("--format", choices=["text", "csv", "json"], default="text")

    p = sub.add_parser("add", help="Record a trip manually")
    p.add_argument("--country", required=True, help="ISO alpha-2 code, e.g. FR")
    p.add_argument("--start", type=_date_arg, required=True)
    p.add_argument("--end", type=_date_arg, default=None, help="Omit for an ongoing trip")
    p.add_argument("--notes", default="")

    p = sub.add_parser("import-trips", help="Add trips from a CSV file (as written by `trips --format csv`)")
    p.add_argument("--file", required=True, help="CSV with at least start_date and country columns")
    p.add_argument("--allow-duplicates", action="store_true",
                   help="Also add rows matching an existing trip's country and dates")

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        ledger = TripLedger(Path(args.ledger))
        if args.command == "status":
            cmd_status(args, ledger)
        elif args.command == "history":
            cmd_history(args, ledger)
        elif args.command == "preview":
            cmd_preview(args, ledger)
        elif args.command == "trips":
            cmd_trips(args, ledger)
        elif args.command == "add":
            asyncio.run(cmd_add(args, ledger))
        elif args.command == "import":
            asyncio.run(cmd_import(args, ledger))
        elif args.command == "import-trips":
            asyncio.run(cmd_import_trips(args, ledger))
    except (TrackerError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
