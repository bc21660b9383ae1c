"""Configuration: .env loading, paths, constants."""

import os
from pathlib import Path
from dotenv import load_dotenv

# Project root = parent of schengen_tracker/
PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(PROJECT_ROOT / ".env")

# --- Schengen rule ---
MAX_STAY_DAYS = int(os.getenv("SCHENGEN_MAX_DAYS", "90"))
WINDOW_DAYS = int(os.getenv("SCHENGEN_WINDOW_DAYS", "180"))

# Status thresholds (days used). Product-tuned, not regulation.
CAUTION_THRESHOLD = int(os.getenv("SCHENGEN_CAUTION_DAYS", "60"))
WARNING_THRESHOLD = int(os.getenv("SCHENGEN_WARNING_DAYS", "75"))
DANGER_THRESHOLD = int(os.getenv("SCHENGEN_DANGER_DAYS", "85"))

# --- Assembly ---
PHOTO_MERGE_TOLERANCE_DAYS = int(os.getenv("PHOTO_MERGE_TOLERANCE_DAYS", "2"))
CALENDAR_MERGE_TOLERANCE_DAYS = int(os.getenv("CALENDAR_MERGE_TOLERANCE_DAYS", "1"))

# --- Scanning ---
CALENDAR_BATCH_SIZE = 10  # events per progress tick
PHOTO_BATCH_SIZE = 50  # photos per progress tick

# --- Geocoding ---
GEOCODE_URL = os.getenv("GEOCODE_URL", "https://nominatim.openstreetmap.org/reverse")
GEOCODE_USER_AGENT = os.getenv("GEOCODE_USER_AGENT", "schengen-tracker/1.0")
GEOCODE_MIN_DELAY_SECONDS = float(os.getenv("GEOCODE_MIN_DELAY_SECONDS", "0.1"))
GEOCODE_PRECISION = 2  # decimal places for cache keys (~0.01 degree)
GEOCODE_TIMEOUT_SECONDS = float(os.getenv("GEOCODE_TIMEOUT_SECONDS", "10"))

# --- Paths ---
LEDGER_PATH = Path(os.getenv("LEDGER_PATH", str(PROJECT_ROOT / "trips.json")))
DEFAULT_USER_ID = os.getenv("TRACKER_USER_ID", "me")
GEOCODE_CACHE_PATH = Path(os.getenv("GEOCODE_CACHE_PATH", str(PROJECT_ROOT / "cache" / "geocode.json")))
