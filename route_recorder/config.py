"""Central configuration for the route recorder.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Every value can be overridden through environment
variables (optionally via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Storage / output
# ---------------------------------------------------------------------------
# Directory holding one JSON file per saved route. Relative paths resolve
# against the working directory.
ROUTE_STORE_DIR = os.getenv("ROUTE_STORE_DIR", "saved_routes")

# Default directory for exported files written by the CLI.
EXPORT_OUTPUT_DIR = os.getenv("EXPORT_OUTPUT_DIR", "exports")

# Value of the GPX ``creator`` attribute.
EXPORT_CREATOR = os.getenv("EXPORT_CREATOR", "route_recorder")


# ---------------------------------------------------------------------------
# Recording loop
# ---------------------------------------------------------------------------
# Pause between two location requests.
SAMPLE_INTERVAL_SECONDS = _env_float("SAMPLE_INTERVAL_SECONDS", 2.0)

# Upper bound on a single location request.
FIX_TIMEOUT_SECONDS = _env_float("FIX_TIMEOUT_SECONDS", 10.0)

# Minimum displacement (metres) from the last accepted point for a new fix to
# be kept.
MIN_SIGNIFICANT_DISTANCE_M = _env_float("MIN_SIGNIFICANT_DISTANCE_M", 8.0)

# Consult the coarse IP-based provider when the primary provider has no fix.
IP_LOCATION_FALLBACK_ENABLED = _env_bool("IP_LOCATION_FALLBACK_ENABLED", False)

# Endpoint returning ``{"latitude": .., "longitude": ..}`` for the caller's IP.
IP_LOCATION_URL = os.getenv("IP_LOCATION_URL", "https://ipapi.co/json/")


# ---------------------------------------------------------------------------
# Routing service (OSRM compatible)
# ---------------------------------------------------------------------------
OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org")
OSRM_PROFILE = os.getenv("OSRM_PROFILE", "driving")

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_float("REQUEST_TIMEOUT", 15.0)

# Retry/backoff for idempotent GETs. Snapping degrades to the raw track once
# retries are exhausted, so keep these small.
HTTP_MAX_RETRIES = _env_int("HTTP_MAX_RETRIES", 2)
HTTP_BACKOFF_FACTOR = _env_float("HTTP_BACKOFF_FACTOR", 0.5)

# HTTP session pool sizes.
HTTP_POOL_CONNECTIONS = 4
HTTP_POOL_MAXSIZE = 4

# Successful snaps are memoised per coordinate list.
SNAP_CACHE_SIZE = _env_int("SNAP_CACHE_SIZE", 32)
SNAP_CACHE_TTL_SECONDS = _env_int("SNAP_CACHE_TTL_SECONDS", 3600)
