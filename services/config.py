from __future__ import annotations

import os
from typing import Optional


def getenv_str(name: str, default: Optional[str] = None) -> str:
    v = os.getenv(name)
    return v if v is not None else default


def getenv_int(name: str, default: int) -> int:
    v = os.getenv(name)
    try:
        return int(v) if v is not None else default
    except ValueError:
        return default


def getenv_float(name: str, default: float) -> float:
    v = os.getenv(name)
    try:
        return float(v) if v is not None else default
    except ValueError:
        return default


def getenv_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "on"}


# --- Upload limits ---
MAX_UPLOAD_MB = getenv_int("INGEST_MAX_UPLOAD_MB", 15)
MAX_PAGES = getenv_int("INGEST_MAX_PAGES", 200)

# --- Layout reconstruction (PDF user-space units) ---
ROW_Y_TOLERANCE = getenv_float("INGEST_ROW_Y_TOLERANCE", 3.0)
COLUMN_GAP = getenv_float("INGEST_COLUMN_GAP", 30.0)
WIDE_GAP = getenv_float("INGEST_WIDE_GAP", 10.0)
NARROW_GAP = getenv_float("INGEST_NARROW_GAP", 2.0)
WORD_X_TOLERANCE = getenv_float("INGEST_WORD_X_TOLERANCE", 1.5)
WORD_Y_TOLERANCE = getenv_float("INGEST_WORD_Y_TOLERANCE", 2.0)

# --- Extraction calls ---
PAGE_CHAR_LIMIT = getenv_int("INGEST_PAGE_CHAR_LIMIT", 20000)
CHUNK_CHARS = getenv_int("INGEST_CHUNK_CHARS", 6000)
SPREADSHEET_CHUNK_CHARS = getenv_int("INGEST_SPREADSHEET_CHUNK_CHARS", 9000)
PAGE_CALL_TIMEOUT_S = getenv_float("INGEST_PAGE_CALL_TIMEOUT_S", 35.0)
CHUNK_CALL_TIMEOUT_S = getenv_float("INGEST_CHUNK_CALL_TIMEOUT_S", 25.0)

# --- Deduplication ---
DEDUPE_ACROSS_PAGES = getenv_bool("INGEST_DEDUPE_ACROSS_PAGES", False)

# --- Preview ---
PREVIEW_SAMPLE_CHARS = getenv_int("INGEST_PREVIEW_SAMPLE_CHARS", 400)
