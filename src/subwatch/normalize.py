from __future__ import annotations

import datetime as dt
import re
from typing import Optional

from .models import Job


FULL_DAY = "FULL_DAY"
HALF_DAY = "HALF_DAY"
UNKNOWN = "UNKNOWN"

FULL_DAY_PATTERNS: list[str] = [
    "full day",
    "full-day",
    "fullday",
]

HALF_DAY_PATTERNS: list[str] = [
    "half day",
    "half-day",
    "halfday",
    "partial",
]

_WEEKDAY_PREFIX_RE = re.compile(
    r"^\s*(?:mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)(?:day|sday|nesday|rsday|urday)?\.?,?\s+",
    flags=re.IGNORECASE,
)

DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%y",
    "%Y-%m-%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
)


def duration_kind(
    text: Optional[str],
    *,
    full_patterns: list[str] = FULL_DAY_PATTERNS,
    half_patterns: list[str] = HALF_DAY_PATTERNS,
) -> str:
    t = (text or "").lower()
    # Half-day wins so "Half Day (not full day)" never reads as full.
    if any(p in t for p in half_patterns):
        return HALF_DAY
    if any(p in t for p in full_patterns):
        return FULL_DAY
    return UNKNOWN


def job_duration_kind(
    job: Job,
    *,
    full_patterns: list[str] = FULL_DAY_PATTERNS,
    half_patterns: list[str] = HALF_DAY_PATTERNS,
) -> str:
    """Duration of the whole assignment.

    A multi-day job is half-day if any of its days is, and full-day only when
    every day is.
    """
    if job.kind == "single":
        return duration_kind(job.duration, full_patterns=full_patterns, half_patterns=half_patterns)

    kinds = [duration_kind(d.duration, full_patterns=full_patterns, half_patterns=half_patterns) for d in job.days]
    if HALF_DAY in kinds:
        return HALF_DAY
    if kinds and all(k == FULL_DAY for k in kinds):
        return FULL_DAY
    return UNKNOWN


def parse_job_date(text: Optional[str]) -> Optional[dt.date]:
    """Parse the portal's date text, e.g. "Mon, 10/20/2025" or "October 20, 2025"."""
    t = (text or "").strip()
    if not t:
        return None
    t = _WEEKDAY_PREFIX_RE.sub("", t).strip()
    t = re.sub(r"\s+", " ", t)
    for fmt in DATE_FORMATS:
        try:
            return dt.datetime.strptime(t, fmt).date()
        except ValueError:
            continue
    return None


def days_ahead(text: Optional[str], now: dt.datetime) -> int:
    """Calendar days from `now` (already in the operating timezone) to the job date.

    Returns -1 when the date cannot be parsed, which disqualifies auto-booking.
    """
    d = parse_job_date(text)
    if d is None:
        return -1
    return (d - now.date()).days
