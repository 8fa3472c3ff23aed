from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


MISSING = "N/A"

# Entry statuses.
NOTIFIED = "notified"
BOOK_REQUESTED = "book_requested"
BOOKING = "booking"
BOOKED = "booked"
FAILED = "failed"
IGNORED = "ignored"
EXPIRED = "expired"

STATUSES = (NOTIFIED, BOOK_REQUESTED, BOOKING, BOOKED, FAILED, IGNORED, EXPIRED)
TERMINAL_STATUSES = frozenset({BOOKED, FAILED, IGNORED, EXPIRED})

TRANSITIONS: Dict[str, frozenset] = {
    NOTIFIED: frozenset({BOOK_REQUESTED, IGNORED, EXPIRED}),
    BOOK_REQUESTED: frozenset({BOOKING}),
    BOOKING: frozenset({BOOKED, FAILED}),
}

# Booking actuator outcomes.
OUTCOME_BOOKED = "booked"
OUTCOME_TAKEN = "taken"
OUTCOME_ERROR = "error"


def _text(v: Any) -> str:
    if v is None:
        return MISSING
    s = str(v).strip()
    return s or MISSING


@dataclass(frozen=True)
class DayDetail:
    date: str = MISSING
    start_time: str = MISSING
    end_time: str = MISSING
    duration: str = MISSING
    location: str = MISSING

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DayDetail":
        return cls(
            date=_text(d.get("date")),
            start_time=_text(d.get("startTime")),
            end_time=_text(d.get("endTime")),
            duration=_text(d.get("duration")),
            location=_text(d.get("location")),
        )


@dataclass(frozen=True)
class Job:
    """One posting from the Available Jobs list.

    For multi-day jobs the top-level date/time/duration/school fields mirror the
    first day and `days` holds every day in page order.
    """

    date: str
    school: str
    position: str
    teacher: str = MISSING
    report_to: str = MISSING
    job_number: str = MISSING
    start_time: str = MISSING
    end_time: str = MISSING
    duration: str = MISSING
    is_multi_day: bool = False
    days: Tuple[DayDetail, ...] = field(default_factory=tuple)

    @property
    def kind(self) -> str:
        return "multi" if self.is_multi_day and self.days else "single"

    @property
    def fingerprint(self) -> str:
        return job_fingerprint(self)

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "school": self.school,
            "position": self.position,
            "teacher": self.teacher,
            "reportTo": self.report_to,
            "jobNumber": self.job_number,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "isMultiDay": self.is_multi_day,
            "days": [d.to_dict() for d in self.days],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Job":
        days = tuple(DayDetail.from_dict(x) for x in (d.get("days") or []) if isinstance(x, dict))
        return cls(
            date=_text(d.get("date")),
            school=_text(d.get("school")),
            position=_text(d.get("position")),
            teacher=_text(d.get("teacher")),
            report_to=_text(d.get("reportTo")),
            job_number=_text(d.get("jobNumber")),
            start_time=_text(d.get("startTime")),
            end_time=_text(d.get("endTime")),
            duration=_text(d.get("duration")),
            is_multi_day=bool(d.get("isMultiDay")),
            days=days,
        )


def job_fingerprint(job: Job) -> str:
    # Identity is date + school + position only. Two postings sharing all three
    # collapse into one entry.
    key = f"{job.date}-{job.school}-{job.position}".lower()
    return hashlib.md5(key.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ClassifierResult:
    match: bool
    uncertain: bool
    reason: str


def _ms(v: Any) -> int:
    """Epoch milliseconds from a stored value; ValueError if it is not a number."""
    if isinstance(v, bool) or not isinstance(v, (int, float, str)):
        raise ValueError(f"not a timestamp: {v!r}")
    try:
        return int(float(v))
    except (ValueError, OverflowError) as e:
        raise ValueError(f"not a timestamp: {v!r}") from e


@dataclass
class NotificationEntry:
    status: str
    timestamp: int
    expires_at: Optional[int] = None
    message_id: Optional[int] = None
    job_data: Optional[dict] = None
    uncertain: bool = False
    auto_booked: bool = False

    @property
    def job(self) -> Optional[Job]:
        if not self.job_data:
            return None
        return Job.from_dict(self.job_data)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "expiresAt": self.expires_at,
            "messageId": self.message_id,
            "jobData": self.job_data,
            "uncertain": self.uncertain,
            "autoBooked": self.auto_booked,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "NotificationEntry":
        status = d.get("status")
        if status not in STATUSES:
            status = EXPIRED
        return cls(
            status=status,
            timestamp=_ms(d.get("timestamp")),
            expires_at=_ms(d["expiresAt"]) if d.get("expiresAt") is not None else None,
            message_id=d.get("messageId") if isinstance(d.get("messageId"), int) else None,
            job_data=d.get("jobData") if isinstance(d.get("jobData"), dict) else None,
            uncertain=bool(d.get("uncertain")),
            auto_booked=bool(d.get("autoBooked")),
        )

    @classmethod
    def from_legacy(cls, ts: int) -> "NotificationEntry":
        """Old state files stored a bare timestamp per fingerprint."""
        return cls(status=EXPIRED, timestamp=int(ts), expires_at=int(ts))
