from __future__ import annotations

import datetime as dt
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .store import read_json, write_json


log = logging.getLogger(__name__)


@dataclass
class RunStats:
    """Counters across daemon runs, plus the Telegram update cursor."""

    cycles: int = 0
    errors: int = 0
    jobs_scraped: int = 0
    matched: int = 0
    uncertain_matched: int = 0
    notified: int = 0
    auto_booked: int = 0
    booked: int = 0
    taken: int = 0
    booking_failed: int = 0
    ignored: int = 0
    expired: int = 0
    session_restarts: int = 0

    update_offset: int = 0
    started_at: Optional[str] = None
    last_cycle_at: Optional[str] = None
    last_error: Optional[str] = None

    def bump(self, name: str, n: int = 1) -> None:
        setattr(self, name, getattr(self, name) + n)

    @classmethod
    def load(cls, path: Path) -> "RunStats":
        try:
            raw = read_json(path)
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable stats file %s: %s", path, e)
            return cls()
        if not isinstance(raw, dict):
            return cls()
        stats = cls()
        for f in fields(cls):
            if f.name not in raw:
                continue
            v = raw[f.name]
            default = getattr(stats, f.name)
            if isinstance(default, int):
                ok = isinstance(v, int) and not isinstance(v, bool)
            else:
                ok = v is None or isinstance(v, str)
            if ok:
                setattr(stats, f.name, v)
            else:
                log.warning("Ignoring bad value for %s in %s: %r", f.name, path, v)
        return stats

    def save(self, path: Path) -> None:
        write_json(path, asdict(self))


def write_heartbeat(path: Path, status: str, now: Optional[dt.datetime] = None) -> None:
    now = now or dt.datetime.now(dt.timezone.utc)
    write_json(
        path,
        {
            "pid": os.getpid(),
            "timestamp": now.isoformat(timespec="seconds"),
            "status": status,
        },
    )


def read_heartbeat(path: Path) -> Optional[dict]:
    try:
        raw = read_json(path)
    except (OSError, ValueError):
        return None
    return raw if isinstance(raw, dict) else None
