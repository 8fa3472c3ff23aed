from __future__ import annotations

import datetime as dt
import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import DuplicateEntry, InvalidTransition, StoreError
from .models import BOOKING, FAILED, STATUSES, TRANSITIONS, NotificationEntry


log = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def to_ms(t: dt.datetime) -> int:
    return int(t.timestamp() * 1000)


def read_json(path: Path) -> Optional[object]:
    if not path.exists():
        return None
    return json.loads(path.read_text(encoding="utf-8"))


def write_json(path: Path, data: object) -> None:
    """Write JSON atomically so a crash never leaves a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    os.replace(tmp, path)


class LifecycleStore:
    """fingerprint -> NotificationEntry, persisted as one JSON document."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: Dict[str, NotificationEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def __iter__(self) -> Iterator[Tuple[str, NotificationEntry]]:
        return iter(list(self._entries.items()))

    def load(self) -> int:
        """Load entries from disk, upgrading legacy records.

        Returns the number of legacy records migrated.
        """
        try:
            raw = read_json(self.path)
        except (OSError, ValueError) as e:
            backup = self.path.with_name(f"{self.path.name}.corrupt-{int(dt.datetime.now().timestamp())}")
            log.error("Lifecycle store %s is unreadable (%s); moving it to %s", self.path, e, backup)
            try:
                os.replace(self.path, backup)
            except OSError as move_err:
                raise StoreError(f"Cannot move unreadable store {self.path}: {move_err}") from move_err
            raw = None

        self._entries = {}
        if raw is None:
            return 0
        if not isinstance(raw, dict):
            raise StoreError(f"Lifecycle store {self.path} is not a JSON object")

        migrated = 0
        for fp, rec in raw.items():
            if isinstance(rec, (int, float)) and not isinstance(rec, bool):
                self._entries[fp] = NotificationEntry.from_legacy(int(rec))
                migrated += 1
            elif isinstance(rec, dict):
                try:
                    self._entries[fp] = NotificationEntry.from_dict(rec)
                except ValueError as e:
                    log.warning("Dropping unreadable store record for %s: %s", fp, e)
            else:
                log.warning("Dropping unrecognized store record for %s: %r", fp, rec)

        if migrated:
            log.info("Migrated %d legacy notification records", migrated)
        return migrated

    def save(self) -> None:
        write_json(self.path, {fp: e.to_dict() for fp, e in self._entries.items()})

    def get(self, fingerprint: str) -> Optional[NotificationEntry]:
        return self._entries.get(fingerprint)

    def add(self, fingerprint: str, entry: NotificationEntry) -> None:
        if fingerprint in self._entries:
            raise DuplicateEntry(f"Entry already exists for {fingerprint}")
        if entry.status not in STATUSES:
            raise StoreError(f"Unknown status {entry.status!r}")
        self._entries[fingerprint] = entry

    def transition(self, fingerprint: str, status: str) -> NotificationEntry:
        entry = self._entries.get(fingerprint)
        if entry is None:
            raise StoreError(f"No entry for {fingerprint}")
        if status not in TRANSITIONS.get(entry.status, frozenset()):
            raise InvalidTransition(fingerprint, entry.status, status)
        entry.status = status
        return entry

    def entries_with_status(self, status: str) -> List[Tuple[str, NotificationEntry]]:
        return [(fp, e) for fp, e in self._entries.items() if e.status == status]

    def count_by_status(self) -> Dict[str, int]:
        counts = {s: 0 for s in STATUSES}
        for e in self._entries.values():
            counts[e.status] = counts.get(e.status, 0) + 1
        return counts

    def recover_interrupted(self) -> int:
        """Fail every entry left mid-booking by a previous process.

        The provider-side outcome of those attempts is unknown, so they are not
        retried.
        """
        n = 0
        for fp, entry in self.entries_with_status(BOOKING):
            self.transition(fp, FAILED)
            log.warning("Booking for %s was interrupted; marked failed", fp)
            n += 1
        return n

    def purge_older_than(self, days: int, now: dt.datetime) -> int:
        cutoff = to_ms(now) - days * DAY_MS
        stale = [fp for fp, e in self._entries.items() if e.timestamp <= cutoff]
        for fp in stale:
            del self._entries[fp]
        if stale:
            log.info("Cleaned up %d old job notifications (older than %d days)", len(stale), days)
        return len(stale)
