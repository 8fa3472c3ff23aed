import json

import pytest

from conftest import NOW, make_job
from subwatch.errors import DuplicateEntry, InvalidTransition, StoreError
from subwatch.models import BOOK_REQUESTED, BOOKED, BOOKING, EXPIRED, FAILED, IGNORED, NOTIFIED, NotificationEntry
from subwatch.stats import RunStats, read_heartbeat, write_heartbeat
from subwatch.store import DAY_MS, LifecycleStore, to_ms


def _entry(status=NOTIFIED, ts=None) -> NotificationEntry:
    ts = to_ms(NOW) if ts is None else ts
    return NotificationEntry(status=status, timestamp=ts, job_data=make_job().to_dict())


class TestLoadSave:
    def test_missing_file_is_empty(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "notified-jobs.json")
        assert store.load() == 0
        assert len(store) == 0

    def test_save_then_load(self, tmp_path) -> None:
        path = tmp_path / "notified-jobs.json"
        store = LifecycleStore(path)
        store.add("abc", _entry())
        store.save()

        raw = json.loads(path.read_text(encoding="utf-8"))
        assert raw["abc"]["status"] == "notified"
        assert "expiresAt" in raw["abc"]
        assert not (tmp_path / "notified-jobs.json.tmp").exists()

        again = LifecycleStore(path)
        again.load()
        assert again.get("abc") == store.get("abc")

    def test_legacy_timestamps_become_expired(self, tmp_path) -> None:
        path = tmp_path / "notified-jobs.json"
        path.write_text(json.dumps({"old1": 1700000000000, "old2": 1700000001000}), encoding="utf-8")
        store = LifecycleStore(path)
        assert store.load() == 2
        assert store.get("old1").status == EXPIRED
        assert store.get("old2").timestamp == 1700000001000

    def test_corrupt_file_is_moved_aside(self, tmp_path) -> None:
        path = tmp_path / "notified-jobs.json"
        path.write_text("{broken", encoding="utf-8")
        store = LifecycleStore(path)
        assert store.load() == 0
        assert not path.exists()
        assert list(tmp_path.glob("notified-jobs.json.corrupt-*"))

    def test_non_object_document_raises(self, tmp_path) -> None:
        path = tmp_path / "notified-jobs.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StoreError):
            LifecycleStore(path).load()


class TestTransitions:
    def test_allowed_path_to_booked(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        store.add("fp", _entry())
        store.transition("fp", BOOK_REQUESTED)
        store.transition("fp", BOOKING)
        assert store.transition("fp", BOOKED).status == BOOKED

    def test_terminal_states_do_not_move(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        store.add("fp", _entry(status=IGNORED))
        with pytest.raises(InvalidTransition) as exc:
            store.transition("fp", BOOK_REQUESTED)
        assert exc.value.current == IGNORED
        assert store.get("fp").status == IGNORED

    def test_cannot_skip_booking(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        store.add("fp", _entry(status=BOOK_REQUESTED))
        with pytest.raises(InvalidTransition):
            store.transition("fp", BOOKED)

    def test_duplicate_add_rejected(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        store.add("fp", _entry())
        with pytest.raises(DuplicateEntry):
            store.add("fp", _entry(status=EXPIRED))
        assert store.get("fp").status == NOTIFIED

    def test_recover_interrupted_fails_in_flight_bookings(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        store.add("a", _entry(status=BOOKING))
        store.add("b", _entry(status=BOOK_REQUESTED))
        assert store.recover_interrupted() == 1
        assert store.get("a").status == FAILED
        assert store.get("b").status == BOOK_REQUESTED

    def test_count_by_status(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        store.add("a", _entry())
        store.add("b", _entry(status=EXPIRED))
        counts = store.count_by_status()
        assert counts[NOTIFIED] == 1
        assert counts[EXPIRED] == 1
        assert counts[BOOKED] == 0


class TestPurge:
    def test_removes_entries_at_or_past_retention(self, tmp_path) -> None:
        store = LifecycleStore(tmp_path / "s.json")
        now_ms = to_ms(NOW)
        store.add("old", _entry(status=BOOKED, ts=now_ms - 7 * DAY_MS))
        store.add("older", _entry(status=NOTIFIED, ts=now_ms - 8 * DAY_MS))
        store.add("fresh", _entry(ts=now_ms - 6 * DAY_MS))
        assert store.purge_older_than(7, NOW) == 2
        assert "fresh" in store
        assert "old" not in store


class TestStats:
    def test_load_missing_is_zeroed(self, tmp_path) -> None:
        assert RunStats.load(tmp_path / "stats.json") == RunStats()

    def test_save_and_load_ignores_unknown_keys(self, tmp_path) -> None:
        path = tmp_path / "stats.json"
        stats = RunStats()
        stats.bump("notified", 3)
        stats.update_offset = 42
        stats.save(path)

        raw = json.loads(path.read_text(encoding="utf-8"))
        raw["retired_counter"] = 9
        path.write_text(json.dumps(raw), encoding="utf-8")

        again = RunStats.load(path)
        assert again.notified == 3
        assert again.update_offset == 42

    def test_unreadable_stats_start_fresh(self, tmp_path) -> None:
        path = tmp_path / "stats.json"
        path.write_text("nope", encoding="utf-8")
        assert RunStats.load(path).cycles == 0

    def test_heartbeat(self, tmp_path) -> None:
        path = tmp_path / "heartbeat.json"
        write_heartbeat(path, "running", NOW)
        hb = read_heartbeat(path)
        assert hb["status"] == "running"
        assert hb["timestamp"].startswith("2025-10-15T10:00:00")
        assert isinstance(hb["pid"], int)


class TestBadValues:
    def test_unreadable_record_is_dropped(self, tmp_path) -> None:
        path = tmp_path / "notified-jobs.json"
        good = _entry().to_dict()
        bad = dict(good, timestamp="yesterday")
        path.write_text(json.dumps({"good": good, "bad": bad}), encoding="utf-8")

        store = LifecycleStore(path)
        store.load()
        assert "good" in store
        assert "bad" not in store

    def test_odd_optional_fields_fall_back(self) -> None:
        e = NotificationEntry.from_dict({"status": "notified", "timestamp": "1700000000000", "messageId": "x", "jobData": []})
        assert e.timestamp == 1700000000000
        assert e.message_id is None
        assert e.job_data is None

    def test_stats_bad_values_keep_defaults(self, tmp_path) -> None:
        path = tmp_path / "stats.json"
        path.write_text(json.dumps({"cycles": None, "errors": "7", "notified": 4, "last_error": 3}), encoding="utf-8")
        stats = RunStats.load(path)
        assert stats.cycles == 0
        assert stats.errors == 0
        assert stats.notified == 4
        assert stats.last_error is None

        stats.bump("cycles")
        assert stats.cycles == 1
