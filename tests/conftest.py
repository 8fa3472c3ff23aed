from __future__ import annotations

import datetime as dt
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo

import pytest

from subwatch.config import AppConfig
from subwatch.context import CycleContext
from subwatch.errors import ChannelError
from subwatch.models import OUTCOME_BOOKED, Job
from subwatch.stats import RunStats
from subwatch.store import LifecycleStore
from subwatch.telegram import CallbackEvent


DENVER = ZoneInfo("America/Denver")
# Wednesday morning, inside operating hours.
NOW = dt.datetime(2025, 10, 15, 10, 0, tzinfo=DENVER)


class Clock:
    def __init__(self, now: dt.datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


class FakeChannel:
    """In-memory stand-in for TelegramChannel."""

    def __init__(self) -> None:
        self.sent: List[Tuple[int, str, Optional[list]]] = []
        self.edits: List[Tuple[int, str]] = []
        self.acks: List[Tuple[str, str]] = []
        self.pending: List[Tuple[int, CallbackEvent]] = []
        self.fail_send = False
        self._next_message_id = 100
        self._next_update_id = 1

    def send_message(self, text: str, actions=None) -> int:
        if self.fail_send:
            raise ChannelError("send failed")
        self._next_message_id += 1
        self.sent.append((self._next_message_id, text, list(actions) if actions else None))
        return self._next_message_id

    def edit_message(self, message_id: int, text: str) -> None:
        self.edits.append((message_id, text))

    def poll_events(self, offset: int):
        ready = [(uid, ev) for uid, ev in self.pending if uid >= offset]
        if not ready:
            return [], offset
        return [ev for _, ev in ready], ready[-1][0] + 1

    def acknowledge_event(self, event_id: str, text: str) -> None:
        self.acks.append((event_id, text))

    def press(self, action: str, fingerprint: str) -> str:
        uid = self._next_update_id
        self._next_update_id += 1
        event_id = f"cb{uid}"
        self.pending.append((uid, CallbackEvent(id=event_id, data=f"{action}:{fingerprint}")))
        return event_id


class FakeActuator:
    def __init__(self, outcome: str = OUTCOME_BOOKED, raises: Optional[Exception] = None) -> None:
        self.outcome = outcome
        self.raises = raises
        self.calls: List[Job] = []

    def attempt_booking(self, job: Job) -> str:
        self.calls.append(job)
        if self.raises is not None:
            raise self.raises
        return self.outcome


def make_job(
    date: str = "Mon, 10/20/2025",
    school: str = "Timpanogos High School",
    position: str = "US History",
    duration: str = "Full Day",
    **kwargs,
) -> Job:
    defaults = dict(
        teacher="Smith, Anne",
        report_to="Timpanogos High School",
        job_number="123456789",
        start_time="7:30 AM",
        end_time="2:45 PM",
    )
    defaults.update(kwargs)
    return Job(date=date, school=school, position=position, duration=duration, **defaults)


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def cfg(tmp_path) -> AppConfig:
    return AppConfig(
        base_dir=tmp_path,
        login_url="https://login.example.test/",
        username="sub",
        password="secret",
        telegram_token="t",
        telegram_chat_id="c",
        interval_s=0,
        offhours_sleep_s=0,
    )


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def actuator() -> FakeActuator:
    return FakeActuator()


@pytest.fixture()
def ctx(cfg, channel, actuator, clock) -> CycleContext:
    return CycleContext(
        config=cfg,
        store=LifecycleStore(cfg.store_path),
        stats=RunStats(),
        channel=channel,
        actuator=actuator,
        clock=clock,
    )
