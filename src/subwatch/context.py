from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from .config import AppConfig
from .errors import ChannelError
from .filtering import DEFAULT_RULES, FilterRules
from .models import NotificationEntry
from .stats import RunStats
from .store import LifecycleStore


log = logging.getLogger(__name__)


def local_now(tz_name: str) -> dt.datetime:
    return dt.datetime.now(ZoneInfo(tz_name))


@dataclass
class CycleContext:
    """Everything one cycle reads and mutates, passed explicitly.

    `channel` needs send_message/edit_message/poll_events/acknowledge_event.
    `actuator` needs attempt_booking(job) -> "booked" | "taken" | "error"; it is
    None when no portal session is open.
    """

    config: AppConfig
    store: LifecycleStore
    stats: RunStats
    channel: object
    actuator: Optional[object] = None
    rules: FilterRules = DEFAULT_RULES
    clock: Optional[Callable[[], dt.datetime]] = field(default=None, repr=False)

    def now(self) -> dt.datetime:
        if self.clock is not None:
            return self.clock()
        return local_now(self.config.timezone)

    def edit_entry_message(self, fingerprint: str, entry: NotificationEntry, text: str) -> bool:
        """Best-effort edit of the message behind an entry. Returns True on success."""
        if entry.message_id is None:
            return False
        try:
            self.channel.edit_message(entry.message_id, text)
            return True
        except ChannelError as e:
            log.warning("Could not update message for %s: %s", fingerprint, e)
            return False
