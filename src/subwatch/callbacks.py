from __future__ import annotations

import logging

from .context import CycleContext
from .errors import ChannelError
from .messages import ACTION_BOOK, ACTION_IGNORE, format_ignored
from .models import BOOK_REQUESTED, IGNORED, NOTIFIED


log = logging.getLogger(__name__)


def _ack(ctx: CycleContext, event_id: str, text: str) -> None:
    try:
        ctx.channel.acknowledge_event(event_id, text)
    except ChannelError as e:
        log.warning("Could not answer callback %s: %s", event_id, e)


def process_callbacks(ctx: CycleContext) -> int:
    """Apply pending Book/Ignore presses to the store.

    The update cursor lives in ctx.stats so presses are never handled twice
    across restarts. Returns the number of events seen.
    """
    try:
        events, next_offset = ctx.channel.poll_events(ctx.stats.update_offset)
    except ChannelError as e:
        log.warning("Polling button presses failed: %s", e)
        return 0

    for ev in events:
        fp = ev.fingerprint
        entry = ctx.store.get(fp) if fp else None

        if entry is None:
            log.info("Button press for unknown job %r", fp)
            _ack(ctx, ev.id, "Job not found (may have been cleaned up)")
            continue

        if ev.action not in (ACTION_BOOK, ACTION_IGNORE):
            log.warning("Unknown button action %r for %s", ev.action, fp)
            _ack(ctx, ev.id, "Unknown action")
            continue

        if entry.status != NOTIFIED:
            _ack(ctx, ev.id, f"Already {entry.status}")
            continue

        if ev.action == ACTION_BOOK:
            ctx.store.transition(fp, BOOK_REQUESTED)
            log.info("Book requested for %s", fp)
            _ack(ctx, ev.id, "Booking…")
        else:
            ctx.store.transition(fp, IGNORED)
            ctx.stats.bump("ignored")
            log.info("Ignored %s", fp)
            job = entry.job
            if job is not None:
                ctx.edit_entry_message(fp, entry, format_ignored(job))
            _ack(ctx, ev.id, "Ignored")

    ctx.stats.update_offset = next_offset
    return len(events)
