from __future__ import annotations

import logging

from .context import CycleContext
from .messages import format_expired
from .models import EXPIRED, NOTIFIED
from .store import to_ms


log = logging.getLogger(__name__)


def sweep_expired(ctx: CycleContext) -> int:
    """Expire confirmation requests nobody answered in time."""
    now_ms = to_ms(ctx.now())
    n = 0
    for fp, entry in ctx.store.entries_with_status(NOTIFIED):
        if entry.expires_at is None or entry.expires_at > now_ms:
            continue
        ctx.store.transition(fp, EXPIRED)
        ctx.stats.bump("expired")
        n += 1
        job = entry.job
        if job is not None:
            ctx.edit_entry_message(fp, entry, format_expired(job, login_url=ctx.config.login_url))
    if n:
        log.info("Expired %d unanswered notification(s)", n)
    return n
