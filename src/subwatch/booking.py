from __future__ import annotations

import logging
from typing import Iterable, Optional

from .context import CycleContext
from .messages import format_booked, format_booking_failed, format_taken
from .models import (
    BOOK_REQUESTED,
    BOOKED,
    BOOKING,
    FAILED,
    OUTCOME_BOOKED,
    OUTCOME_ERROR,
    OUTCOME_TAKEN,
    Job,
    NotificationEntry,
)
from .normalize import days_ahead


log = logging.getLogger(__name__)


def execute_bookings(ctx: CycleContext, only: Optional[Iterable[str]] = None) -> int:
    """Drive every book_requested entry (or just `only`) to booked/failed.

    Returns the number of attempts made.
    """
    if ctx.actuator is None:
        pending = ctx.store.entries_with_status(BOOK_REQUESTED)
        if pending:
            log.warning("No portal session; %d booking request(s) wait for the next cycle", len(pending))
        return 0

    wanted = set(only) if only is not None else None
    attempts = 0
    for fp, entry in ctx.store.entries_with_status(BOOK_REQUESTED):
        if wanted is not None and fp not in wanted:
            continue
        _book_one(ctx, fp, entry)
        attempts += 1
    return attempts


def _book_one(ctx: CycleContext, fp: str, entry: NotificationEntry) -> str:
    job = entry.job

    # Persist "booking" before touching the portal: if we die mid-attempt the
    # next start finds it and marks it failed.
    ctx.store.transition(fp, BOOKING)
    try:
        ctx.store.save()
    except OSError as e:
        # No attempt without the "booking" marker on disk.
        _mark_failed(ctx, fp, entry, job, f"could not save store: {e}")
        raise

    detail = ""
    if job is None:
        outcome = OUTCOME_ERROR
        detail = "entry has no job data"
    else:
        log.info("Booking %s at %s (%s)", job.position, job.school, job.date)
        try:
            outcome = ctx.actuator.attempt_booking(job)
        except Exception as e:
            log.exception("Booking attempt raised for %s", fp)
            outcome = OUTCOME_ERROR
            detail = str(e)

    if outcome == OUTCOME_BOOKED:
        ctx.store.transition(fp, BOOKED)
        ctx.stats.bump("booked")
        log.info("Booked %s", fp)
        if job is not None:
            ahead = days_ahead(job.date, ctx.now()) if entry.auto_booked else None
            ctx.edit_entry_message(
                fp,
                entry,
                format_booked(job, auto_booked=entry.auto_booked, days_ahead=ahead, login_url=ctx.config.login_url),
            )
    elif outcome == OUTCOME_TAKEN:
        ctx.store.transition(fp, FAILED)
        ctx.stats.bump("taken")
        log.info("Job %s was already taken", fp)
        if job is not None:
            ctx.edit_entry_message(fp, entry, format_taken(job))
    else:
        if outcome != OUTCOME_ERROR:
            log.error("Unexpected booking outcome %r for %s", outcome, fp)
            outcome = OUTCOME_ERROR
        _mark_failed(ctx, fp, entry, job, detail)

    ctx.store.save()
    return outcome


def _mark_failed(ctx: CycleContext, fp: str, entry: NotificationEntry, job: Optional[Job], detail: str) -> None:
    ctx.store.transition(fp, FAILED)
    ctx.stats.bump("booking_failed")
    log.error("Booking failed for %s %s", fp, detail)
    if job is not None:
        ctx.edit_entry_message(
            fp,
            entry,
            format_booking_failed(job, login_url=ctx.config.login_url, detail=detail),
        )
