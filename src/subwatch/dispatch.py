from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .booking import execute_bookings
from .context import CycleContext
from .errors import ChannelError
from .filtering import classify_job
from .messages import confirm_actions, format_auto_booking, format_confirmation, format_summary
from .models import BOOK_REQUESTED, NOTIFIED, ClassifierResult, Job, NotificationEntry
from .normalize import days_ahead
from .store import to_ms


log = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    created: int = 0
    uncertain: int = 0
    auto_booked: int = 0
    duplicates: int = 0
    send_failures: int = 0


def classify_jobs(ctx: CycleContext, jobs: Iterable[Job]) -> List[Tuple[Job, ClassifierResult]]:
    """Classify a scrape; returns only the matches, in page order."""
    matches: List[Tuple[Job, ClassifierResult]] = []
    for job in jobs:
        result = classify_job(job, ctx.rules)
        if result.match:
            log.info("✓ Matched: %s at %s - %s", job.position, job.school, result.reason)
            matches.append((job, result))
        else:
            log.info("✗ Rejected: %s at %s - %s", job.position, job.school, result.reason)
    return matches


def is_auto_book_eligible(ctx: CycleContext, result: ClassifierResult, ahead: int) -> bool:
    # The provider's cancellation cutoff is 48h; the extra day covers our own
    # poll cadence.
    return ctx.config.auto_book and not result.uncertain and ahead >= ctx.config.auto_book_min_days


def dispatch_matches(
    ctx: CycleContext,
    matches: Iterable[Tuple[Job, ClassifierResult]],
    *,
    total_scraped: int = 0,
) -> DispatchReport:
    """Create one lifecycle entry per new matching job and notify about it."""
    report = DispatchReport()
    matched_total = 0

    for job, result in matches:
        if not result.match:
            continue
        matched_total += 1
        fp = job.fingerprint
        if fp in ctx.store:
            report.duplicates += 1
            log.info("Already notified about: %s at %s", job.position, job.school)
            continue

        now = ctx.now()
        ahead = days_ahead(job.date, now)
        if is_auto_book_eligible(ctx, result, ahead):
            created = _dispatch_auto_book(ctx, fp, job, result, ahead, now)
        else:
            created = _dispatch_confirmation(ctx, fp, job, result, now)

        if not created:
            report.send_failures += 1
            continue

        report.created += 1
        ctx.stats.bump("matched")
        ctx.stats.bump("notified")
        if result.uncertain:
            report.uncertain += 1
            ctx.stats.bump("uncertain_matched")
        if ctx.store.get(fp).auto_booked:
            report.auto_booked += 1
            ctx.stats.bump("auto_booked")
            execute_bookings(ctx, only=[fp])

    if report.created:
        try:
            ctx.channel.send_message(
                format_summary(
                    total=total_scraped,
                    matched=matched_total,
                    notified=report.created,
                    uncertain=report.uncertain,
                    auto_booked=report.auto_booked,
                )
            )
        except ChannelError as e:
            log.warning("Failed to send summary: %s", e)

    return report


def _dispatch_auto_book(
    ctx: CycleContext, fp: str, job: Job, result: ClassifierResult, ahead: int, now: dt.datetime
) -> bool:
    log.info("🤖 Auto-booking %s at %s (%d days ahead)", job.position, job.school, ahead)
    try:
        message_id = ctx.channel.send_message(format_auto_booking(job, ahead))
    except ChannelError as e:
        log.error("Failed to send auto-book notification: %s", e)
        return False

    ctx.store.add(
        fp,
        NotificationEntry(
            status=BOOK_REQUESTED,
            timestamp=to_ms(now),
            expires_at=None,
            message_id=message_id,
            job_data=job.to_dict(),
            uncertain=result.uncertain,
            auto_booked=True,
        ),
    )
    ctx.store.save()
    return True


def _dispatch_confirmation(ctx: CycleContext, fp: str, job: Job, result: ClassifierResult, now: dt.datetime) -> bool:
    log.info("🔔 New job to notify: %s at %s", job.position, job.school)
    window = ctx.config.confirm_window_min
    try:
        message_id = ctx.channel.send_message(
            format_confirmation(job, uncertain=result.uncertain, confirm_window_min=window, login_url=ctx.config.login_url),
            actions=confirm_actions(fp),
        )
    except ChannelError as e:
        log.error("Failed to send notification: %s", e)
        return False

    ctx.store.add(
        fp,
        NotificationEntry(
            status=NOTIFIED,
            timestamp=to_ms(now),
            expires_at=to_ms(now + dt.timedelta(minutes=window)),
            message_id=message_id,
            job_data=job.to_dict(),
            uncertain=result.uncertain,
            auto_booked=False,
        ),
    )
    ctx.store.save()
    return True
