from __future__ import annotations

from html import escape
from typing import List, Optional

from .models import Job


# Callback tags carried by the inline buttons: "<action>:<fingerprint>".
ACTION_BOOK = "book"
ACTION_IGNORE = "ignore"


def confirm_actions(fingerprint: str) -> list[tuple[str, str]]:
    return [
        ("📖 Book This Job", f"{ACTION_BOOK}:{fingerprint}"),
        ("❌ Ignore", f"{ACTION_IGNORE}:{fingerprint}"),
    ]


def _login_link(login_url: str, label: str) -> str:
    if not login_url:
        return label
    return f'<a href="{escape(login_url, quote=True)}">{label}</a>'


def format_job_details(job: Job) -> str:
    """Compact details block shared by every stage of a job's messages."""
    e = escape
    lines: List[str] = [
        f"📚 <b>Subject:</b> {e(job.position)}",
        f"🏫 <b>School:</b> {e(job.school)}",
    ]
    if job.kind == "multi":
        lines.append(f"📅 <b>Days ({len(job.days)}):</b>")
        for d in job.days:
            lines.append(f"  • {e(d.date)} · {e(d.start_time)}-{e(d.end_time)} ({e(d.duration)})")
    else:
        lines.append(f"📅 <b>Date:</b> {e(job.date)}")
        lines.append(f"⏰ <b>Time:</b> {e(job.start_time)} - {e(job.end_time)}")
        lines.append(f"⏱️ <b>Duration:</b> {e(job.duration)}")
    lines.append(f"👤 <b>Teacher:</b> {e(job.teacher)}")
    lines.append(f"🔢 <b>Job #:</b> {e(job.job_number)}")
    return "\n".join(lines)


def format_confirmation(job: Job, *, uncertain: bool, confirm_window_min: int, login_url: str = "") -> str:
    parts: List[str] = []
    if uncertain:
        parts += ["⚠️ <b>UNCERTAIN MATCH</b>: review this one", ""]
    title = "New Multi-Day Sub Job Available!" if job.kind == "multi" else "New Sub Job Available!"
    parts += [
        f"🏫 <b>{title}</b>",
        "",
        format_job_details(job),
        "",
        f"⏳ <i>Buttons expire in {confirm_window_min} minutes.</i>",
        "👉 " + _login_link(login_url, "<b>Log in to book manually</b>"),
    ]
    return "\n".join(parts)


def format_auto_booking(job: Job, days_ahead: int) -> str:
    return "\n".join(
        [
            "🤖 <b>NEW JOB FOUND, AUTO-BOOKING...</b>",
            "",
            format_job_details(job),
            "",
            f"⏳ <i>Attempting to book this job now ({days_ahead} days away)...</i>",
        ]
    )


def format_booked(job: Job, *, auto_booked: bool, days_ahead: Optional[int] = None, login_url: str = "") -> str:
    lines = [
        f"✅ <b>JOB BOOKED{' (Auto-Booked)' if auto_booked else ''}!</b>",
        "",
        format_job_details(job),
        "",
        "🎉 This job has been booked successfully.",
    ]
    if auto_booked:
        if days_ahead is not None and days_ahead >= 0:
            lines.append(f"📆 {days_ahead} days away, safe to cancel up to 48 hours before the job.")
        else:
            lines.append("📆 Booked ahead of time, safe to cancel up to 48 hours before the job.")
    lines += ["", "Need to cancel? " + _login_link(login_url, "Log in to Frontline")]
    return "\n".join(lines)


def format_taken(job: Job) -> str:
    return "\n".join(
        [
            "😔 <b>JOB ALREADY TAKEN</b>",
            "",
            format_job_details(job),
            "",
            "Someone else booked this one before we could get it. No action needed.",
        ]
    )


def format_booking_failed(job: Job, *, login_url: str = "", detail: str = "") -> str:
    lines = [
        "⚠️ <b>BOOKING FAILED</b>",
        "",
        format_job_details(job),
        "",
        "Something went wrong while trying to book this job.",
    ]
    if detail:
        lines.append(f"<code>{escape(detail[:300])}</code>")
    lines += [
        "If it's still available, you can try manually:",
        "👉 " + _login_link(login_url, "Log in to Frontline"),
    ]
    return "\n".join(lines)


def format_ignored(job: Job) -> str:
    return "\n".join(["❌ <b>IGNORED</b>", "", format_job_details(job)])


def format_expired(job: Job, *, login_url: str = "") -> str:
    return "\n".join(
        [
            "⏰ <b>EXPIRED</b> (no response)",
            "",
            format_job_details(job),
            "",
            "If still available: " + _login_link(login_url, "Log in to Frontline"),
        ]
    )


def format_summary(*, total: int, matched: int, notified: int, uncertain: int, auto_booked: int) -> str:
    lines = [
        "📊 <b>Scraper Run Summary</b>",
        "",
        f"🔍 Total jobs found: {total}",
        f"✅ Jobs matching filters: {matched}",
        f"🔔 New jobs notified: {notified}",
    ]
    if uncertain:
        lines.append(f"⚠️ Uncertain matches: {uncertain}")
    if auto_booked:
        lines.append(f"🤖 Auto-booking: {auto_booked}")
    lines += ["", "👆 Check messages above for details!"]
    return "\n".join(lines)


def format_error_alert(message: str) -> str:
    return "\n".join(
        [
            "🚨 <b>Scraper Error</b>",
            "",
            "An error occurred while running the substitute job scraper:",
            "",
            f"<code>{escape(message[:1000])}</code>",
            "",
            "Please check the logs for more details.",
        ]
    )


TEST_MESSAGE = (
    "✅ <b>Sub Job Scraper is connected!</b>\n\n"
    "Notifications will appear here when new matching jobs are found."
)
