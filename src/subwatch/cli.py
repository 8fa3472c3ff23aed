from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table


app = typer.Typer(add_completion=False, help="Watch Frontline for substitute jobs; notify or auto-book over Telegram.")
console = Console()


def _setup(config: Optional[Path]):
    from .config import load_config
    from .logging_setup import setup_logging

    cfg = load_config(config)
    setup_logging(cfg.log_level, cfg.log_dir, console=console)
    return cfg


def _build_daemon(cfg):
    from .daemon import Daemon
    from .errors import ChannelError, ConfigError
    from .filtering import load_rules
    from .telegram import TelegramChannel

    try:
        channel = TelegramChannel.from_config(cfg)
        rules = load_rules(cfg.rules_path)
    except (ChannelError, ConfigError) as e:
        console.print(f"[red]config error:[/red] {e}")
        raise typer.Exit(2)
    return Daemon(cfg, channel, rules=rules)


def _fmt_age(seconds: float) -> str:
    s = int(seconds)
    if s >= 3600:
        return f"{s//3600}h{(s%3600)//60:02d}"
    if s >= 60:
        return f"{s//60}m{s%60:02d}"
    return f"{s}s"


@app.command()
def daemon(
    config: Optional[Path] = typer.Option(None, help="Path to config.env (default: search data/, ~/.subwatch, XDG)."),
) -> None:
    """Run the watcher until SIGINT/SIGTERM."""
    cfg = _setup(config)
    d = _build_daemon(cfg)
    d.shutdown.install_signal_handlers()
    raise typer.Exit(d.run())


@app.command()
def once(
    config: Optional[Path] = typer.Option(None, help="Path to config.env."),
    respect_hours: bool = typer.Option(False, help="Skip the run when outside operating hours."),
) -> None:
    """Run a single cycle now (ignores operating hours unless told otherwise)."""
    cfg = _setup(config)
    d = _build_daemon(cfg)
    raise typer.Exit(d.run_once(ignore_hours=not respect_hours))


@app.command()
def status(
    config: Optional[Path] = typer.Option(None, help="Path to config.env."),
) -> None:
    """Show run statistics, heartbeat and lifecycle entries by status."""
    from .config import load_config
    from .stats import RunStats, read_heartbeat
    from .store import LifecycleStore

    cfg = load_config(config)
    stats = RunStats.load(cfg.stats_path)
    store = LifecycleStore(cfg.store_path)
    store.load()

    hb = read_heartbeat(cfg.heartbeat_path)
    if hb and hb.get("timestamp"):
        try:
            ts = dt.datetime.fromisoformat(str(hb["timestamp"]))
            age = (dt.datetime.now(ts.tzinfo) - ts).total_seconds()
            console.print(f"Heartbeat: {hb.get('status')} (pid {hb.get('pid')}, {_fmt_age(age)} ago)")
        except ValueError:
            console.print(f"Heartbeat: {hb}")
    else:
        console.print("Heartbeat: none")

    counters = Table(title="Run statistics")
    counters.add_column("Counter")
    counters.add_column("Value", justify="right")
    for name in (
        "cycles",
        "errors",
        "jobs_scraped",
        "matched",
        "uncertain_matched",
        "notified",
        "auto_booked",
        "booked",
        "taken",
        "booking_failed",
        "ignored",
        "expired",
        "session_restarts",
    ):
        counters.add_row(name, str(getattr(stats, name)))
    console.print(counters)
    console.print(f"Started: {stats.started_at or '-'}  Last cycle: {stats.last_cycle_at or '-'}")
    if stats.last_error:
        console.print(f"[yellow]Last error:[/yellow] {stats.last_error}")

    entries = Table(title=f"Lifecycle entries ({len(store)})")
    entries.add_column("Status")
    entries.add_column("Count", justify="right")
    for s, n in store.count_by_status().items():
        entries.add_row(s, str(n))
    console.print(entries)


@app.command()
def classify(
    school: str = typer.Option(..., help="School name as shown on the portal."),
    position: str = typer.Option(..., help="Position / subject."),
    duration: str = typer.Option("Full Day", help="Duration text."),
    date: str = typer.Option("", help="Job date, e.g. 'Mon, 10/20/2025'."),
    config: Optional[Path] = typer.Option(None, help="Path to config.env."),
) -> None:
    """Show how the filter rules treat a job."""
    from .config import load_config
    from .context import local_now
    from .filtering import classify_job, load_rules
    from .models import Job
    from .normalize import days_ahead

    cfg = load_config(config)
    rules = load_rules(cfg.rules_path)
    job = Job(date=date or "N/A", school=school, position=position, duration=duration)
    result = classify_job(job, rules)

    verdict = "MATCH" if result.match else "REJECT"
    if result.match and result.uncertain:
        verdict += " (uncertain)"
    console.print(f"{verdict}: {result.reason}")
    if date:
        console.print(f"days ahead: {days_ahead(date, local_now(cfg.timezone))}")
    console.print(f"fingerprint: {job.fingerprint}")


@app.command(name="test-notify")
def test_notify(
    config: Optional[Path] = typer.Option(None, help="Path to config.env."),
) -> None:
    """Send a test message to the configured Telegram chat."""
    from .config import load_config
    from .errors import ChannelError
    from .messages import TEST_MESSAGE
    from .telegram import TelegramChannel

    cfg = load_config(config)
    try:
        message_id = TelegramChannel.from_config(cfg).send_message(TEST_MESSAGE)
    except ChannelError as e:
        console.print(f"FAIL telegram: {e}")
        console.print("Check TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID and that the bot is in the chat.")
        raise typer.Exit(1)
    console.print(f"OK telegram: message_id={message_id}")


if __name__ == "__main__":
    app()
