from __future__ import annotations

import datetime as dt
import logging
import signal
import threading
import time
from typing import Callable, Optional

from .booking import execute_bookings
from .callbacks import process_callbacks
from .config import AppConfig
from .context import CycleContext, local_now
from .dispatch import classify_jobs, dispatch_matches
from .errors import ChannelError
from .expiry import sweep_expired
from .filtering import DEFAULT_RULES, FilterRules
from .messages import format_error_alert
from .stats import RunStats, write_heartbeat
from .store import LifecycleStore


log = logging.getLogger(__name__)

# Why an inner loop ended.
END_SHUTDOWN = "shutdown"
END_OFFHOURS = "offhours"
END_RESTART = "restart"
END_ERRORS = "errors"


class ShutdownFlag:
    """Cooperative stop signal. Sleeps return as soon as it is set."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def requested(self) -> bool:
        return self._event.is_set()

    def request(self, reason: str = "") -> None:
        if not self._event.is_set():
            log.info("Shutdown requested%s", f" ({reason})" if reason else "")
        self._event.set()

    def sleep(self, seconds: float) -> bool:
        """Sleep up to `seconds`; True if interrupted by a shutdown request."""
        return self._event.wait(max(0.0, seconds))

    def install_signal_handlers(self) -> None:
        def _handler(signum, _frame) -> None:
            self.request(signal.Signals(signum).name)

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)


def is_operating_hours(now: dt.datetime, start_hour: int, end_hour: int) -> bool:
    # end_hour is exclusive: 5..23 means 05:00 through 22:59.
    return start_hour <= now.hour < end_hour


class Daemon:
    """Runs cycles forever: callbacks -> bookings -> expiry -> scrape -> dispatch.

    `session_factory(cfg)` must return an object with start, login,
    ensure_logged_in, scrape_jobs, attempt_booking and close.
    """

    def __init__(
        self,
        cfg: AppConfig,
        channel: object,
        *,
        session_factory: Optional[Callable[[AppConfig], object]] = None,
        store: Optional[LifecycleStore] = None,
        stats: Optional[RunStats] = None,
        rules: FilterRules = DEFAULT_RULES,
        shutdown: Optional[ShutdownFlag] = None,
        clock: Optional[Callable[[], dt.datetime]] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        if session_factory is None:
            from .frontline import FrontlineSession

            session_factory = FrontlineSession

        self.cfg = cfg
        self.channel = channel
        self.session_factory = session_factory
        self.store = store if store is not None else LifecycleStore(cfg.store_path)
        self.stats = stats if stats is not None else RunStats.load(cfg.stats_path)
        self.rules = rules
        self.shutdown = shutdown or ShutdownFlag()
        self.clock = clock or (lambda: local_now(cfg.timezone))
        self.monotonic = monotonic

    def in_operating_hours(self) -> bool:
        return is_operating_hours(self.clock(), self.cfg.active_start_hour, self.cfg.active_end_hour)

    def context(self, session: Optional[object]) -> CycleContext:
        return CycleContext(
            config=self.cfg,
            store=self.store,
            stats=self.stats,
            channel=self.channel,
            actuator=session,
            rules=self.rules,
            clock=self.clock,
        )

    def prepare(self) -> None:
        """Load persisted state and fail bookings a dead process left in flight."""
        self.store.load()
        recovered = self.store.recover_interrupted()
        if recovered:
            log.warning("Recovered %d interrupted booking(s) as failed", recovered)
            self.store.save()
        self.stats.started_at = self.clock().isoformat(timespec="seconds")
        log.info("Loaded %d previously notified jobs", len(self.store))

    def persist(self, status: str) -> None:
        self.store.save()
        self.stats.save(self.cfg.stats_path)
        write_heartbeat(self.cfg.heartbeat_path, status, self.clock())

    def _alert(self, text: str) -> None:
        try:
            self.channel.send_message(format_error_alert(text))
        except ChannelError as e:
            log.warning("Failed to send error alert: %s", e)

    def _record_error(self, err: BaseException, streak: int) -> None:
        self.stats.bump("errors")
        self.stats.last_error = f"{type(err).__name__}: {err}"
        log.error("Cycle failed (%d in a row): %s", streak, self.stats.last_error)
        if streak == 1:
            self._alert(self.stats.last_error)

    def run_cycle(self, session: object) -> None:
        """One full pass. The shutdown flag is checked between steps."""
        ctx = self.context(session)
        try:
            session.ensure_logged_in()
            if self.shutdown.requested:
                return

            process_callbacks(ctx)
            execute_bookings(ctx)
            sweep_expired(ctx)
            if self.shutdown.requested:
                return

            jobs = session.scrape_jobs()
            self.stats.bump("jobs_scraped", len(jobs))
            matches = classify_jobs(ctx, jobs)
            log.info("Found %d matching jobs out of %d total", len(matches), len(jobs))
            if self.shutdown.requested:
                return

            report = dispatch_matches(ctx, matches, total_scraped=len(jobs))
            log.info(
                "Cycle done: scraped=%d matched=%d new=%d auto_booked=%d",
                len(jobs),
                len(matches),
                report.created,
                report.auto_booked,
            )

            self.store.purge_older_than(self.cfg.retention_days, ctx.now())
            self.stats.bump("cycles")
            self.stats.last_cycle_at = ctx.now().isoformat(timespec="seconds")
        finally:
            self.persist("running")

    def _inner_loop(self, session: object) -> str:
        started = self.monotonic()
        restart_after = self.cfg.session_restart_hours * 3600
        streak = 0

        while not self.shutdown.requested:
            if not self.in_operating_hours():
                return END_OFFHOURS
            if self.monotonic() - started >= restart_after:
                log.info("Session restart interval reached")
                return END_RESTART

            try:
                self.run_cycle(session)
                streak = 0
            except Exception as e:
                streak += 1
                self._record_error(e, streak)
                if streak >= self.cfg.max_consecutive_errors:
                    log.error("%d consecutive failures; restarting the browser session", streak)
                    return END_ERRORS

            self.shutdown.sleep(self.cfg.interval_s)

        return END_SHUTDOWN

    def _open_session(self) -> object:
        session = self.session_factory(self.cfg)
        try:
            session.start()
            session.login()
        except Exception:
            session.close()
            raise
        return session

    def run(self) -> int:
        """Main loop. Returns the process exit code (0 on a clean shutdown)."""
        self.prepare()
        write_heartbeat(self.cfg.heartbeat_path, "starting", self.clock())
        start_failures = 0

        while not self.shutdown.requested:
            if not self.in_operating_hours():
                log.info(
                    "Outside operating hours (%02d:00-%02d:00 %s); sleeping",
                    self.cfg.active_start_hour,
                    self.cfg.active_end_hour,
                    self.cfg.timezone,
                )
                write_heartbeat(self.cfg.heartbeat_path, "sleeping", self.clock())
                self.shutdown.sleep(self.cfg.offhours_sleep_s)
                continue

            try:
                session = self._open_session()
            except Exception as e:
                start_failures += 1
                self._record_error(e, start_failures)
                if start_failures >= self.cfg.max_session_failures:
                    log.error("Could not start a portal session %d times in a row; exiting", start_failures)
                    self.persist("crashed")
                    return 1
                self.persist("degraded")
                self.shutdown.sleep(min(60 * start_failures, 600))
                continue

            start_failures = 0
            try:
                reason = self._inner_loop(session)
            finally:
                session.close()
                log.info("Browser session closed")

            if reason in (END_RESTART, END_ERRORS):
                self.stats.bump("session_restarts")

        self.persist("stopped")
        log.info("Shut down cleanly")
        return 0

    def run_once(self, *, ignore_hours: bool = True) -> int:
        """Single cycle with a fresh session; used for manual checks."""
        self.prepare()
        if not ignore_hours and not self.in_operating_hours():
            log.info("Outside operating hours; nothing to do")
            return 0

        try:
            session = self._open_session()
        except Exception as e:
            self._record_error(e, 1)
            self.persist("crashed")
            return 1

        try:
            self.run_cycle(session)
        except Exception as e:
            self._record_error(e, 1)
            return 1
        finally:
            session.close()
        return 0
