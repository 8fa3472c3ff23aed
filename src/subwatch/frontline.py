from __future__ import annotations

import logging
import re
from typing import List, Optional

from playwright.sync_api import Browser, BrowserContext, Page, Playwright
from playwright.sync_api import Error as PWError
from playwright.sync_api import TimeoutError as PWTimeoutError
from playwright.sync_api import sync_playwright

from . import page_selectors as sel
from .config import AppConfig
from .errors import SessionError
from .models import MISSING, OUTCOME_BOOKED, OUTCOME_ERROR, OUTCOME_TAKEN, Job


log = logging.getLogger(__name__)

UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

# Reads every job card in one round trip. Keys match Job.from_dict.
_SCRAPE_JS = """
(bodies, s) => bodies.map(b => {
  const txt = (root, q) => {
    const el = root ? root.querySelector(q) : null;
    return el ? (el.textContent || '').trim() : 'N/A';
  };
  const summary = b.querySelector(s.summary_row);
  const details = Array.from(b.querySelectorAll(s.detail_row));
  const first = details.length ? details[0] : null;
  const multi = (b.getAttribute('class') || '').includes('multiday');
  return {
    teacher: txt(summary, s.teacher),
    position: txt(summary, s.position),
    reportTo: txt(summary, s.report_to),
    jobNumber: txt(summary, s.conf_num),
    date: txt(first, s.date),
    startTime: txt(first, s.start_time),
    endTime: txt(first, s.end_time),
    duration: txt(first, s.duration),
    school: txt(first, s.location),
    isMultiDay: multi,
    days: multi ? details.map(r => ({
      date: txt(r, s.date),
      startTime: txt(r, s.start_time),
      endTime: txt(r, s.end_time),
      duration: txt(r, s.duration),
      location: txt(r, s.location),
    })) : [],
  };
})
"""


def conf_number_pattern(job_number: str) -> re.Pattern:
    """Whole-text match for a confirmation number: "#12345" matches, "#123456" does not."""
    return re.compile(rf"^\s*#?\s*{re.escape(job_number.strip())}\s*$")


class FrontlineSession:
    """One logged-in browser session against the substitute portal.

    Acts as both the page scraper and the booking actuator for the daemon.
    """

    def __init__(self, cfg: AppConfig, *, timeout_ms: int = 30_000):
        self.cfg = cfg
        self.timeout_ms = timeout_ms
        self._pw: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    def __enter__(self) -> "FrontlineSession":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def page(self) -> Page:
        if self._page is None:
            raise SessionError("Browser session is not started")
        return self._page

    def start(self) -> None:
        if not self.cfg.login_url:
            raise SessionError("FRONTLINE_LOGIN_URL is not configured")
        log.info("Launching browser (headless=%s)", self.cfg.headless)
        try:
            self._pw = sync_playwright().start()
            self._browser = self._pw.chromium.launch(headless=self.cfg.headless)
            self._context = self._browser.new_context(
                viewport={"width": 1280, "height": 720},
                user_agent=UA,
                locale="en-US",
                timezone_id=self.cfg.timezone,
            )
            self._page = self._context.new_page()
            self._page.set_default_timeout(self.timeout_ms)
        except PWError as e:
            self.close()
            raise SessionError(f"Failed to launch browser: {e}") from e

    def close(self) -> None:
        for closer in (self._context, self._browser):
            try:
                if closer is not None:
                    closer.close()
            except PWError:
                pass
        try:
            if self._pw is not None:
                self._pw.stop()
        except PWError:
            pass
        self._pw = None
        self._browser = None
        self._context = None
        self._page = None

    def _on_login_page(self) -> bool:
        try:
            return self.page.locator(sel.LOGIN["username"]).first.is_visible()
        except PWError:
            return False

    def login(self) -> None:
        if not self.cfg.username or not self.cfg.password:
            raise SessionError("FRONTLINE_USERNAME / FRONTLINE_PASSWORD are not configured")

        page = self.page
        log.info("Logging in to Frontline")
        try:
            page.goto(self.cfg.login_url, wait_until="domcontentloaded", timeout=60_000)
            page.locator(sel.LOGIN["username"]).first.fill(self.cfg.username)
            page.locator(sel.LOGIN["password"]).first.fill(self.cfg.password)
            page.locator(sel.LOGIN["submit"]).first.click()
            page.wait_for_load_state("domcontentloaded", timeout=60_000)
        except PWTimeoutError as e:
            raise SessionError(f"Login timed out: {e}") from e
        except PWError as e:
            raise SessionError(f"Login failed: {e}") from e

        self._dismiss_popup()

        try:
            page.wait_for_selector(sel.NAVIGATION["available_tab"], timeout=15_000)
        except PWTimeoutError as e:
            if self._on_login_page():
                raise SessionError("Login rejected (still on the sign-in form)") from e
            raise SessionError("Login did not reach the jobs page") from e
        log.info("Login complete")

    def _dismiss_popup(self) -> None:
        try:
            if self.page.locator(sel.POPUP["dialog"]).first.is_visible(timeout=3000):
                log.info("Dismissing notification popup")
                self.page.locator(sel.POPUP["dismiss"]).first.click()
        except PWError:
            # No popup this time.
            pass

    def ensure_logged_in(self) -> None:
        """Reload the portal; log in again if the session expired."""
        page = self.page
        try:
            page.reload(wait_until="domcontentloaded")
        except PWError as e:
            raise SessionError(f"Reload failed: {e}") from e

        if self._on_login_page() or "login" in (page.url or "").lower():
            log.info("Session expired, logging in again")
            self.login()
        else:
            self._dismiss_popup()

    def _open_available_jobs(self) -> None:
        page = self.page
        page.wait_for_selector(sel.NAVIGATION["available_tab"], timeout=10_000)
        page.locator(sel.NAVIGATION["available_tab"]).first.click()
        page.wait_for_selector(sel.NAVIGATION["available_panel"], timeout=10_000)

    def scrape_jobs(self) -> List[Job]:
        page = self.page
        try:
            self._open_available_jobs()
            if page.locator(sel.JOBS["no_data"]).first.is_visible():
                log.info("No available jobs at this time")
                return []
            items = page.eval_on_selector_all(sel.JOBS["bodies"], _SCRAPE_JS, sel.JOBS)
        except PWTimeoutError as e:
            raise SessionError(f"Available Jobs page timed out: {e}") from e

        jobs: List[Job] = []
        for i, it in enumerate(items or []):
            if not isinstance(it, dict):
                log.warning("Skipping unreadable job card #%d", i)
                continue
            job = Job.from_dict(it)
            if job.is_multi_day:
                log.info("  Multi-day job detected: %d days", len(job.days))
            jobs.append(job)

        log.info("Successfully scraped %d jobs", len(jobs))
        return jobs

    def attempt_booking(self, job: Job) -> str:
        """Accept one job on the portal. Returns booked / taken / error."""
        if not job.job_number or job.job_number == MISSING:
            log.error("Job at %s on %s has no confirmation number; not booking", job.school, job.date)
            return OUTCOME_ERROR

        page = self.page
        try:
            self._open_available_jobs()
            card = page.locator(sel.JOBS["bodies"]).filter(
                has=page.locator(sel.JOBS["conf_num"], has_text=conf_number_pattern(job.job_number))
            )
            n = card.count()
            if n == 0:
                log.info("Job #%s is no longer listed", job.job_number)
                return OUTCOME_TAKEN
            if n > 1:
                log.error("Job #%s matches %d cards; not booking", job.job_number, n)
                return OUTCOME_ERROR

            card.first.locator(sel.BOOKING["accept"]).first.click()

            confirm = page.locator(sel.BOOKING["confirm"]).first
            if confirm.is_visible(timeout=5000):
                confirm.click()

            success = page.locator(sel.BOOKING["success"])
            unavailable = page.locator(sel.BOOKING["unavailable"])
            success.or_(unavailable).first.wait_for(state="visible", timeout=20_000)
            if success.first.is_visible():
                return OUTCOME_BOOKED
            if unavailable.first.is_visible():
                return OUTCOME_TAKEN
            return OUTCOME_ERROR
        except PWTimeoutError:
            log.error("Timed out waiting for booking confirmation of job #%s", job.job_number)
            return OUTCOME_ERROR
        except PWError as e:
            log.error("Booking job #%s failed: %s", job.job_number, e)
            return OUTCOME_ERROR
