from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


def _default_env_paths() -> list[Path]:
    """Search order for config.env.

    Supports running `subwatch` from anywhere by using a stable user directory,
    while still honoring a repo-local data/config.env.
    """

    # 1) Explicit override
    p = (os.getenv("SUBWATCH_CONFIG") or "").strip()
    if p:
        return [Path(p)]

    # 2) Repo-local (when running inside the repo)
    local = Path.cwd() / "data" / "config.env"

    # 3) User-local (global install)
    home = Path.home() / ".subwatch" / "config.env"
    xdg = Path(os.getenv("XDG_CONFIG_HOME") or (Path.home() / ".config")) / "subwatch" / "config.env"

    return [local, home, xdg]


def find_config_env() -> Path:
    for p in _default_env_paths():
        if p.exists():
            return p
    return Path.home() / ".subwatch" / "config.env"


@dataclass(frozen=True)
class AppConfig:
    # Base directory for relative paths (data/, logs/)
    base_dir: Path

    login_url: str = ""
    username: str = ""
    password: str = ""

    telegram_token: str = ""
    telegram_chat_id: str = ""

    # Operating hours are local to the school district.
    timezone: str = "America/Denver"
    active_start_hour: int = 5
    active_end_hour: int = 23

    interval_s: int = 60
    offhours_sleep_s: int = 300
    confirm_window_min: int = 5
    auto_book: bool = True
    auto_book_min_days: int = 3
    retention_days: int = 7

    session_restart_hours: int = 4
    max_consecutive_errors: int = 5
    max_session_failures: int = 10

    headless: bool = True
    log_level: str = "INFO"

    @property
    def data_dir(self) -> Path:
        return self.base_dir / "data"

    @property
    def log_dir(self) -> Path:
        return self.base_dir / "logs"

    @property
    def store_path(self) -> Path:
        return self.data_dir / "notified-jobs.json"

    @property
    def stats_path(self) -> Path:
        return self.data_dir / "scraper-stats.json"

    @property
    def heartbeat_path(self) -> Path:
        return self.data_dir / "heartbeat.json"

    @property
    def rules_path(self) -> Path:
        return self.data_dir / "filters.json"


def _load_envfile(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        k, v = line.split("=", 1)
        os.environ.setdefault(k.strip(), v.strip().strip('"').strip("'"))


def load_config(env_path: Optional[Path] = None) -> AppConfig:
    env_path = env_path or find_config_env()
    _load_envfile(env_path)

    def gets(name: str, default: str) -> str:
        return (os.getenv(name) or default).strip()

    def geti(name: str, default: int) -> int:
        v = (os.getenv(name) or "").strip()
        if not v:
            return default
        try:
            return int(v)
        except ValueError:
            return default

    def getb(name: str, default: bool) -> bool:
        v = (os.getenv(name) or "").strip().lower()
        if not v:
            return default
        return v in {"1", "true", "yes", "on"}

    # Derive a base directory that makes relative paths work.
    # - If config is repo-local at <base>/data/config.env => base=<base>
    # - Otherwise base is the directory containing config.env (e.g. ~/.subwatch)
    if env_path.name == "config.env" and env_path.parent.name == "data":
        base_dir = env_path.parent.parent
    else:
        base_dir = env_path.parent

    (base_dir / "data").mkdir(parents=True, exist_ok=True)
    (base_dir / "logs").mkdir(parents=True, exist_ok=True)

    return AppConfig(
        base_dir=base_dir,
        login_url=gets("FRONTLINE_LOGIN_URL", AppConfig.login_url),
        username=gets("FRONTLINE_USERNAME", AppConfig.username),
        password=gets("FRONTLINE_PASSWORD", AppConfig.password),
        telegram_token=gets("TELEGRAM_BOT_TOKEN", AppConfig.telegram_token),
        telegram_chat_id=gets("TELEGRAM_CHAT_ID", AppConfig.telegram_chat_id),
        timezone=gets("TIMEZONE", AppConfig.timezone),
        active_start_hour=geti("ACTIVE_START_HOUR", AppConfig.active_start_hour),
        active_end_hour=geti("ACTIVE_END_HOUR", AppConfig.active_end_hour),
        interval_s=geti("INTERVAL_S", AppConfig.interval_s),
        offhours_sleep_s=geti("OFFHOURS_SLEEP_S", AppConfig.offhours_sleep_s),
        confirm_window_min=geti("CONFIRM_WINDOW_MIN", AppConfig.confirm_window_min),
        auto_book=getb("AUTO_BOOK", AppConfig.auto_book),
        auto_book_min_days=geti("AUTO_BOOK_MIN_DAYS", AppConfig.auto_book_min_days),
        retention_days=geti("RETENTION_DAYS", AppConfig.retention_days),
        session_restart_hours=geti("SESSION_RESTART_HOURS", AppConfig.session_restart_hours),
        max_consecutive_errors=geti("MAX_CONSECUTIVE_ERRORS", AppConfig.max_consecutive_errors),
        max_session_failures=geti("MAX_SESSION_FAILURES", AppConfig.max_session_failures),
        headless=getb("HEADLESS", AppConfig.headless),
        log_level=gets("LOG_LEVEL", AppConfig.log_level).upper(),
    )
