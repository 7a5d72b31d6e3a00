"""Environment-derived run settings and logging setup.

Everything read from the environment is collected here, once, and handed to the
runner and the acquisition engine as plain values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .workflows.business_days import DEFAULT_BASE_DATE

PLACEHOLDER_USERNAME = "your_email@example.com"

LOG_LEVELS = {
    "off": logging.CRITICAL + 10,
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"


class SettingsError(ValueError):
    """Required configuration is missing or malformed."""


def _env_bool(env: Mapping[str, str], name: str, default: str = "0") -> bool:
    raw = env.get(name, default)
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


def _env_int(env: Mapping[str, str], name: str, default: int = 0) -> int:
    try:
        raw = env.get(name, "")
        return int(raw) if str(raw).strip() else default
    except (TypeError, ValueError):
        return default


def _env_date(env: Mapping[str, str], name: str, default: date) -> date:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise SettingsError(f"{name} must be an ISO date (YYYY-MM-DD), got {raw!r}") from exc


def resolve_log_level(env: Mapping[str, str]) -> str:
    """``DEBUG=true|1`` wins; otherwise ``LOG_LEVEL`` if known, else ``info``."""

    debug_flag = str(env.get("DEBUG", "")).strip().lower()
    if debug_flag in {"true", "1"}:
        return "debug"
    level = str(env.get("LOG_LEVEL", "info")).strip().lower()
    return level if level in LOG_LEVELS else "info"


def configure_logging(level: str = "info", *, logger_name: str = "sheetfetch") -> logging.Logger:
    log = logging.getLogger(logger_name)
    for handler in list(log.handlers):
        log.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    log.addHandler(handler)
    log.setLevel(LOG_LEVELS.get(level.lower(), logging.INFO))
    log.propagate = False
    return log


@dataclass(frozen=True)
class RunSettings:
    username: str
    password: str
    login_url: str
    download_dir: Path = Path("./downloads")
    log_level: str = "info"
    base_date: date = DEFAULT_BASE_DATE
    headless: bool = True
    slow_mo_ms: int = 10

    @property
    def is_placeholder(self) -> bool:
        return self.username == PLACEHOLDER_USERNAME


def load_run_settings(env: Optional[Mapping[str, str]] = None, *, dotenv_path: Optional[Path] = None) -> RunSettings:
    """Build ``RunSettings`` from ``env`` (defaults to ``os.environ`` after loading ``.env``)."""

    if env is None:
        load_dotenv(dotenv_path=dotenv_path)
        env = os.environ
    username = (env.get("USERNAME1") or "").strip()
    password = env.get("PASSWORD") or ""
    login_url = (env.get("LOGIN_URL") or "").strip()
    missing = [name for name, value in (("USERNAME1", username), ("PASSWORD", password), ("LOGIN_URL", login_url)) if not value]
    if missing:
        raise SettingsError(f"Missing env: {', '.join(missing)}")
    return RunSettings(
        username=username,
        password=password,
        login_url=login_url,
        download_dir=Path(env.get("DOWNLOAD_DIR") or "./downloads"),
        log_level=resolve_log_level(env),
        base_date=_env_date(env, "SHEETFETCH_BASE_DATE", DEFAULT_BASE_DATE),
        headless=_env_bool(env, "SHEETFETCH_HEADLESS", "1"),
        slow_mo_ms=_env_int(env, "SHEETFETCH_SLOW_MO_MS", 10),
    )


__all__ = [
    "LOG_LEVELS",
    "PLACEHOLDER_USERNAME",
    "RunSettings",
    "SettingsError",
    "configure_logging",
    "load_run_settings",
    "resolve_log_level",
]
