"""Pre-flight diagnostics for a sheetfetch run."""

from __future__ import annotations

import importlib.util
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from ..settings import LOG_LEVELS, PLACEHOLDER_USERNAME, resolve_log_level

SECRET_ENV = frozenset({"PASSWORD"})


def mask(value: str, visible: int = 2) -> str:
    """Hide all but the last ``visible`` characters; short values are hidden entirely."""

    raw = (value or "").strip()
    if len(raw) <= visible * 2:
        return "*" * len(raw)
    return "*" * (len(raw) - visible) + raw[-visible:]


@dataclass
class Check:
    name: str
    ok: bool
    detail: Optional[str] = None
    hint: Optional[str] = None
    blocking: bool = True
    shown: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self.name, "ok": self.ok, "blocking": self.blocking}
        for key in ("detail", "hint", "shown"):
            value = getattr(self, key)
            if value:
                entry[key] = value
        return entry


def _env_check(env: Mapping[str, str], name: str, hint: str) -> Check:
    value = (env.get(name) or "").strip()
    shown = mask(value) if name in SECRET_ENV else value
    return Check(name, bool(value), hint=hint, shown=shown or None)


def _credential_checks(env: Mapping[str, str]) -> List[Check]:
    user = _env_check(env, "USERNAME1", "Set USERNAME1 to the site account email.")
    if user.shown == PLACEHOLDER_USERNAME:
        user.ok = False
        user.detail = "still the example account"
    return [
        user,
        _env_check(env, "PASSWORD", "Set PASSWORD for the site account."),
        _env_check(env, "LOGIN_URL", "Set LOGIN_URL to the site's sign-in page."),
    ]


def _nearest_existing(path: Path) -> Optional[Path]:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return None


def _download_dir_check(env: Mapping[str, str]) -> Check:
    target = Path(env.get("DOWNLOAD_DIR") or "./downloads")
    anchor = _nearest_existing(target.resolve())
    writable = anchor is not None and anchor.is_dir() and os.access(anchor, os.W_OK)
    return Check(
        "DOWNLOAD_DIR",
        writable,
        detail=str(target),
        hint="Point DOWNLOAD_DIR at a directory you can write to.",
    )


def _browser_check() -> Check:
    present = importlib.util.find_spec("playwright") is not None
    return Check(
        "playwright",
        present,
        detail=None if present else "package not importable",
        hint="pip install playwright && playwright install --with-deps chromium",
    )


def _log_level_check(env: Mapping[str, str]) -> Check:
    raw = env.get("LOG_LEVEL")
    known = raw is None or raw.strip().lower() in LOG_LEVELS
    return Check(
        "LOG_LEVEL",
        known,
        detail=f"effective level: {resolve_log_level(env)}",
        hint=f"Use one of: {', '.join(sorted(LOG_LEVELS))}.",
        blocking=False,
        shown=raw,
    )


def build_doctor_report(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if env is None else env
    checks = [*_credential_checks(env), _browser_check(), _download_dir_check(env), _log_level_check(env)]
    return {
        "generated_at": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "ok": all(check.ok or not check.blocking for check in checks),
        "checks": [check.to_dict() for check in checks],
    }


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines = [f"sheetfetch doctor ({report.get('generated_at')})", ""]
    for check in report.get("checks", []):
        if check.get("ok"):
            mark = "ok"
        else:
            mark = "!!" if check.get("blocking") else "--"
        line = f"[{mark}] {check['name']}"
        if check.get("shown"):
            line += f" = {check['shown']}"
        if check.get("detail"):
            line += f"  ({check['detail']})"
        lines.append(line)
        if not check.get("ok") and check.get("hint"):
            lines.append(f"     fix: {check['hint']}")
    lines.append("")
    lines.append("ready" if report.get("ok") else "not ready")
    return "\n".join(lines) + "\n"


__all__ = ["Check", "build_doctor_report", "format_doctor_report", "mask"]
