from __future__ import annotations

import json
import logging
import secrets
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError  # type: ignore
from playwright.async_api import async_playwright  # type: ignore

from .core.keys import K_COUNTS, K_GRADE, K_ITEMS, K_STATUS, K_SUBJECT
from .settings import RunSettings
from .workflows.acquire import Acquirer
from .workflows.acquire_config import DEFAULT_CONFIG, AcquireConfig
from .workflows.business_days import working_day_index
from .workflows.models import AcquisitionRequest
from .workflows.navigation import (
    click_nth_item,
    filter_combinations,
    navigate_to_filter,
    origin_of,
    perform_login,
)
from .workflows.paths import source_id_from_url

logger = logging.getLogger(__name__)

SUMMARY_FILENAME = "run_summary.json"

ITEM_DOWNLOADED = "downloaded"
ITEM_FAILED = "failed"
ITEM_SKIPPED = "skipped"


def generate_run_id(now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
    suffix = secrets.token_hex(3)
    return f"{stamp}_{suffix}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def new_summary(run_id: str, index: int, total: int) -> Dict[str, Any]:
    return {
        "run_id": run_id,
        "started_at": _now_iso(),
        "finished_at": None,
        "item_index": index,
        K_COUNTS: {
            "total": total,
            ITEM_DOWNLOADED: 0,
            ITEM_FAILED: 0,
            ITEM_SKIPPED: 0,
        },
        K_ITEMS: [],
    }


def record_item(summary: Dict[str, Any], grade: str, subject: str, status: str, **extra: Any) -> None:
    item = {K_GRADE: grade, K_SUBJECT: subject, K_STATUS: status}
    item.update(extra)
    summary[K_ITEMS].append(item)
    summary[K_COUNTS][status] = int(summary[K_COUNTS].get(status, 0)) + 1


def exit_code_for(summary: Dict[str, Any], *, soft_fail: bool = False) -> int:
    counts = summary.get(K_COUNTS) or {}
    if soft_fail:
        return 0
    if counts.get(ITEM_FAILED) or counts.get(ITEM_SKIPPED):
        return 1
    return 0


def write_summary(summary: Dict[str, Any], out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / SUMMARY_FILENAME
    path.write_text(json.dumps(summary, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    return path


async def process_combinations(
    page,
    base_url: str,
    combinations: List[Tuple[str, str]],
    item_index: int,
    download_dir: Path,
    acquirer: Acquirer,
    summary: Dict[str, Any],
) -> None:
    """Navigate, open and download each combination; one failure never stops the loop."""

    total = len(combinations)
    for position, (grade, subject) in enumerate(combinations, start=1):
        logger.info("=== Process combination %d/%d: %s - %s ===", position, total, grade, subject)
        try:
            if not await navigate_to_filter(page, base_url, grade, subject):
                logger.warning("Skip %s-%s: navigation failed", grade, subject)
                record_item(summary, grade, subject, ITEM_SKIPPED, reason="navigation failed")
                continue
            if not await click_nth_item(page, item_index):
                logger.warning("Skip %s-%s: cannot click #%d", grade, subject, item_index)
                record_item(summary, grade, subject, ITEM_SKIPPED, reason=f"cannot click #{item_index}")
                continue
            request = AcquisitionRequest(
                classification_tags=(grade, subject),
                destination_root=download_dir,
                source_identifier=source_id_from_url(page.url, acquirer.config.source_id_param),
            )
            result = await acquirer.acquire(page, request)
            status = ITEM_DOWNLOADED if result.ok else ITEM_FAILED
            record_item(summary, grade, subject, status, acquisition=result.to_dict())
        except Exception as exc:
            logger.error("Error processing %s-%s: %s", grade, subject, exc)
            record_item(summary, grade, subject, ITEM_SKIPPED, reason=str(exc))
            try:
                await page.goto(base_url, wait_until="networkidle")
            except PlaywrightError as nav_exc:
                logger.error("Failed to return to home: %s", nav_exc)


async def run_batch(
    settings: RunSettings,
    *,
    config: AcquireConfig = DEFAULT_CONFIG,
    out_dir: Optional[Path] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Sign in once and try to download the selected sheet for every filter combination."""

    download_dir = Path(out_dir or settings.download_dir)
    combinations = filter_combinations()
    item_index = working_day_index(settings.base_date, today)
    summary = new_summary(generate_run_id(), item_index, len(combinations))
    logger.info("=== Start task: auto download PDFs ===")
    logger.info("Resolved N value (working-day index): %d", item_index)
    if today is not None:
        config = replace(config, clock=lambda: today)
    acquirer = Acquirer(config)

    async with async_playwright() as p:
        logger.info("Launching browser...")
        browser = await p.chromium.launch(headless=settings.headless, slow_mo=settings.slow_mo_ms)
        context = await browser.new_context(accept_downloads=True, viewport={"width": 1280, "height": 720})
        page = await context.new_page()
        try:
            logger.info("Goto login page: %s", settings.login_url)
            await page.goto(settings.login_url, wait_until="networkidle")
            if not await perform_login(page, settings.username, settings.password):
                raise RuntimeError("Login failed")
            logger.info("Total filter combinations: %d", len(combinations))
            await process_combinations(
                page,
                origin_of(settings.login_url),
                combinations,
                item_index,
                download_dir,
                acquirer,
                summary,
            )
        finally:
            await page.close()
            await context.close()
            await browser.close()
            logger.info("Browser closed")

    summary["finished_at"] = _now_iso()
    counts = summary[K_COUNTS]
    logger.info("=== Task done ===")
    logger.info("Downloaded PDFs: %d", counts[ITEM_DOWNLOADED])
    logger.info("Failed downloads: %d", counts[ITEM_FAILED])
    logger.info("Skipped combos: %d", counts[ITEM_SKIPPED])
    logger.info("Total combos: %d", counts["total"])
    return summary


__all__ = [
    "ITEM_DOWNLOADED",
    "ITEM_FAILED",
    "ITEM_SKIPPED",
    "SUMMARY_FILENAME",
    "exit_code_for",
    "generate_run_id",
    "new_summary",
    "process_combinations",
    "record_item",
    "run_batch",
    "write_summary",
]
