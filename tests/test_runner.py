import asyncio
import json
import re
from pathlib import Path

from playwright.async_api import Error as PlaywrightError  # type: ignore

from sheetfetch import runner
from sheetfetch.runner import (
    ITEM_DOWNLOADED,
    ITEM_FAILED,
    ITEM_SKIPPED,
    SUMMARY_FILENAME,
    exit_code_for,
    generate_run_id,
    new_summary,
    process_combinations,
    record_item,
    write_summary,
)
from sheetfetch.workflows.acquire_config import AcquireConfig
from sheetfetch.workflows.models import AcquisitionResult, ArtifactRecord, StrategyName


class _Page:
    def __init__(self):
        self.url = "https://sheets.example.com/"
        self.visited = []

    async def goto(self, url, wait_until=None):
        self.visited.append(url)
        self.url = url


class _Acquirer:
    def __init__(self, outcomes):
        self.config = AcquireConfig()
        self.outcomes = list(outcomes)
        self.requests = []

    async def acquire(self, page, request):
        self.requests.append(request)
        ok = self.outcomes.pop(0)
        path = Path("/tmp") / "-".join(request.classification_tags)
        record = ArtifactRecord(path, 10, StrategyName.NATIVE_EVENT) if ok else None
        return AcquisitionResult(ok=ok, path=path, record=record, error=None if ok else "all strategies exhausted")


def test_run_id_format():
    assert re.fullmatch(r"\d{8}T\d{6}Z_[0-9a-f]{6}", generate_run_id())


def test_record_item_updates_counts():
    summary = new_summary("run", 3, 2)
    record_item(summary, "P1", "中", ITEM_DOWNLOADED)
    record_item(summary, "P1", "英", ITEM_SKIPPED, reason="navigation failed")
    assert summary["counts"] == {"total": 2, ITEM_DOWNLOADED: 1, ITEM_FAILED: 0, ITEM_SKIPPED: 1}
    assert summary["items"][1] == {"grade": "P1", "subject": "英", "status": ITEM_SKIPPED, "reason": "navigation failed"}


def test_exit_codes():
    clean = new_summary("run", 1, 1)
    record_item(clean, "P1", "中", ITEM_DOWNLOADED)
    assert exit_code_for(clean) == 0

    partial = new_summary("run", 1, 2)
    record_item(partial, "P1", "中", ITEM_DOWNLOADED)
    record_item(partial, "P1", "英", ITEM_FAILED)
    assert exit_code_for(partial) == 1
    assert exit_code_for(partial, soft_fail=True) == 0


def test_write_summary(tmp_path):
    summary = new_summary("run", 1, 0)
    path = write_summary(summary, tmp_path / "out")
    assert path.name == SUMMARY_FILENAME
    assert json.loads(path.read_text(encoding="utf-8"))["run_id"] == "run"


def test_process_combinations_records_every_outcome(tmp_path, monkeypatch):
    page = _Page()

    async def _navigate(page, base_url, grade, subject):
        return subject != "數"

    async def _click(page, n):
        page.url = f"https://sheets.example.com/paper/detail.php?id={n}"
        return True

    monkeypatch.setattr(runner, "navigate_to_filter", _navigate)
    monkeypatch.setattr(runner, "click_nth_item", _click)

    acquirer = _Acquirer([True, False])
    summary = new_summary("run", 7, 3)
    combos = [("P1", "中"), ("P1", "英"), ("P1", "數")]
    asyncio.run(process_combinations(page, "https://sheets.example.com", combos, 7, tmp_path, acquirer, summary))

    statuses = [(item["grade"], item["subject"], item["status"]) for item in summary["items"]]
    assert statuses == [
        ("P1", "中", ITEM_DOWNLOADED),
        ("P1", "英", ITEM_FAILED),
        ("P1", "數", ITEM_SKIPPED),
    ]
    assert [r.source_identifier for r in acquirer.requests] == ["7", "7"]
    assert acquirer.requests[0].destination_root == tmp_path
    assert summary["items"][0]["acquisition"]["source_strategy"] == "native_event"


def test_process_combinations_recovers_from_browser_errors(tmp_path, monkeypatch):
    page = _Page()

    async def _navigate(page, base_url, grade, subject):
        return True

    async def _click(page, n):
        raise PlaywrightError("Target page closed")

    monkeypatch.setattr(runner, "navigate_to_filter", _navigate)
    monkeypatch.setattr(runner, "click_nth_item", _click)

    summary = new_summary("run", 1, 2)
    combos = [("P1", "中"), ("P1", "英")]
    asyncio.run(process_combinations(page, "https://sheets.example.com", combos, 1, tmp_path, _Acquirer([]), summary))

    assert summary["counts"][ITEM_SKIPPED] == 2
    assert page.visited == ["https://sheets.example.com", "https://sheets.example.com"]


def test_process_combinations_keeps_going_after_unexpected_errors(tmp_path, monkeypatch):
    page = _Page()

    async def _navigate(page, base_url, grade, subject):
        return True

    async def _click(page, n):
        return True

    class _FlakyAcquirer(_Acquirer):
        async def acquire(self, page, request):
            if request.classification_tags == ("P1", "中"):
                raise RuntimeError("disk full")
            return await super().acquire(page, request)

    monkeypatch.setattr(runner, "navigate_to_filter", _navigate)
    monkeypatch.setattr(runner, "click_nth_item", _click)

    summary = new_summary("run", 1, 2)
    combos = [("P1", "中"), ("P1", "英")]
    asyncio.run(process_combinations(page, "https://sheets.example.com", combos, 1, tmp_path, _FlakyAcquirer([True]), summary))

    assert [item["status"] for item in summary["items"]] == [ITEM_SKIPPED, ITEM_DOWNLOADED]
    assert summary["items"][0]["reason"] == "disk full"
    assert page.visited == ["https://sheets.example.com"]
