"""Independent techniques for pulling the artifact's bytes off a detail page.

Each strategy is a coroutine ``(page, request, ctx) -> StrategyOutcome``. They
never raise: ``strategy_boundary`` turns any exception escaping a strategy into
a classified ``Failed`` so the orchestrator only ever sees the three variants.

Order matters and is fixed by ``STRATEGIES``:

1. direct_replay     POST the form through the browser context's request API.
2. native_event      click the site's button and catch the download event.
3. viewer            click, detect an inline PDF viewer, use its save control.
4. resource_url      fetch an embed/frame/object/link URL with session cookies.
5. http_replication  re-read hidden fields + cookies and POST outside the browser.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

import aiohttp
from playwright.async_api import Error as PlaywrightError  # type: ignore
from playwright.async_api import TimeoutError as PlaywrightTimeoutError  # type: ignore

from .acquire_config import ACCEPT_PDF, ACCEPT_PDF_OR_HTML, HDR_ACCEPT, HDR_REFERER, AcquireConfig
from .form_state import read_form_snapshot
from .models import (
    AcquisitionRequest,
    Failed,
    FailureKind,
    NotApplicable,
    StrategyName,
    StrategyOutcome,
    Success,
)
from .resource_scanner import looks_like_viewer, scan_page
from .session_http import SessionHttpClient, capture_session

logger = logging.getLogger(__name__)


@dataclass
class StrategyContext:
    config: AcquireConfig
    http: SessionHttpClient = field(default_factory=SessionHttpClient)


StrategyFn = Callable[[object, AcquisitionRequest, StrategyContext], Awaitable[StrategyOutcome]]


class _NothingTriggered(Exception):
    """No viewer control or shortcut could be used to start a download."""


def classify_error(exc: BaseException) -> FailureKind:
    if isinstance(exc, (PlaywrightTimeoutError, asyncio.TimeoutError)):
        return FailureKind.TIMEOUT
    if isinstance(exc, (aiohttp.ClientError, PlaywrightError, OSError)):
        return FailureKind.TRANSPORT_ERROR
    return FailureKind.UNEXPECTED


def strategy_boundary(fn: StrategyFn) -> StrategyFn:
    @functools.wraps(fn)
    async def wrapper(page, request: AcquisitionRequest, ctx: StrategyContext) -> StrategyOutcome:
        try:
            return await fn(page, request, ctx)
        except Exception as exc:
            kind = classify_error(exc)
            return Failed(kind, f"{type(exc).__name__}: {exc}")

    return wrapper


def endpoint_url(page_url: str, path: str) -> str:
    parsed = urlparse(page_url)
    return urljoin(f"{parsed.scheme}://{parsed.netloc}/", path.lstrip("/"))


def _ms(seconds: float) -> float:
    return seconds * 1000


async def _download_outcome(download) -> StrategyOutcome:
    failure = await download.failure()
    if failure:
        return Failed(FailureKind.TRANSPORT_ERROR, f"download failed: {failure}")
    tmp_path = await download.path()
    if tmp_path is None:
        return Failed(FailureKind.TRANSPORT_ERROR, "download produced no file")
    # No response headers reach us for browser downloads; the signature decides.
    data = await asyncio.to_thread(Path(tmp_path).read_bytes)
    return Success(data, "")


@strategy_boundary
async def direct_replay(page, request: AcquisitionRequest, ctx: StrategyContext) -> StrategyOutcome:
    cfg = ctx.config
    snapshot = await read_form_snapshot(page, cfg.form_selector)
    if snapshot is None:
        return NotApplicable("no download form on page")
    missing = snapshot.missing(cfg.id_field, cfg.token_field)
    if missing:
        return NotApplicable(f"form missing {', '.join(missing)}")

    url = endpoint_url(page.url, cfg.download_path)
    response = await page.context.request.post(
        url,
        form=snapshot.as_dict(),
        headers={HDR_REFERER: page.url, HDR_ACCEPT: ACCEPT_PDF},
        timeout=_ms(cfg.replay_timeout),
    )
    if not response.ok:
        return Failed(FailureKind.TRANSPORT_ERROR, f"HTTP {response.status} {response.status_text}".strip())
    body = await response.body()
    return Success(body, response.headers.get("content-type", ""))


@strategy_boundary
async def native_event(page, request: AcquisitionRequest, ctx: StrategyContext) -> StrategyOutcome:
    cfg = ctx.config
    async with page.expect_download(timeout=_ms(cfg.native_event_timeout)) as download_info:
        await page.locator(cfg.trigger_selector).click(timeout=_ms(cfg.native_event_timeout))
    download = await download_info.value
    return await _download_outcome(download)


async def _click_viewer_control(page, selectors: Sequence[str], timeout: float) -> Optional[str]:
    for selector in selectors:
        try:
            control = page.locator(selector)
            if await control.count() > 0:
                logger.debug("Found viewer download control: %s", selector)
                await control.first.click(timeout=_ms(timeout))
                return selector
        except PlaywrightError as exc:
            logger.debug("Viewer control %s unusable: %s", selector, exc)
    return None


async def _press_save_shortcut(page, shortcut: str) -> Optional[str]:
    logger.debug("Trying save shortcut %s", shortcut)
    try:
        await page.keyboard.press(shortcut)
    except PlaywrightError as exc:
        logger.debug("Save shortcut failed: %s", exc)
        return None
    return shortcut


@strategy_boundary
async def viewer(page, request: AcquisitionRequest, ctx: StrategyContext) -> StrategyOutcome:
    cfg = ctx.config
    await page.locator(cfg.trigger_selector).click(timeout=_ms(cfg.native_event_timeout))
    try:
        await page.wait_for_load_state("networkidle", timeout=_ms(cfg.network_idle_timeout))
    except PlaywrightTimeoutError:
        logger.debug("Network did not settle; inspecting page as-is")

    html = await page.content()
    if not looks_like_viewer(html, mime_type=cfg.mime_type):
        return NotApplicable("trigger did not open an embedded viewer")
    logger.debug("Embedded viewer detected")

    try:
        async with page.expect_download(timeout=_ms(cfg.viewer_download_timeout)) as download_info:
            used = await _click_viewer_control(page, cfg.viewer_selectors, cfg.native_event_timeout)
            if used is None:
                used = await _press_save_shortcut(page, cfg.shortcut)
            if used is None:
                raise _NothingTriggered()
    except _NothingTriggered:
        return NotApplicable("no viewer control or save shortcut available")
    download = await download_info.value
    logger.debug("Viewer download started via %s", used)
    return await _download_outcome(download)


@strategy_boundary
async def resource_url(page, request: AcquisitionRequest, ctx: StrategyContext) -> StrategyOutcome:
    cfg = ctx.config
    ref = await scan_page(page, mime_type=cfg.mime_type, extension=cfg.extension)
    if ref is None:
        return NotApplicable("no artifact URL in page")
    credentials = await capture_session(page)
    response = await ctx.http.get(ref.url, credentials=credentials)
    if not response.ok:
        return Failed(FailureKind.TRANSPORT_ERROR, f"HTTP {response.status} from {ref.method.value} URL")
    return Success(response.body, response.content_type)


@strategy_boundary
async def http_replication(page, request: AcquisitionRequest, ctx: StrategyContext) -> StrategyOutcome:
    cfg = ctx.config
    snapshot, credentials = await asyncio.gather(
        read_form_snapshot(page, cfg.form_selector, hidden_only=True),
        capture_session(page),
    )
    if snapshot is None:
        return Failed(FailureKind.MISSING_FORM_FIELD, "no download form on page")
    missing = snapshot.missing(cfg.id_field, cfg.token_field)
    if missing:
        return Failed(FailureKind.MISSING_FORM_FIELD, f"hidden fields missing {', '.join(missing)}")

    url = endpoint_url(credentials.referer, cfg.download_path)
    response = await ctx.http.post_form(
        url,
        snapshot.as_dict(),
        credentials=credentials,
        accept=ACCEPT_PDF_OR_HTML,
    )
    if not response.ok:
        return Failed(FailureKind.TRANSPORT_ERROR, f"HTTP {response.status}")
    return Success(response.body, response.content_type)


STRATEGIES: Tuple[Tuple[StrategyName, StrategyFn], ...] = (
    (StrategyName.DIRECT_REPLAY, direct_replay),
    (StrategyName.NATIVE_EVENT, native_event),
    (StrategyName.VIEWER, viewer),
    (StrategyName.RESOURCE_URL, resource_url),
    (StrategyName.HTTP_REPLICATION, http_replication),
)


__all__ = [
    "STRATEGIES",
    "StrategyContext",
    "StrategyFn",
    "classify_error",
    "direct_replay",
    "endpoint_url",
    "http_replication",
    "native_event",
    "resource_url",
    "strategy_boundary",
    "viewer",
]
