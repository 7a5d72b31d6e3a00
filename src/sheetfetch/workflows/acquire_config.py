"""Acquisition defaults (selectors, endpoints, field names, timeouts).

Centralizes static defaults so the strategies have no embedded magic strings.
These are baseline constants used to construct an ``AcquireConfig``; callers can
inject their own config to override any of them.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Tuple

# Form / endpoint
FORM_SELECTOR = "form#dlform"
ID_FIELD = "id"
TOKEN_FIELD = "token"
DOWNLOAD_PATH = "/paper/download.php"
TRIGGER_SELECTOR = 'button:has-text("下載 PDF 檔")'

# Artifact signature
PDF_MIME = "application/pdf"
PDF_MAGIC = b"%PDF"
PDF_EXTENSION = ".pdf"

# Headers
HDR_ACCEPT = "Accept"
HDR_COOKIE = "Cookie"
HDR_CONTENT_TYPE = "Content-Type"
HDR_REFERER = "Referer"
HDR_USER_AGENT = "User-Agent"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"
ACCEPT_PDF = "application/pdf, */*"
ACCEPT_PDF_OR_HTML = "application/pdf,text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# Download controls rendered by common in-browser PDF viewers
VIEWER_DOWNLOAD_SELECTORS: Tuple[str, ...] = (
    '[aria-label*="下载"], [aria-label*="Download"], [aria-label*="下載"]',
    'button[title*="下载"], button[title*="Download"], button[title*="下載"]',
    '[data-tooltip*="下载"], [data-tooltip*="Download"]',
    'button[class*="download"]',
    "#download, .download",
    "a[download]",
)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def save_shortcut(platform: str) -> str:
    """Return the browser "save page" chord for the given ``sys.platform`` value."""

    return "Meta+S" if platform == "darwin" else "Control+S"


@dataclass(frozen=True)
class AcquireConfig:
    """Configuration for one ``Acquirer``; timeouts are in seconds."""

    form_selector: str = FORM_SELECTOR
    id_field: str = ID_FIELD
    token_field: str = TOKEN_FIELD
    download_path: str = DOWNLOAD_PATH
    trigger_selector: str = TRIGGER_SELECTOR
    viewer_selectors: Tuple[str, ...] = VIEWER_DOWNLOAD_SELECTORS
    mime_type: str = PDF_MIME
    magic: bytes = PDF_MAGIC
    extension: str = PDF_EXTENSION
    source_id_param: str = ID_FIELD

    form_visible_timeout: float = 30.0
    replay_timeout: float = 30.0
    native_event_timeout: float = 5.0
    network_idle_timeout: float = 15.0
    viewer_download_timeout: float = 15.0
    http_timeout: float = 30.0
    max_redirects: int = 5

    # Outer bound per strategy; each one covers the inner waits above.
    direct_replay_budget: float = 40.0
    native_event_budget: float = 15.0
    viewer_budget: float = 60.0
    resource_url_budget: float = 45.0
    http_replication_budget: float = 45.0

    platform: str = field(default_factory=lambda: sys.platform)
    clock: Callable[[], date] = utc_today

    @property
    def shortcut(self) -> str:
        return save_shortcut(self.platform)


DEFAULT_CONFIG = AcquireConfig()
