"""Find an already-resolved artifact URL in rendered page markup."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup  # type: ignore

from .acquire_config import PDF_EXTENSION, PDF_MIME
from .models import DiscoveryMethod, ExtractedResourceReference

logger = logging.getLogger(__name__)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def _typed(tag, mime_type: str) -> bool:
    return (tag.get("type") or "").strip().lower() == mime_type


def scan_html(
    html: str,
    base_url: str,
    *,
    mime_type: str = PDF_MIME,
    extension: str = PDF_EXTENSION,
) -> Optional[ExtractedResourceReference]:
    """Return the first artifact reference, checking embeds, frames, objects, then links."""

    soup = _soup(html)
    ext = extension.lower()

    def _ref(raw: Optional[str], method: DiscoveryMethod) -> Optional[ExtractedResourceReference]:
        value = (raw or "").strip()
        if not value:
            return None
        return ExtractedResourceReference(url=urljoin(base_url, value), method=method)

    for embed in soup.find_all("embed"):
        if _typed(embed, mime_type):
            ref = _ref(embed.get("src"), DiscoveryMethod.EMBED)
            if ref:
                return ref
    for frame in soup.find_all(["iframe", "frame"]):
        src = frame.get("src") or ""
        if ext in src.lower():
            ref = _ref(src, DiscoveryMethod.FRAME)
            if ref:
                return ref
    for obj in soup.find_all("object"):
        if _typed(obj, mime_type):
            ref = _ref(obj.get("data"), DiscoveryMethod.OBJECT)
            if ref:
                return ref
    for link in soup.find_all("a", href=True):
        href = link.get("href") or ""
        if ext in href.lower():
            ref = _ref(href, DiscoveryMethod.HYPERLINK)
            if ref:
                return ref
    return None


def looks_like_viewer(html: str, *, mime_type: str = PDF_MIME) -> bool:
    """True when the markup carries the artifact MIME marker or an ``<embed>`` tag."""

    if not html:
        return False
    if mime_type in html.lower():
        return True
    return _soup(html).find("embed") is not None


async def scan_page(page, *, mime_type: str = PDF_MIME, extension: str = PDF_EXTENSION) -> Optional[ExtractedResourceReference]:
    html = await page.content()
    ref = scan_html(html, page.url, mime_type=mime_type, extension=extension)
    if ref is None:
        logger.debug("No artifact URL found on %s", page.url)
    else:
        logger.debug("Found artifact URL via %s: %s", ref.method.value, ref.url)
    return ref


__all__ = ["looks_like_viewer", "scan_html", "scan_page"]
