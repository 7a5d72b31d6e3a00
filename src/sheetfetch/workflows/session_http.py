"""HTTP requests that reuse a live browser session's cookies outside the browser."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional
from urllib.parse import urlencode

import aiohttp

from .acquire_config import (
    FORM_CONTENT_TYPE,
    HDR_ACCEPT,
    HDR_CONTENT_TYPE,
    HDR_COOKIE,
    HDR_REFERER,
    HDR_USER_AGENT,
)

logger = logging.getLogger(__name__)


def cookie_header(cookies: Iterable[Mapping[str, Any]]) -> str:
    """Format Playwright cookie dicts as a ``Cookie`` header value."""

    pairs = []
    for cookie in cookies or []:
        name = cookie.get("name")
        value = cookie.get("value")
        if not name or value is None:
            continue
        pairs.append(f"{name}={value}")
    return "; ".join(pairs)


@dataclass(frozen=True)
class SessionCredentials:
    """Auth state lifted from the browser for one request; not persisted."""

    cookie_header: str = ""
    user_agent: str = ""
    referer: str = ""

    def headers(self, accept: Optional[str] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if self.cookie_header:
            headers[HDR_COOKIE] = self.cookie_header
        if self.user_agent:
            headers[HDR_USER_AGENT] = self.user_agent
        if self.referer:
            headers[HDR_REFERER] = self.referer
        if accept:
            headers[HDR_ACCEPT] = accept
        return headers


async def read_user_agent(page) -> str:
    return str(await page.evaluate("() => navigator.userAgent") or "")


async def capture_session(page) -> SessionCredentials:
    """Read cookies and the browser's user agent concurrently."""

    cookies, user_agent = await asyncio.gather(page.context.cookies(), read_user_agent(page))
    return SessionCredentials(
        cookie_header=cookie_header(cookies),
        user_agent=user_agent,
        referer=page.url,
    )


@dataclass
class HttpResponse:
    status: int
    content_type: str
    url: str
    body: bytes = field(default=b"", repr=False)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class SessionHttpClient:
    """aiohttp client that forwards an explicit cookie header and user agent."""

    def __init__(self, *, timeout: float = 30.0, max_redirects: int = 5) -> None:
        self.timeout = timeout
        self.max_redirects = max_redirects

    async def get(self, url: str, *, credentials: SessionCredentials, accept: Optional[str] = None) -> HttpResponse:
        return await self._request("GET", url, headers=credentials.headers(accept))

    async def post_form(
        self,
        url: str,
        form: Mapping[str, str],
        *,
        credentials: SessionCredentials,
        accept: Optional[str] = None,
    ) -> HttpResponse:
        headers = credentials.headers(accept)
        headers[HDR_CONTENT_TYPE] = FORM_CONTENT_TYPE
        return await self._request("POST", url, headers=headers, data=urlencode(list(form.items())))

    async def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Dict[str, str],
        data: Optional[str] = None,
    ) -> HttpResponse:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method,
                url,
                headers=headers,
                data=data,
                allow_redirects=True,
                max_redirects=self.max_redirects,
            ) as resp:
                body = await resp.read()
                content_type = resp.headers.get(HDR_CONTENT_TYPE, "")
                logger.debug("%s %s -> %s (%s, %d bytes)", method, url, resp.status, content_type or "-", len(body))
                return HttpResponse(status=resp.status, content_type=content_type, url=str(resp.url), body=body)


__all__ = [
    "HttpResponse",
    "SessionCredentials",
    "SessionHttpClient",
    "capture_session",
    "cookie_header",
    "read_user_agent",
]
