"""Sign-in, filter navigation and list selection on the worksheet site."""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple
from urllib.parse import urlencode, urlparse

from playwright.async_api import Error as PlaywrightError  # type: ignore
from playwright.async_api import TimeoutError as PlaywrightTimeoutError  # type: ignore

logger = logging.getLogger(__name__)

GRADES: Tuple[str, ...] = ("P1", "P2", "P3", "P4", "P5", "P6")

# Site labels -> ``subject`` query values
SUBJECTS: Dict[str, str] = {
    "中": "Chinese",
    "英": "English",
    "數": "Maths",
    "常": "GS",
}

EMAIL_INPUT = 'input[type="email"]'
PASSWORD_INPUT = 'input[type="password"]'
LOGIN_BUTTON = 'button[name="login"]'
ACCOUNT_UI = 'a:has-text("我的帳戶"), a:has-text("登出")'
SHEET_ITEM = ".sheet"


def filter_combinations() -> List[Tuple[str, str]]:
    """Every ``(grade, subject label)`` pair, grade-major."""

    return [(grade, subject) for grade in GRADES for subject in SUBJECTS]


def build_filter_url(base_url: str, grade: str, subject: str) -> str:
    subject_value = SUBJECTS.get(subject)
    if subject_value is None:
        raise KeyError(f"Unknown subject: {subject}")
    return f"{base_url.rstrip('/')}/?{urlencode({'grade': grade, 'subject': subject_value})}"


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


async def perform_login(page, username: str, password: str, *, account_timeout: float = 3.0) -> bool:
    """Submit the sign-in form; True when the browser lands off the login path."""

    logger.info("Start login flow")
    try:
        await page.wait_for_selector(EMAIL_INPUT)
        await page.fill(EMAIL_INPUT, username)
        await page.fill(PASSWORD_INPUT, password)
        async with page.expect_navigation(wait_until="networkidle"):
            await page.click(LOGIN_BUTTON)
        logger.debug("Current URL: %s", page.url)

        if "login" in urlparse(page.url).path:
            logger.warning("Login failed: still on login page")
            return False

        logger.info("Login success, redirected to home")
        await page.wait_for_load_state("networkidle")
        try:
            await page.locator(ACCOUNT_UI).first.wait_for(state="visible", timeout=account_timeout * 1000)
            logger.debug("Confirmed login by account UI")
        except PlaywrightTimeoutError:
            logger.warning("Account UI not found; URL indicates logged-in")
        return True
    except PlaywrightError as exc:
        logger.error("Login error: %s", exc)
        return False


async def navigate_to_filter(page, base_url: str, grade: str, subject: str) -> bool:
    try:
        url = build_filter_url(base_url, grade, subject)
    except KeyError as exc:
        logger.error("%s", exc.args[0])
        return False
    logger.info("Navigate to filter page: %s - %s (%s)", grade, subject, SUBJECTS[subject])
    try:
        await page.goto(url, wait_until="networkidle")
        await page.wait_for_load_state("domcontentloaded")
    except PlaywrightError as exc:
        logger.error("Navigate to filter page failed: %s", exc)
        return False
    logger.info("Arrived at filter page: %s - %s", grade, subject)
    return True


async def click_nth_item(page, n: int) -> bool:
    """Open the ``n``-th (1-based) sheet in the current list."""

    logger.info("Click item index: %d", n)
    try:
        items = page.locator(SHEET_ITEM)
        await items.first.wait_for(state="visible")
        count = await items.count()
        if count == 0:
            logger.warning("No items found")
            return False
        if n < 1 or n > count:
            logger.warning("Index %d out of range, items: %d", n, count)
            return False
        link = items.nth(n - 1).locator("a").first
        async with page.expect_navigation(wait_until="networkidle"):
            await link.click()
    except PlaywrightError as exc:
        logger.error("Click item failed: %s", exc)
        return False
    logger.info("Clicked item index: %d", n)
    return True


__all__ = [
    "GRADES",
    "SUBJECTS",
    "build_filter_url",
    "click_nth_item",
    "filter_combinations",
    "navigate_to_filter",
    "origin_of",
    "perform_login",
]
