"""Working-day arithmetic used to pick which list item to open."""

from __future__ import annotations

import logging
from datetime import date, timedelta

logger = logging.getLogger(__name__)

DEFAULT_BASE_DATE = date(2025, 9, 10)


def count_working_days(start: date, end: date) -> int:
    """Count Monday–Friday dates in ``[start, end]``; 0 when ``end`` precedes ``start``."""

    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5
    current = start + timedelta(days=full_weeks * 7)
    for _ in range(remainder):
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


def working_day_index(base_date: date = DEFAULT_BASE_DATE, today: date | None = None) -> int:
    """1-based item index: working days since ``base_date``, never below 1."""

    current = today or date.today()
    working_days = count_working_days(base_date, current)
    logger.debug("Base date: %s", base_date.isoformat())
    logger.debug("Current date: %s", current.isoformat())
    logger.debug("Working days interval: %d", working_days)
    return max(1, working_days)


__all__ = ["DEFAULT_BASE_DATE", "count_working_days", "working_day_index"]
