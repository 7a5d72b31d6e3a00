"""Shared summary keys to avoid magic strings across sheetfetch modules."""

from __future__ import annotations

# Acquisition result / attempt keys
K_OK = "ok"
K_PATH = "path"
K_SIZE_BYTES = "size_bytes"
K_SOURCE_STRATEGY = "source_strategy"
K_ATTEMPTS = "attempts"
K_STRATEGY = "strategy"
K_STATUS = "status"
K_KIND = "kind"
K_DETAIL = "detail"
K_ELAPSED_MS = "elapsed_ms"
K_ERROR = "error"

# Run summary keys
K_GRADE = "grade"
K_SUBJECT = "subject"
K_ITEMS = "items"
K_COUNTS = "counts"
