"""Deterministic artifact naming and atomic persistence."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from datetime import date
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import parse_qs, urlparse

from .acquire_config import PDF_EXTENSION, utc_today

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[\\/\x00-\x1f]")


def _clean_token(token: str) -> str:
    return _UNSAFE_CHARS.sub("_", str(token).strip())


def artifact_filename(
    tags: Iterable[str],
    day: date,
    source_identifier: Optional[str] = None,
    extension: str = PDF_EXTENSION,
) -> str:
    parts = [_clean_token(tag) for tag in tags]
    parts.append(day.isoformat())
    if source_identifier:
        parts.append(_clean_token(source_identifier))
    return "-".join(parts) + extension


def resolve(
    destination_root: Path,
    tags: Iterable[str],
    source_identifier: Optional[str] = None,
    *,
    today: Optional[date] = None,
    extension: str = PDF_EXTENSION,
    create: bool = True,
) -> Path:
    """Return ``<root>/<YYYY-MM-DD>/<tags>-<YYYY-MM-DD>[-<id>]<ext>``.

    The same inputs on the same calendar day always give the same path, so a
    re-run overwrites the earlier file instead of adding a sibling. With
    ``create`` the dated directory is made if it does not exist yet.
    """

    day = today or utc_today()
    date_dir = Path(destination_root) / day.isoformat()
    if create:
        ensure_directory(date_dir)
    return date_dir / artifact_filename(tags, day, source_identifier, extension)


def ensure_directory(path: Path) -> Path:
    if not path.is_dir():
        path.mkdir(parents=True, exist_ok=True)
        logger.debug("Created download directory: %s", path)
    return path


def write_atomic(path: Path, data: bytes) -> int:
    """Write ``data`` to ``path`` via a temp sibling so readers never see a partial file."""

    ensure_directory(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return len(data)


def source_id_from_url(url: str, param: str = "id") -> Optional[str]:
    """Return the first ``param`` value from the URL's query string, if any."""

    try:
        values = parse_qs(urlparse(url or "").query).get(param) or []
    except ValueError:
        return None
    for value in values:
        cleaned = value.strip()
        if cleaned:
            return cleaned
    return None


__all__ = [
    "artifact_filename",
    "ensure_directory",
    "resolve",
    "source_id_from_url",
    "write_atomic",
]
