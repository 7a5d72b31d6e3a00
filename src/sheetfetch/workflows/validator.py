"""Cheap acceptance check for downloaded artifacts."""

from __future__ import annotations

from typing import Optional

from .acquire_config import PDF_MAGIC, PDF_MIME


def has_magic(data: Optional[bytes], magic: bytes = PDF_MAGIC) -> bool:
    return bool(data) and data[: len(magic)] == magic


def validate(
    data: Optional[bytes],
    content_type: Optional[str],
    *,
    mime_type: str = PDF_MIME,
    magic: bytes = PDF_MAGIC,
) -> bool:
    """Return True when ``data`` is non-empty and either declared or signed as the artifact.

    Servers regularly omit or mislabel ``Content-Type`` for generated PDFs, so a
    leading magic signature is accepted on its own. An empty body is never valid.
    """

    if not data:
        return False
    declared = (content_type or "").lower()
    if mime_type.lower() in declared:
        return True
    return has_magic(data, magic)


def describe_rejection(data: Optional[bytes], content_type: Optional[str]) -> str:
    if not data:
        return "empty body"
    head = data[:8].decode("latin-1", "replace")
    return f"content-type={content_type or '-'!s} head={head!r}"


def sanity_check() -> None:
    assert validate(b"%PDF-1.7", "")
    assert not validate(b"", PDF_MIME)
    assert not validate(b"<html>", "text/html")


sanity_check()

__all__ = ["describe_rejection", "has_magic", "validate", "sanity_check"]
