"""Input sanitizing for directory names, file names and upload size.

Directories and file names come straight from user input.  Everything
outside a small character set is replaced with ``_`` before a path is
built, so a sanitized path can never climb out of the repository or
carry URL-significant characters.
"""

from __future__ import annotations

import re

from repodrop.config import DEFAULT_MAX_UPLOAD_BYTES
from repodrop.core.errors import PayloadTooLargeError

MAX_FILENAME_LENGTH = 180
FALLBACK_FILENAME = "file.bin"
FALLBACK_UPLOAD_NAME = "upload.bin"

_DIRECTORY_UNSAFE = re.compile(r"[^a-zA-Z0-9/_-]")
_FILENAME_UNSAFE = re.compile(r"[^a-zA-Z0-9._-]")


def sanitize_directory(raw: str | None) -> str:
    """Restrict *raw* to ``[A-Za-z0-9/_-]`` and strip edge slashes.

    An empty result means the repository root.
    """
    cleaned = _DIRECTORY_UNSAFE.sub("_", raw or "")
    # No empty path segments.
    cleaned = re.sub(r"/{2,}", "/", cleaned)
    return cleaned.strip("/")


def sanitize_filename(raw: str | None) -> str:
    """Restrict *raw* to ``[A-Za-z0-9._-]``, drop leading ``_`` and cap the length."""
    cleaned = _FILENAME_UNSAFE.sub("_", raw or "").lstrip("_")[:MAX_FILENAME_LENGTH]
    if not cleaned.strip("."):
        return FALLBACK_FILENAME
    return cleaned


def _extension(name: str) -> str:
    return name.rsplit(".", 1)[1] if "." in name else ""


def choose_filename(original: str | None, custom: str | None = None) -> str:
    """Pick the stored file name for an upload.

    *custom* wins over *original*; if the sanitized result has no
    extension, the original upload's extension is appended.

    Examples
    --------
    >>> choose_filename("photo.png")
    'photo.png'
    >>> choose_filename("photo.png", "holiday")
    'holiday.png'
    >>> choose_filename("Mon été.jpg")
    'Mon__t_.jpg'
    """
    original = original or FALLBACK_UPLOAD_NAME
    name = sanitize_filename(custom or original)
    if "." in name:
        return name
    extension = sanitize_filename(_extension(original)) if _extension(original) else ""
    return f"{name}.{extension}" if extension else name


def enforce_size_limit(size: int, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
    """Raise ``PayloadTooLargeError`` if *size* exceeds *max_bytes*."""
    if size > max_bytes:
        raise PayloadTooLargeError(
            f"File too large (> {max_bytes} bytes)",
            detail={"size": size, "max_bytes": max_bytes},
        )
