"""Manifest document models — the JSON index of uploaded artifacts.

The manifest lives in the remote repository as an ordinary file
(``content.json`` by default).  It is owned by whoever edits the
repository, so decoding is lenient and works field by field: unknown keys
are kept, a numeric ``version`` is coerced to a string, a wrong-typed
``version`` or ``generated_at`` is cleared and a non-list ``files`` is
reset.  An entry that is not a valid ``FileEntry`` stays in the list as
the raw value it was read as, so no entry is ever dropped or rewritten.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

INITIAL_VERSION = "1"


def format_timestamp(moment: datetime) -> str:
    """Format *moment* as ISO-8601 UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class FileEntry(BaseModel):
    """One uploaded artifact, as listed in the manifest.

    ``dir`` and ``path`` are absolute from the repository root
    (``"/images"``, ``"/images/photo.png"``); the root directory is ``"/"``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    dir: str
    name: str
    path: str
    type: str | None = None
    description: str = ""
    uploaded_at: str = ""


# Entries that do not validate as FileEntry are kept verbatim.
ManifestItem = Annotated[Union[FileEntry, Any], Field(union_mode="left_to_right")]


class Manifest(BaseModel):
    """The versioned manifest document, newest entry first."""

    model_config = ConfigDict(frozen=True, extra="allow")

    version: str | None = None
    generated_at: str = ""
    files: list[ManifestItem] = []

    @field_validator("version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        return value if isinstance(value, str) else None

    @field_validator("generated_at", mode="before")
    @classmethod
    def _clear_bad_generated_at(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""

    @field_validator("files", mode="before")
    @classmethod
    def _reset_non_list_files(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return value

    @classmethod
    def initial(cls, now: datetime) -> Manifest:
        """Return the manifest used when none exists or it cannot be decoded."""
        return cls(version=INITIAL_VERSION, generated_at=format_timestamp(now), files=[])
