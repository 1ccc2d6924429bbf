"""Request, plan and result models for a single artifact upload."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from repodrop.models.manifest import Manifest
from repodrop.models.pipeline import AttemptRecord


class UploadRequest(BaseModel):
    """An upload as handed over by the front end.

    ``directory`` and ``filename`` may be raw user input; the uploader
    sanitizes them before anything touches the remote.
    """

    model_config = ConfigDict(frozen=True)

    original_filename: str
    data: bytes
    directory: str = ""
    filename: str = ""
    overwrite: bool = False
    content_type: str | None = None


class ResolvedPath(BaseModel):
    """Where an artifact will land, as decided by the path resolver."""

    model_config = ConfigDict(frozen=True)

    directory: str  # sanitized, no leading/trailing slash, "" for root
    filename: str   # final file name, possibly prefixed
    path: str       # directory + "/" + filename, or filename at root
    requested_path: str
    renamed: bool = False
    replaces_existing: bool = False


class ChangePlan(BaseModel):
    """A change-set to be committed atomically on top of one head.

    ``changes`` maps repository paths to their full new content.
    """

    model_config = ConfigDict(frozen=True)

    changes: dict[str, bytes]
    message: str
    resolved: ResolvedPath | None = None
    manifest: Manifest | None = None


class UploadResult(BaseModel):
    """What a successful upload reports back to the caller."""

    model_config = ConfigDict(frozen=True)

    final_path: str
    filename: str
    commit_id: str
    raw_url: str
    blob_id: str
    manifest_path: str
    manifest_version: str
    renamed: bool = False
    replaced_existing: bool = False
    attempts: list[AttemptRecord] = []


class ErrorReport(BaseModel):
    """Structured error answer: ``{kind, http_status, detail}``."""

    model_config = ConfigDict(frozen=True)

    kind: str
    http_status: int
    detail: Any = None
    remote_status: int | None = None


class CommitOutcome(BaseModel):
    """The result of a successful atomic commit."""

    model_config = ConfigDict(frozen=True)

    commit_id: str
    tree_id: str
    parent_id: str
    blob_ids: dict[str, str]
    plan: ChangePlan
    attempts: list[AttemptRecord]
