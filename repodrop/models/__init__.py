"""repodrop data models — all Pydantic v2, all frozen (immutable)."""

from repodrop.models.manifest import FileEntry, Manifest, format_timestamp
from repodrop.models.objects import (
    BLOB_MODE,
    CommitInfo,
    HeadSnapshot,
    ObjectKind,
    PathKind,
    TreeEntry,
)
from repodrop.models.pipeline import (
    RETRYABLE_STAGES,
    TERMINAL_STAGES,
    VALID_TRANSITIONS,
    AttemptRecord,
    CommitStage,
)
from repodrop.models.upload import (
    ChangePlan,
    CommitOutcome,
    ErrorReport,
    ResolvedPath,
    UploadRequest,
    UploadResult,
)

__all__ = [
    # objects
    "BLOB_MODE",
    "ObjectKind",
    "PathKind",
    "TreeEntry",
    "CommitInfo",
    "HeadSnapshot",
    # manifest
    "FileEntry",
    "Manifest",
    "format_timestamp",
    # pipeline
    "CommitStage",
    "VALID_TRANSITIONS",
    "TERMINAL_STAGES",
    "RETRYABLE_STAGES",
    "AttemptRecord",
    # upload
    "UploadRequest",
    "ResolvedPath",
    "ChangePlan",
    "CommitOutcome",
    "UploadResult",
    "ErrorReport",
]
