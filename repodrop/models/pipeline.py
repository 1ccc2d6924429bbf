"""Commit pipeline stage models — one attempt is a linear walk of stages."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CommitStage(str, Enum):
    """Stages of a single commit attempt."""

    READ_HEAD = "read_head"
    READ_BASE_TREE = "read_base_tree"
    PLAN = "plan"
    CREATE_BLOBS = "create_blobs"
    CREATE_TREE = "create_tree"
    CREATE_COMMIT = "create_commit"
    UPDATE_REF = "update_ref"
    DONE = "done"
    CONFLICT_RETRY = "conflict_retry"
    FATAL_ABORT = "fatal_abort"


TERMINAL_STAGES: frozenset[CommitStage] = frozenset(
    {CommitStage.DONE, CommitStage.CONFLICT_RETRY, CommitStage.FATAL_ABORT}
)

# Every working stage may abort; retry is only reachable from the write stages.
VALID_TRANSITIONS: dict[CommitStage, set[CommitStage]] = {
    CommitStage.READ_HEAD: {CommitStage.READ_BASE_TREE, CommitStage.FATAL_ABORT},
    CommitStage.READ_BASE_TREE: {CommitStage.PLAN, CommitStage.FATAL_ABORT},
    CommitStage.PLAN: {CommitStage.CREATE_BLOBS, CommitStage.FATAL_ABORT},
    CommitStage.CREATE_BLOBS: {
        CommitStage.CREATE_TREE,
        CommitStage.CONFLICT_RETRY,
        CommitStage.FATAL_ABORT,
    },
    CommitStage.CREATE_TREE: {
        CommitStage.CREATE_COMMIT,
        CommitStage.CONFLICT_RETRY,
        CommitStage.FATAL_ABORT,
    },
    CommitStage.CREATE_COMMIT: {
        CommitStage.UPDATE_REF,
        CommitStage.CONFLICT_RETRY,
        CommitStage.FATAL_ABORT,
    },
    CommitStage.UPDATE_REF: {
        CommitStage.DONE,
        CommitStage.CONFLICT_RETRY,
        CommitStage.FATAL_ABORT,
    },
    CommitStage.DONE: set(),
    CommitStage.CONFLICT_RETRY: set(),
    CommitStage.FATAL_ABORT: set(),
}

# Stages whose conflicts and transient failures are eligible for retry.
RETRYABLE_STAGES: frozenset[CommitStage] = frozenset(
    {
        CommitStage.CREATE_BLOBS,
        CommitStage.CREATE_TREE,
        CommitStage.CREATE_COMMIT,
        CommitStage.UPDATE_REF,
    }
)


class AttemptRecord(BaseModel):
    """Audit record of one pass through the pipeline."""

    model_config = ConfigDict(frozen=True)

    attempt: int
    parent_id: str | None = None
    stages: list[CommitStage] = []
    outcome: CommitStage
    error: str | None = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
