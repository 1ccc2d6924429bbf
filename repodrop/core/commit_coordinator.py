"""Atomic commit coordinator — one change-set, one commit, or nothing.

Each attempt walks a fixed pipeline of stages::

    READ_HEAD -> READ_BASE_TREE -> PLAN -> CREATE_BLOBS -> CREATE_TREE
              -> CREATE_COMMIT -> UPDATE_REF -> DONE | CONFLICT_RETRY | FATAL_ABORT

Nothing becomes visible on the branch until ``UPDATE_REF`` succeeds, and
that call is a compare-and-swap against the head read in ``READ_HEAD``.
If another writer moved the branch in between, the attempt ends in
``CONFLICT_RETRY`` and the whole pipeline restarts from a fresh head:
the base tree is re-read and the change-set is re-planned on top of it.

Objects created by an abandoned attempt are left unreferenced on the
remote.  Blobs are content addressed, so a retry reuses the ids it already
has instead of uploading the same bytes again.

Retry policy
------------
- conflicts and transient failures in CREATE_BLOBS, CREATE_TREE,
  CREATE_COMMIT and UPDATE_REF are retried
- at most ``max_attempts`` attempts (default 3) in total
- ``attempt * retry_delay_seconds`` of sleep between attempts
- anything else aborts immediately; running out of attempts raises
  ``RemoteFatalError``
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping

from repodrop.bridge.object_store import RemoteObjectStore
from repodrop.core.errors import (
    RemoteConflict,
    RemoteError,
    RemoteFatalError,
    RemoteNotFound,
    RemoteTransientError,
    RepodropError,
    ValidationError,
)
from repodrop.core.hasher import git_blob_id
from repodrop.models.objects import BLOB_MODE, HeadSnapshot, TreeEntry
from repodrop.models.pipeline import (
    RETRYABLE_STAGES,
    VALID_TRANSITIONS,
    AttemptRecord,
    CommitStage,
)
from repodrop.models.upload import ChangePlan, CommitOutcome

logger = logging.getLogger(__name__)

Planner = Callable[[HeadSnapshot], ChangePlan]


class InvalidTransitionError(RuntimeError):
    """Raised when the pipeline tries to skip or repeat a stage."""


class _AttemptTrail:
    """Tracks the stages one attempt has walked through."""

    def __init__(self, attempt: int) -> None:
        self.attempt = attempt
        self.stage = CommitStage.READ_HEAD
        self.stages: list[CommitStage] = [CommitStage.READ_HEAD]
        self.parent_id: str | None = None

    def advance(self, target: CommitStage) -> None:
        allowed = VALID_TRANSITIONS.get(self.stage, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot move from {self.stage.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        self.stage = target
        self.stages.append(target)

    def record(self, outcome: CommitStage, error: BaseException | None = None) -> AttemptRecord:
        failed_at = self.stage
        self.advance(outcome)
        return AttemptRecord(
            attempt=self.attempt,
            parent_id=self.parent_id,
            stages=list(self.stages),
            outcome=outcome,
            error=f"{failed_at.value}: {error}" if error is not None else None,
        )


class CommitCoordinator:
    """Commits change-sets atomically onto a branch under optimistic concurrency.

    Parameters
    ----------
    store:
        The remote object store.
    branch:
        Branch whose ref is moved.
    max_attempts:
        Total attempts before giving up.
    retry_delay_seconds:
        Delay unit; attempt *n* waits ``n * retry_delay_seconds`` before
        the next one starts.
    file_mode:
        POSIX mode string for every written file.
    sleep:
        Sleep function; injectable for tests.
    """

    def __init__(
        self,
        store: RemoteObjectStore,
        branch: str = "main",
        *,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.2,
        file_mode: str = BLOB_MODE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._store = store
        self.branch = branch
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds
        self._file_mode = file_mode
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def commit_changes(self, changes: Mapping[str, bytes], message: str) -> CommitOutcome:
        """Commit a fixed change-set (path -> full new content)."""
        plan = ChangePlan(changes=dict(changes), message=message)
        return self.commit(lambda head: plan)

    def commit(self, planner: Planner) -> CommitOutcome:
        """Run the commit pipeline, re-planning against each attempt's head.

        *planner* receives the observed head and returns the change-set
        to commit on top of it.  It may raise ``ValidationError``, which
        aborts without retry.

        Raises
        ------
        ValidationError
            If the planner rejects the input or plans no changes.
        RemoteFatalError
            On any non-retryable remote failure, or when every attempt
            ended in a conflict or transient failure.
        """
        blob_cache: dict[str, str] = {}
        attempts: list[AttemptRecord] = []
        attempt = 0

        while True:
            attempt += 1
            trail = _AttemptTrail(attempt)
            try:
                outcome = self._run_attempt(trail, planner, blob_cache)
            except (RemoteConflict, RemoteTransientError) as exc:
                failed_at = trail.stage
                if failed_at not in RETRYABLE_STAGES:
                    attempts.append(trail.record(CommitStage.FATAL_ABORT, exc))
                    self._log_abort(trail.attempt, failed_at, exc)
                    raise RemoteFatalError.wrap(exc, f"Commit aborted at {failed_at.value}") from exc
                attempts.append(trail.record(CommitStage.CONFLICT_RETRY, exc))
                logger.warning(
                    "CommitCoordinator: attempt %d/%d on %s hit %s at %s",
                    attempt, self.max_attempts, self.branch, exc.kind, failed_at.value,
                )
                if attempt >= self.max_attempts:
                    raise RemoteFatalError(
                        f"Commit to {self.branch} failed after {self.max_attempts} attempts: {exc.message}",
                        status_code=exc.status_code,
                        detail=exc.detail,
                        attempts=self.max_attempts,
                    ) from exc
                self._sleep(attempt * self.retry_delay_seconds)
                continue
            except RemoteError as exc:
                failed_at = trail.stage
                attempts.append(trail.record(CommitStage.FATAL_ABORT, exc))
                self._log_abort(trail.attempt, failed_at, exc)
                raise RemoteFatalError.wrap(exc, f"Commit aborted at {failed_at.value}") from exc
            except RepodropError as exc:
                failed_at = trail.stage
                attempts.append(trail.record(CommitStage.FATAL_ABORT, exc))
                self._log_abort(trail.attempt, failed_at, exc)
                raise

            attempts.append(trail.record(CommitStage.DONE))
            logger.info(
                "CommitCoordinator: %s -> %s after %d attempt(s)",
                self.branch, outcome.commit_id, attempt,
            )
            return outcome.model_copy(update={"attempts": attempts})

    # ------------------------------------------------------------------
    # One attempt
    # ------------------------------------------------------------------

    def _run_attempt(
        self,
        trail: _AttemptTrail,
        planner: Planner,
        blob_cache: dict[str, str],
    ) -> CommitOutcome:
        try:
            parent_id = self._store.read_ref(self.branch)
        except RemoteNotFound as exc:
            raise RemoteFatalError(
                f"Branch {self.branch} does not exist; nothing to commit onto",
                status_code=exc.status_code,
                detail=exc.detail,
            ) from exc
        trail.parent_id = parent_id

        trail.advance(CommitStage.READ_BASE_TREE)
        base_tree_id = self._store.read_commit(parent_id).tree_id
        head = HeadSnapshot(branch=self.branch, commit_id=parent_id, tree_id=base_tree_id)

        trail.advance(CommitStage.PLAN)
        plan = planner(head)
        if not plan.changes:
            raise ValidationError("Change-set is empty; nothing to commit")

        trail.advance(CommitStage.CREATE_BLOBS)
        blob_ids: dict[str, str] = {}
        for path, data in plan.changes.items():
            local_id = git_blob_id(data)
            if local_id not in blob_cache:
                blob_cache[local_id] = self._store.create_blob(data)
            blob_ids[path] = blob_cache[local_id]

        trail.advance(CommitStage.CREATE_TREE)
        entries = [
            TreeEntry(path=path, object_id=blob_id, mode=self._file_mode)
            for path, blob_id in blob_ids.items()
        ]
        tree_id = self._store.create_tree(base_tree_id, entries)

        trail.advance(CommitStage.CREATE_COMMIT)
        commit_id = self._store.create_commit(tree_id, [parent_id], plan.message)

        trail.advance(CommitStage.UPDATE_REF)
        self._store.update_ref(self.branch, parent_id, commit_id)

        return CommitOutcome(
            commit_id=commit_id,
            tree_id=tree_id,
            parent_id=parent_id,
            blob_ids=blob_ids,
            plan=plan,
            attempts=[],
        )

    def _log_abort(self, attempt: int, stage: CommitStage, exc: Exception) -> None:
        logger.error(
            "CommitCoordinator: attempt %d on %s aborted at %s: %s",
            attempt, self.branch, stage.value, exc,
        )
