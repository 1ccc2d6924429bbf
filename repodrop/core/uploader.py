"""Artifact uploader — the end-to-end upload service.

The uploader wires the path resolver, the manifest engine and the commit
coordinator together::

    UploadRequest
      -> sanitize directory / file name, enforce size limit
      -> CommitCoordinator.commit(planner)
           planner(head):  PathResolver.resolve(head)
                           ManifestEngine.update(head)
                           -> {artifact path: bytes, manifest path: bytes}
      -> UploadResult(final path, commit id, raw URL, ...)

The planner runs once per commit attempt, so after a conflict both the
existence check and the manifest read are repeated against the new head.
An upload therefore never overwrites manifest entries added by a writer
that won the race.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone

from repodrop.bridge.object_store import RemoteObjectStore
from repodrop.config import RepodropConfig
from repodrop.core.commit_coordinator import CommitCoordinator
from repodrop.core.errors import RepodropError, ValidationError
from repodrop.core.manifest_engine import ManifestEngine
from repodrop.core.path_resolver import PathResolver
from repodrop.core.production_guard import enforce_production_constraints
from repodrop.core.sanitizer import choose_filename, enforce_size_limit, sanitize_directory
from repodrop.models.manifest import Manifest
from repodrop.models.objects import HeadSnapshot
from repodrop.models.upload import ChangePlan, UploadRequest, UploadResult

logger = logging.getLogger(__name__)


class ArtifactUploader:
    """Uploads artifacts and keeps the manifest in the same commit.

    Parameters
    ----------
    store:
        Remote object store to write to.
    config:
        Runtime configuration.  Uses environment defaults if not provided.
    repo:
        Repository name used in raw URLs; defaults to ``config.github_repo``.
    branch:
        Branch to commit onto; defaults to ``config.branch``.
    clock:
        Returns the current time; injectable for tests.
    sleep:
        Sleep used between commit attempts; injectable for tests.
    prefixes:
        Unique-prefix generator for renamed uploads.
    """

    def __init__(
        self,
        store: RemoteObjectStore,
        config: RepodropConfig | None = None,
        *,
        repo: str | None = None,
        branch: str | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        prefixes: Callable[[], str] | None = None,
    ) -> None:
        self.config = config or RepodropConfig()
        enforce_production_constraints(self.config)

        self.store = store
        self.repo = repo or self.config.github_repo
        self.branch = branch or self.config.branch
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.resolver = PathResolver(store, prefixes)
        self.manifest_engine = ManifestEngine(
            store, self.config.manifest_path, clock=self._clock
        )
        self.coordinator = CommitCoordinator(
            store,
            self.branch,
            max_attempts=self.config.max_attempts,
            retry_delay_seconds=self.config.retry_delay_seconds,
            file_mode=self.config.file_mode,
            sleep=sleep,
        )

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(self, request: UploadRequest) -> UploadResult:
        """Commit the artifact and the updated manifest as one commit.

        Raises
        ------
        ValidationError
            Bad input: oversize payload, or a path naming a directory.
        RemoteFatalError
            Remote failure, or the retry budget ran out.
        """
        enforce_size_limit(len(request.data), self.config.max_upload_bytes)
        directory = sanitize_directory(request.directory)
        filename = choose_filename(request.original_filename, request.filename)
        manifest_path = self.manifest_engine.manifest_path

        def plan(head: HeadSnapshot) -> ChangePlan:
            resolved = self.resolver.resolve(
                head.commit_id, directory, filename, overwrite=request.overwrite
            )
            if resolved.path == manifest_path:
                raise ValidationError(
                    f"{manifest_path} is reserved for the manifest",
                    detail={"path": resolved.path},
                )
            manifest, manifest_bytes = self.manifest_engine.update(
                head.commit_id, resolved, request.content_type
            )
            return ChangePlan(
                changes={resolved.path: request.data, manifest_path: manifest_bytes},
                message=f"Upload {resolved.filename} and update {manifest_path}",
                resolved=resolved,
                manifest=manifest,
            )

        outcome = self.coordinator.commit(plan)
        resolved = outcome.plan.resolved
        manifest = outcome.plan.manifest
        if resolved is None or manifest is None:
            raise RepodropError("Commit plan is missing its resolved path or manifest")

        logger.info(
            "ArtifactUploader: %s committed as %s (manifest %s)",
            resolved.path, outcome.commit_id, manifest.version,
        )
        return UploadResult(
            final_path=resolved.path,
            filename=resolved.filename,
            commit_id=outcome.commit_id,
            raw_url=self.config.raw_url(resolved.path, repo=self.repo, branch=self.branch),
            blob_id=outcome.blob_ids[resolved.path],
            manifest_path=manifest_path,
            manifest_version=manifest.version or "",
            renamed=resolved.renamed,
            replaced_existing=resolved.replaces_existing,
            attempts=outcome.attempts,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_manifest(self) -> Manifest:
        """Return the manifest at the current branch head (or a fresh one)."""
        head = self.store.read_ref(self.branch)
        return self.manifest_engine.read(head)
