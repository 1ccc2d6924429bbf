"""In-process object store — the local-only backend.

``InMemoryObjectStore`` implements ``RemoteObjectStore`` entirely in
memory, with the same semantics the remote guarantees:

- blob ids are real git blob ids, so identical bytes share one blob
- trees are built on a base tree; unlisted paths are inherited
- ``update_ref`` is an atomic compare-and-swap under a lock

It backs the ``repodrop demo`` command and gives the
test-suite a remote whose head can be moved between two calls via
``push()``, the way an external writer would.

Trees are stored flat (full path -> entry); directories exist implicitly
as prefixes of file paths.
"""

from __future__ import annotations

import collections
import itertools
import logging
import threading
from collections.abc import Mapping, Sequence
from typing import Any

from repodrop.core.errors import (
    RemoteConflict,
    RemoteFatalError,
    RemoteNotFound,
    ValidationError,
)
from repodrop.core.hasher import canonical_json_bytes, git_blob_id, git_object_id
from repodrop.models.objects import BLOB_MODE, CommitInfo, ObjectKind, PathKind, TreeEntry

logger = logging.getLogger(__name__)


class InMemoryObjectStore:
    """Thread-safe, content-addressed object store with CAS refs.

    Attributes
    ----------
    calls:
        Counter of protocol operations served, keyed by method name.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._blobs: dict[str, bytes] = {}
        self._trees: dict[str, dict[str, TreeEntry]] = {}
        self._commits: dict[str, CommitInfo] = {}
        self._refs: dict[str, str] = {}
        self._sequence = itertools.count(1)
        self.calls: collections.Counter[str] = collections.Counter()

    # ------------------------------------------------------------------
    # RemoteObjectStore protocol
    # ------------------------------------------------------------------

    def read_ref(self, branch: str) -> str:
        with self._lock:
            self.calls["read_ref"] += 1
            try:
                return self._refs[branch]
            except KeyError:
                raise RemoteNotFound(
                    f"Branch not found: {branch}", status_code=404,
                    detail={"message": "Not Found"},
                ) from None

    def read_commit(self, commit_id: str) -> CommitInfo:
        with self._lock:
            self.calls["read_commit"] += 1
            return self._commit(commit_id)

    def create_blob(self, data: bytes) -> str:
        with self._lock:
            self.calls["create_blob"] += 1
            return self._add_blob(data)

    def create_tree(self, base_tree_id: str | None, entries: Sequence[TreeEntry]) -> str:
        with self._lock:
            self.calls["create_tree"] += 1
            if base_tree_id is None:
                tree: dict[str, TreeEntry] = {}
            elif base_tree_id in self._trees:
                tree = dict(self._trees[base_tree_id])
            else:
                raise RemoteFatalError(
                    f"Invalid base_tree: {base_tree_id}", status_code=422,
                    detail={"message": "Invalid tree info"},
                )
            for entry in entries:
                if entry.kind != ObjectKind.BLOB or entry.object_id not in self._blobs:
                    raise RemoteFatalError(
                        f"Invalid tree entry for {entry.path}", status_code=422,
                        detail={"message": "GitRPC::BadObjectState"},
                    )
                self._place(tree, entry)
            return self._store_tree(tree)

    def create_commit(self, tree_id: str, parent_ids: Sequence[str], message: str) -> str:
        with self._lock:
            self.calls["create_commit"] += 1
            return self._store_commit(tree_id, list(parent_ids), message)

    def update_ref(self, branch: str, expected_parent_id: str, new_commit_id: str) -> None:
        with self._lock:
            self.calls["update_ref"] += 1
            current = self._refs.get(branch)
            if current is None:
                raise RemoteNotFound(
                    f"Branch not found: {branch}", status_code=404,
                    detail={"message": "Reference does not exist"},
                )
            if new_commit_id not in self._commits:
                raise RemoteFatalError(
                    f"Unknown commit: {new_commit_id}", status_code=422,
                    detail={"message": "Object does not exist"},
                )
            if current != expected_parent_id:
                raise RemoteConflict(
                    f"{branch} moved to {current}, expected {expected_parent_id}",
                    status_code=422,
                    detail={"message": "Update is not a fast forward"},
                )
            self._refs[branch] = new_commit_id
            logger.debug("InMemoryObjectStore: %s %s -> %s", branch, current, new_commit_id)

    def path_kind(self, commit_id: str, path: str) -> PathKind:
        with self._lock:
            self.calls["path_kind"] += 1
            return self._path_kind(commit_id, path)

    def read_file(self, commit_id: str, path: str) -> bytes:
        with self._lock:
            self.calls["read_file"] += 1
            if self._path_kind(commit_id, path) is PathKind.DIRECTORY:
                raise ValidationError(f"{path} is a directory, not a file")
            tree = self._trees[self._commit(commit_id).tree_id]
            return self._blobs[tree[path.strip("/")].object_id]

    # ------------------------------------------------------------------
    # Local helpers (not part of the protocol)
    # ------------------------------------------------------------------

    def bootstrap(
        self,
        branch: str = "main",
        files: Mapping[str, bytes] | None = None,
        message: str = "Initial commit",
    ) -> str:
        """Create *branch* with a root commit holding *files*."""
        with self._lock:
            if branch in self._refs:
                raise ValidationError(f"Branch already exists: {branch}")
            tree: dict[str, TreeEntry] = {}
            for path, data in (files or {}).items():
                self._place(tree, TreeEntry(path=path, object_id=self._add_blob(data)))
            commit_id = self._store_commit(self._store_tree(tree), [], message)
            self._refs[branch] = commit_id
            return commit_id

    def push(
        self,
        branch: str,
        files: Mapping[str, bytes],
        message: str = "External push",
    ) -> str:
        """Commit *files* on top of *branch* as an outside writer would."""
        with self._lock:
            parent = self._refs[branch]
            tree = dict(self._trees[self._commit(parent).tree_id])
            for path, data in files.items():
                self._place(tree, TreeEntry(path=path, object_id=self._add_blob(data)))
            commit_id = self._store_commit(self._store_tree(tree), [parent], message)
            self._refs[branch] = commit_id
            return commit_id

    def files_at(self, ref: str) -> dict[str, bytes]:
        """Return every file of a branch (or commit id) as path -> bytes."""
        with self._lock:
            commit_id = self._refs.get(ref, ref)
            tree = self._trees[self._commit(commit_id).tree_id]
            return {path: self._blobs[entry.object_id] for path, entry in sorted(tree.items())}

    def entry_at(self, ref: str, path: str) -> TreeEntry:
        """Return the tree entry for *path* on a branch (or commit id)."""
        with self._lock:
            commit_id = self._refs.get(ref, ref)
            tree = self._trees[self._commit(commit_id).tree_id]
            try:
                return tree[path]
            except KeyError:
                raise RemoteNotFound(f"Path not found: {path}", status_code=404) from None

    def close(self) -> None:
        """Nothing to release; present so callers can treat every store alike."""

    @property
    def object_counts(self) -> dict[str, int]:
        with self._lock:
            return {
                "blobs": len(self._blobs),
                "trees": len(self._trees),
                "commits": len(self._commits),
            }

    def __repr__(self) -> str:
        counts = self.object_counts
        return (
            f"InMemoryObjectStore(refs={sorted(self._refs)}, blobs={counts['blobs']}, "
            f"commits={counts['commits']})"
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _commit(self, commit_id: str) -> CommitInfo:
        try:
            return self._commits[commit_id]
        except KeyError:
            raise RemoteNotFound(
                f"Commit not found: {commit_id}", status_code=404,
                detail={"message": "Not Found"},
            ) from None

    def _path_kind(self, commit_id: str, path: str) -> PathKind:
        tree = self._trees[self._commit(commit_id).tree_id]
        path = path.strip("/")
        if not path:
            return PathKind.DIRECTORY
        if path in tree:
            return PathKind.FILE
        prefix = f"{path}/"
        if any(existing.startswith(prefix) for existing in tree):
            return PathKind.DIRECTORY
        raise RemoteNotFound(f"Path not found: {path}", status_code=404, detail={"message": "Not Found"})

    def _add_blob(self, data: bytes) -> str:
        blob_id = git_blob_id(data)
        self._blobs.setdefault(blob_id, bytes(data))
        return blob_id

    @staticmethod
    def _place(tree: dict[str, TreeEntry], entry: TreeEntry) -> None:
        """Insert *entry*, replacing whatever file or directory was in its way."""
        prefix = f"{entry.path}/"
        for existing in [p for p in tree if p.startswith(prefix)]:
            del tree[existing]
        parts = entry.path.split("/")
        for depth in range(1, len(parts)):
            tree.pop("/".join(parts[:depth]), None)
        tree[entry.path] = entry

    def _store_tree(self, tree: dict[str, TreeEntry]) -> str:
        body: list[Any] = [
            [path, entry.mode or BLOB_MODE, entry.kind.value, entry.object_id]
            for path, entry in sorted(tree.items())
        ]
        tree_id = git_object_id("tree", canonical_json_bytes(body))
        self._trees.setdefault(tree_id, tree)
        return tree_id

    def _store_commit(self, tree_id: str, parent_ids: list[str], message: str) -> str:
        if tree_id not in self._trees:
            raise RemoteFatalError(
                f"Unknown tree: {tree_id}", status_code=422,
                detail={"message": "Tree SHA does not exist"},
            )
        for parent in parent_ids:
            if parent not in self._commits:
                raise RemoteFatalError(
                    f"Unknown parent: {parent}", status_code=422,
                    detail={"message": "Parent SHA does not exist"},
                )
        body = {
            "tree": tree_id,
            "parents": parent_ids,
            "message": message,
            "sequence": next(self._sequence),
        }
        commit_id = git_object_id("commit", canonical_json_bytes(body))
        self._commits[commit_id] = CommitInfo(
            commit_id=commit_id, tree_id=tree_id, parent_ids=parent_ids, message=message,
        )
        return commit_id
