"""Remote object store protocol — the boundary to the git-backed remote.

Adapters are pure protocol translators: they turn each call into one
remote request and map the answer onto the repodrop error taxonomy.
They never retry; retry policy belongs to the commit coordinator.

Error contract shared by every implementation
---------------------------------------------
- ``RemoteNotFound``        the ref, commit or path does not exist
- ``RemoteConflict``        ``update_ref`` saw a head other than the
                            expected parent, or a create call was
                            rejected by a concurrent structural change
- ``RemoteTransientError``  transport failure, timeout or 5xx
- ``RemoteFatalError``      anything else, with status and body attached
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from repodrop.models.objects import CommitInfo, PathKind, TreeEntry


@runtime_checkable
class RemoteObjectStore(Protocol):
    """Protocol every remote object store adapter must implement."""

    def read_ref(self, branch: str) -> str:
        """Return the commit id *branch* currently points at."""
        ...

    def read_commit(self, commit_id: str) -> CommitInfo:
        """Return the tree and parents of *commit_id*."""
        ...

    def create_blob(self, data: bytes) -> str:
        """Store *data* and return its blob id.  Safe to repeat."""
        ...

    def create_tree(self, base_tree_id: str | None, entries: Sequence[TreeEntry]) -> str:
        """Create a tree from *base_tree_id* with *entries* overridden."""
        ...

    def create_commit(self, tree_id: str, parent_ids: Sequence[str], message: str) -> str:
        """Create a commit object and return its id (no ref moves)."""
        ...

    def update_ref(self, branch: str, expected_parent_id: str, new_commit_id: str) -> None:
        """Move *branch* to *new_commit_id* if it still points at *expected_parent_id*."""
        ...

    def path_kind(self, commit_id: str, path: str) -> PathKind:
        """Return whether *path* is a file or a directory in *commit_id*."""
        ...

    def read_file(self, commit_id: str, path: str) -> bytes:
        """Return the content of the file at *path* in *commit_id*."""
        ...

    def close(self) -> None:
        """Release connections held by the adapter."""
        ...
