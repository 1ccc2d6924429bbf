"""Value types for the remote git object model.

Blobs, trees and commits are immutable and content addressed; the branch
ref is the only mutable pointer.  These models describe what the object
store adapters hand back, never the raw wire payloads.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

BLOB_MODE = "100644"


class ObjectKind(str, Enum):
    """Kind of object a tree entry points at."""

    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


class PathKind(str, Enum):
    """What a path resolves to inside a commit's tree."""

    FILE = "file"
    DIRECTORY = "directory"


class TreeEntry(BaseModel):
    """One override entry for ``create_tree``.

    ``path`` is the full slash-separated path from the repository root;
    the remote expands it into nested trees.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    object_id: str
    mode: str = BLOB_MODE
    kind: ObjectKind = ObjectKind.BLOB


class CommitInfo(BaseModel):
    """The parts of a commit the commit pipeline needs."""

    model_config = ConfigDict(frozen=True)

    commit_id: str
    tree_id: str
    parent_ids: list[str] = []
    message: str = ""


class HeadSnapshot(BaseModel):
    """A branch head as observed at the start of one commit attempt."""

    model_config = ConfigDict(frozen=True)

    branch: str
    commit_id: str
    tree_id: str
