"""Hashing and serialization helpers for git objects and the manifest.

Object ids follow git's scheme (SHA-1 over ``"<kind> <len>\\0" + body``)
so ids computed locally match the ones the remote hands back for blobs.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha1_hex(data: bytes) -> str:
    """Return the SHA-1 hex digest of raw bytes."""
    return hashlib.sha1(data).hexdigest()


def git_object_id(kind: str, body: bytes) -> str:
    """Return the git object id of *body* stored as *kind*."""
    header = f"{kind} {len(body)}\0".encode("ascii")
    return sha1_hex(header + body)


def git_blob_id(data: bytes) -> str:
    """Return the git blob id of *data* (what ``git hash-object`` prints)."""
    return git_object_id("blob", data)


def manifest_json_bytes(document: dict[str, Any]) -> bytes:
    """Serialize a manifest document for storage in the repository.

    Keys keep the order of *document* (model field order), output is
    pretty-printed with two spaces and ends without a trailing newline,
    so identical manifests always produce identical blob ids.
    """
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")
