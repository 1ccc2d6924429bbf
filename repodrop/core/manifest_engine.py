"""Manifest update engine — read, append, bump, re-serialize.

The manifest is reconstructible state: if it is missing or cannot be
decoded, a fresh one is started instead of failing the upload.  A manifest
path that names a directory is the one exception: replacing it would
delete the files below it, so the upload is rejected instead.  Each
update prepends one ``FileEntry`` and bumps the minor version by one, so
the version counts the uploads committed since the major was set.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from repodrop.bridge.object_store import RemoteObjectStore
from repodrop.core.errors import RemoteNotFound, ValidationError
from repodrop.core.hasher import manifest_json_bytes
from repodrop.models.manifest import FileEntry, Manifest, format_timestamp
from repodrop.models.upload import ResolvedPath

logger = logging.getLogger(__name__)

DEFAULT_BUMPED_VERSION = "1.1"

_VERSION_PATTERN = re.compile(r"^(\d+)(?:\.(\d+))?$")


def bump_version(version: Any) -> str:
    """Increment the minor component of a ``major[.minor]`` version.

    >>> bump_version("1"), bump_version("1.0"), bump_version("2.1")
    ('1.1', '1.1', '2.2')
    >>> bump_version("abc"), bump_version(None)
    ('1.1', '1.1')
    """
    if version is None:
        return DEFAULT_BUMPED_VERSION
    match = _VERSION_PATTERN.match(str(version).strip())
    if match is None:
        return DEFAULT_BUMPED_VERSION
    major = int(match.group(1))
    minor = int(match.group(2) or "0")
    return f"{major}.{minor + 1}"


def manifest_directory(directory: str) -> str:
    """Render a sanitized directory the way manifest entries list it."""
    directory = directory.strip("/")
    return f"/{directory}" if directory else "/"


def decode_manifest(raw: bytes) -> Manifest | None:
    """Decode manifest bytes, or return ``None`` if they are not a manifest.

    Only bytes that are not UTF-8 JSON, or JSON whose top level is not an
    object, are rejected.  Damaged fields inside an object are repaired
    one at a time by the model.
    """
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return None
    if not isinstance(document, dict):
        return None
    return Manifest.model_validate(document)


def serialize_manifest(manifest: Manifest) -> bytes:
    """Serialize *manifest* deterministically for storage."""
    return manifest_json_bytes(manifest.model_dump(mode="json"))


class ManifestEngine:
    """Produces the next manifest document for an upload.

    Parameters
    ----------
    store:
        Remote object store the current manifest is read from.
    manifest_path:
        Repository path of the manifest file.
    clock:
        Returns the current time; injectable for tests.
    """

    def __init__(
        self,
        store: RemoteObjectStore,
        manifest_path: str = "content.json",
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self.manifest_path = manifest_path
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def read(self, commit_id: str) -> Manifest:
        """Return the manifest at *commit_id*, or a fresh one.

        Raises
        ------
        ValidationError
            If the manifest path is a directory at *commit_id*.
        """
        try:
            raw = self._store.read_file(commit_id, self.manifest_path)
        except RemoteNotFound:
            logger.info("ManifestEngine: no %s at %s, starting a new manifest", self.manifest_path, commit_id)
            return Manifest.initial(self._clock())
        except ValidationError as exc:
            raise ValidationError(
                f"{self.manifest_path} is a directory; refusing to replace it with the manifest",
                detail={"path": self.manifest_path},
            ) from exc

        manifest = decode_manifest(raw)
        if manifest is None:
            logger.warning(
                "ManifestEngine: %s at %s is not a valid manifest, replacing it",
                self.manifest_path, commit_id,
            )
            return Manifest.initial(self._clock())
        return manifest

    def add_entry(
        self,
        manifest: Manifest,
        resolved: ResolvedPath,
        content_type: str | None,
    ) -> Manifest:
        """Return *manifest* with a new newest-first entry and a bumped version."""
        now = format_timestamp(self._clock())
        directory = manifest_directory(resolved.directory)
        entry = FileEntry(
            dir=directory,
            name=resolved.filename,
            path=f"/{resolved.filename}" if directory == "/" else f"{directory}/{resolved.filename}",
            type=content_type or None,
            description="",
            uploaded_at=now,
        )
        return manifest.model_copy(
            update={
                "version": bump_version(manifest.version),
                "generated_at": now,
                "files": [entry, *manifest.files],
            }
        )

    def update(
        self,
        commit_id: str,
        resolved: ResolvedPath,
        content_type: str | None,
    ) -> tuple[Manifest, bytes]:
        """Read the manifest at *commit_id* and return the updated document and its bytes."""
        updated = self.add_entry(self.read(commit_id), resolved, content_type)
        logger.debug(
            "ManifestEngine: %s -> version %s (%d entries)",
            self.manifest_path, updated.version, len(updated.files),
        )
        return updated, serialize_manifest(updated)
