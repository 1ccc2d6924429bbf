"""Path resolver — decides where an uploaded artifact lands.

With ``overwrite`` the requested path is used as-is.  Without it, the
requested path is looked up at the head commit the upload is being built on;
if a file is already there, the name gets a unique ``<time>-<random>-``
prefix.  A requested path that names a directory is rejected.

The lookup is a plain read, so two writers racing on the same name can
still meet.  The commit coordinator re-runs the resolver for every attempt
against the head that attempt commits onto, which keeps the window to a
single pipeline pass.
"""

from __future__ import annotations

import logging
import random
import string
import threading
import time
from collections.abc import Callable

from repodrop.bridge.object_store import RemoteObjectStore
from repodrop.core.errors import RemoteNotFound, ValidationError
from repodrop.models.objects import PathKind
from repodrop.models.upload import ResolvedPath

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Render a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    digits: list[str] = []
    while True:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
        if value == 0:
            return "".join(reversed(digits))


def join_path(directory: str, filename: str) -> str:
    """Join a sanitized directory and file name; an empty directory is the root."""
    return f"{directory}/{filename}" if directory else filename


class UniquePrefixGenerator:
    """Produces ``<base36 ms time>-<4 base36 random chars>`` prefixes.

    The time component is strictly increasing within one generator even
    when the clock stalls or steps backwards.  Uniqueness across processes
    is probabilistic only.
    """

    def __init__(
        self,
        *,
        clock_ms: Callable[[], int] | None = None,
        rng: random.Random | None = None,
        random_length: int = 4,
    ) -> None:
        self._clock_ms = clock_ms or (lambda: time.time_ns() // 1_000_000)
        self._rng = rng or random.SystemRandom()
        self._random_length = random_length
        self._last_ms = -1
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            now = max(self._clock_ms(), self._last_ms + 1)
            self._last_ms = now
        suffix = "".join(self._rng.choice(_BASE36) for _ in range(self._random_length))
        return f"{to_base36(now)}-{suffix}"


class PathResolver:
    """Resolves the final repository path for an upload.

    Parameters
    ----------
    store:
        Remote object store used for the existence check.
    prefixes:
        Callable returning a fresh unique prefix per call.
    """

    def __init__(
        self,
        store: RemoteObjectStore,
        prefixes: Callable[[], str] | None = None,
    ) -> None:
        self._store = store
        self._prefixes = prefixes or UniquePrefixGenerator()

    def resolve(
        self,
        commit_id: str,
        directory: str,
        filename: str,
        *,
        overwrite: bool = False,
    ) -> ResolvedPath:
        """Return the path the artifact should be written to at *commit_id*.

        Raises
        ------
        ValidationError
            If the requested path is an existing directory.
        """
        requested = join_path(directory, filename)
        existing = self._lookup(commit_id, requested)
        if existing is PathKind.DIRECTORY:
            raise ValidationError(
                f"{requested} is an existing directory, not a file",
                detail={"path": requested},
            )

        if overwrite or existing is None:
            return ResolvedPath(
                directory=directory,
                filename=filename,
                path=requested,
                requested_path=requested,
                replaces_existing=existing is PathKind.FILE,
            )

        unique_name = f"{self._prefixes()}-{filename}"
        resolved = join_path(directory, unique_name)
        logger.info("PathResolver: %s exists, renamed to %s", requested, resolved)
        return ResolvedPath(
            directory=directory,
            filename=unique_name,
            path=resolved,
            requested_path=requested,
            renamed=True,
        )

    def _lookup(self, commit_id: str, path: str) -> PathKind | None:
        try:
            return self._store.path_kind(commit_id, path)
        except RemoteNotFound:
            return None
