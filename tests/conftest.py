"""Shared test fixtures for repodrop."""

from __future__ import annotations

import collections
import itertools
import random
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from repodrop.bridge.memory import InMemoryObjectStore
from repodrop.config import RepodropConfig
from repodrop.core.path_resolver import UniquePrefixGenerator
from repodrop.core.uploader import ArtifactUploader
from repodrop.models.objects import CommitInfo, PathKind, TreeEntry
from repodrop.models.upload import UploadRequest

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ScriptedStore(InMemoryObjectStore):
    """InMemoryObjectStore that can inject failures and outside pushes.

    ``fail(op, *errors)`` queues errors raised by the next calls to *op*.
    ``push_before_update(files)`` queues an outside commit that lands
    right before the next ``update_ref`` is evaluated.
    """

    def __init__(self) -> None:
        super().__init__()
        self.failures: dict[str, list[Exception]] = collections.defaultdict(list)
        self.pending_pushes: list[Mapping[str, bytes]] = []

    def fail(self, op: str, *errors: Exception) -> None:
        self.failures[op].extend(errors)

    def push_before_update(self, files: Mapping[str, bytes]) -> None:
        self.pending_pushes.append(files)

    def _maybe_fail(self, op: str) -> None:
        if self.failures.get(op):
            raise self.failures[op].pop(0)

    def read_ref(self, branch: str) -> str:
        self._maybe_fail("read_ref")
        return super().read_ref(branch)

    def read_commit(self, commit_id: str) -> CommitInfo:
        self._maybe_fail("read_commit")
        return super().read_commit(commit_id)

    def create_blob(self, data: bytes) -> str:
        self._maybe_fail("create_blob")
        return super().create_blob(data)

    def create_tree(self, base_tree_id: str | None, entries: Sequence[TreeEntry]) -> str:
        self._maybe_fail("create_tree")
        return super().create_tree(base_tree_id, entries)

    def create_commit(self, tree_id: str, parent_ids: Sequence[str], message: str) -> str:
        self._maybe_fail("create_commit")
        return super().create_commit(tree_id, parent_ids, message)

    def update_ref(self, branch: str, expected_parent_id: str, new_commit_id: str) -> None:
        self._maybe_fail("update_ref")
        if self.pending_pushes:
            self.push(branch, self.pending_pushes.pop(0), message="Concurrent edit")
        super().update_ref(branch, expected_parent_id, new_commit_id)

    def path_kind(self, commit_id: str, path: str) -> PathKind:
        self._maybe_fail("path_kind")
        return super().path_kind(commit_id, path)

    def read_file(self, commit_id: str, path: str) -> bytes:
        self._maybe_fail("read_file")
        return super().read_file(commit_id, path)


@pytest.fixture
def clock() -> FixedClock:
    """Provide a clock frozen at 2024-05-01T12:00:00.123Z."""
    return FixedClock()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects every delay the coordinator asks for."""
    return []


@pytest.fixture
def sleep(sleeps: list[float]) -> Callable[[float], None]:
    """Provide a no-op sleep that records its argument."""
    return sleeps.append


@pytest.fixture
def prefixes() -> UniquePrefixGenerator:
    """Provide a deterministic unique-prefix generator."""
    return UniquePrefixGenerator(
        clock_ms=itertools.count(1_714_564_800_123).__next__,
        rng=random.Random(7),
    )


@pytest.fixture
def memory_store() -> InMemoryObjectStore:
    """Provide an in-memory remote with ``main`` holding a README."""
    store = InMemoryObjectStore()
    store.bootstrap("main", {"README.md": b"# pool\n"})
    return store


@pytest.fixture
def scripted_store() -> ScriptedStore:
    """Provide a failure-injecting remote with ``main`` holding a README."""
    store = ScriptedStore()
    store.bootstrap("main", {"README.md": b"# pool\n"})
    return store


@pytest.fixture
def config() -> RepodropConfig:
    """Provide a development config for ``owner/pool`` that ignores .env files."""
    return RepodropConfig(
        _env_file=None,
        environment="development",
        debug=False,
        github_repo="owner/pool",
        branch="main",
        manifest_path="content.json",
        max_attempts=3,
        retry_delay_seconds=0.2,
    )


@pytest.fixture
def make_uploader(
    config: RepodropConfig,
    clock: FixedClock,
    sleep: Callable[[float], None],
    prefixes: UniquePrefixGenerator,
) -> Callable[..., ArtifactUploader]:
    """Factory fixture: build an ArtifactUploader with deterministic collaborators."""

    def _factory(store: InMemoryObjectStore, **overrides: Any) -> ArtifactUploader:
        kwargs: dict[str, Any] = {
            "clock": clock,
            "sleep": sleep,
            "prefixes": prefixes,
        }
        kwargs.update(overrides)
        cfg = kwargs.pop("config", config)
        return ArtifactUploader(store, cfg, **kwargs)

    return _factory


@pytest.fixture
def make_request() -> Callable[..., UploadRequest]:
    """Factory fixture: build an UploadRequest with sensible defaults."""

    def _factory(
        original_filename: str = "photo.png",
        data: bytes = b"\x89PNG fake image bytes",
        **overrides: Any,
    ) -> UploadRequest:
        defaults: dict[str, Any] = {
            "directory": "images",
            "content_type": "image/png",
        }
        defaults.update(overrides)
        return UploadRequest(original_filename=original_filename, data=data, **defaults)

    return _factory
