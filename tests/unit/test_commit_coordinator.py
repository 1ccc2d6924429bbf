"""Tests for the atomic commit coordinator and its retry loop."""

from __future__ import annotations

import pytest

from repodrop.core.commit_coordinator import CommitCoordinator
from repodrop.core.errors import (
    RemoteConflict,
    RemoteFatalError,
    RemoteNotFound,
    RemoteTransientError,
    ValidationError,
)
from repodrop.models.pipeline import CommitStage
from repodrop.models.upload import ChangePlan

FULL_RUN = [
    CommitStage.READ_HEAD,
    CommitStage.READ_BASE_TREE,
    CommitStage.PLAN,
    CommitStage.CREATE_BLOBS,
    CommitStage.CREATE_TREE,
    CommitStage.CREATE_COMMIT,
    CommitStage.UPDATE_REF,
    CommitStage.DONE,
]


@pytest.fixture
def coordinator(scripted_store, sleep) -> CommitCoordinator:
    return CommitCoordinator(scripted_store, "main", sleep=sleep)


class TestHappyPath:
    def test_commits_all_changes_at_once(self, scripted_store, coordinator):
        parent = scripted_store.read_ref("main")
        outcome = coordinator.commit_changes(
            {"a.txt": b"alpha", "dir/b.txt": b"beta"}, "Add two files"
        )
        assert scripted_store.read_ref("main") == outcome.commit_id
        assert outcome.parent_id == parent
        assert scripted_store.files_at("main") == {
            "README.md": b"# pool\n",
            "a.txt": b"alpha",
            "dir/b.txt": b"beta",
        }
        info = scripted_store.read_commit(outcome.commit_id)
        assert info.parent_ids == [parent]
        assert info.message == "Add two files"
        assert info.tree_id == outcome.tree_id

    def test_single_attempt_trail(self, coordinator, sleeps):
        outcome = coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert len(outcome.attempts) == 1
        assert outcome.attempts[0].stages == FULL_RUN
        assert outcome.attempts[0].outcome is CommitStage.DONE
        assert outcome.attempts[0].error is None
        assert sleeps == []

    def test_blob_ids_are_git_blob_ids(self, coordinator):
        outcome = coordinator.commit_changes({"hello.txt": b"hello"}, "msg")
        assert outcome.blob_ids == {"hello.txt": "b6fc4c620b67d95f953a5c1c1230aaab5db5a1b0"}

    def test_identical_content_uploaded_once(self, scripted_store, coordinator):
        coordinator.commit_changes({"a.txt": b"same", "b.txt": b"same"}, "msg")
        assert scripted_store.calls["create_blob"] == 1

    def test_file_mode_applied(self, scripted_store, sleep):
        CommitCoordinator(scripted_store, "main", file_mode="100755", sleep=sleep).commit_changes(
            {"run.sh": b"#!/bin/sh\n"}, "msg"
        )
        assert scripted_store.entry_at("main", "run.sh").mode == "100755"

    def test_overwrites_existing_path(self, scripted_store, coordinator):
        coordinator.commit_changes({"README.md": b"new readme"}, "msg")
        assert scripted_store.files_at("main") == {"README.md": b"new readme"}


class TestConflicts:
    def test_conflict_then_success(self, scripted_store, coordinator, sleeps):
        scripted_store.push_before_update({"other.txt": b"outside"})
        outcome = coordinator.commit_changes({"a.txt": b"alpha"}, "msg")

        assert [a.outcome for a in outcome.attempts] == [
            CommitStage.CONFLICT_RETRY,
            CommitStage.DONE,
        ]
        assert outcome.attempts[0].stages[-2:] == [CommitStage.UPDATE_REF, CommitStage.CONFLICT_RETRY]
        assert outcome.attempts[0].error.startswith("update_ref: ")
        assert sleeps == [0.2]
        files = scripted_store.files_at("main")
        assert files["other.txt"] == b"outside"
        assert files["a.txt"] == b"alpha"

    def test_retry_builds_on_new_head(self, scripted_store, coordinator):
        first_head = scripted_store.read_ref("main")
        scripted_store.push_before_update({"other.txt": b"outside"})
        seen: list[str] = []

        def planner(head):
            seen.append(head.commit_id)
            return ChangePlan(changes={"a.txt": b"alpha"}, message="msg")

        outcome = coordinator.commit(planner)
        assert len(seen) == 2
        assert seen[0] == first_head
        assert seen[1] != first_head
        assert outcome.parent_id == seen[1]
        assert outcome.attempts[1].parent_id == seen[1]

    def test_blobs_reused_across_attempts(self, scripted_store, coordinator):
        scripted_store.push_before_update({"other.txt": b"outside"})
        coordinator.commit_changes({"a.txt": b"alpha", "b.txt": b"beta"}, "msg")
        assert scripted_store.calls["create_blob"] == 2
        assert scripted_store.calls["create_tree"] == 2

    def test_conflict_on_create_tree_is_retried(self, scripted_store, coordinator, sleeps):
        scripted_store.fail("create_tree", RemoteConflict("moved", status_code=409))
        outcome = coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert len(outcome.attempts) == 2
        assert sleeps == [0.2]

    def test_exhaustion_raises_fatal(self, scripted_store, coordinator, sleeps):
        head = scripted_store.read_ref("main")
        scripted_store.fail(
            "update_ref",
            *[RemoteConflict("stale", status_code=422, detail={"message": "not ff"}) for _ in range(3)],
        )
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")

        error = excinfo.value
        assert error.attempts == 3
        assert error.status_code == 422
        assert error.detail == {"message": "not ff"}
        assert sleeps == [pytest.approx(0.2), pytest.approx(0.4)]
        assert scripted_store.read_ref("main") == head

    def test_single_attempt_budget(self, scripted_store, sleep, sleeps):
        scripted_store.fail("update_ref", RemoteConflict("stale", status_code=422))
        coordinator = CommitCoordinator(scripted_store, "main", max_attempts=1, sleep=sleep)
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert excinfo.value.attempts == 1
        assert sleeps == []

    def test_rejects_empty_budget(self, scripted_store):
        with pytest.raises(ValueError):
            CommitCoordinator(scripted_store, max_attempts=0)


class TestTransientFailures:
    def test_transient_write_is_retried(self, scripted_store, coordinator, sleeps):
        scripted_store.fail(
            "create_blob",
            RemoteTransientError("502", status_code=502),
            RemoteTransientError("timeout"),
        )
        outcome = coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert len(outcome.attempts) == 3
        assert sleeps == [pytest.approx(0.2), pytest.approx(0.4)]

    def test_transient_commit_creation_is_retried(self, scripted_store, coordinator):
        scripted_store.fail("create_commit", RemoteTransientError("503", status_code=503))
        outcome = coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert outcome.attempts[0].stages[-2:] == [CommitStage.CREATE_COMMIT, CommitStage.CONFLICT_RETRY]

    def test_transient_read_head_is_fatal(self, scripted_store, coordinator, sleeps):
        scripted_store.fail("read_ref", RemoteTransientError("503", status_code=503))
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert excinfo.value.status_code == 503
        assert "read_head" in excinfo.value.message
        assert scripted_store.calls["create_blob"] == 0
        assert sleeps == []

    def test_transient_base_tree_read_is_fatal(self, scripted_store, coordinator):
        scripted_store.fail("read_commit", RemoteTransientError("503", status_code=503))
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert "read_base_tree" in excinfo.value.message


class TestFatalFailures:
    def test_fatal_write_aborts_immediately(self, scripted_store, coordinator, sleeps):
        head = scripted_store.read_ref("main")
        scripted_store.fail(
            "create_commit",
            RemoteFatalError("forbidden", status_code=403, detail={"message": "Forbidden"}),
        )
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert excinfo.value.status_code == 403
        assert excinfo.value.detail == {"message": "Forbidden"}
        assert scripted_store.calls["update_ref"] == 0
        assert scripted_store.read_ref("main") == head
        assert sleeps == []

    def test_not_found_during_write_is_fatal(self, scripted_store, coordinator):
        scripted_store.fail("create_tree", RemoteNotFound("gone", status_code=404))
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert excinfo.value.status_code == 404

    def test_missing_branch_is_fatal(self, scripted_store, sleep):
        coordinator = CommitCoordinator(scripted_store, "release", sleep=sleep)
        with pytest.raises(RemoteFatalError) as excinfo:
            coordinator.commit_changes({"a.txt": b"alpha"}, "msg")
        assert "release" in excinfo.value.message
        assert excinfo.value.status_code == 404

    def test_planner_validation_error_propagates(self, scripted_store, coordinator):
        def planner(head):
            raise ValidationError("bad input")

        with pytest.raises(ValidationError) as excinfo:
            coordinator.commit(planner)
        assert not isinstance(excinfo.value, RemoteFatalError)
        assert scripted_store.calls["create_blob"] == 0

    def test_empty_change_set_rejected(self, scripted_store, coordinator):
        head = scripted_store.read_ref("main")
        with pytest.raises(ValidationError):
            coordinator.commit_changes({}, "nothing")
        assert scripted_store.read_ref("main") == head
