"""GitHub adapter — the git data REST API behind ``RemoteObjectStore``.

Endpoint map
------------
- ``read_ref``       GET   /repos/{repo}/git/ref/heads/{branch}
- ``read_commit``    GET   /repos/{repo}/git/commits/{sha}
- ``create_blob``    POST  /repos/{repo}/git/blobs        (base64 content)
- ``create_tree``    POST  /repos/{repo}/git/trees        (base_tree + entries)
- ``create_commit``  POST  /repos/{repo}/git/commits
- ``update_ref``     PATCH /repos/{repo}/git/refs/heads/{branch}  (force=false)
- ``path_kind`` / ``read_file``
                     GET   /repos/{repo}/contents/{path}?ref={commit}

The ref update is sent with ``force: false``, so GitHub rejects it unless
the new commit fast-forwards the branch.  Because every commit we create
has exactly the observed head as parent, a rejection means the head moved
and is reported as ``RemoteConflict``.

A fast-forward check alone is not a compare-and-swap: a branch rewound to
an ancestor of the observed head would still accept the update.  The ref
is therefore re-read right before the PATCH and a changed head is reported
as ``RemoteConflict`` without writing.  A rewind landing between that read
and the PATCH is not detected; GitHub offers no conditional ref update.
"""

from __future__ import annotations

import base64
import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

import httpx

from repodrop.config import RepodropConfig
from repodrop.core.errors import (
    RemoteConflict,
    RemoteFatalError,
    RemoteNotFound,
    RemoteTransientError,
    ValidationError,
)
from repodrop.models.objects import CommitInfo, PathKind, TreeEntry

logger = logging.getLogger(__name__)

_CREATE_CONFLICT_STATUSES = frozenset({409})
# 422 is GitHub's answer to a non-fast-forward ref update.
_REF_CONFLICT_STATUSES = frozenset({409, 422})
_TRANSIENT_STATUSES = frozenset({408, 429})


def _decode_body(response: httpx.Response) -> Any:
    """Return the response body as JSON when possible, else as text."""
    try:
        return response.json()
    except ValueError:
        return response.text


class GitHubObjectStore:
    """``RemoteObjectStore`` backed by the GitHub REST API.

    Parameters
    ----------
    repo:
        Repository in ``"owner/name"`` form.
    token:
        Token sent as ``Authorization: Bearer``.  May be empty for public
        read-only use.
    api_base_url:
        API root, ``https://api.github.com`` unless GitHub Enterprise.
    user_agent:
        Value of the ``User-Agent`` header (GitHub requires one).
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        repo: str,
        token: str = "",
        *,
        api_base_url: str = "https://api.github.com",
        user_agent: str = "repodrop-uploader",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not repo or "/" not in repo:
            raise ValidationError(f"Repository must be 'owner/name', got {repo!r}")
        self._repo = repo
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=api_base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: RepodropConfig,
        *,
        repo: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> GitHubObjectStore:
        """Build an adapter from the runtime configuration."""
        return cls(
            repo or config.github_repo,
            config.github_token,
            api_base_url=config.api_base_url,
            user_agent=config.user_agent,
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    @property
    def repo(self) -> str:
        return self._repo

    # ------------------------------------------------------------------
    # Refs and commits
    # ------------------------------------------------------------------

    def read_ref(self, branch: str) -> str:
        body = self._request("GET", f"git/ref/heads/{quote(branch, safe='/')}", op="read ref")
        return self._field(body, "object", "sha", op="read ref")

    def read_commit(self, commit_id: str) -> CommitInfo:
        body = self._request("GET", f"git/commits/{commit_id}", op="read commit")
        tree_id = self._field(body, "tree", "sha", op="read commit")
        parents = body.get("parents") or []
        return CommitInfo(
            commit_id=body.get("sha", commit_id),
            tree_id=tree_id,
            parent_ids=[p["sha"] for p in parents if isinstance(p, dict) and "sha" in p],
            message=body.get("message", ""),
        )

    def update_ref(self, branch: str, expected_parent_id: str, new_commit_id: str) -> None:
        """Fast-forward *branch* to *new_commit_id* if it still points at *expected_parent_id*.

        GitHub has no explicit compare-and-swap.  The head is re-read
        first, then the non-forced PATCH rejects anything that is not a
        fast-forward from *expected_parent_id*.
        """
        current = self.read_ref(branch)
        if current != expected_parent_id:
            raise RemoteConflict(
                f"{branch} moved to {current}, expected {expected_parent_id}",
                detail={"message": "Reference moved", "sha": current},
            )
        self._request(
            "PATCH",
            f"git/refs/heads/{quote(branch, safe='/')}",
            op="update ref",
            json={"sha": new_commit_id, "force": False},
            conflict_statuses=_REF_CONFLICT_STATUSES,
        )
        logger.debug(
            "GitHubObjectStore: %s %s -> %s (was %s)",
            self._repo, branch, new_commit_id, expected_parent_id,
        )

    # ------------------------------------------------------------------
    # Object creation
    # ------------------------------------------------------------------

    def create_blob(self, data: bytes) -> str:
        body = self._request(
            "POST",
            "git/blobs",
            op="create blob",
            json={"content": base64.b64encode(data).decode("ascii"), "encoding": "base64"},
            conflict_statuses=_CREATE_CONFLICT_STATUSES,
        )
        return self._field(body, "sha", op="create blob")

    def create_tree(self, base_tree_id: str | None, entries: Sequence[TreeEntry]) -> str:
        payload: dict[str, Any] = {
            "tree": [
                {
                    "path": entry.path,
                    "mode": entry.mode,
                    "type": entry.kind.value,
                    "sha": entry.object_id,
                }
                for entry in entries
            ]
        }
        if base_tree_id:
            payload["base_tree"] = base_tree_id
        body = self._request(
            "POST",
            "git/trees",
            op="create tree",
            json=payload,
            conflict_statuses=_CREATE_CONFLICT_STATUSES,
        )
        return self._field(body, "sha", op="create tree")

    def create_commit(self, tree_id: str, parent_ids: Sequence[str], message: str) -> str:
        body = self._request(
            "POST",
            "git/commits",
            op="create commit",
            json={"message": message, "tree": tree_id, "parents": list(parent_ids)},
            conflict_statuses=_CREATE_CONFLICT_STATUSES,
        )
        return self._field(body, "sha", op="create commit")

    # ------------------------------------------------------------------
    # Path reads
    # ------------------------------------------------------------------

    def path_kind(self, commit_id: str, path: str) -> PathKind:
        body = self._contents(commit_id, path)
        if isinstance(body, list) or (isinstance(body, dict) and body.get("type") == "dir"):
            return PathKind.DIRECTORY
        return PathKind.FILE

    def read_file(self, commit_id: str, path: str) -> bytes:
        body = self._contents(commit_id, path)
        if not isinstance(body, dict) or body.get("type") == "dir":
            raise ValidationError(f"{path} is a directory, not a file")
        if body.get("encoding") == "base64":
            return base64.b64decode(str(body.get("content", "")).replace("\n", ""))
        # Files above the contents API size limit come back without content.
        blob = self._request("GET", f"git/blobs/{self._field(body, 'sha', op='read file')}", op="read blob")
        return base64.b64decode(str(self._field(blob, "content", op="read blob")).replace("\n", ""))

    def _contents(self, commit_id: str, path: str) -> Any:
        return self._request(
            "GET",
            f"contents/{quote(path, safe='/')}",
            op=f"read {path}",
            params={"ref": commit_id},
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> GitHubObjectStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"GitHubObjectStore(repo={self._repo!r}, base_url={str(self._client.base_url)!r})"

    # ------------------------------------------------------------------
    # Internal: request + error mapping
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        op: str,
        json: Any = None,
        params: dict[str, str] | None = None,
        conflict_statuses: frozenset[int] = frozenset(),
    ) -> Any:
        url = f"/repos/{self._repo}/{endpoint}"
        logger.debug("GitHubObjectStore: %s %s", method, url)
        try:
            response = self._client.request(method, url, json=json, params=params)
        except httpx.TimeoutException as exc:
            raise RemoteTransientError(f"{op} timed out", detail=str(exc)) from exc
        except httpx.TransportError as exc:
            raise RemoteTransientError(f"{op} failed: {exc}", detail=str(exc)) from exc

        if response.is_success:
            return _decode_body(response)

        status = response.status_code
        detail = _decode_body(response)
        message = f"{op} failed with HTTP {status}"
        if status == 404:
            raise RemoteNotFound(message, status_code=status, detail=detail)
        if status in conflict_statuses:
            raise RemoteConflict(message, status_code=status, detail=detail)
        if status >= 500 or status in _TRANSIENT_STATUSES:
            raise RemoteTransientError(message, status_code=status, detail=detail)
        raise RemoteFatalError(message, status_code=status, detail=detail)

    @staticmethod
    def _field(body: Any, *keys: str, op: str) -> Any:
        value = body
        for key in keys:
            if not isinstance(value, dict) or key not in value:
                raise RemoteFatalError(
                    f"{op}: response is missing '{'.'.join(keys)}'",
                    detail=body,
                )
            value = value[key]
        return value
