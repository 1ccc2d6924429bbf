"""Error taxonomy for the upload pipeline.

Every error carries a stable ``kind`` and the HTTP status a front end
should answer with, so a caller can turn any failure into a single
structured ``ErrorReport`` without inspecting the exception type.

- ``ValidationError``       malformed input reaching the core, never retried
- ``RemoteNotFound``        read against a missing ref/path; usually a
                            "create new" signal rather than a failure
- ``RemoteConflict``        stale parent on ref update, or a create call
                            rejected by a concurrent structural change
- ``RemoteTransientError``  network failures and 5xx answers
- ``RemoteFatalError``      any other non-2xx answer, or retry exhaustion
"""

from __future__ import annotations

from typing import Any

from repodrop.models.upload import ErrorReport


class RepodropError(RuntimeError):
    """Base class for all errors raised by repodrop."""

    kind: str = "internal"
    http_status: int = 500

    def __init__(self, message: str, *, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail if detail is not None else message

    def to_report(self) -> ErrorReport:
        """Build the structured error answer for this failure."""
        return ErrorReport(kind=self.kind, http_status=self.http_status, detail=self.detail)


class ValidationError(RepodropError):
    """Raised when input reaching the core is malformed."""

    kind = "validation"
    http_status = 400


class PayloadTooLargeError(ValidationError):
    """Raised when an upload exceeds the configured size limit."""

    kind = "payload_too_large"
    http_status = 413


class RemoteError(RepodropError):
    """Base class for failures reported by the remote object store.

    Parameters
    ----------
    message:
        Human readable summary.
    status_code:
        HTTP status returned by the remote, or ``None`` for transport
        failures that never produced a response.
    detail:
        The remote's diagnostic body, attached verbatim.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.status_code = status_code

    def to_report(self) -> ErrorReport:
        return ErrorReport(
            kind=self.kind,
            http_status=self.http_status,
            detail=self.detail,
            remote_status=self.status_code,
        )


class RemoteNotFound(RemoteError):
    """Raised when a ref, commit or path does not exist on the remote."""

    kind = "remote_not_found"
    http_status = 404


class RemoteConflict(RemoteError):
    """Raised when the remote rejects a write because its state moved."""

    kind = "remote_conflict"
    http_status = 409


class RemoteTransientError(RemoteError):
    """Raised for network failures and 5xx answers."""

    kind = "remote_transient"
    http_status = 503


class RemoteFatalError(RemoteError):
    """Raised for unexpected remote answers and exhausted retry budgets."""

    kind = "remote_fatal"
    http_status = 502

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: Any = None,
        attempts: int = 0,
    ) -> None:
        super().__init__(message, status_code=status_code, detail=detail)
        self.attempts = attempts

    @classmethod
    def wrap(cls, exc: RemoteError, message: str, *, attempts: int = 0) -> RemoteFatalError:
        """Escalate any remote error to a fatal one, keeping its status and body."""
        if isinstance(exc, RemoteFatalError) and not attempts:
            return exc
        return cls(
            f"{message}: {exc.message}",
            status_code=exc.status_code,
            detail=exc.detail,
            attempts=attempts,
        )
