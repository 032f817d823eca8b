"""s3commander error types.

Path-kind violations (NotAFolderError, NotAFileError) are programmer errors and
are never retried. Listing, delete and upload failures surface to the caller,
which decides whether to retry.
"""

from __future__ import annotations

from enum import StrEnum


class CommanderError(Exception):
    """Base exception for all s3commander operations.

    Attributes:
        message: Human-readable error message.
        key: Object key associated with the operation (if applicable).
        status_code: HTTP status returned by the provider (if any).
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.key:
            parts.append(f"key={self.key}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        return " ".join(parts)


class SigningError(CommanderError):
    """Raised when a request cannot be signed or the provider rejects the signature.

    Covers missing or invalid credentials as well as clock skew beyond the
    signing window.
    """

    def __init__(
        self,
        message: str = "Request signing failed",
        *,
        key: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, key=key, status_code=status_code)


class NotAFolderError(CommanderError):
    """Raised when a folder operation is given a file path."""

    def __init__(self, path: object) -> None:
        super().__init__(f"Expected a folder path: {path}", key=str(path))


class NotAFileError(CommanderError):
    """Raised when a file operation is given a folder path."""

    def __init__(self, path: object) -> None:
        super().__init__(f"Expected a file path: {path}", key=str(path))


class ListingError(CommanderError):
    """Raised when a listing request fails in transport or cannot be parsed."""

    def __init__(
        self,
        message: str = "Listing failed",
        *,
        key: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, key=key, status_code=status_code)
        self.cause = cause


class RequestError(CommanderError):
    """Raised when a mutating request (create, delete, finalize) fails."""

    def __init__(
        self,
        message: str = "Request failed",
        *,
        key: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, key=key, status_code=status_code)
        self.cause = cause


class PartialDeleteError(CommanderError):
    """Raised when a bulk delete reports per-key failures.

    Deletions that succeeded are not rolled back.

    Attributes:
        failed: Mapping of failed key to the provider's reason.
        deleted: Keys that were deleted successfully.
    """

    def __init__(
        self,
        failed: dict[str, str],
        *,
        deleted: list[str] | None = None,
    ) -> None:
        keys = ", ".join(sorted(failed))
        super().__init__(f"Failed to delete {len(failed)} key(s): {keys}")
        self.failed = dict(failed)
        self.deleted = list(deleted or [])


class UploadErrorKind(StrEnum):
    """Classification of upload failures."""

    TRANSIENT = "transient"
    ABORTED = "aborted"
    PROVIDER_REJECTED = "provider_rejected"


class UploadError(CommanderError):
    """Raised when an upload cannot complete.

    TRANSIENT failures leave the session resumable; ABORTED means the caller
    canceled; PROVIDER_REJECTED means the provider refused the request.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: UploadErrorKind = UploadErrorKind.TRANSIENT,
        key: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, key=key, status_code=status_code)
        self.kind = kind
        self.cause = cause


class ResumeMismatchError(CommanderError):
    """Raised when a locally recomputed part hash differs from the provider record."""

    def __init__(
        self,
        part_number: int,
        *,
        expected: str,
        actual: str,
        key: str | None = None,
    ) -> None:
        super().__init__(
            f"Part {part_number} hash mismatch: provider={expected} local={actual}",
            key=key,
        )
        self.part_number = part_number
        self.expected = expected
        self.actual = actual
