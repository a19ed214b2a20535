"""
Exception classes for bulk transfers.

Provides the error taxonomy shared by the upload strategies and the
batch delete coordinator.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class FailureKind(str, Enum):
    """How a failed part operation must be treated by the engine."""

    TRANSIENT = "transient"
    EVENTUAL_CONSISTENCY_MISS = "eventual_consistency_miss"
    FATAL = "fatal"


class TransferError(Exception):
    """Base exception for all bulk transfer errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class PartFailure(TransferError):
    """Raised by a store when a single part operation fails."""

    kind = FailureKind.TRANSIENT

    def __init__(
        self,
        message: str,
        part_index: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        details = {"part": part_index} if part_index is not None else {}
        super().__init__(message, details)
        self.part_index = part_index
        self.cause = cause


class TransientPartFailure(PartFailure):
    """Raised for part failures that may succeed when retried."""

    kind = FailureKind.TRANSIENT


class EventualConsistencyMiss(PartFailure):
    """Raised when the upload session is not yet visible at the store."""

    kind = FailureKind.EVENTUAL_CONSISTENCY_MISS


class FatalPartFailure(PartFailure):
    """Raised for part failures that no retry can fix."""

    kind = FailureKind.FATAL


def classify_failure(exc: BaseException) -> FailureKind:
    """Return the failure kind of an exception raised by a store call."""
    if isinstance(exc, PartFailure):
        return exc.kind
    return FailureKind.TRANSIENT


class FatalBudgetExceeded(TransferError):
    """Raised when a multipart upload fails more parts than its retry budget allows."""

    def __init__(
        self,
        container: str,
        key: str,
        upload_id: Optional[str],
        error_count: int,
        max_retries: int,
        failed_parts: List[int],
        first_cause: Optional[BaseException] = None,
        fatal: bool = False,
    ) -> None:
        if fatal:
            reason = f"Fatal part failure after {error_count} failed parts"
        else:
            reason = f"Too many failed parts: {error_count} (max retries {max_retries})"
        message = (
            f"{reason} while multipart upload of {key} to container {container} "
            f"with uploadId {upload_id}"
        )
        if first_cause is not None:
            message += f"; first error: {first_cause}"
        details = {
            "upload_id": upload_id,
            "error_count": error_count,
            "failed_parts": failed_parts,
        }
        super().__init__(message, details)
        self.container = container
        self.key = key
        self.upload_id = upload_id
        self.error_count = error_count
        self.max_retries = max_retries
        self.failed_parts = failed_parts
        self.first_cause = first_cause
        self.fatal = fatal


class CancellationFailure(TransferError):
    """Recorded for a part whose request was cancelled during abort."""

    def __init__(self, part_index: int) -> None:
        super().__init__(f"Upload of part {part_index} was cancelled", {"part": part_index})
        self.part_index = part_index


class TimeoutAwaitingCompletion(TransferError):
    """Raised when outstanding requests did not finish in time."""

    def __init__(self, message: str, outstanding: int = 0) -> None:
        details = {"outstanding": outstanding} if outstanding else {}
        super().__init__(message, details)
        self.outstanding = outstanding


class BatchDeleteError(TransferError):
    """Raised when a bulk delete leaves keys undeleted."""

    def __init__(self, container: str, failed_keys: Dict[str, str]) -> None:
        super().__init__(
            f"Failed to delete {len(failed_keys)} keys from container {container}",
            {"keys": sorted(failed_keys)},
        )
        self.container = container
        self.failed_keys = failed_keys


class UploadError(TransferError):
    """Raised for upload failures other than an exhausted retry budget."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        details = {"key": key} if key else {}
        super().__init__(message, details)
        self.key = key


class ConfigurationError(TransferError):
    """Raised for configuration-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
