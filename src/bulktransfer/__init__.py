"""
Bulk Transfer - concurrent multipart uploads and batched deletes for object stores.

This package provides:
- Parallel and sequential multipart upload strategies with retry budgets
- A batched bulk-delete coordinator with backpressure
- An S3-compatible store binding built on boto3
- A CLI for uploads, deletes and upload cleanup
"""

__version__ = "1.0.0"

from .core.api import BulkTransferAPI, delete_prefix, upload_file
from .core.delete import BatchDeleteCoordinator
from .core.exceptions import (
    BatchDeleteError,
    CancellationFailure,
    ConfigurationError,
    EventualConsistencyMiss,
    FailureKind,
    FatalBudgetExceeded,
    FatalPartFailure,
    PartFailure,
    TimeoutAwaitingCompletion,
    TransferError,
    TransientPartFailure,
    UploadError,
)
from .core.models import DeleteResult, ListOptions, ObjectPage, S3Config, TransferConfig
from .core.parallel import ParallelMultipartUploader
from .core.payload import BytesPayload, FilePayload, Payload, PayloadSlicer
from .core.retry import RetryBudget
from .core.s3_client import S3RemoteStore
from .core.sequential import SequentialMultipartUploader
from .core.slicing import Part, SlicingAlgorithm, SlicingPlan
from .core.store import RemoteStore

__all__ = [
    # Core classes
    "BulkTransferAPI",
    "ParallelMultipartUploader",
    "SequentialMultipartUploader",
    "BatchDeleteCoordinator",
    "SlicingAlgorithm",
    "RetryBudget",
    "RemoteStore",
    "S3RemoteStore",
    "PayloadSlicer",
    # Models
    "TransferConfig",
    "S3Config",
    "ListOptions",
    "ObjectPage",
    "DeleteResult",
    "SlicingPlan",
    "Part",
    "Payload",
    "BytesPayload",
    "FilePayload",
    # Exceptions
    "TransferError",
    "FailureKind",
    "PartFailure",
    "TransientPartFailure",
    "EventualConsistencyMiss",
    "FatalPartFailure",
    "FatalBudgetExceeded",
    "CancellationFailure",
    "TimeoutAwaitingCompletion",
    "BatchDeleteError",
    "UploadError",
    "ConfigurationError",
    # Convenience functions
    "upload_file",
    "delete_prefix",
    # Metadata
    "__version__",
]
