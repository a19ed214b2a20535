"""Programmatic API for bulk transfers."""

import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from .delete import BatchDeleteCoordinator
from .models import ListOptions, S3Config, TransferConfig
from .parallel import ParallelMultipartUploader
from .payload import BytesPayload, FilePayload
from .s3_client import S3RemoteStore
from .sequential import SequentialMultipartUploader
from .slicing import SlicingAlgorithm, SlicingPlan
from .store import RemoteStore
from .strategy import MultipartUploadStrategy

logger = logging.getLogger(__name__)


class BulkTransferAPI:
    """High-level API for uploads and bulk deletes against one store."""

    def __init__(
        self,
        store: Optional[RemoteStore] = None,
        config: Optional[TransferConfig] = None,
        parallel: bool = True,
    ):
        """Initialize the API.

        Args:
            store: Remote store (an S3 store configured from the environment if omitted)
            config: Transfer settings (read from BULKTRANSFER_* env vars if omitted)
            parallel: Upload parts concurrently instead of one at a time
        """
        self.store = store if store is not None else S3RemoteStore(S3Config.from_env())
        self.config = config or TransferConfig.from_env()
        if parallel:
            self.uploader: MultipartUploadStrategy = ParallelMultipartUploader(
                self.store, self.config
            )
        else:
            self.uploader = SequentialMultipartUploader(self.store, self.config)
        self.deleter = BatchDeleteCoordinator(self.store, self.config)

    def plan(self, size: int) -> SlicingPlan:
        """Return how a payload of ``size`` bytes would be split."""
        return SlicingAlgorithm.from_config(self.config).calculate(size)

    def upload_file(
        self,
        local_path: Union[str, Path],
        container: str,
        key: Optional[str] = None,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Upload a local file.

        Args:
            local_path: Local file path
            container: Destination container (bucket)
            key: Object key (default: file name)
            metadata: Optional object metadata

        Returns:
            ETag of the stored object
        """
        payload = FilePayload(local_path)
        if key is None:
            key = payload.path.name
        logger.info(f"Uploading {payload.path} to {container}/{key}")
        return self.uploader.upload(container, key, payload, metadata)

    def upload_bytes(
        self,
        data: bytes,
        container: str,
        key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Upload an in-memory buffer and return the object's ETag."""
        return self.uploader.upload(container, key, BytesPayload(data), metadata)

    def delete_prefix(self, container: str, prefix: str = "") -> int:
        """Delete every object under ``prefix`` and return how many were deleted."""
        options = ListOptions(prefix=prefix, max_keys=self.config.max_page_size)
        return self.deleter.execute(container, options)

    def clear_container(self, container: str) -> int:
        """Delete every object in ``container``."""
        return self.deleter.clear_container(container)

    def cleanup_abandoned_uploads(self, container: str, max_age_hours: int = 24) -> int:
        """Abort stale multipart uploads (S3 stores only)."""
        if not isinstance(self.store, S3RemoteStore):
            raise TypeError("Abandoned upload cleanup requires an S3RemoteStore")
        return self.store.cleanup_abandoned_uploads(container, max_age_hours)

    def close(self) -> None:
        self.uploader.close()
        self.deleter.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


# Convenience functions for quick usage
def upload_file(
    local_path: Union[str, Path],
    container: str,
    key: Optional[str] = None,
    config: Optional[TransferConfig] = None,
) -> str:
    """Quick function to upload a file to the S3 store configured in the environment."""
    with BulkTransferAPI(config=config) as api:
        return api.upload_file(local_path, container, key)


def delete_prefix(
    container: str, prefix: str = "", config: Optional[TransferConfig] = None
) -> int:
    """Quick function to delete every object under a prefix."""
    with BulkTransferAPI(config=config) as api:
        return api.delete_prefix(container, prefix)
