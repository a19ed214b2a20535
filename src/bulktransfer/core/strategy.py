"""Behaviour shared by the multipart upload strategies."""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Mapping, Optional

from .exceptions import TimeoutAwaitingCompletion
from .models import TransferConfig
from .payload import Payload, PayloadSlicer
from .slicing import SlicingAlgorithm
from .store import RemoteStore

logger = logging.getLogger(__name__)


class MultipartUploadStrategy:
    """Base class of the upload strategies.

    Payloads too small to be split into parts are sent with a single
    ``put_object`` call instead of a multipart upload.
    """

    def __init__(
        self,
        store: RemoteStore,
        config: Optional[TransferConfig] = None,
        slicer: Optional[PayloadSlicer] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.store = store
        self.config = config or TransferConfig()
        self.slicer = slicer or PayloadSlicer()
        self._executor = executor
        self._owns_executor = False
        # a timed-out put is still running on the executor
        self._abandoned = False

    def upload(
        self,
        container: str,
        key: str,
        payload: Payload,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Upload ``payload`` to ``container/key`` and return the object's ETag."""
        raise NotImplementedError

    def slicing_algorithm(self) -> SlicingAlgorithm:
        return SlicingAlgorithm.from_config(self.config)

    def put_object(
        self,
        container: str,
        key: str,
        payload: Payload,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Upload the whole payload in one request, bounded by ``request_timeout``."""
        body = self.slicer.slice(payload, 0, payload.content_length)
        logger.info(f"Uploading {payload.content_length} bytes to {container}/{key} in one request")
        timeout = self.config.request_timeout
        if timeout is None:
            return self.store.put_object(container, key, body, metadata)

        future = self._get_executor().submit(self.store.put_object, container, key, body, metadata)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError as e:
            if not future.cancel():
                self._abandoned = True
            raise TimeoutAwaitingCompletion(
                f"Upload of {key} to container {container} did not finish within {timeout}s"
            ) from e

    def abort_upload(self, container: str, key: str, upload_id: str) -> None:
        """Abort an upload; a failing abort is logged, not raised."""
        try:
            self.store.abort_multipart_upload(container, key, upload_id)
            logger.info(f"Aborted multipart upload of {key} to container {container} with uploadId {upload_id}")
        except Exception as e:
            logger.warning(f"Failed to abort upload {upload_id} of {key}: {e}")

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.parallel_degree, thread_name_prefix="bulktransfer-io"
            )
            self._owns_executor = True
        return self._executor

    def close(self) -> None:
        """Shut down the executors created by this strategy."""
        if self._owns_executor and self._executor is not None:
            if self._abandoned:
                self._executor.shutdown(wait=False, cancel_futures=True)
            else:
                self._executor.shutdown(wait=True)
            self._executor = None
            self._owns_executor = False
            self._abandoned = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
