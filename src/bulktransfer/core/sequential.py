"""Multipart upload that sends one part at a time."""

import logging
from typing import Dict, Mapping, Optional

from .exceptions import EventualConsistencyMiss
from .payload import Payload, as_payload
from .slicing import Part
from .strategy import MultipartUploadStrategy

logger = logging.getLogger(__name__)


class SequentialMultipartUploader(MultipartUploadStrategy):
    """Initiates an upload, sends every part in order and completes it.

    Any failure aborts the upload and is re-raised unchanged, except a
    part rejected because the freshly created upload is not visible at
    the store yet: that part is sent once more first.
    """

    def upload(
        self,
        container: str,
        key: str,
        payload: Payload,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        payload = as_payload(payload)
        algorithm = self.slicing_algorithm()
        plan = algorithm.calculate(payload.content_length)
        if not plan.is_multipart:
            return self.put_object(container, key, payload, metadata)

        upload_id = self.store.initiate_multipart_upload(container, key, metadata)
        logger.info(
            f"Initiated multipart upload of {key} to container {container} "
            f"with uploadId {upload_id} consisting of {plan.effective_parts} parts"
        )
        try:
            etags: Dict[int, str] = {}
            for part in algorithm.parts():
                etags[part.index] = self._upload_part(container, key, upload_id, payload, part)
            etag = self.store.complete_multipart_upload(container, key, upload_id, etags)
            logger.info(f"Multipart upload of {key} to container {container} completed")
            return etag
        except Exception as e:
            logger.error(f"Upload interrupted: {e}")
            self.abort_upload(container, key, upload_id)
            raise

    def _upload_part(
        self, container: str, key: str, upload_id: str, payload: Payload, part: Part
    ) -> str:
        body = self.slicer.slice(payload, part.offset, part.size)
        try:
            return self.store.upload_part(container, key, part.index, upload_id, body)
        except EventualConsistencyMiss:
            # a new upload id may not be visible at the store yet
            logger.info(f"Part {part.index}: upload {upload_id} not visible yet, retrying once")
            return self.store.upload_part(container, key, part.index, upload_id, body)
