"""S3-compatible object store used by the transfer engine."""

import datetime
import logging
from typing import Any, Dict, List, Mapping, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import EventualConsistencyMiss, FatalPartFailure, TransientPartFailure
from .models import DeleteResult, ListOptions, ObjectPage, S3Config
from .payload import MemoryviewReader
from .store import Body

logger = logging.getLogger(__name__)


def is_insufficient_storage_error(exc: Exception) -> bool:
    """Return True if the exception wraps a 507 Insufficient Storage response."""
    if isinstance(exc, ClientError):
        meta = exc.response.get("ResponseMetadata", {})
        return meta.get("HTTPStatusCode") == 507
    return False


def is_no_such_upload_error(exc: Exception) -> bool:
    """Return True if the exception reports a missing multipart upload."""
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {})
        return err.get("Code") == "NoSuchUpload"
    return False


def _request_body(body: Body):
    """Wrap a memoryview so boto3 streams it instead of copying it."""
    if isinstance(body, memoryview) and body.nbytes:
        return MemoryviewReader(body)
    return bytes(body)


class S3RemoteStore:
    """Object store backed by an S3-compatible endpoint."""

    def __init__(self, config: Optional[S3Config] = None, client: Any = None):
        """Initialize the S3 store.

        Args:
            config: Connection settings (read from the environment if omitted)
            client: Preconfigured boto3 S3 client, mainly for tests
        """
        self.config = config or S3Config.from_env()

        if client is not None:
            self.s3 = client
            return

        self.session = boto3.session.Session(
            aws_access_key_id=self.config.access_key,
            aws_secret_access_key=self.config.secret_key,
            region_name=self.config.region,
        )
        self.botocore_cfg = Config(
            region_name=self.config.region,
            retries={"max_attempts": self.config.max_attempts, "mode": "standard"},
        )
        self.s3 = self.session.client(
            "s3", config=self.botocore_cfg, endpoint_url=self.config.endpoint_url
        )

    def put_object(
        self,
        container: str,
        key: str,
        body: Body,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        resp = self.s3.put_object(
            Bucket=container, Key=key, Body=_request_body(body), **self._metadata_args(metadata)
        )
        return resp["ETag"]

    def initiate_multipart_upload(
        self,
        container: str,
        key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        resp = self.s3.create_multipart_upload(
            Bucket=container, Key=key, **self._metadata_args(metadata)
        )
        return resp["UploadId"]

    def upload_part(
        self, container: str, key: str, part_index: int, upload_id: str, body: Body
    ) -> str:
        try:
            resp = self.s3.upload_part(
                Bucket=container,
                Key=key,
                PartNumber=part_index,
                UploadId=upload_id,
                Body=_request_body(body),
            )
        except (BotoCoreError, ClientError) as exc:
            if is_no_such_upload_error(exc):
                raise EventualConsistencyMiss(
                    f"Upload {upload_id} not found", part_index, exc
                ) from exc
            if is_insufficient_storage_error(exc):
                raise FatalPartFailure(
                    "Server reported insufficient storage", part_index, exc
                ) from exc
            raise TransientPartFailure(str(exc), part_index, exc) from exc
        return resp["ETag"]

    def complete_multipart_upload(
        self, container: str, key: str, upload_id: str, etags: Dict[int, str]
    ) -> str:
        parts_sorted = [
            {"PartNumber": part_number, "ETag": etags[part_number]}
            for part_number in sorted(etags)
        ]
        resp = self.s3.complete_multipart_upload(
            Bucket=container,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts_sorted},
        )
        return resp["ETag"]

    def abort_multipart_upload(self, container: str, key: str, upload_id: str) -> None:
        self.s3.abort_multipart_upload(Bucket=container, Key=key, UploadId=upload_id)

    def list_objects(self, container: str, options: ListOptions) -> ObjectPage:
        kwargs = {"Bucket": container, "Prefix": options.prefix, "MaxKeys": options.max_keys}
        if options.marker:
            kwargs["ContinuationToken"] = options.marker
        resp = self.s3.list_objects_v2(**kwargs)
        keys = [obj["Key"] for obj in resp.get("Contents", [])]
        next_marker = resp.get("NextContinuationToken") if resp.get("IsTruncated") else None
        return ObjectPage(keys=keys, next_marker=next_marker)

    def delete_objects(self, container: str, keys: List[str]) -> DeleteResult:
        resp = self.s3.delete_objects(
            Bucket=container,
            Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
        )
        errors = {
            err["Key"]: f"{err.get('Code', 'Error')}: {err.get('Message', '')}".rstrip(": ")
            for err in resp.get("Errors", [])
        }
        deleted = [obj["Key"] for obj in resp.get("Deleted", [])]
        return DeleteResult(deleted=deleted, errors=errors)

    def list_multipart_uploads(self, container: str, prefix: str = "") -> List[Dict[str, Any]]:
        """List the multipart uploads still in progress in a container."""
        paginator = self.s3.get_paginator("list_multipart_uploads")
        uploads = []
        for page in paginator.paginate(Bucket=container, Prefix=prefix):
            uploads.extend(page.get("Uploads", []))
        return uploads

    def cleanup_abandoned_uploads(self, container: str, max_age_hours: int = 24) -> int:
        """Abort multipart uploads older than ``max_age_hours``.

        Returns:
            Number of uploads cleaned up
        """
        cutoff_time = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(
            hours=max_age_hours
        )
        cleaned_count = 0
        for upload in self.list_multipart_uploads(container):
            if upload["Initiated"] >= cutoff_time:
                continue
            upload_id = upload["UploadId"]
            key = upload["Key"]
            try:
                self.abort_multipart_upload(container, key, upload_id)
                logger.info(f"Cleaned up abandoned upload: {key} ({upload_id})")
                cleaned_count += 1
            except (BotoCoreError, ClientError) as e:
                logger.warning(f"Failed to clean up upload {upload_id}: {e}")

        if cleaned_count > 0:
            logger.info(f"Cleaned up {cleaned_count} abandoned uploads from {container}")
        return cleaned_count

    @staticmethod
    def _metadata_args(metadata: Optional[Mapping[str, str]]) -> Dict[str, Any]:
        """Map user metadata onto S3 request arguments.

        A ``content-type`` entry becomes the ContentType header; the rest
        is sent as x-amz-meta-* metadata.
        """
        if not metadata:
            return {}
        metadata = dict(metadata)
        args: Dict[str, Any] = {}
        content_type = metadata.pop("content-type", None) or metadata.pop("Content-Type", None)
        if content_type:
            args["ContentType"] = content_type
        if metadata:
            args["Metadata"] = metadata
        return args
