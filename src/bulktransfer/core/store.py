"""Interface of the remote object store driven by the transfer engine."""

from typing import Dict, List, Mapping, Optional, Protocol, Union

from .models import DeleteResult, ListOptions, ObjectPage

Body = Union[bytes, memoryview]


class RemoteStore(Protocol):
    """Blocking calls against an object store.

    The engine submits these calls to its own executors, so an
    implementation only has to be safe to call from several threads.
    ``upload_part`` should raise :class:`~bulktransfer.core.exceptions.PartFailure`
    subclasses so that the engine knows how to treat the failure.
    """

    def put_object(
        self,
        container: str,
        key: str,
        body: Body,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Store ``body`` in one request and return its ETag."""
        ...

    def initiate_multipart_upload(
        self,
        container: str,
        key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Start a multipart upload and return its upload id."""
        ...

    def upload_part(
        self, container: str, key: str, part_index: int, upload_id: str, body: Body
    ) -> str:
        """Upload one part and return its ETag."""
        ...

    def complete_multipart_upload(
        self, container: str, key: str, upload_id: str, etags: Dict[int, str]
    ) -> str:
        """Assemble the parts in ascending index order and return the final ETag."""
        ...

    def abort_multipart_upload(self, container: str, key: str, upload_id: str) -> None:
        """Discard an upload and every part stored for it."""
        ...

    def list_objects(self, container: str, options: ListOptions) -> ObjectPage:
        """Return one page of keys matching ``options``."""
        ...

    def delete_objects(self, container: str, keys: List[str]) -> DeleteResult:
        """Delete a batch of keys, reporting the keys that could not be removed."""
        ...
