"""Bulk deletion of every object matching a listing."""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import List, Optional

from .exceptions import BatchDeleteError, TimeoutAwaitingCompletion
from .models import ListOptions, TransferConfig
from .retry import impose_backoff
from .session import BatchDeleteSession
from .store import RemoteStore

logger = logging.getLogger(__name__)


class BatchDeleteCoordinator:
    """Deletes listed keys page by page with batched delete calls.

    Every non-empty listing page becomes one asynchronous batch delete.
    When ``max_outstanding_batches`` calls are in flight the listing
    pauses until all of them have finished (a drain). A drain that times
    out is retried with exponential backoff; after ``max_error_count``
    timeouts the operation fails.
    """

    def __init__(
        self,
        store: RemoteStore,
        config: Optional[TransferConfig] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.store = store
        self.config = config or TransferConfig()
        self._executor = executor
        self._owns_executor = False

    def execute(self, container: str, options: Optional[ListOptions] = None) -> int:
        """Delete every key of ``container`` matching ``options``.

        Returns the number of keys deleted. Raises
        :class:`BatchDeleteError` naming the keys left behind when the
        store refused some of them.
        """
        options = options or ListOptions()
        options = options.model_copy(
            update={"max_keys": min(options.max_keys, self.config.max_page_size)}
        )
        if options.prefix:
            message = f"clearing path {container}/{options.prefix}"
        else:
            message = f"clearing container {container}"
        logger.info(message)

        session = BatchDeleteSession(container)
        session.page_marker = options.marker
        deleted = 0
        try:
            while True:
                page = self.store.list_objects(container, options)
                if not page.keys:
                    break

                future = self._get_executor().submit(
                    self.store.delete_objects, container, list(page.keys)
                )
                seq = session.track(future, list(page.keys))
                logger.debug(f"{message}: dispatched batch {seq} of {len(page.keys)} keys")

                if len(session.outstanding) >= self.config.max_outstanding_batches:
                    logger.info(
                        f"{message}: {len(session.outstanding)} batches outstanding, draining"
                    )
                    deleted += self._drain(session, message)

                if page.next_marker is None:
                    break
                session.page_marker = page.next_marker
                options = options.after_marker(page.next_marker)
        except TimeoutAwaitingCompletion:
            raise
        except Exception as e:
            logger.error(
                f"{message}: listing after marker {session.page_marker} failed: {e}"
            )
            # batches already dispatched still report their refused keys
            self._drain(session, message)
            if session.failed_keys:
                raise BatchDeleteError(container, session.failed_keys) from e
            raise

        deleted += self._drain(session, message)

        if session.failed_keys:
            raise BatchDeleteError(container, session.failed_keys)
        logger.info(f"{message}: deleted {deleted} keys in {session.batches} batches")
        return deleted

    def clear_container(self, container: str) -> int:
        return self.execute(container, ListOptions())

    def _drain(self, session: BatchDeleteSession, message: str) -> int:
        """Wait for every outstanding batch and collect its result."""
        deleted = 0
        while session.outstanding:
            pending = {future: seq for seq, (future, _) in session.outstanding.items()}
            done, not_done = wait(pending, timeout=self.config.request_timeout)
            for future in done:
                _, keys = session.outstanding.pop(pending[future])
                deleted += self._collect(session, future, keys, message)

            if not_done:
                session.error_count += 1
                if session.error_count >= self.config.max_error_count:
                    session.cancel_outstanding()
                    raise TimeoutAwaitingCompletion(
                        f"{message}: {len(not_done)} batch deletes still outstanding "
                        f"after {session.error_count} attempts",
                        len(not_done),
                    )
                impose_backoff(session.error_count, message, self.config.backoff_base)
        return deleted

    @staticmethod
    def _collect(
        session: BatchDeleteSession, future: Future, keys: List[str], message: str
    ) -> int:
        try:
            result = future.result()
        except Exception as e:
            logger.error(f"{message}: batch of {len(keys)} keys failed: {e}")
            for key in keys:
                session.failed_keys[key] = str(e)
            return 0

        if result.errors:
            logger.warning(f"{message}: {len(result.errors)} keys could not be deleted")
            session.failed_keys.update(result.errors)
        return len(keys) - len(result.errors)

    def _get_executor(self) -> Executor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.parallel_degree, thread_name_prefix="bulktransfer-delete"
            )
            self._owns_executor = True
        return self._executor

    def close(self) -> None:
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
            self._owns_executor = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
