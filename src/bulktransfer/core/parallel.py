"""Multipart upload with a bounded number of parts in flight."""

import logging
import time
from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
from typing import Mapping, Optional

from .exceptions import (
    FailureKind,
    FatalBudgetExceeded,
    TransferError,
    UploadError,
    classify_failure,
)
from .models import TransferConfig
from .payload import Payload, PayloadSlicer, as_payload
from .retry import RetryBudget
from .session import CountDownLatch, UploadSession
from .slicing import Part
from .store import RemoteStore
from .strategy import MultipartUploadStrategy

logger = logging.getLogger(__name__)


class ParallelMultipartUploader(MultipartUploadStrategy):
    """Uploads the parts of a payload concurrently.

    At most ``parallel_degree`` part requests are in flight at any time:
    the driver takes an admission slot before dispatching a part and the
    part's completion callback gives it back. Failed parts are queued
    and re-dispatched in waves once every part has been attempted, until
    the retry budget is exceeded. On success the parts are assembled in
    ascending index order; on failure the upload is aborted.
    """

    def __init__(
        self,
        store: RemoteStore,
        config: Optional[TransferConfig] = None,
        slicer: Optional[PayloadSlicer] = None,
        io_executor: Optional[Executor] = None,
        driver_executor: Optional[Executor] = None,
    ) -> None:
        super().__init__(store, config, slicer, executor=io_executor)
        self._driver_executor = driver_executor
        self._owns_driver = False

    def upload_async(
        self,
        container: str,
        key: str,
        payload: Payload,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> "Future[str]":
        """Run :meth:`upload` on the driver executor and return its future."""
        if self._driver_executor is None:
            self._driver_executor = ThreadPoolExecutor(thread_name_prefix="bulktransfer-driver")
            self._owns_driver = True
        return self._driver_executor.submit(self.upload, container, key, payload, metadata)

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
            # small enough for one request; never re-enter the multipart path
            return self.put_object(container, key, payload, metadata)

        config = self.config
        budget = RetryBudget(plan.part_count, config.min_retries, config.max_percent_retries)
        session = UploadSession(
            container, key, budget, plan.effective_parts, config.parallel_degree
        )
        try:
            session.upload_id = self.store.initiate_multipart_upload(container, key, metadata)
            logger.info(
                f"Initiated multipart upload of {key} to container {container} with uploadId "
                f"{session.upload_id} consisting of {plan.effective_parts} parts "
                f"(possible max. retries: {budget.max_retries})"
            )

            latch = CountDownLatch(plan.effective_parts)
            for part in algorithm.parts():
                self._dispatch(session, payload, part, latch)
            latch.wait()

            self._process_retries(session, payload)

            if session.exhausted:
                raise FatalBudgetExceeded(
                    container,
                    key,
                    session.upload_id,
                    session.error_count.value,
                    budget.max_retries,
                    session.failed_parts(),
                    session.first_cause,
                    fatal=session.fatal,
                ) from session.first_cause

            missing = session.missing_parts()
            if missing:
                raise UploadError(
                    f"Expected {plan.effective_parts} parts but have {len(session.etags)}. "
                    f"Missing parts: {missing}",
                    key,
                )

            etag = self.store.complete_multipart_upload(
                container, key, session.upload_id, session.ordered_etags()
            )
            logger.info(
                f"Multipart upload of {key} to container {container} with uploadId "
                f"{session.upload_id} successfully finished with {session.error_count.value} retries"
            )
            return etag
        except Exception as e:
            cancelled = session.cancel_outstanding()
            if cancelled:
                logger.debug(f"Cancelled {cancelled} pending parts of {key}")
            if session.upload_id is not None:
                self.abort_upload(container, key, session.upload_id)
            if isinstance(e, TransferError):
                raise
            raise UploadError(
                f"Multipart upload of {key} to container {container} failed: {e}", key
            ) from e

    def _dispatch(
        self, session: UploadSession, payload: Payload, part: Part, latch: CountDownLatch
    ) -> None:
        """Submit one part upload, blocking only while every slot is taken."""
        session.slots.acquire()
        if session.exhausted:
            session.slots.release()
            latch.count_down()
            return

        body = self.slicer.slice(payload, part.offset, part.size)
        logger.debug(
            f"Async uploading part {part.index} of {session.key} to container "
            f"{session.container} with uploadId {session.upload_id}"
        )
        started = time.monotonic()
        future = self._get_executor().submit(
            self.store.upload_part,
            session.container,
            session.key,
            part.index,
            session.upload_id,
            body,
        )
        session.track(part, future)
        future.add_done_callback(
            lambda f: self._on_part_done(session, part, f, latch, started)
        )

    def _on_part_done(
        self,
        session: UploadSession,
        part: Part,
        future: Future,
        latch: CountDownLatch,
        started: float,
    ) -> None:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        try:
            etag = future.result()
        except CancelledError:
            session.record_cancellation(part)
            logger.debug(f"Part {part.index} of {session.key} cancelled after {elapsed_ms}ms")
        except Exception as e:
            session.record_failure(part, e)
            errors = session.error_count.increment()
            message = (
                f"{e} while uploading part {part.index} - [{part.offset},{part.size}] to "
                f"container {session.container} with uploadId {session.upload_id} "
                f"running since {elapsed_ms}ms"
            )
            if classify_failure(e) is FailureKind.FATAL:
                session.fatal = True
                logger.error(message)
            else:
                logger.warning(message)
                if session.budget.allows(errors):
                    session.retry_queue.append(part)
        else:
            session.record_success(part, etag)
            logger.debug(
                f"Async uploaded part {part.index} of {session.key} to container "
                f"{session.container} in {elapsed_ms}ms with uploadId {session.upload_id}"
            )
        finally:
            session.slots.release()
            session.untrack(part)
            latch.count_down()

    def _process_retries(self, session: UploadSession, payload: Payload) -> None:
        """Re-dispatch failed parts in waves until done or out of budget."""
        parallel_degree = self.config.parallel_degree
        while not session.exhausted and session.retry_queue:
            at_once = RetryBudget.wave_size(
                len(session.retry_queue), session.error_count.value, parallel_degree
            )
            logger.debug(
                f"Retrying {at_once} of {len(session.retry_queue)} failed parts of {session.key}"
            )
            latch = CountDownLatch(at_once)
            for _ in range(at_once):
                self._dispatch(session, payload, session.retry_queue.popleft(), latch)
            latch.wait()

    def close(self) -> None:
        if self._owns_driver and self._driver_executor is not None:
            self._driver_executor.shutdown(wait=True)
            self._driver_executor = None
            self._owns_driver = False
        super().close()
