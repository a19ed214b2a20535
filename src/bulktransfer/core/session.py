"""Per-invocation state of uploads and bulk deletes."""

import itertools
from collections import deque
from concurrent.futures import Future
from threading import BoundedSemaphore, Condition, Lock
from typing import Deque, Dict, List, Optional, Tuple

from .exceptions import CancellationFailure
from .retry import RetryBudget
from .slicing import Part


class AtomicCounter:
    """Integer counter safe to increment from several threads."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = Lock()

    def increment(self) -> int:
        """Add one and return the new value."""
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        return self._value


class CountDownLatch:
    """Lets one thread wait until a fixed number of events have happened."""

    def __init__(self, count: int) -> None:
        if count < 0:
            raise ValueError("count must not be negative")
        self._count = count
        self._condition = Condition()

    @property
    def count(self) -> int:
        return self._count

    def count_down(self) -> None:
        with self._condition:
            if self._count > 0:
                self._count -= 1
                if self._count == 0:
                    self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the count reaches zero; False if ``timeout`` elapsed first."""
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout)


class UploadSession:
    """Client-side tracking state of one multipart upload.

    Completion callbacks running on executor threads mutate the ETag and
    error maps, the futures map, the retry queue and the error counter
    concurrently. The maps are guarded by the session lock.
    """

    def __init__(
        self,
        container: str,
        key: str,
        budget: RetryBudget,
        effective_parts: int,
        parallel_degree: int,
    ) -> None:
        self.container = container
        self.key = key
        self.budget = budget
        self.effective_parts = effective_parts
        self.upload_id: Optional[str] = None

        self.etags: Dict[int, str] = {}
        self.errors: Dict[int, BaseException] = {}
        self.retry_queue: Deque[Part] = deque()
        self.error_count = AtomicCounter()
        self.futures: Dict[int, Future] = {}
        # admission slots: one per part request in flight
        self.slots = BoundedSemaphore(parallel_degree)
        self.fatal = False
        self._causes: Deque[BaseException] = deque()
        self._lock = Lock()

    def track(self, part: Part, future: Future) -> None:
        with self._lock:
            self.futures[part.index] = future

    def untrack(self, part: Part) -> None:
        with self._lock:
            self.futures.pop(part.index, None)

    def record_success(self, part: Part, etag: str) -> None:
        with self._lock:
            self.etags[part.index] = etag

    def record_failure(self, part: Part, exc: BaseException) -> None:
        with self._lock:
            self.errors[part.index] = exc
            self._causes.append(exc)

    def record_cancellation(self, part: Part) -> None:
        """Note a cancelled part without counting it as a cause."""
        with self._lock:
            self.errors[part.index] = CancellationFailure(part.index)

    @property
    def first_cause(self) -> Optional[BaseException]:
        return self._causes[0] if self._causes else None

    @property
    def exhausted(self) -> bool:
        """True once the upload can no longer succeed."""
        return self.fatal or self.budget.exhausted(self.error_count.value)

    def ordered_etags(self) -> Dict[int, str]:
        """ETags keyed by part index, in ascending index order."""
        with self._lock:
            return {index: self.etags[index] for index in sorted(self.etags)}

    def failed_parts(self) -> List[int]:
        with self._lock:
            return sorted(index for index in self.errors if index not in self.etags)

    def missing_parts(self) -> List[int]:
        with self._lock:
            return [i for i in range(1, self.effective_parts + 1) if i not in self.etags]

    def cancel_outstanding(self) -> int:
        """Cancel every part request that has not started yet."""
        with self._lock:
            pending = list(self.futures.values())
        # cancel outside the lock: cancelling runs the done-callbacks inline
        cancelled = 0
        for future in pending:
            if future.cancel():
                cancelled += 1
        return cancelled


class BatchDeleteSession:
    """Tracking state of one bulk delete over a container."""

    def __init__(self, container: str) -> None:
        self.container = container
        self.page_marker: Optional[str] = None
        self.outstanding: Dict[int, Tuple[Future, List[str]]] = {}
        self.error_count = 0
        self.failed_keys: Dict[str, str] = {}
        self.batches = 0
        self._sequence = itertools.count(1)

    def track(self, future: Future, keys: List[str]) -> int:
        """Register an in-flight batch and return its sequence number."""
        seq = next(self._sequence)
        self.outstanding[seq] = (future, keys)
        self.batches += 1
        return seq

    def cancel_outstanding(self) -> None:
        for future, _ in self.outstanding.values():
            future.cancel()
