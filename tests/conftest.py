"""Shared pytest fixtures for bulk transfer tests.

``FakeStore`` is an in-memory, thread-safe implementation of the
RemoteStore protocol. It can inject part failures, slow parts down and
records every call, including the highest number of part uploads that
were in flight at the same time.
"""

import itertools
import threading
import time
from collections import defaultdict

import pytest

from bulktransfer.core.exceptions import TransientPartFailure
from bulktransfer.core.models import DeleteResult, ObjectPage, TransferConfig

KiB = 1024


class FakeStore:
    def __init__(self):
        self.lock = threading.Lock()
        self.objects = {}
        self.uploads = {}
        self._ids = itertools.count(1)

        # part index -> number of times it fails before succeeding
        self.part_failures = {}
        # part index -> exception factory for parts that always fail
        self.permanent_failures = {}
        # part index -> seconds to sleep before answering
        self.part_delays = {}
        self.default_part_delay = 0.0

        self.refused_keys = set()
        self.delete_error = None
        self.delete_gate = None

        self.attempts = defaultdict(int)
        self.part_calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.put_calls = []
        self.initiated = []
        self.completed = []
        self.aborted = []
        self.list_calls = []
        self.delete_batches = []

    # uploads
    def put_object(self, container, key, body, metadata=None):
        with self.lock:
            self.put_calls.append((container, key))
            self.objects[(container, key)] = bytes(body)
        return '"single-etag"'

    def initiate_multipart_upload(self, container, key, metadata=None):
        upload_id = f"upload-{next(self._ids)}"
        with self.lock:
            self.initiated.append((container, key, upload_id))
            self.uploads[upload_id] = {}
        return upload_id

    def upload_part(self, container, key, part_index, upload_id, body):
        with self.lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.attempts[part_index] += 1
            self.part_calls.append(part_index)
        try:
            time.sleep(self.part_delays.get(part_index, self.default_part_delay))
            with self.lock:
                if part_index in self.permanent_failures:
                    raise self.permanent_failures[part_index](part_index)
                if self.part_failures.get(part_index, 0) > 0:
                    self.part_failures[part_index] -= 1
                    raise TransientPartFailure("injected failure", part_index)
                self.uploads[upload_id][part_index] = bytes(body)
            return f'"etag-{part_index}"'
        finally:
            with self.lock:
                self.in_flight -= 1

    def complete_multipart_upload(self, container, key, upload_id, etags):
        with self.lock:
            self.completed.append((upload_id, list(etags.keys())))
            parts = self.uploads.pop(upload_id)
            self.objects[(container, key)] = b"".join(parts[i] for i in etags)
        return '"final-etag"'

    def abort_multipart_upload(self, container, key, upload_id):
        with self.lock:
            self.aborted.append(upload_id)
            self.uploads.pop(upload_id, None)

    # listing and deletes
    def add_objects(self, container, keys):
        for key in keys:
            self.objects[(container, key)] = b"x"

    def keys(self, container):
        return sorted(k for c, k in self.objects if c == container)

    def list_objects(self, container, options):
        with self.lock:
            self.list_calls.append(options.marker)
            keys = [
                k
                for k in self.keys(container)
                if k.startswith(options.prefix)
                and (options.marker is None or k > options.marker)
            ]
        page = keys[: options.max_keys]
        next_marker = page[-1] if len(keys) > options.max_keys else None
        return ObjectPage(keys=page, next_marker=next_marker)

    def delete_objects(self, container, keys):
        if self.delete_gate is not None:
            self.delete_gate.wait()
        if self.delete_error is not None:
            raise self.delete_error
        errors = {}
        with self.lock:
            self.delete_batches.append(list(keys))
            for key in keys:
                if key in self.refused_keys:
                    errors[key] = "AccessDenied: Access Denied"
                else:
                    self.objects.pop((container, key), None)
        return DeleteResult(errors=errors)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def small_parts_config():
    """Config whose default part size is 1 KiB so tests stay tiny."""
    return TransferConfig(
        default_part_size=KiB,
        min_part_size=KiB,
        max_part_size=1024 * KiB,
        parallel_degree=4,
    )


def payload_of(parts: int, part_size: int = KiB, extra: int = 0) -> bytes:
    """Build a payload whose bytes identify the part they belong to."""
    data = bytearray()
    for i in range(parts):
        data.extend(bytes([i % 251]) * part_size)
    data.extend(b"z" * extra)
    return bytes(data)


@pytest.fixture
def make_payload():
    return payload_of
