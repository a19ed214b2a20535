"""Payload sources and zero-copy slicing."""

import io
import os
from pathlib import Path
from typing import Union


class Payload:
    """A sized, randomly readable byte source."""

    @property
    def content_length(self) -> int:
        raise NotImplementedError

    def read(self, offset: int, length: int) -> Union[bytes, memoryview]:
        raise NotImplementedError


class BytesPayload(Payload):
    """Payload backed by an in-memory buffer."""

    def __init__(self, data: Union[bytes, bytearray, memoryview]) -> None:
        self._view = memoryview(data)

    @property
    def content_length(self) -> int:
        return self._view.nbytes

    def read(self, offset: int, length: int) -> memoryview:
        return self._view[offset : offset + length]


class FilePayload(Payload):
    """Payload backed by a local file, read on demand one range at a time."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"Local file not found: {self.path}")
        if self.path.is_dir():
            raise ValueError(f"Path is a directory, not a file: {self.path}")
        self._size = os.path.getsize(self.path)

    @property
    def content_length(self) -> int:
        return self._size

    def read(self, offset: int, length: int) -> bytes:
        with open(self.path, "rb") as f:
            f.seek(offset)
            return f.read(length)


def as_payload(source: Union[Payload, bytes, bytearray, memoryview, str, Path]) -> Payload:
    """Wrap raw bytes or a file path in the matching payload type."""
    if isinstance(source, Payload):
        return source
    if isinstance(source, (bytes, bytearray, memoryview)):
        return BytesPayload(source)
    return FilePayload(source)


class PayloadSlicer:
    """Produces the bytes of one slice of a payload."""

    def slice(self, payload: Payload, offset: int, length: int) -> Union[bytes, memoryview]:
        if offset < 0 or length < 0:
            raise ValueError(f"Invalid slice [{offset},{length}]")
        if offset + length > payload.content_length:
            raise ValueError(
                f"Slice [{offset},{length}] exceeds payload of {payload.content_length} bytes"
            )
        return payload.read(offset, length)


class MemoryviewReader(io.RawIOBase):
    """Seekable file object over a memoryview.

    Request bodies are streamed from the view in chunks, so a slice of
    a :class:`BytesPayload` is never copied as a whole.
    """

    def __init__(self, view: memoryview) -> None:
        super().__init__()
        self._view = view.cast("B")
        self._pos = 0

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        remaining = self._view.nbytes - self._pos
        if remaining <= 0:
            return 0
        target = memoryview(buffer).cast("B")
        n = min(len(target), remaining)
        target[:n] = self._view[self._pos : self._pos + n]
        self._pos += n
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            pos = offset
        elif whence == io.SEEK_CUR:
            pos = self._pos + offset
        elif whence == io.SEEK_END:
            pos = self._view.nbytes + offset
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if pos < 0:
            raise ValueError(f"Negative seek position {pos}")
        self._pos = pos
        return pos

    def tell(self) -> int:
        return self._pos
