"""Partitioning of a byte range into multipart upload parts."""

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from .models import GiB, MiB, TransferConfig

logger = logging.getLogger(__name__)

DEFAULT_PART_SIZE = 32 * MiB
DEFAULT_MAGNITUDE_BASE = 100
MIN_PART_SIZE = 5 * MiB
MAX_PART_SIZE = 5 * GiB
MAX_NUMBER_OF_PARTS = 10000


@dataclass(frozen=True)
class SlicingPlan:
    """How a payload of ``total_size`` bytes is split.

    ``part_count`` full chunks of ``chunk_size`` bytes are followed by a
    last part of ``remainder`` bytes when the remainder is non-zero.
    """

    total_size: int
    chunk_size: int
    part_count: int
    remainder: int

    @property
    def effective_parts(self) -> int:
        """Number of parts actually uploaded, remainder part included."""
        return self.part_count + 1 if self.remainder > 0 else self.part_count

    @property
    def is_multipart(self) -> bool:
        return self.part_count > 0


@dataclass(frozen=True)
class Part:
    """One contiguous byte range of a multipart upload (1-based index)."""

    index: int
    offset: int
    size: int


class SlicingAlgorithm:
    """Computes a slicing plan and hands out parts sequentially.

    The chunk size starts at ``default_part_size``. Once the payload
    would need more than ``magnitude_base`` chunks, the chunk size grows
    by multiples of the default (capped at ``max_part_size``) so that the
    part count stays around ``magnitude_base``. The part count never
    exceeds ``max_parts``.
    """

    def __init__(
        self,
        default_part_size: int = DEFAULT_PART_SIZE,
        magnitude_base: int = DEFAULT_MAGNITUDE_BASE,
        min_part_size: int = MIN_PART_SIZE,
        max_part_size: int = MAX_PART_SIZE,
        max_parts: int = MAX_NUMBER_OF_PARTS,
    ) -> None:
        self.default_part_size = default_part_size
        self.magnitude_base = magnitude_base
        self.min_part_size = min_part_size
        self.max_part_size = max_part_size
        self.max_parts = max_parts

        self.plan: Optional[SlicingPlan] = None
        self._part = 0
        self._chunk_offset = 0

    @classmethod
    def from_config(cls, config: TransferConfig) -> "SlicingAlgorithm":
        return cls(
            default_part_size=config.default_part_size,
            magnitude_base=config.magnitude_base,
            min_part_size=config.min_part_size,
            max_part_size=config.max_part_size,
            max_parts=config.max_parts,
        )

    def calculate(self, length: int) -> SlicingPlan:
        """Compute the plan for ``length`` bytes and reset the cursor."""
        if length < 0:
            raise ValueError(f"Payload length must not be negative: {length}")

        unit_part_size = self.default_part_size
        parts = length // unit_part_size
        part_size = unit_part_size
        magnitude = parts // self.magnitude_base
        if magnitude > 0:
            part_size = magnitude * unit_part_size
            if part_size > self.max_part_size:
                part_size = unit_part_size = self.max_part_size
            parts = length // part_size
            if parts * part_size < length:
                part_size = (magnitude + 1) * unit_part_size
                if part_size > self.max_part_size:
                    part_size = unit_part_size = self.max_part_size
                parts = length // part_size

        if parts > self.max_parts:
            # too many parts even at the largest chunk size
            unit_part_size = self.min_part_size
            parts = length // unit_part_size
        if parts > self.max_parts:
            # leave room for the remainder part
            parts = self.max_parts - 1

        if length % unit_part_size == 0 and parts > 0:
            # the last full chunk is uploaded as the remainder part
            parts -= 1

        self.plan = SlicingPlan(
            total_size=length,
            chunk_size=part_size,
            part_count=parts,
            remainder=length - part_size * parts,
        )
        self._part = 0
        self._chunk_offset = 0
        logger.debug(
            f"Sliced {length} bytes into {parts} parts of {part_size} bytes "
            f"plus {self.plan.remainder} remaining bytes"
        )
        return self.plan

    def next_part(self) -> int:
        """Advance the cursor and return the next 1-based part index."""
        self._part += 1
        return self._part

    def next_chunk_offset(self) -> int:
        """Return the offset of the next chunk and advance past it."""
        if self.plan is None:
            raise RuntimeError("calculate() must be called before slicing")
        offset = self._chunk_offset
        self._chunk_offset += self.plan.chunk_size
        return offset

    def parts(self) -> Iterator[Part]:
        """Yield every part of the current plan in ascending index order."""
        if self.plan is None:
            raise RuntimeError("calculate() must be called before slicing")
        plan = self.plan
        if not plan.is_multipart:
            return
        index = self.next_part()
        while index <= plan.part_count:
            yield Part(index, self.next_chunk_offset(), plan.chunk_size)
            index = self.next_part()
        if plan.remainder > 0:
            yield Part(index, self.next_chunk_offset(), plan.remainder)
