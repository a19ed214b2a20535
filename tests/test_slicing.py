"""Tests for the multipart slicing algorithm."""

import pytest

from bulktransfer.core.models import GiB, MiB, TransferConfig
from bulktransfer.core.slicing import Part, SlicingAlgorithm, SlicingPlan

TiB = 1024 * GiB

SIZES = [
    0,
    1,
    5 * MiB,
    32 * MiB - 1,
    32 * MiB,
    32 * MiB + 1,
    64 * MiB,
    100 * MiB,
    1 * GiB,
    100 * 32 * MiB,
    200 * 32 * MiB,
    201 * 32 * MiB + 7,
    123456789012,
    1 * TiB,
    5 * TiB,
    60 * TiB,
]


class TestPlan:
    """Tests for calculate()."""

    def test_hundred_mib_uses_default_chunk(self):
        plan = SlicingAlgorithm().calculate(100 * MiB)
        assert plan == SlicingPlan(
            total_size=100 * MiB, chunk_size=32 * MiB, part_count=3, remainder=4 * MiB
        )
        assert plan.effective_parts == 4

    def test_zero_length_is_not_multipart(self):
        plan = SlicingAlgorithm().calculate(0)
        assert plan.part_count == 0
        assert plan.remainder == 0
        assert not plan.is_multipart

    def test_payload_below_chunk_size_is_not_multipart(self):
        plan = SlicingAlgorithm().calculate(10 * MiB)
        assert plan.part_count == 0
        assert plan.remainder == 10 * MiB
        assert not plan.is_multipart

    def test_exact_multiple_moves_last_chunk_into_remainder(self):
        plan = SlicingAlgorithm().calculate(64 * MiB)
        assert plan.part_count == 1
        assert plan.remainder == 32 * MiB
        assert plan.effective_parts == 2

    def test_chunk_size_grows_past_magnitude_base(self):
        plan = SlicingAlgorithm().calculate(200 * 32 * MiB)
        assert plan.chunk_size == 64 * MiB
        assert plan.part_count == 99
        assert plan.remainder == 64 * MiB

    def test_chunk_size_capped_at_maximum(self):
        plan = SlicingAlgorithm().calculate(1 * TiB)
        assert plan.chunk_size == 5 * GiB
        assert plan.part_count == 204
        assert plan.remainder == 4 * GiB

    def test_part_count_capped_at_service_limit(self):
        plan = SlicingAlgorithm().calculate(60 * TiB)
        assert plan.part_count <= 10000
        assert plan.effective_parts <= 10000

    @pytest.mark.parametrize("size", SIZES)
    def test_plan_covers_payload_exactly(self, size):
        plan = SlicingAlgorithm().calculate(size)
        assert plan.chunk_size * plan.part_count + plan.remainder == size
        assert plan.part_count <= 10000
        assert plan.remainder >= 0

    @pytest.mark.parametrize("size", SIZES)
    def test_plan_is_deterministic(self, size):
        assert SlicingAlgorithm().calculate(size) == SlicingAlgorithm().calculate(size)

    def test_negative_length_rejected(self):
        with pytest.raises(ValueError):
            SlicingAlgorithm().calculate(-1)

    def test_from_config_uses_policy(self):
        config = TransferConfig(default_part_size=8 * MiB, magnitude_base=10)
        plan = SlicingAlgorithm.from_config(config).calculate(20 * MiB)
        assert plan.chunk_size == 8 * MiB
        assert plan.part_count == 2
        assert plan.remainder == 4 * MiB


class TestCursor:
    """Tests for the part cursor."""

    def test_next_part_and_offset(self):
        algorithm = SlicingAlgorithm()
        algorithm.calculate(100 * MiB)
        assert algorithm.next_part() == 1
        assert algorithm.next_chunk_offset() == 0
        assert algorithm.next_part() == 2
        assert algorithm.next_chunk_offset() == 32 * MiB

    def test_parts_cover_range_contiguously(self):
        algorithm = SlicingAlgorithm()
        algorithm.calculate(100 * MiB)
        parts = list(algorithm.parts())
        assert parts == [
            Part(1, 0, 32 * MiB),
            Part(2, 32 * MiB, 32 * MiB),
            Part(3, 64 * MiB, 32 * MiB),
            Part(4, 96 * MiB, 4 * MiB),
        ]

    @pytest.mark.parametrize("size", [33 * MiB, 100 * MiB, 201 * 32 * MiB + 7])
    def test_part_sizes_sum_to_total(self, size):
        algorithm = SlicingAlgorithm()
        plan = algorithm.calculate(size)
        parts = list(algorithm.parts())
        assert [p.index for p in parts] == list(range(1, plan.effective_parts + 1))
        assert sum(p.size for p in parts) == size
        for previous, current in zip(parts, parts[1:]):
            assert current.offset == previous.offset + previous.size

    def test_single_shot_plan_yields_no_parts(self):
        algorithm = SlicingAlgorithm()
        algorithm.calculate(MiB)
        assert list(algorithm.parts()) == []

    def test_calculate_resets_cursor(self):
        algorithm = SlicingAlgorithm()
        algorithm.calculate(100 * MiB)
        list(algorithm.parts())
        algorithm.calculate(100 * MiB)
        assert algorithm.next_part() == 1

    def test_parts_requires_plan(self):
        with pytest.raises(RuntimeError):
            list(SlicingAlgorithm().parts())
