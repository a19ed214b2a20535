"""Tests for retry budgets and backoff."""

from unittest.mock import patch

import pytest

from bulktransfer.core.retry import RetryBudget, backoff_delay, impose_backoff


class TestRetryBudget:
    @pytest.mark.parametrize(
        "part_count, expected",
        [(0, 5), (10, 5), (59, 5), (60, 6), (1000, 100), (10000, 1000)],
    )
    def test_max_retries(self, part_count, expected):
        assert RetryBudget(part_count).max_retries == expected

    def test_custom_policy(self):
        budget = RetryBudget(200, min_retries=1, max_percent_retries=50)
        assert budget.max_retries == 100

    def test_allows_up_to_max_retries(self):
        budget = RetryBudget(10)
        assert budget.allows(5)
        assert not budget.allows(6)
        assert not budget.exhausted(5)
        assert budget.exhausted(6)

    @pytest.mark.parametrize(
        "queued, errors, degree, expected",
        [(5, 2, 4, 2), (1, 3, 4, 1), (10, 10, 4, 4), (0, 3, 4, 0)],
    )
    def test_wave_size(self, queued, errors, degree, expected):
        assert RetryBudget.wave_size(queued, errors, degree) == expected


class TestBackoff:
    def test_delay_doubles(self):
        assert backoff_delay(0, base=0.1) == pytest.approx(0.1)
        assert backoff_delay(1, base=0.1) == pytest.approx(0.2)
        assert backoff_delay(3, base=0.1) == pytest.approx(0.8)

    def test_delay_capped(self):
        assert backoff_delay(10, base=0.1) == pytest.approx(1.0)
        assert backoff_delay(10, base=0.1, max_delay=3) == pytest.approx(3)

    def test_impose_backoff_sleeps(self):
        with patch("bulktransfer.core.retry.time.sleep") as sleep:
            impose_backoff(2, "clearing container c", base=0.05)
        sleep.assert_called_once()
        assert sleep.call_args[0][0] == pytest.approx(0.2)
