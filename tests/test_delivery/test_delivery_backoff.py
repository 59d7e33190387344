"""Tests for ExponentialBackoff."""

from unittest.mock import patch

from src.delivery.backoff import ExponentialBackoff


class TestExponentialBackoff:

    def test_doubles_without_jitter(self):
        backoff = ExponentialBackoff(base_delay=5.0, max_delay=300.0, jitter_range=0.0)
        assert [backoff.next_delay() for _ in range(4)] == [5.0, 10.0, 20.0, 40.0]
        assert backoff.attempt == 4

    def test_capped_at_max_delay(self):
        backoff = ExponentialBackoff(base_delay=5.0, max_delay=12.0, jitter_range=0.0)
        delays = [backoff.next_delay() for _ in range(5)]
        assert max(delays) == 12.0

    def test_jitter_never_exceeds_max(self):
        backoff = ExponentialBackoff(base_delay=10.0, max_delay=10.0, jitter_range=0.2)
        with patch("src.delivery.backoff.random.uniform", return_value=0.2):
            assert backoff.next_delay() == 10.0

    def test_jitter_within_range(self):
        backoff = ExponentialBackoff(base_delay=10.0, max_delay=100.0, jitter_range=0.2)
        for _ in range(20):
            backoff.reset()
            assert 8.0 <= backoff.next_delay() <= 12.0

    def test_reset(self):
        backoff = ExponentialBackoff(base_delay=1.0, jitter_range=0.0)
        backoff.next_delay()
        backoff.next_delay()
        backoff.reset()
        assert backoff.attempt == 0
        assert backoff.next_delay() == 1.0
