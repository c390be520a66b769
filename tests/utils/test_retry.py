"""Tests for backoff policies.

Tests cover:
- RetryConfig validation and delay calculation
- Uniform (constant window) policies
- Pre-configured policies
"""

import pytest

from lnbridge.utils.retry import NETWORK_BACKOFF, RATE_LIMIT_BACKOFF, RetryConfig

# ============================================================================
# RetryConfig Tests
# ============================================================================


class TestRetryConfig:
    """Test RetryConfig validation and delay calculation."""

    def test_default_config(self):
        config = RetryConfig()

        assert config.max_retries == 3
        assert config.base_delay == 1.0
        assert config.max_delay == 60.0
        assert config.jitter is True

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"max_retries": -1}, "max_retries must be >= 0"),
            ({"base_delay": 0}, "base_delay must be > 0"),
            ({"base_delay": 10.0, "max_delay": 5.0}, "max_delay must be >= base_delay"),
            ({"backoff_factor": 0.5}, "backoff_factor must be >= 1"),
            ({"jitter_range": 1.5}, "jitter_range must be between 0 and 1"),
        ],
    )
    def test_validation(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            RetryConfig(**kwargs)

    def test_exponential_delay_without_jitter(self):
        config = RetryConfig(base_delay=1.0, max_delay=100.0, backoff_factor=2.0, jitter=False)

        assert [config.calculate_delay(i) for i in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)

        assert config.calculate_delay(10) == 5.0

    def test_jitter_stays_in_range(self):
        config = RetryConfig(base_delay=10.0, max_delay=100.0, jitter_range=0.1)

        delays = [config.calculate_delay(0) for _ in range(100)]

        assert all(9.0 <= d <= 11.0 for d in delays)


class TestUniform:
    """Constant-window policies."""

    def test_delays_within_window(self):
        config = RetryConfig.uniform(1.0, 2.0)

        for attempt in range(5):
            delays = [config.calculate_delay(attempt) for _ in range(50)]
            assert all(1.0 <= d <= 2.0 for d in delays)

    def test_degenerate_window(self):
        config = RetryConfig.uniform(0.5, 0.5)

        assert config.calculate_delay(3) == 0.5

    @pytest.mark.parametrize(("low", "high"), [(0, 1.0), (2.0, 1.0), (-1.0, 1.0)])
    def test_invalid_window(self, low, high):
        with pytest.raises(ValueError):
            RetryConfig.uniform(low, high)


class TestPreConfiguredPolicies:
    def test_rate_limit_backoff_one_to_two_seconds(self):
        delays = [RATE_LIMIT_BACKOFF.calculate_delay(0) for _ in range(100)]

        assert all(1.0 <= d <= 2.0 for d in delays)

    def test_network_backoff_is_short(self):
        assert NETWORK_BACKOFF.calculate_delay(10) <= 2.0 * (1 + NETWORK_BACKOFF.jitter_range)
