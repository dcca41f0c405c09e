"""Tests for taozen.core.policies module."""

import pytest

from taozen.core.policies import RetryConfig


class TestRetryConfig:
    """Tests for RetryConfig dataclass."""

    def test_default_values(self):
        """Test default values."""
        config = RetryConfig()

        assert config.max_attempts == 3
        assert config.initial_delay_ms == 1000
        assert config.backoff_factor == 2.0
        assert config.max_delay_ms == 30_000

    def test_exponential_delays(self):
        """Test delays grow by the backoff factor."""
        config = RetryConfig(max_attempts=4, initial_delay_ms=100, backoff_factor=2, max_delay_ms=1000)

        assert config.delay_for_attempt(1) == 100
        assert config.delay_for_attempt(2) == 200
        assert config.delay_for_attempt(3) == 400

    def test_delay_capped(self):
        """Test delays never exceed max_delay_ms."""
        config = RetryConfig(max_attempts=10, initial_delay_ms=100, backoff_factor=3, max_delay_ms=500)

        assert config.delay_for_attempt(2) == 300
        assert config.delay_for_attempt(3) == 500
        assert config.delay_for_attempt(8) == 500

    def test_should_retry(self):
        """Test attempts are allowed up to max_attempts."""
        config = RetryConfig(max_attempts=3)

        assert config.should_retry(1) is True
        assert config.should_retry(2) is True
        assert config.should_retry(3) is False

    def test_single_attempt_never_retries(self):
        """Test max_attempts=1 disables retrying."""
        assert RetryConfig(max_attempts=1).should_retry(1) is False

    def test_frozen(self):
        """Test configs are immutable."""
        config = RetryConfig()
        with pytest.raises(AttributeError):
            config.max_attempts = 5

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"initial_delay_ms": -1},
            {"max_delay_ms": -1},
            {"backoff_factor": 0.5},
        ],
    )
    def test_validation(self, kwargs):
        """Test invalid values are rejected."""
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)
