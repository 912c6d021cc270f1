"""Tests for retry handler."""

import subprocess
from unittest.mock import patch

import pytest

from ukcompose.retry_handler import _safe_error_message, retry_with_exponential_backoff


class TestRetryWithExponentialBackoff:
    """Tests for retry_with_exponential_backoff decorator."""

    def test_succeeds_on_first_attempt(self):
        """Should return immediately on success."""
        call_count = 0

        @retry_with_exponential_backoff(max_attempts=3)
        def successful_operation():
            nonlocal call_count
            call_count += 1
            return "success"

        assert successful_operation() == "success"
        assert call_count == 1

    def test_retries_on_transient_error(self):
        """Should retry on transient errors."""
        call_count = 0

        @retry_with_exponential_backoff(max_attempts=3, initial_delay=0.01, jitter=False)
        def flaky_operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise subprocess.TimeoutExpired(["kraft", "ps"], 30)
            return "success"

        assert flaky_operation() == "success"
        assert call_count == 3

    def test_raises_after_max_attempts(self):
        """Should raise exception after max attempts exceeded."""
        call_count = 0

        @retry_with_exponential_backoff(max_attempts=3, initial_delay=0.01, jitter=False)
        def always_fails():
            nonlocal call_count
            call_count += 1
            raise ConnectionError("Always fails")

        with pytest.raises(ConnectionError, match="Always fails"):
            always_fails()

        assert call_count == 3

    def test_non_retryable_error_is_raised_immediately(self):
        """Should not retry errors outside retryable_exceptions."""
        call_count = 0

        @retry_with_exponential_backoff(max_attempts=3, initial_delay=0.01)
        def broken():
            nonlocal call_count
            call_count += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            broken()

        assert call_count == 1

    def test_delays_double_and_are_capped(self):
        """Should double the delay each attempt up to max_delay."""

        @retry_with_exponential_backoff(
            max_attempts=5, initial_delay=1.0, max_delay=3.0, jitter=False
        )
        def always_fails():
            raise ConnectionError("Retry me")

        with patch("ukcompose.retry_handler.time.sleep") as mock_sleep:
            with pytest.raises(ConnectionError):
                always_fails()

        delays = [call[0][0] for call in mock_sleep.call_args_list]
        assert delays == [1.0, 2.0, 3.0, 3.0]

    def test_jitter_stays_within_bounds(self):
        """Jittered delay is within +/-25% of the base delay."""
        call_count = 0

        @retry_with_exponential_backoff(max_attempts=2, initial_delay=1.0, jitter=True)
        def flaky_operation():
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionError("Retry me")
            return "success"

        with patch("ukcompose.retry_handler.time.sleep") as mock_sleep:
            assert flaky_operation() == "success"

        assert 0.75 <= mock_sleep.call_args[0][0] <= 1.25


class TestSafeErrorMessage:
    """Truncation of long error messages."""

    def test_short_message_unchanged(self):
        assert _safe_error_message(RuntimeError("short")) == "short"

    def test_long_message_truncated(self):
        message = _safe_error_message(RuntimeError("x" * 500))

        assert len(message) == 203
        assert message.endswith("...")
