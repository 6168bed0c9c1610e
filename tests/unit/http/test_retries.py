"""Tests for retry decisions and backoff computation."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from catalogstudio.http.retries import RETRYABLE_STATUSES, compute_backoff, should_retry


class TestShouldRetry:
    @pytest.mark.parametrize("status", sorted(RETRYABLE_STATUSES))
    def test_retryable_statuses(self, status):
        assert should_retry(status, None, attempt=0, max_attempts=3)

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_not_retried(self, status):
        assert not should_retry(status, None, attempt=0, max_attempts=3)

    def test_last_attempt_never_retries(self):
        assert not should_retry(503, None, attempt=2, max_attempts=3)

    def test_network_errors_retried(self):
        assert should_retry(None, httpx.ConnectError("x"), attempt=0, max_attempts=3)
        assert should_retry(None, httpx.ReadTimeout("x"), attempt=0, max_attempts=3)

    def test_other_exceptions_not_retried(self):
        assert not should_retry(None, ValueError("x"), attempt=0, max_attempts=3)

    def test_nothing_to_judge(self):
        assert not should_retry(None, None, attempt=0, max_attempts=3)


class TestComputeBackoff:
    def test_exponential_without_jitter(self):
        assert compute_backoff(0, base=0.5, jitter=False) == 0.5
        assert compute_backoff(1, base=0.5, jitter=False) == 1.0
        assert compute_backoff(3, base=0.5, jitter=False) == 4.0

    def test_capped_at_maximum(self):
        assert compute_backoff(10, base=0.5, maximum=10.0, jitter=False) == 10.0

    def test_retry_after_wins(self):
        assert compute_backoff(0, base=0.5, maximum=10.0, jitter=False, retry_after=7) == 7

    def test_retry_after_is_capped(self):
        assert compute_backoff(0, maximum=10.0, jitter=False, retry_after=60) == 10.0

    def test_jitter_scales_between_half_and_full(self):
        with patch("catalogstudio.http.retries.random.random", return_value=0.0):
            assert compute_backoff(2, base=1.0, jitter=True) == 2.0
        with patch("catalogstudio.http.retries.random.random", return_value=1.0):
            assert compute_backoff(2, base=1.0, jitter=True) == 4.0
