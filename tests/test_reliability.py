"""
Tests for retry_with_policy.
"""

from __future__ import annotations

import pytest

from mirrorsite.errors import GitError, NetworkFailure
from mirrorsite.models.config import RetryPolicy
from mirrorsite.reliability import retry_with_policy


class Flaky:
    def __init__(self, failures, error=NetworkFailure):
        self.failures = failures
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"failure {self.calls}")
        return "ok"


class TestRetryWithPolicy:

    def test_first_success_does_not_sleep(self, sleep, policy):
        func = Flaky(0)

        assert retry_with_policy(func, policy, sleep=sleep) == "ok"
        assert func.calls == 1
        assert sleep.delays == []

    def test_recovers_within_budget(self, sleep, policy):
        func = Flaky(2)

        assert retry_with_policy(func, policy, sleep=sleep) == "ok"
        assert func.calls == 3
        assert sleep.delays == [5.0, 5.0]

    def test_budget_exhausted_raises_last_error(self, sleep, policy):
        func = Flaky(5)

        with pytest.raises(NetworkFailure, match="failure 3"):
            retry_with_policy(func, policy, sleep=sleep)
        assert func.calls == 3
        assert sleep.delays == [5.0, 5.0]

    def test_non_retryable_error_propagates_immediately(self, sleep, policy):
        func = Flaky(1, error=GitError)

        with pytest.raises(GitError):
            retry_with_policy(func, policy, retryable=(NetworkFailure,), sleep=sleep)
        assert func.calls == 1
        assert sleep.delays == []

    def test_each_call_gets_its_own_counter(self, sleep):
        policy = RetryPolicy(max_retries=2, retry_delay=0)

        assert retry_with_policy(Flaky(1), policy, sleep=sleep) == "ok"
        assert retry_with_policy(Flaky(1), policy, sleep=sleep) == "ok"

    def test_policy_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=0)
