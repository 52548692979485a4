"""
Unit tests for RetryPolicy.
"""

import pytest

from monit_forwarder.pipeline import RetryPolicy, default_retry_classifier


def test_default_budget_is_six_attempts():
    assert RetryPolicy().max_attempts == 6


def test_default_retry_classifier():
    assert default_retry_classifier(ConnectionRefusedError("refused"))
    assert default_retry_classifier(TimeoutError("socket timeout"))
    assert not default_retry_classifier(PermissionError("permission denied"))
    assert not default_retry_classifier(ValueError("invalid argument"))


def test_backoff_curve_monotonic_with_cap():
    rp = RetryPolicy(
        initial_backoff_ms=50,
        max_backoff_ms=200,
        backoff_multiplier=2.0,
        jitter=False,
    )
    vals = [rp.next_backoff_ms(i) for i in range(1, 10)]
    # 50, 100, 200, 200, 200...
    assert vals[:3] == [50, 100, 200]
    assert all(v <= 200 for v in vals)


def test_backoff_with_jitter():
    rp = RetryPolicy(initial_backoff_ms=100, max_backoff_ms=1000, jitter=True)
    vals = [rp.next_backoff_ms(1) for _ in range(20)]
    assert all(50 <= v <= 100 for v in vals)


def test_zero_backoff_stays_zero():
    rp = RetryPolicy(initial_backoff_ms=0, max_backoff_ms=0)
    assert rp.next_backoff_ms(3) == 0


def test_custom_classifier():
    rp = RetryPolicy(classify_retryable=lambda exc: True)
    assert rp.classify_retryable(ValueError("anything"))


def test_rejects_empty_budget():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
