"""Retry delay computation.

Backoff strategies map onto tenacity wait strategies, evaluated for a
given attempt number:

- fixed: base
- linear: base * attempt
- exponential: base * 2 ** (attempt - 1)
"""

from __future__ import annotations

from tenacity import RetryCallState, wait_exponential, wait_fixed, wait_incrementing
from tenacity.wait import wait_base

from courier.models import BackoffStrategy, RetryPolicy

DEFAULT_RETRY_DELAY_MS = 60_000


def wait_strategy(strategy: BackoffStrategy, base_delay_ms: float) -> wait_base:
    """Build the tenacity wait strategy for a backoff strategy."""
    if strategy is BackoffStrategy.FIXED:
        return wait_fixed(base_delay_ms)
    if strategy is BackoffStrategy.LINEAR:
        return wait_incrementing(start=base_delay_ms, increment=base_delay_ms)
    if strategy is BackoffStrategy.EXPONENTIAL:
        return wait_exponential(multiplier=base_delay_ms, exp_base=2)
    raise ValueError(f"Unknown backoff strategy: {strategy}")


def compute_retry_delay_ms(
    policy: RetryPolicy,
    attempt: int,
    default_delay_ms: int = DEFAULT_RETRY_DELAY_MS,
) -> float:
    """Delay before the retry that follows failed attempt ``attempt``.

    Args:
        policy: Target's retry policy.
        attempt: 1-indexed number of the attempt that just failed.
        default_delay_ms: Base delay when the policy leaves it unset.

    Returns:
        Delay in milliseconds.
    """
    if attempt < 1:
        raise ValueError(f"attempt must be >= 1, got {attempt}")

    base = policy.base_delay_ms if policy.base_delay_ms is not None else default_delay_ms
    state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})  # type: ignore[arg-type]
    state.attempt_number = attempt
    return float(wait_strategy(policy.strategy, base)(state))
