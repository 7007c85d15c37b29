"""
Retry policy: exponential backoff with bounded jitter.

Pure functions; the only source of nondeterminism is the injectable ``rng``.

    delay = min(max_delay_ms, base_delay_ms * 2 ** (attempt - 1))
    delay += delay * jitter_ratio * rng()        # jitter in [0, delay * ratio)
"""

from __future__ import annotations

import random
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

NON_RETRYABLE_CLASSES: frozenset[str] = frozenset({"auth", "missing_key"})


class RetryPolicy(BaseModel):
    """Attempt budget and backoff shape for one loader operation."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay_ms: int = Field(default=250, ge=0)
    max_delay_ms: int = Field(default=5000, ge=0)
    jitter_ratio: float = Field(default=0.2, ge=0.0)


DEFAULT_RETRY_POLICY = RetryPolicy()


class RetryState(BaseModel):
    """Attempt bookkeeping for one operation.  ``next_retry_ms`` is set only while retries remain."""

    model_config = ConfigDict(frozen=True)

    attempts: int = 0
    retried: bool = False
    next_retry_ms: int | None = None

    def to_meta(self) -> dict[str, object]:
        meta: dict[str, object] = {"attempts": self.attempts, "retried": self.retried}
        if self.next_retry_ms is not None:
            meta["nextRetryMs"] = self.next_retry_ms
        return meta


def is_retryable_error_class(kind: str | None) -> bool:
    """Return False for missing classes and for ``auth`` / ``missing_key``."""
    if not kind:
        return False
    return kind not in NON_RETRYABLE_CLASSES


def compute_retry_delay_ms(
    attempt: int,
    policy: RetryPolicy | None = None,
    rng: Callable[[], float] = random.random,
) -> int:
    """Return the backoff delay (ms) to wait after failed ``attempt`` (1-based)."""
    p = policy or DEFAULT_RETRY_POLICY
    exp_delay = min(p.max_delay_ms, p.base_delay_ms * 2 ** max(0, attempt - 1))
    jitter = exp_delay * p.jitter_ratio * rng()
    return max(0, round(exp_delay + jitter))


def merge_retry_states(states: list[RetryState]) -> RetryState:
    """Combine per-call retry states: max attempts, any retried."""
    attempts = 0
    retried = False
    for state in states:
        attempts = max(attempts, state.attempts)
        retried = retried or state.retried
    return RetryState(attempts=attempts, retried=retried)
