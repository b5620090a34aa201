"""Retry policy for listing calls: bounded exponential backoff with full jitter."""

from __future__ import annotations

import random
from collections.abc import Callable
from dataclasses import dataclass, field

from s3manifest.core.errors import TransientFetchError


def full_jitter(cap: float) -> float:
    """Pick a delay uniformly in [0, cap]."""
    return random.uniform(0.0, cap)


def is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientFetchError)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try a listing call and how long to wait between tries."""

    max_attempts: int = 5
    base_delay_s: float = 0.1
    max_delay_s: float = 5.0
    jitter: Callable[[float], float] = field(default=full_jitter, compare=False)
    is_retryable: Callable[[BaseException], bool] = field(default=is_transient, compare=False)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_s < 0 or self.max_delay_s < 0:
            raise ValueError("retry delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Backoff after the `attempt`-th failure (1-based)."""
        cap = min(self.max_delay_s, self.base_delay_s * (2 ** (attempt - 1)))
        return self.jitter(cap)
