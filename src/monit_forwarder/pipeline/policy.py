from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable

from ..errors import is_transient_dial_error

ErrorClassifier = Callable[[BaseException], bool]


def default_retry_classifier(exc: BaseException) -> bool:
    """Retry only the closed set of transient dial conditions."""
    return is_transient_dial_error(exc)


@dataclass
class RetryPolicy:
    """Dial retry budget with capped exponential backoff.

    `max_attempts` counts every dial, including the first. Backoff is
    applied only between attempts, never after the last one.
    """

    max_attempts: int = 6
    initial_backoff_ms: int = 100
    max_backoff_ms: int = 5000
    backoff_multiplier: float = 2.0
    jitter: bool = True
    classify_retryable: ErrorClassifier = field(default=default_retry_classifier)

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be > 0")
        if self.initial_backoff_ms < 0 or self.max_backoff_ms < 0:
            raise ValueError("backoff must be >= 0")

    def next_backoff_ms(self, attempt: int) -> int:
        """Delay after failed attempt number `attempt` (1-based)."""
        raw = self.initial_backoff_ms * (self.backoff_multiplier ** max(0, attempt - 1))
        capped = int(min(raw, self.max_backoff_ms))
        if self.jitter and capped > 0:
            # 50%..100% of the capped value
            return random.randint(capped // 2, capped)
        return capped
