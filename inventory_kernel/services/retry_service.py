"""
RetryPolicy -- bounded exponential backoff for lock contention.

Responsibility:
    Decides whether a failed attempt may be retried and how long to wait
    first.  Only ContentionError-class failures (lock timeout, deadlock,
    serialization failure, "database is locked") are retryable; business
    errors never are.

Architecture position:
    Kernel > Services.  Used by InventoryOrchestrator around each
    transactional operation.

Invariants enforced:
    MAX_RETRIES -- Safety limit prevents unbounded retry loops regardless
    of configuration.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from inventory_kernel.domain.settings import KernelSettings


@dataclass(frozen=True)
class RetryPolicy:
    """
    Exponential backoff: base * 2**(attempt-1), capped, with up to 10% jitter.

    Contract:
        ``attempt`` counts failed attempts so far (1 after the first
        failure).  An operation runs at most ``max_retries + 1`` times.
    """

    # INVARIANT: Safety limit -- prevents infinite retry loops
    MAX_RETRIES = 10

    max_retries: int = 3
    backoff_base_ms: int = 50
    backoff_max_ms: int = 1000
    jitter: bool = True

    @classmethod
    def from_settings(cls, settings: KernelSettings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            backoff_base_ms=settings.backoff_base_ms,
            backoff_max_ms=settings.backoff_max_ms,
        )

    def should_retry(self, attempt: int) -> bool:
        return attempt <= min(self.max_retries, self.MAX_RETRIES)

    def delay_seconds(self, attempt: int) -> float:
        delay_ms = min(self.backoff_base_ms * (2 ** max(attempt - 1, 0)), self.backoff_max_ms)
        if self.jitter and delay_ms > 0:
            delay_ms += random.uniform(0, delay_ms * 0.1)
        return delay_ms / 1000.0
