"""Process-wide checkout counters for observability."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutStatsSnapshot:
    """Point-in-time view of the checkout counters."""

    total_created: int
    total_completed: int
    total_failed: int


class CheckoutStats:
    """Thread-safe monotonically increasing checkout counters.

    Counters are not tied to any stored session, so they keep counting after
    sessions expire. They reset only when a new instance is created.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._created = 0
        self._completed = 0
        self._failed = 0

    def record_created(self) -> None:
        with self._lock:
            self._created += 1

    def record_completed(self) -> None:
        with self._lock:
            self._completed += 1

    def record_failed(self) -> None:
        with self._lock:
            self._failed += 1

    def snapshot(self) -> CheckoutStatsSnapshot:
        """Read all counters under one lock acquisition."""
        with self._lock:
            return CheckoutStatsSnapshot(
                total_created=self._created,
                total_completed=self._completed,
                total_failed=self._failed,
            )


# Global singleton instance
_checkout_stats: CheckoutStats | None = None


def get_checkout_stats() -> CheckoutStats:
    """Get or create the global checkout stats instance."""
    global _checkout_stats
    if _checkout_stats is None:
        _checkout_stats = CheckoutStats()
        logger.debug("Checkout stats initialized")
    return _checkout_stats
