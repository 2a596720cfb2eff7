"""Running delivery counters per target."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from courier.models import DeliveryStats, utc_now


@dataclass
class _Counters:
    total_calls: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_duration_ms: float = 0.0
    last_called: datetime | None = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def snapshot(self, target_id: str) -> DeliveryStats:
        average = self.total_duration_ms / self.total_calls if self.total_calls else 0.0
        return DeliveryStats(
            target_id=target_id,
            total_calls=self.total_calls,
            success_count=self.success_count,
            failure_count=self.failure_count,
            total_duration_ms=self.total_duration_ms,
            average_duration_ms=average,
            last_called=self.last_called,
        )


class StatsTracker:
    """Tracks success/failure counts and latency for each target.

    Counters are created lazily on the first recorded attempt. Each target's
    counters carry their own lock, so updates for different targets never
    contend.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._counters: dict[str, _Counters] = {}

    def record(self, target_id: str, success: bool, duration_ms: float) -> DeliveryStats:
        """Record one delivery attempt.

        Args:
            target_id: Target the attempt was for.
            success: Whether the attempt succeeded.
            duration_ms: Time spent on the attempt.

        Returns:
            Snapshot of the target's stats after the update.
        """
        counters = self._counters.get(target_id)
        if counters is None:
            counters = self._counters.setdefault(target_id, _Counters())

        with counters.lock:
            counters.total_calls += 1
            if success:
                counters.success_count += 1
            else:
                counters.failure_count += 1
            counters.total_duration_ms += duration_ms
            counters.last_called = self._clock()
            return counters.snapshot(target_id)

    def get(self, target_id: str) -> DeliveryStats:
        """Stats for a target; zeroed if nothing has been recorded yet."""
        counters = self._counters.get(target_id)
        if counters is None:
            return DeliveryStats(target_id=target_id)
        with counters.lock:
            return counters.snapshot(target_id)

    def discard(self, target_id: str) -> None:
        """Drop a target's counters."""
        self._counters.pop(target_id, None)
