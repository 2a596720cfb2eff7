"""Per-target fixed-window rate limiting.

Each target gets a small counter struct with its own lock. A window opens
on the first admission check, and the count resets only once a full window
has elapsed. Bursts of up to twice the limit across a window boundary are
possible with a fixed window and are accepted.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from courier.models import RateLimitPolicy

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 60_000


@dataclass
class _Window:
    """Counter state for one target."""

    start_ms: float
    count: int = 0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class RateLimiter:
    """Admits or rejects delivery attempts per target.

    Args:
        clock: Monotonic clock returning seconds.
        default_window_ms: Window used when a policy leaves window_ms unset.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        default_window_ms: int = DEFAULT_WINDOW_MS,
    ) -> None:
        self._clock = clock
        self._default_window_ms = default_window_ms
        self._windows: dict[str, _Window] = {}

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _window_for(self, target_id: str) -> _Window:
        window = self._windows.get(target_id)
        if window is None:
            window = self._windows.setdefault(target_id, _Window(start_ms=self._now_ms()))
        return window

    def _window_ms(self, policy: RateLimitPolicy) -> int:
        return policy.window_ms if policy.window_ms is not None else self._default_window_ms

    def admit(self, target_id: str, policy: RateLimitPolicy | None) -> bool:
        """Decide whether a delivery attempt may proceed.

        Args:
            target_id: Target being delivered to.
            policy: Target's rate-limit policy. None always admits.

        Returns:
            True if admitted (and counted), False if the window is full.
        """
        if policy is None:
            return True

        window_ms = self._window_ms(policy)
        window = self._window_for(target_id)

        with window.lock:
            now = self._now_ms()
            if now - window.start_ms >= window_ms:
                window.start_ms = now
                window.count = 0

            if window.count >= policy.max_calls:
                logger.debug(
                    "Rate limit reached for %s (%d/%d)", target_id, window.count, policy.max_calls
                )
                return False

            window.count += 1
            return True

    def retry_after_ms(self, target_id: str, policy: RateLimitPolicy | None) -> int:
        """Milliseconds until the target's current window closes (0 if open)."""
        if policy is None:
            return 0
        window = self._windows.get(target_id)
        if window is None:
            return 0
        with window.lock:
            remaining = self._window_ms(policy) - (self._now_ms() - window.start_ms)
        return max(0, int(remaining))

    def discard(self, target_id: str) -> None:
        """Drop a target's window state."""
        self._windows.pop(target_id, None)
