"""In-memory delivery log.

An observer of the notification bus that keeps the most recent delivery
attempts per target, for debugging and audit. Durable persistence belongs
to a separate subscriber.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable

from courier.models import DeliveryLogEntry, Notification, NotificationKind
from courier.notifications import NotificationBus

_ATTEMPT_KINDS = frozenset(
    {
        NotificationKind.DELIVERED,
        NotificationKind.FAILED,
        NotificationKind.RATE_LIMITED,
    }
)


class DeliveryLog:
    """Bounded per-target history of delivery attempts.

    Args:
        max_entries: Entries kept per target; older ones are evicted.
    """

    def __init__(self, max_entries: int = 100) -> None:
        self._max_entries = max_entries
        self._entries: dict[str, deque[DeliveryLogEntry]] = {}
        self._lock = threading.Lock()

    def attach(self, bus: NotificationBus) -> Callable[[], None]:
        """Subscribe to a bus. Returns the unsubscribe callable."""
        return bus.subscribe(
            self.handle,
            kinds=_ATTEMPT_KINDS | {NotificationKind.UNREGISTERED},
        )

    def handle(self, notification: Notification) -> None:
        if notification.target_id is None:
            return
        if notification.kind is NotificationKind.UNREGISTERED:
            self.discard(notification.target_id)
            return
        if notification.kind not in _ATTEMPT_KINDS:
            return

        data = notification.data
        entry = DeliveryLogEntry(
            target_id=notification.target_id,
            event=notification.event or "",
            success=notification.kind is NotificationKind.DELIVERED,
            attempt=data.get("attempt", 1),
            status_code=data.get("status_code"),
            duration_ms=data.get("duration_ms", 0.0),
            error=data.get("error"),
            timestamp=notification.timestamp,
        )
        with self._lock:
            entries = self._entries.get(notification.target_id)
            if entries is None:
                entries = deque(maxlen=self._max_entries)
                self._entries[notification.target_id] = entries
            entries.append(entry)

    def entries(self, target_id: str, limit: int = 100) -> list[DeliveryLogEntry]:
        """Most recent entries for a target, oldest first."""
        with self._lock:
            entries = list(self._entries.get(target_id, ()))
        if limit <= 0:
            return []
        return entries[-limit:]

    def discard(self, target_id: str) -> None:
        with self._lock:
            self._entries.pop(target_id, None)
