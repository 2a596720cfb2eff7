"""Lifecycle notification bus.

Publishing never blocks: notifications go onto a bounded asyncio queue and
a background pump task fans them out to subscribers. A slow or failing
observer delays only other observers, never delivery.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable, Iterable

from courier.models import Notification, NotificationKind

logger = logging.getLogger(__name__)

Handler = Callable[[Notification], Awaitable[None] | None]


class NotificationBus:
    """Fan-out of lifecycle notifications to any number of observers.

    Handlers may be plain functions or coroutine functions. Exceptions
    raised by a handler are logged and counted; they never reach the
    publisher.

    Example:
        ```python
        bus = NotificationBus()

        async def alert(notification: Notification) -> None:
            ...

        unsubscribe = bus.subscribe(alert, kinds={NotificationKind.RETRY_EXHAUSTED})
        ```
    """

    def __init__(self, max_queue: int = 1000) -> None:
        self._queue: asyncio.Queue[Notification] = asyncio.Queue(maxsize=max_queue)
        self._subscribers: list[tuple[frozenset[NotificationKind] | None, Handler]] = []
        self._pump: asyncio.Task[None] | None = None
        self._dropped = 0
        self._error_counts: dict[NotificationKind, int] = defaultdict(int)

    def subscribe(
        self,
        handler: Handler,
        kinds: Iterable[NotificationKind] | None = None,
    ) -> Callable[[], None]:
        """Register a handler.

        Args:
            handler: Called with each matching notification.
            kinds: Kinds to receive. None receives everything.

        Returns:
            Callable that removes the subscription.
        """
        entry = (frozenset(kinds) if kinds is not None else None, handler)
        self._subscribers.append(entry)

        def unsubscribe() -> None:
            if entry in self._subscribers:
                self._subscribers.remove(entry)

        return unsubscribe

    def publish(self, notification: Notification) -> None:
        """Queue a notification for delivery to subscribers."""
        try:
            self._queue.put_nowait(notification)
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(
                "Notification queue full, dropping %s for %s",
                notification.kind.value,
                notification.target_id,
            )
            return
        self._ensure_pump()

    def _ensure_pump(self) -> None:
        if self._pump is not None and not self._pump.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Picked up by the next publish or drain made inside a running loop
            return
        self._pump = loop.create_task(self._run())

    async def _run(self) -> None:
        while True:
            notification = await self._queue.get()
            try:
                await self._deliver(notification)
            finally:
                self._queue.task_done()

    async def _deliver(self, notification: Notification) -> None:
        for kinds, handler in list(self._subscribers):
            if kinds is not None and notification.kind not in kinds:
                continue
            try:
                result = handler(notification)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                self._error_counts[notification.kind] += 1
                logger.exception(
                    "Notification handler failed for %s", notification.kind.value
                )

    async def drain(self) -> None:
        """Wait until every queued notification has been handled."""
        self._ensure_pump()
        await self._queue.join()

    async def close(self) -> None:
        """Drain pending notifications and stop the pump."""
        await self.drain()
        if self._pump is not None:
            self._pump.cancel()
            try:
                await self._pump
            except asyncio.CancelledError:
                pass
            self._pump = None

    @property
    def dropped(self) -> int:
        """Notifications dropped because the queue was full."""
        return self._dropped

    def get_error_counts(self) -> dict[NotificationKind, int]:
        """Handler failures per notification kind."""
        return dict(self._error_counts)
