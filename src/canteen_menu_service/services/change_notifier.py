"""In-process fan-out of catalog change events to live viewers."""

import asyncio
import logging
from collections.abc import AsyncIterator

from canteen_menu_service.models.change_models import ChangeEvent
from canteen_menu_service.models.menu_models import CanteenLevel
from canteen_menu_service.observability.metrics import record_subscription_change

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100


class Subscription:
    """A live feed of change events, optionally scoped to one canteen level.

    Iterate it with ``async for``; iteration ends after cancel(). The owner is
    responsible for cancelling it exactly once, further calls are no-ops.
    """

    def __init__(
        self,
        notifier: "ChangeNotifier",
        level: CanteenLevel | None,
        max_queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self.level = level
        self._notifier = notifier
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=max_queue_size)
        self._cancelled = False
        self.dropped = 0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def deliver(self, event: ChangeEvent) -> None:
        """Queue an event without blocking; the oldest event goes when full."""
        if self._cancelled or not event.affects(self.level):
            return

        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._notifier.unsubscribe(self)

        # Wake a pending consumer so its iteration ends.
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def get(self, timeout: float | None = None) -> ChangeEvent | None:
        """Wait for the next event.

        Returns:
            The next event, or None once cancelled or when timeout elapses
        """
        if self._cancelled and self._queue.empty():
            return None
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except TimeoutError:
            return None

    def __aiter__(self) -> AsyncIterator[ChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ChangeEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class ChangeNotifier:
    """Publishes ChangeEvents to every open Subscription."""

    def __init__(self, max_queue_size: int = DEFAULT_QUEUE_SIZE) -> None:
        self.max_queue_size = max_queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, level: CanteenLevel | None = None) -> Subscription:
        """Open a subscription for changes at one level, or all levels if None."""
        subscription = Subscription(self, level, self.max_queue_size)
        self._subscriptions.add(subscription)
        record_subscription_change(1)
        logger.debug(f"Live subscription opened for {level.value if level else 'all levels'}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
            record_subscription_change(-1)

    def publish(self, event: ChangeEvent) -> None:
        """Fan an event out to every subscription. Never blocks the publisher."""
        for subscription in list(self._subscriptions):
            subscription.deliver(event)
