"""Live public menu view.

A LiveMenuView is what one public viewer holds: the selected canteen level,
exactly one change subscription for that level, and the latest snapshot of
the listing. Every change event triggers a full re-fetch, so dropped or
duplicated events never leave the viewer with stale data for long.
"""

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime

from canteen_menu_service.models.change_models import ChangeEvent
from canteen_menu_service.models.menu_models import DEFAULT_LEVEL, CanteenLevel, Category, MenuItem
from canteen_menu_service.services.change_notifier import ChangeNotifier, Subscription
from canteen_menu_service.services.menu_service import MenuService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MenuSnapshot:
    """The listing a viewer should render.

    Attributes:
        level: Canteen level the listing is filtered on
        category: Category filter, None for every category
        items: Items in listing order
        trigger: The change event that caused the re-fetch, None for the initial load
        taken_at: When the listing was fetched
    """

    level: CanteenLevel
    category: Category | None
    items: list[MenuItem]
    trigger: ChangeEvent | None = None
    taken_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_api_dict(self) -> dict:
        return {
            "level": self.level.value,
            "category": self.category.value if self.category else None,
            "items": [item.to_api_dict() for item in self.items],
            "change": self.trigger.model_dump(mode="json") if self.trigger else None,
            "takenAt": self.taken_at.isoformat(),
        }


class LiveMenuView:
    """One viewer's live menu listing.

    Use as an async context manager, or call open() and close() explicitly.
    """

    def __init__(
        self,
        menu_service: MenuService,
        notifier: ChangeNotifier,
        level: CanteenLevel = DEFAULT_LEVEL,
        category: Category | None = None,
    ) -> None:
        self.menu_service = menu_service
        self.notifier = notifier
        self._level = level
        self.category = category
        self._subscription: Subscription | None = None

    @property
    def level(self) -> CanteenLevel:
        return self._level

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    async def open(self) -> MenuSnapshot:
        """Subscribe to the selected level and fetch the initial listing."""
        if self._subscription is None:
            self._subscription = self.notifier.subscribe(self._level)
        return await self.refresh()

    async def select_level(self, level: CanteenLevel) -> MenuSnapshot:
        """Switch to another level.

        The previous subscription is cancelled before the new one opens, so a
        viewer never holds two at once.
        """
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

        logger.debug(f"Live view switching from {self._level.value} to {level.value}")
        self._level = level
        return await self.open()

    def select_category(self, category: Category | None) -> None:
        self.category = category

    async def refresh(self, trigger: ChangeEvent | None = None) -> MenuSnapshot:
        items = await self.menu_service.list_items(self._level, self.category)
        return MenuSnapshot(level=self._level, category=self.category, items=items, trigger=trigger)

    async def snapshots(self, keepalive_seconds: float | None = None) -> AsyncIterator[MenuSnapshot | None]:
        """Yield a fresh snapshot after every change event.

        Args:
            keepalive_seconds: If set, yield None whenever this long passes
                without an event, so a transport can send a heartbeat

        Iteration follows select_level() and ends after close().

        Yields:
            A snapshot per event, or None as a keepalive tick
        """
        if self._subscription is None:
            raise RuntimeError("LiveMenuView.open() must be called before iterating snapshots")

        while self._subscription is not None:
            subscription = self._subscription
            event = await subscription.get(timeout=keepalive_seconds)
            if event is not None:
                yield await self.refresh(trigger=event)
            elif not subscription.cancelled:
                yield None

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None

    async def __aenter__(self) -> "LiveMenuView":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
