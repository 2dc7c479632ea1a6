"""Unit tests for LiveMenuView."""

import asyncio

import pytest

from canteen_menu_service.models.account_models import Principal
from canteen_menu_service.models.change_models import ChangeType
from canteen_menu_service.models.menu_models import CanteenLevel, Category
from canteen_menu_service.repositories.memory_repositories import InMemoryMenuItemStore
from canteen_menu_service.services.change_notifier import ChangeNotifier
from canteen_menu_service.services.live_menu_view import LiveMenuView
from canteen_menu_service.services.menu_service import MenuService


@pytest.fixture
def notifier() -> ChangeNotifier:
    return ChangeNotifier()


@pytest.fixture
def menu_service(notifier: ChangeNotifier) -> MenuService:
    return MenuService(InMemoryMenuItemStore(), notifier)


def _form(name: str, level: str = "Level 1", category: str = "Main Course") -> dict:
    return {"name": name, "price": "3.00", "category": category, "canteenLevel": level}


@pytest.mark.unit
class TestLiveMenuView:
    """Test suite for LiveMenuView subscriptions and snapshots."""

    @pytest.mark.asyncio
    async def test_open_returns_initial_snapshot(
        self, menu_service: MenuService, notifier: ChangeNotifier, admin_principal: Principal
    ) -> None:
        """Test that opening subscribes once and lists the selected level."""
        await menu_service.create(admin_principal, _form("Laksa"))
        await menu_service.create(admin_principal, _form("Satay", level="Level 2"))
        view = LiveMenuView(menu_service, notifier)

        snapshot = await view.open()

        assert snapshot.level == CanteenLevel.LEVEL_1
        assert snapshot.trigger is None
        assert [item.name for item in snapshot.items] == ["Laksa"]
        assert notifier.subscriber_count == 1
        view.close()

    @pytest.mark.asyncio
    async def test_change_triggers_refetch(
        self, menu_service: MenuService, notifier: ChangeNotifier, admin_principal: Principal
    ) -> None:
        """Test that a change at the level yields a fresh snapshot."""
        async with LiveMenuView(menu_service, notifier) as view:
            snapshots = view.snapshots()
            item = await menu_service.create(admin_principal, _form("Laksa"))

            snapshot = await asyncio.wait_for(anext(snapshots), timeout=1)

        assert snapshot is not None
        assert snapshot.trigger is not None
        assert snapshot.trigger.change_type == ChangeType.INSERT
        assert snapshot.trigger.item_id == item.id
        assert [i.name for i in snapshot.items] == ["Laksa"]

    @pytest.mark.asyncio
    async def test_other_level_changes_ignored(
        self, menu_service: MenuService, notifier: ChangeNotifier, admin_principal: Principal
    ) -> None:
        """Test that changes on another level produce only keepalives."""
        async with LiveMenuView(menu_service, notifier) as view:
            snapshots = view.snapshots(keepalive_seconds=0.01)
            await menu_service.create(admin_principal, _form("Satay", level="Level 2"))

            assert await asyncio.wait_for(anext(snapshots), timeout=1) is None

    @pytest.mark.asyncio
    async def test_select_level_replaces_subscription(
        self, menu_service: MenuService, notifier: ChangeNotifier, admin_principal: Principal
    ) -> None:
        """Test that switching level never holds two subscriptions."""
        await menu_service.create(admin_principal, _form("Satay", level="Level 2"))
        view = LiveMenuView(menu_service, notifier)
        await view.open()
        first = view.subscription

        snapshot = await view.select_level(CanteenLevel.LEVEL_2)

        assert first is not None and first.cancelled
        assert view.subscription is not first
        assert notifier.subscriber_count == 1
        assert [item.name for item in snapshot.items] == ["Satay"]
        view.close()

    @pytest.mark.asyncio
    async def test_category_filter_applies_to_snapshots(
        self, menu_service: MenuService, notifier: ChangeNotifier, admin_principal: Principal
    ) -> None:
        """Test that the category filter narrows the listing."""
        await menu_service.create(admin_principal, _form("Laksa"))
        await menu_service.create(admin_principal, _form("Chendol", category="Dessert"))
        view = LiveMenuView(menu_service, notifier, category=Category.DESSERT)

        snapshot = await view.open()
        view.select_category(None)
        unfiltered = await view.refresh()
        view.close()

        assert [item.name for item in snapshot.items] == ["Chendol"]
        assert len(unfiltered.items) == 2

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self, menu_service: MenuService, notifier: ChangeNotifier) -> None:
        """Test that closing the view stops the snapshot stream."""
        view = LiveMenuView(menu_service, notifier)
        await view.open()
        received = []

        async def consume() -> None:
            async for snapshot in view.snapshots():
                received.append(snapshot)

        consumer = asyncio.create_task(consume())
        await asyncio.sleep(0)
        view.close()
        await asyncio.wait_for(consumer, timeout=1)

        assert received == []
        assert notifier.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_snapshots_before_open_rejected(
        self, menu_service: MenuService, notifier: ChangeNotifier
    ) -> None:
        """Test that iterating an unopened view is an error."""
        view = LiveMenuView(menu_service, notifier)

        with pytest.raises(RuntimeError):
            await anext(view.snapshots())

    @pytest.mark.asyncio
    async def test_snapshot_api_shape(self, menu_service: MenuService, notifier: ChangeNotifier) -> None:
        """Test the JSON shape sent to live viewers."""
        async with LiveMenuView(menu_service, notifier, level=CanteenLevel.LEVEL_3) as view:
            snapshot = await view.refresh()

        body = snapshot.to_api_dict()

        assert body["level"] == "Level 3"
        assert body["category"] is None
        assert body["items"] == []
        assert body["change"] is None
        assert "takenAt" in body
