"""CRUD facade over the menu catalog."""

import asyncio
import logging
import time
from collections import Counter
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from canteen_menu_service.auth.authorization import Permission, require_permission
from canteen_menu_service.config import DeletePolicy
from canteen_menu_service.exceptions import CanteenError, FieldError, NotFoundError, ValidationError
from canteen_menu_service.models.account_models import Principal
from canteen_menu_service.models.change_models import ChangeEvent, ChangeType
from canteen_menu_service.models.menu_models import CanteenLevel, Category, MenuItem
from canteen_menu_service.observability.decorators import traced
from canteen_menu_service.observability.metrics import (
    record_menu_list_duration,
    record_menu_mutation,
    record_menu_mutation_failure,
)
from canteen_menu_service.repositories.base import MenuItemStore
from canteen_menu_service.services.change_notifier import ChangeNotifier
from canteen_menu_service.validation.schemas import validate_menu_item

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 300.0


@dataclass
class _CachedListing:
    items: list[MenuItem]
    expires_at: float


class MenuService:
    """Service for listing and mutating menu items.

    Every mutation runs the same pipeline: authorize the caller, validate the
    raw input, then call the store while holding the caller's mutation lock.
    A successful mutation invalidates the listing cache and publishes a
    ChangeEvent so live viewers re-fetch.
    """

    def __init__(
        self,
        store: MenuItemStore,
        notifier: ChangeNotifier,
        delete_policy: DeletePolicy = DeletePolicy.STRICT,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the MenuService.

        Args:
            store: Catalog store holding the menu items
            notifier: Notifier receiving a ChangeEvent per successful mutation
            delete_policy: Whether deleting a missing id raises or is a no-op
            cache_ttl_seconds: How long a listing is served from cache; 0 disables it
            clock: Monotonic time source, injectable for tests
        """
        self.store = store
        self.notifier = notifier
        self.delete_policy = delete_policy
        self.cache_ttl_seconds = cache_ttl_seconds
        self._clock = clock
        self._cache: dict[CanteenLevel | None, _CachedListing] = {}
        self._cache_generation = 0
        self._actor_locks: dict[str, asyncio.Lock] = {}
        self._actor_lock_users: Counter[str] = Counter()

    @traced("menu.list")
    async def list_items(
        self,
        level: CanteenLevel | None = None,
        category: Category | None = None,
    ) -> list[MenuItem]:
        """List menu items ordered by (canteen_level, category, name).

        Listings are cached per level until the TTL elapses or any mutation
        goes through this service. Category filtering is applied on top of
        the cached level listing.

        Args:
            level: Optional canteen level filter
            category: Optional category filter

        Returns:
            Matching items, empty list if none exist
        """
        items = await self._cached_listing(level)
        if category is not None:
            items = [item for item in items if item.category == category]
        return list(items)

    @traced("menu.create", attributes={"menu.operation": "create"})
    async def create(self, principal: Principal | None, raw: Mapping[str, Any]) -> MenuItem:
        """Validate and insert a new menu item.

        Raises:
            AuthenticationError: If principal is None
            AuthorizationError: If the principal's role may not manage the menu
            ValidationError: If the input is invalid; the store is never called
        """
        principal = require_permission(principal, Permission.MANAGE_MENU)
        fields = validate_menu_item(raw)

        async with self._actor_lock(principal.uid):
            item = await self._mutate("create", self.store.create_item(fields))

        logger.info(f"Menu item {item.id} created by {principal.uid}")
        self._committed(
            ChangeEvent(change_type=ChangeType.INSERT, item_id=item.id, canteen_level=item.canteen_level)
        )
        record_menu_mutation("create")
        return item

    @traced("menu.update", attributes={"menu.operation": "update"})
    async def update(
        self, principal: Principal | None, item_id: str, raw: Mapping[str, Any]
    ) -> MenuItem:
        """Replace every mutable field of an existing menu item.

        id and created_at are preserved. Concurrent updates from different
        principals are last-write-wins.

        Raises:
            AuthenticationError: If principal is None
            AuthorizationError: If the principal's role may not manage the menu
            ValidationError: If the id or the input is invalid
            NotFoundError: If item_id does not exist
        """
        principal = require_permission(principal, Permission.MANAGE_MENU)
        item_id = _require_id(item_id)
        fields = validate_menu_item(raw)

        async with self._actor_lock(principal.uid):
            previous = await self._mutate("update", self.store.get_item(item_id))
            if previous is None:
                raise self._not_found("update", item_id)
            item = await self._mutate("update", self.store.replace_item(item_id, fields))

        logger.info(f"Menu item {item.id} updated by {principal.uid}")
        self._committed(
            ChangeEvent(
                change_type=ChangeType.UPDATE,
                item_id=item.id,
                canteen_level=item.canteen_level,
                previous_level=previous.canteen_level,
            )
        )
        record_menu_mutation("update")
        return item

    @traced("menu.delete", attributes={"menu.operation": "delete"})
    async def delete(self, principal: Principal | None, item_id: str) -> bool:
        """Delete a menu item by id.

        Returns:
            True if an item was deleted, False if it was already absent and the
            delete policy is IDEMPOTENT

        Raises:
            AuthenticationError: If principal is None
            AuthorizationError: If the principal's role may not manage the menu
            NotFoundError: If item_id does not exist and the policy is STRICT
        """
        principal = require_permission(principal, Permission.MANAGE_MENU)
        item_id = _require_id(item_id)
        strict = self.delete_policy == DeletePolicy.STRICT

        async with self._actor_lock(principal.uid):
            previous = await self._mutate("delete", self.store.get_item(item_id))
            if previous is None:
                if strict:
                    raise self._not_found("delete", item_id)
                logger.info(f"Delete of absent menu item {item_id} by {principal.uid} was a no-op")
                return False
            await self._mutate("delete", self.store.delete_item(item_id, must_exist=strict))

        logger.info(f"Menu item {item_id} deleted by {principal.uid}")
        self._committed(
            ChangeEvent(
                change_type=ChangeType.DELETE, item_id=item_id, canteen_level=previous.canteen_level
            )
        )
        record_menu_mutation("delete")
        return True

    def invalidate_cache(self) -> None:
        self._cache.clear()
        self._cache_generation += 1

    async def _cached_listing(self, level: CanteenLevel | None) -> list[MenuItem]:
        now = self._clock()
        cached = self._cache.get(level)
        if cached is not None and cached.expires_at > now:
            return cached.items

        generation = self._cache_generation
        started = time.perf_counter()
        items = await self.store.list_items(level)
        record_menu_list_duration(level.value if level else "all", time.perf_counter() - started)

        # A mutation committed while the store call was in flight makes this listing stale.
        if self.cache_ttl_seconds > 0 and generation == self._cache_generation:
            self._cache[level] = _CachedListing(items=items, expires_at=now + self.cache_ttl_seconds)
        return items

    async def _mutate(self, operation: str, call: Any) -> Any:
        try:
            return await call
        except CanteenError as e:
            logger.warning(f"Menu {operation} failed with {e.error_code}: {e.message}")
            record_menu_mutation_failure(operation, e.error_code)
            raise

    @asynccontextmanager
    async def _actor_lock(self, uid: str) -> AsyncIterator[None]:
        """Hold the per-principal mutation lock, dropping it once no caller needs it."""
        lock = self._actor_locks.setdefault(uid, asyncio.Lock())
        self._actor_lock_users[uid] += 1
        try:
            async with lock:
                yield
        finally:
            self._actor_lock_users[uid] -= 1
            if self._actor_lock_users[uid] <= 0:
                del self._actor_lock_users[uid]
                del self._actor_locks[uid]

    def _not_found(self, operation: str, item_id: str) -> NotFoundError:
        error = NotFoundError(f"Menu item {item_id} not found")
        logger.warning(f"Menu {operation} failed with {error.error_code}: {error.message}")
        record_menu_mutation_failure(operation, error.error_code)
        return error

    def _committed(self, event: ChangeEvent) -> None:
        self.invalidate_cache()
        self.notifier.publish(event)


def _require_id(item_id: str | None) -> str:
    item_id = (item_id or "").strip()
    if not item_id:
        raise ValidationError([FieldError(field="id", message="Item id is required")])
    return item_id
