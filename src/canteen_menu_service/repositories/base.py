"""Storage interfaces for the menu catalog and account records.

Concrete stores (DynamoDB, the remote /menu REST endpoint, in-memory) must
inherit from these classes. Unlike lookups, which return None for a missing
record, mutations raise NotFoundError so the facade can report a stale id.
Backend failures surface as BackendUnavailableError or PermissionDeniedError,
never as an empty result.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from canteen_menu_service.models.account_models import Account, Role
from canteen_menu_service.models.menu_models import CanteenLevel, MenuItem
from canteen_menu_service.validation.schemas import MenuItemInput


def sort_menu_items(items: list[MenuItem]) -> list[MenuItem]:
    """Order items by canteen level, then category, then name (all ascending)."""
    return sorted(items, key=lambda item: item.sort_key())


class MenuItemStore(ABC):
    """Abstract catalog store for menu items."""

    @abstractmethod
    async def list_items(self, level: CanteenLevel | None = None) -> list[MenuItem]:
        """List items ordered by (canteen_level, category, name).

        Args:
            level: Optional canteen level filter

        Returns:
            list: Matching items, empty list if none exist
        """

    @abstractmethod
    async def get_item(self, item_id: str) -> MenuItem | None:
        """Fetch a single item, or None if it does not exist."""

    @abstractmethod
    async def create_item(self, fields: MenuItemInput) -> MenuItem:
        """Insert a new item. The store assigns id and created_at.

        Args:
            fields: Validated item fields

        Returns:
            MenuItem: The stored item
        """

    @abstractmethod
    async def replace_item(self, item_id: str, fields: MenuItemInput) -> MenuItem:
        """Replace every mutable field of an item, keeping id and created_at.

        Raises:
            NotFoundError: If item_id does not exist
        """

    @abstractmethod
    async def delete_item(self, item_id: str, must_exist: bool = True) -> None:
        """Delete an item by id.

        Args:
            item_id: Item to delete
            must_exist: Raise NotFoundError when the item is missing; when False
                a missing item is a no-op

        Raises:
            NotFoundError: If must_exist and item_id does not exist
        """


class AccountStore(ABC):
    """Abstract store for account role records."""

    @abstractmethod
    async def get_account(self, uid: str) -> Account | None:
        """Fetch an account by uid, or None if no record exists."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Account | None:
        """Fetch an account by lowercase email, or None."""

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """List all accounts ordered by email."""

    @abstractmethod
    async def create_account(self, account: Account) -> Account:
        """Insert a new account record.

        Raises:
            ConflictError: If a record with the same uid exists
        """

    @abstractmethod
    async def update_role(self, uid: str, role: Role, updated_by: str) -> Account:
        """Change an account's role.

        Raises:
            NotFoundError: If uid does not exist
        """

    @abstractmethod
    async def record_sign_in(self, uid: str, signed_in_at: datetime) -> None:
        """Record a successful sign in and clear the pending flag.

        Raises:
            NotFoundError: If uid does not exist
        """

    @abstractmethod
    async def delete_account(self, uid: str) -> None:
        """Delete an account record.

        Raises:
            NotFoundError: If uid does not exist
        """
