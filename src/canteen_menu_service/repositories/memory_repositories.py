"""In-memory stores for local development and tests."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from canteen_menu_service.exceptions import ConflictError, NotFoundError
from canteen_menu_service.models.account_models import Account, Role
from canteen_menu_service.models.menu_models import CanteenLevel, MenuItem
from canteen_menu_service.repositories.base import AccountStore, MenuItemStore, sort_menu_items
from canteen_menu_service.validation.schemas import MenuItemInput


@dataclass
class InMemoryMenuItemStore(MenuItemStore):
    """Dictionary-backed menu catalog."""

    items: dict[str, MenuItem] = field(default_factory=dict)

    async def list_items(self, level: CanteenLevel | None = None) -> list[MenuItem]:
        matching = [
            item for item in self.items.values() if level is None or item.canteen_level == level
        ]
        return sort_menu_items(matching)

    async def get_item(self, item_id: str) -> MenuItem | None:
        return self.items.get(item_id)

    async def create_item(self, fields: MenuItemInput) -> MenuItem:
        item = MenuItem(
            id=uuid.uuid4().hex,
            name=fields.name,
            price=fields.price,
            category=fields.category,
            canteen_level=fields.canteen_level,
            created_at=datetime.now(UTC),
        )
        self.items[item.id] = item
        return item

    async def replace_item(self, item_id: str, fields: MenuItemInput) -> MenuItem:
        current = self.items.get(item_id)
        if current is None:
            raise NotFoundError(f"Menu item {item_id} not found")

        updated = current.model_copy(
            update={
                "name": fields.name,
                "price": fields.price,
                "category": fields.category,
                "canteen_level": fields.canteen_level,
            }
        )
        self.items[item_id] = updated
        return updated

    async def delete_item(self, item_id: str, must_exist: bool = True) -> None:
        if item_id not in self.items:
            if must_exist:
                raise NotFoundError(f"Menu item {item_id} not found")
            return
        del self.items[item_id]


@dataclass
class InMemoryAccountStore(AccountStore):
    """Dictionary-backed account records keyed by uid."""

    accounts: dict[str, Account] = field(default_factory=dict)

    async def get_account(self, uid: str) -> Account | None:
        return self.accounts.get(uid)

    async def find_by_email(self, email: str) -> Account | None:
        email = email.lower()
        return next((a for a in self.accounts.values() if a.email == email), None)

    async def list_accounts(self) -> list[Account]:
        return sorted(self.accounts.values(), key=lambda account: account.email)

    async def create_account(self, account: Account) -> Account:
        if account.uid in self.accounts:
            raise ConflictError(f"Account {account.uid} already exists")
        self.accounts[account.uid] = account
        return account

    async def update_role(self, uid: str, role: Role, updated_by: str) -> Account:
        current = self._require(uid)
        updated = current.model_copy(
            update={"role": role, "updated_at": datetime.now(UTC), "updated_by": updated_by}
        )
        self.accounts[uid] = updated
        return updated

    async def record_sign_in(self, uid: str, signed_in_at: datetime) -> None:
        current = self._require(uid)
        self.accounts[uid] = current.model_copy(
            update={"last_sign_in_at": signed_in_at, "pending": False}
        )

    async def delete_account(self, uid: str) -> None:
        self._require(uid)
        del self.accounts[uid]

    def _require(self, uid: str) -> Account:
        account = self.accounts.get(uid)
        if account is None:
            raise NotFoundError(f"Account {uid} not found")
        return account
