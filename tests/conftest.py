"""Shared pytest fixtures and configuration for all tests."""

import os

# main.py builds the real application on import unless running under test.
os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import Callable  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402

from canteen_menu_service.auth.memory_provider import InMemoryIdentityProvider  # noqa: E402
from canteen_menu_service.config import CatalogBackend, IdentityBackend, Settings  # noqa: E402
from canteen_menu_service.context import AppContext  # noqa: E402
from canteen_menu_service.models.account_models import Account, Principal, Role  # noqa: E402
from canteen_menu_service.models.menu_models import CanteenLevel, Category, MenuItem  # noqa: E402
from canteen_menu_service.repositories.memory_repositories import (  # noqa: E402
    InMemoryAccountStore,
    InMemoryMenuItemStore,
)


@pytest.fixture
def fried_rice_input() -> dict:
    """Fixture providing a valid menu item form submission."""
    return {
        "name": "  Fried Rice  ",
        "price": "5.50",
        "category": "Main Course",
        "canteenLevel": "Level 1",
    }


@pytest.fixture
def sample_menu_item() -> MenuItem:
    """Fixture providing a stored menu item."""
    return MenuItem(
        id="item_1",
        name="Fried Rice",
        price=Decimal("5.50"),
        category=Category.MAIN_COURSE,
        canteen_level=CanteenLevel.LEVEL_1,
        created_at=datetime(2024, 1, 15, 10, 30, tzinfo=UTC),
    )


@pytest.fixture
def admin_principal() -> Principal:
    """Fixture providing a signed-in admin."""
    return Principal(uid="admin_1", email="admin@canteen.edu", role=Role.ADMIN)


@pytest.fixture
def manager_principal() -> Principal:
    """Fixture providing a signed-in content manager."""
    return Principal(uid="manager_1", email="manager@canteen.edu", role=Role.CONTENT_MANAGER)


@pytest.fixture
def roleless_principal() -> Principal:
    """Fixture providing an authenticated identity with no role."""
    return Principal(uid="visitor_1", email="visitor@canteen.edu", role=None)


def _make_account(uid: str, email: str, role: Role, **overrides: object) -> Account:
    data: dict = {
        "uid": uid,
        "email": email,
        "role": role,
        "created_at": datetime(2024, 1, 1, tzinfo=UTC),
        "created_by": "system",
    }
    data.update(overrides)
    return Account(**data)


@pytest.fixture
def make_account() -> Callable[..., Account]:
    """Fixture providing a factory for account records with fixed timestamps."""
    return _make_account


@pytest.fixture
def test_settings() -> Settings:
    """Fixture providing settings for a fully in-memory deployment."""
    return Settings(
        environment="test",
        catalog_backend=CatalogBackend.MEMORY,
        identity_backend=IdentityBackend.MEMORY,
    )


@pytest.fixture
def identity_provider() -> InMemoryIdentityProvider:
    """Fixture providing an in-memory identity provider with one admin and one manager."""
    provider = InMemoryIdentityProvider()
    provider.add_user("admin@canteen.edu", "AdminPass1", Role.ADMIN, uid="admin_1")
    provider.add_user("manager@canteen.edu", "ManagerPass1", Role.CONTENT_MANAGER, uid="manager_1")
    return provider


@pytest.fixture
def app_context(test_settings: Settings, identity_provider: InMemoryIdentityProvider) -> AppContext:
    """Fixture providing a context wired over in-memory stores."""
    return AppContext.build(
        test_settings, InMemoryMenuItemStore(), InMemoryAccountStore(), identity_provider
    )
