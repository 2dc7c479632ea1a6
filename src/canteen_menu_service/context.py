"""Explicitly constructed application context.

Built once at start-up in main.py and attached to the FastAPI app state;
nothing in the service reaches for module-level singletons.
"""

from dataclasses import dataclass, field

from canteen_menu_service.auth.identity_provider import IdentityProvider
from canteen_menu_service.auth.recent_auth import RecentAuthTracker
from canteen_menu_service.config import Settings
from canteen_menu_service.repositories.base import AccountStore, MenuItemStore
from canteen_menu_service.services.account_service import AccountService
from canteen_menu_service.services.auth_service import AuthService
from canteen_menu_service.services.change_notifier import ChangeNotifier
from canteen_menu_service.services.error_service import ErrorService
from canteen_menu_service.services.menu_service import MenuService


@dataclass
class AppContext:
    """Everything a request handler needs, wired together.

    Attributes:
        settings: Settings the context was built from
        menu_store: Catalog store for menu items
        account_store: Store for account role records
        identity_provider: Credential and token authority
        notifier: Fan-out of catalog change events
        menu_service: CRUD facade over menu_store
        auth_service: Sign in, sign up and principal resolution
        account_service: Admin account management
        error_service: Error normalization for the HTTP layer
    """

    settings: Settings
    menu_store: MenuItemStore
    account_store: AccountStore
    identity_provider: IdentityProvider
    notifier: ChangeNotifier
    menu_service: MenuService
    auth_service: AuthService
    account_service: AccountService
    error_service: ErrorService = field(default_factory=ErrorService)

    @classmethod
    def build(
        cls,
        settings: Settings,
        menu_store: MenuItemStore,
        account_store: AccountStore,
        identity_provider: IdentityProvider,
    ) -> "AppContext":
        """Wire services on top of the given stores and identity provider."""
        notifier = ChangeNotifier(max_queue_size=settings.live_queue_size)
        recent_auth = RecentAuthTracker(window_seconds=settings.recent_auth_window_seconds)

        return cls(
            settings=settings,
            menu_store=menu_store,
            account_store=account_store,
            identity_provider=identity_provider,
            notifier=notifier,
            menu_service=MenuService(
                store=menu_store,
                notifier=notifier,
                delete_policy=settings.delete_policy,
                cache_ttl_seconds=settings.menu_cache_ttl_seconds,
            ),
            auth_service=AuthService(identity_provider, account_store, recent_auth),
            account_service=AccountService(account_store, identity_provider, recent_auth),
        )
