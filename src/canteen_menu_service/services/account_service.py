"""Admin management of accounts and roles."""

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from canteen_menu_service.auth.authorization import (
    AccountAction,
    Permission,
    check_account_change,
    require_permission,
)
from canteen_menu_service.auth.identity_provider import IdentityProvider
from canteen_menu_service.auth.recent_auth import RecentAuthTracker
from canteen_menu_service.exceptions import CanteenError, ConflictError, NotFoundError
from canteen_menu_service.models.account_models import Account, Principal
from canteen_menu_service.observability.decorators import traced
from canteen_menu_service.repositories.base import AccountStore
from canteen_menu_service.validation.schemas import validate_create_account, validate_role_update

logger = logging.getLogger(__name__)


class AccountService:
    """Service behind the admin user management screen.

    Every operation needs the MANAGE_ACCOUNTS permission. Role changes and
    deletions additionally need a recent password check and are subject to
    the admin self-protection rules in check_account_change.
    """

    def __init__(
        self,
        account_store: AccountStore,
        identity_provider: IdentityProvider,
        recent_auth: RecentAuthTracker,
    ) -> None:
        """Initialize the AccountService.

        Args:
            account_store: Store holding account role records
            identity_provider: Provider whose users mirror the account records
            recent_auth: Tracker consulted before sensitive operations
        """
        self.account_store = account_store
        self.identity_provider = identity_provider
        self.recent_auth = recent_auth

    async def list_accounts(self, principal: Principal | None) -> list[Account]:
        require_permission(principal, Permission.MANAGE_ACCOUNTS)
        return await self.account_store.list_accounts()

    @traced("accounts.create")
    async def create_account(self, principal: Principal | None, raw: Mapping[str, Any]) -> Account:
        """Create an account on behalf of an admin.

        Without a password the provider emails an invitation and the account
        stays pending until its first sign in.

        Raises:
            ValidationError: If the form is invalid
            ConflictError: If the email is already registered
        """
        principal = require_permission(principal, Permission.MANAGE_ACCOUNTS)
        form = validate_create_account(raw)

        if await self.account_store.find_by_email(form.email) is not None:
            raise ConflictError("An account with this email already exists")

        identity = await self.identity_provider.create_user(form.email, form.password, form.role)
        account = Account(
            uid=identity.uid,
            email=form.email,
            role=form.role,
            created_at=datetime.now(UTC),
            created_by=principal.uid,
            pending=form.password is None,
        )

        try:
            await self.account_store.create_account(account)
        except CanteenError:
            logger.error(f"Account record for {identity.uid} not stored, removing provider user")
            await self.identity_provider.delete_user(identity.uid)
            raise

        logger.info(
            f"Account {account.uid} created as {account.role.value} by {principal.uid}"
            f"{' (invitation sent)' if account.pending else ''}"
        )
        return account

    @traced("accounts.update_role")
    async def update_role(
        self, principal: Principal | None, uid: str, raw: Mapping[str, Any]
    ) -> Account:
        """Change another account's role.

        The account store is updated first and is authoritative; the
        provider's role claim is then synced.

        Raises:
            AuthorizationError: If the target is an admin or the caller themself
            AuthenticationError: If the caller has not re-authenticated recently
            NotFoundError: If uid does not exist
        """
        principal = require_permission(principal, Permission.MANAGE_ACCOUNTS)
        form = validate_role_update(raw)
        target = await self._require_account(uid)
        check_account_change(principal, target, AccountAction.CHANGE_ROLE)
        self.recent_auth.require(principal)

        if target.role == form.role:
            return target

        updated = await self.account_store.update_role(uid, form.role, updated_by=principal.uid)
        try:
            await self.identity_provider.set_role_claim(uid, form.role)
        except CanteenError as e:
            # The stored role still wins; a stale claim only matters without a record.
            logger.warning(f"Role claim for {uid} not synced: {e.message}")

        logger.info(f"Account {uid} role changed to {form.role.value} by {principal.uid}")
        return updated

    @traced("accounts.delete")
    async def delete_account(self, principal: Principal | None, uid: str) -> None:
        """Delete another account and its provider user.

        Raises:
            AuthorizationError: If the target is an admin or the caller themself
            AuthenticationError: If the caller has not re-authenticated recently
            NotFoundError: If uid does not exist
        """
        principal = require_permission(principal, Permission.MANAGE_ACCOUNTS)
        target = await self._require_account(uid)
        check_account_change(principal, target, AccountAction.DELETE)
        self.recent_auth.require(principal)

        try:
            await self.identity_provider.delete_user(uid)
        except NotFoundError:
            logger.warning(f"Provider user {uid} already gone, removing account record only")

        await self.account_store.delete_account(uid)
        logger.info(f"Account {uid} deleted by {principal.uid}")

    async def _require_account(self, uid: str) -> Account:
        account = await self.account_store.get_account(uid)
        if account is None:
            raise NotFoundError(f"Account {uid} not found")
        return account
