"""Role-based authorization checks.

Checks run before any store call; a failed check never reaches the backend.
"""

import logging
from enum import Enum

from canteen_menu_service.exceptions import AuthenticationError, AuthorizationError
from canteen_menu_service.models.account_models import Account, Principal, Role

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    MANAGE_MENU = "manage_menu"
    MANAGE_ACCOUNTS = "manage_accounts"


ROLE_PERMISSIONS: dict[Role, frozenset[Permission]] = {
    Role.ADMIN: frozenset({Permission.MANAGE_MENU, Permission.MANAGE_ACCOUNTS}),
    Role.CONTENT_MANAGER: frozenset({Permission.MANAGE_MENU}),
}


class AccountAction(str, Enum):
    CHANGE_ROLE = "change_role"
    DELETE = "delete"


def has_permission(role: Role | None, permission: Permission) -> bool:
    """Return True if the role grants the permission. A missing role grants nothing."""
    if role is None:
        return False
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def require_permission(principal: Principal | None, permission: Permission) -> Principal:
    """Ensure the caller holds a permission.

    Args:
        principal: The caller, or None for an anonymous request
        permission: Permission the operation needs

    Returns:
        The principal, for chaining

    Raises:
        AuthenticationError: If there is no authenticated caller
        AuthorizationError: If the caller's role lacks the permission
    """
    if principal is None:
        raise AuthenticationError("Sign in required")

    if not has_permission(principal.role, permission):
        logger.warning(
            f"Denied {permission.value} for {principal.uid} with role "
            f"{principal.role.value if principal.role else 'none'}"
        )
        raise AuthorizationError(
            "You do not have permission to perform this action",
            details={"required_permission": permission.value},
        )

    return principal


def check_account_change(principal: Principal, target: Account, action: AccountAction) -> None:
    """Guard changes one account makes to another.

    Admins may not modify or delete other admins, may not change their own
    role and may not delete their own account.

    Raises:
        AuthorizationError: If the change is not allowed
    """
    if target.uid == principal.uid:
        if action == AccountAction.DELETE:
            raise AuthorizationError("You cannot delete your own account")
        raise AuthorizationError("You cannot change your own role")

    if target.role == Role.ADMIN:
        if action == AccountAction.DELETE:
            raise AuthorizationError("Cannot delete another admin")
        raise AuthorizationError("Cannot modify another admin's role")
