"""Single source of truth for an identity's role."""

import logging

from canteen_menu_service.models.account_models import Identity, Role
from canteen_menu_service.repositories.base import AccountStore

logger = logging.getLogger(__name__)


async def resolve_role(identity: Identity, account_store: AccountStore) -> Role | None:
    """Resolve the role for an identity.

    The account store wins. The provider's role claim is only consulted when
    no account record exists, so a demotion recorded in the store takes effect
    even while an older token still carries the previous claim.

    Args:
        identity: Identity vouched for by the identity provider
        account_store: Store holding account role records

    Returns:
        The resolved role, or None if neither source has one
    """
    account = await account_store.get_account(identity.uid)
    if account is not None:
        return account.role

    claimed = identity.role_claim
    if claimed is not None:
        logger.debug(f"No account record for {identity.uid}, using role claim {claimed.value}")
    return claimed
