"""Identity provider contract.

The service never stores passwords. Everything credential related goes
through an IdentityProvider, which hands back opaque access tokens and the
identity behind them.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from canteen_menu_service.models.account_models import Identity, Role

GENERIC_SIGN_IN_FAILURE = "Invalid email or password"


@dataclass(frozen=True)
class ProviderTokens:
    """Tokens issued by the provider on a successful sign in.

    Attributes:
        access_token: Bearer token identifying the session
        refresh_token: Token for renewing the session, if issued
        expires_in: Access token lifetime in seconds, if known
    """

    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None


class IdentityProvider(ABC):
    """Abstract identity provider.

    Implementations raise AuthenticationError for bad credentials or tokens,
    always with GENERIC_SIGN_IN_FAILURE for sign in so callers cannot tell
    whether the email or the password was wrong.
    """

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> ProviderTokens:
        """Authenticate with email and password."""

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Identity:
        """Self-register a new identity.

        Raises:
            ConflictError: If the email is already registered
        """

    @abstractmethod
    async def get_identity(self, access_token: str) -> Identity:
        """Resolve the identity (and its claims) behind an access token."""

    @abstractmethod
    async def sign_out(self, access_token: str) -> None:
        """Revoke the session behind an access token."""

    @abstractmethod
    async def send_password_reset(self, email: str) -> None:
        """Send a password reset email. Silent for unknown emails."""

    @abstractmethod
    async def create_user(self, email: str, password: str | None, role: Role) -> Identity:
        """Create an identity on behalf of an admin.

        Without a password the provider sends an invitation instead.

        Raises:
            ConflictError: If the email is already registered
        """

    @abstractmethod
    async def set_role_claim(self, uid: str, role: Role) -> None:
        """Set the role claim carried by the identity's tokens."""

    @abstractmethod
    async def delete_user(self, uid: str) -> None:
        """Delete an identity.

        Raises:
            NotFoundError: If the identity does not exist
        """
