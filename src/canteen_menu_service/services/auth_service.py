"""Authentication flows and the session state machine."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from canteen_menu_service.auth.identity_provider import IdentityProvider, ProviderTokens
from canteen_menu_service.auth.recent_auth import RecentAuthTracker
from canteen_menu_service.auth.role_resolver import resolve_role
from canteen_menu_service.exceptions import AuthenticationError, CanteenError
from canteen_menu_service.models.account_models import (
    LOWEST_PRIVILEGE_ROLE,
    Account,
    AuthSession,
    Identity,
    Principal,
    SessionState,
)
from canteen_menu_service.observability.decorators import traced
from canteen_menu_service.observability.metrics import record_auth_failure
from canteen_menu_service.repositories.base import AccountStore
from canteen_menu_service.validation.schemas import (
    validate_password_reset,
    validate_reauthenticate,
    validate_sign_in,
    validate_sign_up,
)

logger = logging.getLogger(__name__)

REAUTHENTICATION_FAILURE = "Reauthentication failed. Please check your password."

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.ANONYMOUS: frozenset({SessionState.AUTHENTICATING}),
    SessionState.AUTHENTICATING: frozenset({SessionState.AUTHENTICATED, SessionState.ANONYMOUS}),
    SessionState.AUTHENTICATED: frozenset({SessionState.SIGNED_OUT}),
    SessionState.SIGNED_OUT: frozenset({SessionState.AUTHENTICATING}),
}


def transition(session: AuthSession, target: SessionState) -> AuthSession:
    """Move a session to the target state.

    Raises:
        AuthenticationError: If the transition is not allowed from the current state
    """
    if target not in ALLOWED_TRANSITIONS[session.state]:
        raise AuthenticationError(
            f"Cannot move session from {session.state.value} to {target.value}",
            error_code="INVALID_SESSION_TRANSITION",
        )
    return session.model_copy(update={"state": target})


@dataclass
class SignUpResult:
    """Outcome of self-registration.

    Attributes:
        account: The role record created for the new identity
        session: Authenticated session, or an anonymous one if the provider
            requires the email to be confirmed before the first sign in
    """

    account: Account
    session: AuthSession


class AuthService:
    """Sign in, sign up, sign out and role resolution.

    The service never stores passwords; credentials are checked by the
    identity provider and role records live in the account store.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        account_store: AccountStore,
        recent_auth: RecentAuthTracker | None = None,
    ) -> None:
        """Initialize the AuthService.

        Args:
            identity_provider: Provider verifying credentials and issuing tokens
            account_store: Store holding account role records
            recent_auth: Tracker updated on every successful password check
        """
        self.identity_provider = identity_provider
        self.account_store = account_store
        self.recent_auth = recent_auth or RecentAuthTracker()

    @traced("auth.sign_in")
    async def sign_in(
        self, raw: Mapping[str, Any], session: AuthSession | None = None
    ) -> AuthSession:
        """Authenticate with email and password.

        Args:
            raw: Raw form input with email and password
            session: Current client session, anonymous if omitted

        Returns:
            An AUTHENTICATED session carrying tokens, identity and role

        Raises:
            ValidationError: If the form is invalid; the provider is not called
            AuthenticationError: With a generic message if the credentials are wrong
        """
        credentials = validate_sign_in(raw)
        session = transition(session or AuthSession(), SessionState.AUTHENTICATING)

        try:
            tokens = await self.identity_provider.sign_in(credentials.email, credentials.password)
        except AuthenticationError:
            record_auth_failure("sign_in")
            raise

        return await self._establish(session, tokens)

    @traced("auth.sign_up")
    async def sign_up(self, raw: Mapping[str, Any]) -> SignUpResult:
        """Self-register and sign in with the lowest-privilege role.

        Raises:
            ValidationError: If the form is invalid; the provider is not called
            ConflictError: If the email is already registered
        """
        form = validate_sign_up(raw)
        identity = await self.identity_provider.sign_up(form.email, form.password)

        try:
            account = await self.account_store.create_account(
                Account(
                    uid=identity.uid,
                    email=identity.email,
                    role=LOWEST_PRIVILEGE_ROLE,
                    created_at=datetime.now(UTC),
                    created_by=identity.uid,
                )
            )
        except CanteenError:
            logger.error(f"Account record for {identity.uid} not stored, removing provider user")
            await self.identity_provider.delete_user(identity.uid)
            raise

        logger.info(f"Account {account.uid} registered as {account.role.value}")

        try:
            session = await self.sign_in({"email": form.email, "password": form.password})
        except AuthenticationError as e:
            logger.info(f"Account {account.uid} must confirm its email before signing in: {e.message}")
            session = AuthSession()

        return SignUpResult(account=account, session=session)

    async def bootstrap(self, identity: Identity) -> Account:
        """Return the identity's role record, creating it on first login.

        A new record takes the provider's role claim if one is present,
        otherwise the lowest-privilege role.
        """
        account = await self.account_store.get_account(identity.uid)
        if account is not None:
            return account

        role = identity.role_claim or LOWEST_PRIVILEGE_ROLE
        logger.info(f"Bootstrapping account {identity.uid} with role {role.value}")
        return await self.account_store.create_account(
            Account(
                uid=identity.uid,
                email=identity.email,
                role=role,
                created_at=datetime.now(UTC),
                created_by="system",
            )
        )

    @traced("auth.sign_out")
    async def sign_out(self, access_token: str, session: AuthSession | None = None) -> AuthSession:
        """Revoke the provider session.

        Returns:
            A SIGNED_OUT session with no identity or tokens

        Raises:
            AuthenticationError: If the session is not authenticated
        """
        session = session or AuthSession(state=SessionState.AUTHENTICATED, access_token=access_token)
        transition(session, SessionState.SIGNED_OUT)

        identity = await self.identity_provider.get_identity(access_token)
        await self.identity_provider.sign_out(access_token)
        self.recent_auth.forget(identity.uid)

        logger.info(f"Account {identity.uid} signed out")
        return AuthSession(state=SessionState.SIGNED_OUT)

    async def request_password_reset(self, raw: Mapping[str, Any]) -> None:
        """Send a password reset email.

        Completes the same way whether or not the email is registered.
        """
        form = validate_password_reset(raw)
        await self.identity_provider.send_password_reset(form.email)

    @traced("auth.reauthenticate")
    async def reauthenticate(self, principal: Principal, raw: Mapping[str, Any]) -> AuthSession:
        """Confirm the signed-in principal's password before a sensitive operation.

        Raises:
            ValidationError: If the password is missing
            AuthenticationError: If the password is wrong
        """
        form = validate_reauthenticate(raw)
        try:
            tokens = await self.identity_provider.sign_in(principal.email, form.password)
        except AuthenticationError as e:
            record_auth_failure("reauthenticate")
            raise AuthenticationError(REAUTHENTICATION_FAILURE, error_code="REAUTHENTICATION_FAILED") from e

        self.recent_auth.mark(principal.uid)
        return AuthSession(
            state=SessionState.AUTHENTICATED,
            identity=Identity(uid=principal.uid, email=principal.email),
            role=principal.role,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        )

    async def resolve_principal(self, access_token: str) -> Principal:
        """Resolve the caller behind an access token.

        Raises:
            AuthenticationError: If the token is invalid or expired
        """
        identity = await self.identity_provider.get_identity(access_token)
        role = await resolve_role(identity, self.account_store)
        return Principal(uid=identity.uid, email=identity.email, role=role)

    async def describe(self, principal: Principal) -> Account | None:
        return await self.account_store.get_account(principal.uid)

    async def _establish(self, session: AuthSession, tokens: ProviderTokens) -> AuthSession:
        identity = await self.identity_provider.get_identity(tokens.access_token)
        account = await self.bootstrap(identity)
        await self.account_store.record_sign_in(identity.uid, datetime.now(UTC))
        self.recent_auth.mark(identity.uid)

        logger.info(f"Account {identity.uid} signed in as {account.role.value}")
        return transition(session, SessionState.AUTHENTICATED).model_copy(
            update={
                "identity": identity,
                "role": account.role,
                "access_token": tokens.access_token,
                "refresh_token": tokens.refresh_token,
                "expires_in": tokens.expires_in,
            }
        )
