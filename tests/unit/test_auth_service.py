"""Unit tests for AuthService and the session state machine."""

from unittest.mock import AsyncMock

import pytest

from canteen_menu_service.auth.identity_provider import GENERIC_SIGN_IN_FAILURE, ProviderTokens
from canteen_menu_service.auth.memory_provider import InMemoryIdentityProvider
from canteen_menu_service.auth.recent_auth import RecentAuthTracker
from canteen_menu_service.exceptions import (
    AuthenticationError,
    BackendUnavailableError,
    ConflictError,
    ValidationError,
)
from canteen_menu_service.models.account_models import (
    AuthSession,
    Identity,
    Principal,
    Role,
    SessionState,
)
from canteen_menu_service.repositories.memory_repositories import InMemoryAccountStore
from canteen_menu_service.services.auth_service import AuthService, transition

ADMIN_CREDENTIALS = {"email": "admin@canteen.edu", "password": "AdminPass1"}
NEW_USER_FORM = {
    "email": "New.Cook@Canteen.edu",
    "password": "CookPass1",
    "confirmPassword": "CookPass1",
}


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def recent_auth() -> RecentAuthTracker:
    return RecentAuthTracker()


@pytest.fixture
def auth_service(
    identity_provider: InMemoryIdentityProvider,
    account_store: InMemoryAccountStore,
    recent_auth: RecentAuthTracker,
) -> AuthService:
    return AuthService(identity_provider, account_store, recent_auth)


@pytest.mark.unit
class TestSessionTransitions:
    """Test suite for the session state machine."""

    def test_allowed_path(self) -> None:
        """Test anonymous to authenticated to signed out and back."""
        session = AuthSession()

        session = transition(session, SessionState.AUTHENTICATING)
        session = transition(session, SessionState.AUTHENTICATED)
        session = transition(session, SessionState.SIGNED_OUT)
        session = transition(session, SessionState.AUTHENTICATING)

        assert session.state == SessionState.AUTHENTICATING

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            (SessionState.ANONYMOUS, SessionState.AUTHENTICATED),
            (SessionState.ANONYMOUS, SessionState.SIGNED_OUT),
            (SessionState.AUTHENTICATED, SessionState.AUTHENTICATING),
            (SessionState.SIGNED_OUT, SessionState.AUTHENTICATED),
        ],
    )
    def test_disallowed_transitions(self, start: SessionState, target: SessionState) -> None:
        """Test that shortcuts through the state machine are rejected."""
        with pytest.raises(AuthenticationError) as exc_info:
            transition(AuthSession(state=start), target)

        assert exc_info.value.error_code == "INVALID_SESSION_TRANSITION"


@pytest.mark.unit
class TestSignIn:
    """Test suite for AuthService.sign_in."""

    @pytest.mark.asyncio
    async def test_sign_in_bootstraps_account_from_claim(
        self, auth_service: AuthService, account_store: InMemoryAccountStore
    ) -> None:
        """Test that the first sign in creates the role record from the provider claim."""
        session = await auth_service.sign_in(ADMIN_CREDENTIALS)

        assert session.is_authenticated
        assert session.role == Role.ADMIN
        assert session.access_token
        assert session.identity is not None and session.identity.uid == "admin_1"

        account = await account_store.get_account("admin_1")
        assert account is not None
        assert account.role == Role.ADMIN
        assert account.created_by == "system"
        assert account.last_sign_in_at is not None

    @pytest.mark.asyncio
    async def test_stored_role_wins_over_claim(
        self, auth_service: AuthService, account_store: InMemoryAccountStore, make_account
    ) -> None:
        """Test that a demotion recorded in the store beats a stale admin claim."""
        await account_store.create_account(make_account("admin_1", "admin@canteen.edu", Role.CONTENT_MANAGER))

        session = await auth_service.sign_in(ADMIN_CREDENTIALS)

        assert session.role == Role.CONTENT_MANAGER

    @pytest.mark.asyncio
    async def test_wrong_password_gives_generic_error(self, auth_service: AuthService) -> None:
        """Test that bad credentials never reveal which part was wrong."""
        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.sign_in({"email": "admin@canteen.edu", "password": "nope"})

        assert exc_info.value.message == GENERIC_SIGN_IN_FAILURE

    @pytest.mark.asyncio
    async def test_invalid_form_never_reaches_provider(self, account_store: InMemoryAccountStore) -> None:
        """Test that form validation runs before the provider."""
        provider = AsyncMock()
        service = AuthService(provider, account_store)

        with pytest.raises(ValidationError) as exc_info:
            await service.sign_in({"email": "not-an-email", "password": "x"})

        assert exc_info.value.field == "email"
        provider.sign_in.assert_not_called()

    @pytest.mark.asyncio
    async def test_sign_in_from_authenticated_session_rejected(self, auth_service: AuthService) -> None:
        """Test that an already authenticated session cannot sign in again."""
        session = await auth_service.sign_in(ADMIN_CREDENTIALS)

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.sign_in(ADMIN_CREDENTIALS, session)

        assert exc_info.value.error_code == "INVALID_SESSION_TRANSITION"

    @pytest.mark.asyncio
    async def test_sign_in_marks_recent_authentication(
        self, auth_service: AuthService, recent_auth: RecentAuthTracker
    ) -> None:
        """Test that a password sign in counts as a recent password check."""
        await auth_service.sign_in(ADMIN_CREDENTIALS)

        assert recent_auth.is_recent("admin_1")


@pytest.mark.unit
class TestSignUp:
    """Test suite for AuthService.sign_up."""

    @pytest.mark.asyncio
    async def test_sign_up_creates_lowest_privilege_account(
        self, auth_service: AuthService, account_store: InMemoryAccountStore
    ) -> None:
        """Test that self-registration yields a content manager session."""
        result = await auth_service.sign_up(NEW_USER_FORM)

        assert result.account.email == "new.cook@canteen.edu"
        assert result.account.role == Role.CONTENT_MANAGER
        assert result.account.created_by == result.account.uid
        assert result.session.is_authenticated
        assert result.session.role == Role.CONTENT_MANAGER
        assert await account_store.get_account(result.account.uid) is not None

    @pytest.mark.asyncio
    async def test_sign_up_duplicate_email(self, auth_service: AuthService) -> None:
        """Test that an existing email is a conflict."""
        await auth_service.sign_up(NEW_USER_FORM)

        with pytest.raises(ConflictError):
            await auth_service.sign_up(NEW_USER_FORM)

    @pytest.mark.asyncio
    async def test_sign_up_password_mismatch(self, auth_service: AuthService) -> None:
        """Test that the confirmation must match."""
        with pytest.raises(ValidationError) as exc_info:
            await auth_service.sign_up({**NEW_USER_FORM, "confirmPassword": "Different1"})

        assert exc_info.value.message == "Passwords don't match"

    @pytest.mark.asyncio
    async def test_sign_up_removes_provider_user_when_account_not_stored(
        self, identity_provider: InMemoryIdentityProvider
    ) -> None:
        """Test that a failed role record write leaves no orphaned provider user."""
        account_store = AsyncMock()
        account_store.create_account.side_effect = BackendUnavailableError("Account table unavailable")
        service = AuthService(identity_provider, account_store)

        with pytest.raises(BackendUnavailableError):
            await service.sign_up(NEW_USER_FORM)

        with pytest.raises(AuthenticationError):
            await identity_provider.sign_in("new.cook@canteen.edu", "CookPass1")
        retried = await AuthService(identity_provider, InMemoryAccountStore()).sign_up(NEW_USER_FORM)
        assert retried.session.is_authenticated

    @pytest.mark.asyncio
    async def test_sign_up_pending_confirmation_returns_anonymous_session(
        self, account_store: InMemoryAccountStore
    ) -> None:
        """Test that a provider requiring email confirmation leaves the session anonymous."""
        provider = AsyncMock()
        provider.sign_up.return_value = Identity(uid="cook_1", email="new.cook@canteen.edu")
        provider.sign_in.side_effect = AuthenticationError("User is not confirmed")
        service = AuthService(provider, account_store)

        result = await service.sign_up(NEW_USER_FORM)

        assert result.account.uid == "cook_1"
        assert result.session.state == SessionState.ANONYMOUS


@pytest.mark.unit
class TestSessionOperations:
    """Test suite for sign out, password reset, re-authentication and principal resolution."""

    @pytest.mark.asyncio
    async def test_sign_out_revokes_token(
        self, auth_service: AuthService, recent_auth: RecentAuthTracker
    ) -> None:
        """Test that a signed out token no longer resolves."""
        session = await auth_service.sign_in(ADMIN_CREDENTIALS)
        assert session.access_token is not None

        signed_out = await auth_service.sign_out(session.access_token, session)

        assert signed_out.state == SessionState.SIGNED_OUT
        assert signed_out.access_token is None
        assert not recent_auth.is_recent("admin_1")
        with pytest.raises(AuthenticationError):
            await auth_service.resolve_principal(session.access_token)

    @pytest.mark.asyncio
    async def test_sign_out_from_anonymous_session_rejected(self, auth_service: AuthService) -> None:
        """Test that an anonymous session cannot sign out."""
        with pytest.raises(AuthenticationError):
            await auth_service.sign_out("token", AuthSession())

    @pytest.mark.asyncio
    async def test_password_reset_is_silent_for_unknown_email(
        self, auth_service: AuthService, identity_provider: InMemoryIdentityProvider
    ) -> None:
        """Test that reset requests complete the same way for any email."""
        await auth_service.request_password_reset({"email": "nobody@canteen.edu"})
        await auth_service.request_password_reset({"email": "Admin@Canteen.edu"})

        assert identity_provider.password_resets == ["admin@canteen.edu"]

    @pytest.mark.asyncio
    async def test_reauthenticate(
        self, auth_service: AuthService, recent_auth: RecentAuthTracker, admin_principal: Principal
    ) -> None:
        """Test that the correct password refreshes the recent-auth mark."""
        session = await auth_service.reauthenticate(admin_principal, {"password": "AdminPass1"})

        assert session.is_authenticated
        assert session.role == Role.ADMIN
        assert recent_auth.is_recent("admin_1")

    @pytest.mark.asyncio
    async def test_reauthenticate_wrong_password(
        self, auth_service: AuthService, recent_auth: RecentAuthTracker, admin_principal: Principal
    ) -> None:
        """Test that a wrong password fails with a dedicated code."""
        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.reauthenticate(admin_principal, {"password": "wrong"})

        assert exc_info.value.error_code == "REAUTHENTICATION_FAILED"
        assert not recent_auth.is_recent("admin_1")

    @pytest.mark.asyncio
    async def test_resolve_principal_falls_back_to_claim(
        self, account_store: InMemoryAccountStore
    ) -> None:
        """Test that an identity without a record resolves from its claim."""
        provider = AsyncMock()
        provider.get_identity.return_value = Identity(
            uid="u1", email="u1@canteen.edu", claims={"role": "admin"}
        )
        service = AuthService(provider, account_store)

        principal = await service.resolve_principal("token")

        assert principal == Principal(uid="u1", email="u1@canteen.edu", role=Role.ADMIN)

    @pytest.mark.asyncio
    async def test_resolve_principal_without_any_role(self, account_store: InMemoryAccountStore) -> None:
        """Test that an identity with neither record nor claim has no role."""
        provider = AsyncMock()
        provider.get_identity.return_value = Identity(uid="u2", email="u2@canteen.edu")
        service = AuthService(provider, account_store)

        principal = await service.resolve_principal("token")

        assert principal.role is None

    @pytest.mark.asyncio
    async def test_provider_tokens_carried_into_session(self, account_store: InMemoryAccountStore) -> None:
        """Test that refresh token and expiry from the provider reach the session."""
        provider = AsyncMock()
        provider.sign_in.return_value = ProviderTokens(
            access_token="access", refresh_token="refresh", expires_in=3600
        )
        provider.get_identity.return_value = Identity(uid="u3", email="u3@canteen.edu")
        service = AuthService(provider, account_store)

        session = await service.sign_in({"email": "u3@canteen.edu", "password": "pw"})

        assert session.access_token == "access"
        assert session.refresh_token == "refresh"
        assert session.expires_in == 3600
        assert session.role == Role.CONTENT_MANAGER
