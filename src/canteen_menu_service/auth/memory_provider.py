"""In-process identity provider for local development and tests."""

import hashlib
import hmac
import logging
import secrets
import uuid
from dataclasses import dataclass, field

from canteen_menu_service.auth.identity_provider import (
    GENERIC_SIGN_IN_FAILURE,
    IdentityProvider,
    ProviderTokens,
)
from canteen_menu_service.exceptions import AuthenticationError, ConflictError, NotFoundError
from canteen_menu_service.models.account_models import Identity, Role

logger = logging.getLogger(__name__)

_HASH_ITERATIONS = 100_000
TOKEN_LIFETIME_SECONDS = 3600


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, _HASH_ITERATIONS)


@dataclass
class _User:
    uid: str
    email: str
    salt: bytes
    password_hash: bytes | None
    claims: dict[str, str] = field(default_factory=dict)

    def check_password(self, password: str) -> bool:
        if self.password_hash is None:
            return False
        return hmac.compare_digest(self.password_hash, _hash_password(password, self.salt))


class InMemoryIdentityProvider(IdentityProvider):
    """Dictionary-backed users and opaque random access tokens.

    Invited users (created without a password) cannot sign in until a
    password is set with set_password, mirroring the invitation flow.
    """

    def __init__(self) -> None:
        self._users: dict[str, _User] = {}
        self._tokens: dict[str, str] = {}
        self.password_resets: list[str] = []

    def add_user(
        self, email: str, password: str | None, role: Role | None = None, uid: str | None = None
    ) -> Identity:
        """Register a user directly, e.g. a bootstrap admin."""
        email = email.lower()
        if self._find(email) is not None:
            raise ConflictError("An account with this email already exists")

        salt = secrets.token_bytes(16)
        user = _User(
            uid=uid or uuid.uuid4().hex,
            email=email,
            salt=salt,
            password_hash=_hash_password(password, salt) if password is not None else None,
            claims={"role": role.value} if role is not None else {},
        )
        self._users[user.uid] = user
        return self._identity(user)

    def set_password(self, uid: str, password: str) -> None:
        user = self._require(uid)
        user.password_hash = _hash_password(password, user.salt)

    async def sign_in(self, email: str, password: str) -> ProviderTokens:
        user = self._find(email.lower())
        if user is None or not user.check_password(password):
            raise AuthenticationError(GENERIC_SIGN_IN_FAILURE)

        token = secrets.token_urlsafe(32)
        self._tokens[token] = user.uid
        return ProviderTokens(access_token=token, expires_in=TOKEN_LIFETIME_SECONDS)

    async def sign_up(self, email: str, password: str) -> Identity:
        return self.add_user(email, password)

    async def get_identity(self, access_token: str) -> Identity:
        uid = self._tokens.get(access_token)
        if uid is None or uid not in self._users:
            raise AuthenticationError("Your session has expired, please sign in again")
        return self._identity(self._users[uid])

    async def sign_out(self, access_token: str) -> None:
        uid = self._tokens.pop(access_token, None)
        if uid is None:
            return
        # Global sign out: every session of the user ends.
        self._tokens = {token: owner for token, owner in self._tokens.items() if owner != uid}

    async def send_password_reset(self, email: str) -> None:
        if self._find(email.lower()) is None:
            logger.info("Password reset requested for an unknown account")
            return
        self.password_resets.append(email.lower())

    async def create_user(self, email: str, password: str | None, role: Role) -> Identity:
        return self.add_user(email, password, role)

    async def set_role_claim(self, uid: str, role: Role) -> None:
        self._require(uid).claims["role"] = role.value

    async def delete_user(self, uid: str) -> None:
        self._require(uid)
        del self._users[uid]
        self._tokens = {token: owner for token, owner in self._tokens.items() if owner != uid}

    def _find(self, email: str) -> _User | None:
        return next((user for user in self._users.values() if user.email == email), None)

    def _require(self, uid: str) -> _User:
        user = self._users.get(uid)
        if user is None:
            raise NotFoundError(f"User {uid} not found")
        return user

    def _identity(self, user: _User) -> Identity:
        return Identity(uid=user.uid, email=user.email, claims=dict(user.claims))
