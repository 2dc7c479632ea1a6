"""Account, identity and session models.

Accounts are the role records stored alongside the catalog; identities are
what the identity provider vouches for. The two are joined by uid.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    """Account roles. CONTENT_MANAGER is the lowest privilege."""

    ADMIN = "admin"
    CONTENT_MANAGER = "content_manager"


LOWEST_PRIVILEGE_ROLE = Role.CONTENT_MANAGER
ROLES: tuple[str, ...] = tuple(r.value for r in Role)


class Account(BaseModel):
    """Role record for an identity.

    Stored in DynamoDB with uid as partition key.
    """

    uid: str = Field(..., description="Identity provider subject")
    email: str = Field(..., description="Lowercase-normalized email address")
    role: Role = Field(..., description="Exactly one role per account")
    created_at: datetime = Field(..., description="Creation timestamp")
    created_by: str = Field(..., description="uid of the creator, or 'system'")
    pending: bool = Field(default=False, description="Invitation not yet claimed")
    updated_at: datetime | None = Field(None, description="Last role change")
    updated_by: str | None = Field(None, description="uid of the last role changer")
    last_sign_in_at: datetime | None = Field(None, description="Most recent sign in")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "uid": self.uid,
            "email": self.email,
            "role": self.role.value,
            "created_at": self.created_at.isoformat(),
            "created_by": self.created_by,
            "pending": self.pending,
        }

        if self.updated_at is not None:
            item["updated_at"] = self.updated_at.isoformat()

        if self.updated_by is not None:
            item["updated_by"] = self.updated_by

        if self.last_sign_in_at is not None:
            item["last_sign_in_at"] = self.last_sign_in_at.isoformat()

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Account":
        """Create Account from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Account: Parsed model instance
        """
        data: dict[str, Any] = {
            "uid": item["uid"],
            "email": item["email"],
            "role": Role(item["role"]),
            "created_at": datetime.fromisoformat(item["created_at"]),
            "created_by": item.get("created_by", "system"),
            "pending": bool(item.get("pending", False)),
        }

        if "updated_at" in item:
            data["updated_at"] = datetime.fromisoformat(item["updated_at"])

        if "updated_by" in item:
            data["updated_by"] = item["updated_by"]

        if "last_sign_in_at" in item:
            data["last_sign_in_at"] = datetime.fromisoformat(item["last_sign_in_at"])

        return cls(**data)


class Identity(BaseModel):
    """An authenticated identity as reported by the identity provider."""

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str
    claims: dict[str, str] = Field(default_factory=dict)

    @property
    def role_claim(self) -> Role | None:
        """Role carried by the provider's token claims, if any is recognised."""
        value = self.claims.get("role")
        if value in ROLES:
            return Role(value)
        return None


class Principal(BaseModel):
    """The caller of an operation: an identity plus its resolved role.

    role is None for an authenticated identity with neither a role record nor
    a role claim; such a principal may read but not mutate.
    """

    model_config = ConfigDict(frozen=True)

    uid: str
    email: str
    role: Role | None = None


class SessionState(str, Enum):
    """Lifecycle of an admin session."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    SIGNED_OUT = "signed_out"


class AuthSession(BaseModel):
    """Client-facing session state.

    Only AUTHENTICATED sessions carry an identity, role and access token.
    """

    state: SessionState = SessionState.ANONYMOUS
    identity: Identity | None = None
    role: Role | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED
