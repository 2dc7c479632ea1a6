"""Service configuration loaded from environment variables.

Settings are read once at process start and shared read-only afterwards
through the AppContext built in main.py.
"""

import os
from enum import Enum

from pydantic import BaseModel, Field


class CatalogBackend(str, Enum):
    """Where menu items and accounts are persisted."""

    DYNAMODB = "dynamodb"
    HTTP = "http"
    MEMORY = "memory"


class IdentityBackend(str, Enum):
    """Who verifies credentials and issues access tokens."""

    COGNITO = "cognito"
    MEMORY = "memory"


class DeletePolicy(str, Enum):
    """Behaviour when deleting an id that does not exist.

    STRICT raises NotFoundError, IDEMPOTENT treats the delete as a no-op.
    """

    STRICT = "strict"
    IDEMPOTENT = "idempotent"


class Settings(BaseModel):
    """Runtime settings for the canteen menu service."""

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    catalog_backend: CatalogBackend = Field(default=CatalogBackend.DYNAMODB)
    delete_policy: DeletePolicy = Field(default=DeletePolicy.STRICT)

    aws_region: str = Field(default="us-east-1")
    dynamodb_endpoint: str | None = Field(default=None)
    menu_table: str = Field(default="menu_items")
    users_table: str = Field(default="users")

    menu_api_base_url: str | None = Field(default=None)
    menu_api_key: str | None = Field(default=None)

    cognito_user_pool_id: str | None = Field(default=None)
    cognito_client_id: str | None = Field(default=None)
    identity_backend: IdentityBackend = Field(default=IdentityBackend.COGNITO)
    cognito_endpoint: str | None = Field(default=None)
    bootstrap_admin_email: str | None = Field(default=None)
    bootstrap_admin_password: str | None = Field(default=None, repr=False)

    menu_cache_ttl_seconds: float = Field(default=300.0, ge=0)
    recent_auth_window_seconds: float = Field(default=300.0, ge=0)
    live_queue_size: int = Field(default=100, gt=0)
    live_keepalive_seconds: float = Field(default=15.0, gt=0)

    otel_enabled: bool = Field(default=False)

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8001)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment.

        Returns:
            Settings populated from environment variables, defaults otherwise

        Raises:
            pydantic.ValidationError: If an enum-valued variable has an unknown value
        """
        return cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            catalog_backend=os.getenv("CATALOG_BACKEND", CatalogBackend.DYNAMODB.value).lower(),
            delete_policy=os.getenv("MENU_DELETE_POLICY", DeletePolicy.STRICT.value).lower(),
            aws_region=os.getenv("AWS_REGION", "us-east-1"),
            dynamodb_endpoint=os.getenv("DYNAMODB_ENDPOINT") or None,
            menu_table=os.getenv("DYNAMODB_MENU_TABLE", "menu_items"),
            users_table=os.getenv("DYNAMODB_USERS_TABLE", "users"),
            menu_api_base_url=os.getenv("MENU_API_BASE_URL") or None,
            menu_api_key=os.getenv("MENU_API_KEY") or None,
            cognito_user_pool_id=os.getenv("COGNITO_USER_POOL_ID") or None,
            cognito_client_id=os.getenv("COGNITO_CLIENT_ID") or None,
            identity_backend=os.getenv("IDENTITY_BACKEND", IdentityBackend.COGNITO.value).lower(),
            cognito_endpoint=os.getenv("COGNITO_ENDPOINT") or None,
            bootstrap_admin_email=os.getenv("BOOTSTRAP_ADMIN_EMAIL") or None,
            bootstrap_admin_password=os.getenv("BOOTSTRAP_ADMIN_PASSWORD") or None,
            menu_cache_ttl_seconds=float(os.getenv("MENU_CACHE_TTL_SECONDS", "300")),
            recent_auth_window_seconds=float(os.getenv("RECENT_AUTH_WINDOW_SECONDS", "300")),
            live_queue_size=int(os.getenv("LIVE_QUEUE_SIZE", "100")),
            live_keepalive_seconds=float(os.getenv("LIVE_KEEPALIVE_SECONDS", "15")),
            otel_enabled=os.getenv("OTEL_ENABLED", "false").lower() == "true",
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8001")),
        )
