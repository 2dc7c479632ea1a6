"""Unit tests for Settings."""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from canteen_menu_service.config import CatalogBackend, DeletePolicy, IdentityBackend, Settings


@pytest.mark.unit
class TestSettings:
    """Test suite for environment-driven settings."""

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults(self) -> None:
        """Test the defaults used when nothing is configured."""
        settings = Settings.from_env()

        assert settings.catalog_backend == CatalogBackend.DYNAMODB
        assert settings.identity_backend == IdentityBackend.COGNITO
        assert settings.delete_policy == DeletePolicy.STRICT
        assert settings.menu_cache_ttl_seconds == 300
        assert settings.recent_auth_window_seconds == 300
        assert settings.otel_enabled is False
        assert settings.port == 8001

    @patch.dict(
        os.environ,
        {
            "CATALOG_BACKEND": "HTTP",
            "MENU_API_BASE_URL": "https://menu.canteen.edu/api",
            "MENU_DELETE_POLICY": "Idempotent",
            "MENU_CACHE_TTL_SECONDS": "0",
            "LIVE_QUEUE_SIZE": "10",
            "OTEL_ENABLED": "TRUE",
            "DYNAMODB_ENDPOINT": "",
        },
        clear=True,
    )
    def test_reads_environment(self) -> None:
        """Test that variables are parsed case-insensitively and blanks become None."""
        settings = Settings.from_env()

        assert settings.catalog_backend == CatalogBackend.HTTP
        assert settings.menu_api_base_url == "https://menu.canteen.edu/api"
        assert settings.delete_policy == DeletePolicy.IDEMPOTENT
        assert settings.menu_cache_ttl_seconds == 0
        assert settings.live_queue_size == 10
        assert settings.otel_enabled is True
        assert settings.dynamodb_endpoint is None

    @patch.dict(os.environ, {"CATALOG_BACKEND": "postgres"}, clear=True)
    def test_unknown_backend_rejected(self) -> None:
        """Test that an unknown backend fails at start-up."""
        with pytest.raises(PydanticValidationError):
            Settings.from_env()

    def test_bootstrap_password_hidden_from_repr(self) -> None:
        """Test that the bootstrap password is not printed with the settings."""
        settings = Settings(bootstrap_admin_password="RootPass1")

        assert "RootPass1" not in repr(settings)
