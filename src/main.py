"""Main application entry point for the canteen menu service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from canteen_menu_service.auth.cognito_provider import CognitoIdentityProvider
from canteen_menu_service.auth.identity_provider import IdentityProvider
from canteen_menu_service.auth.memory_provider import InMemoryIdentityProvider
from canteen_menu_service.config import CatalogBackend, IdentityBackend, Settings
from canteen_menu_service.context import AppContext
from canteen_menu_service.handlers.api_handler import create_app
from canteen_menu_service.models.account_models import Role
from canteen_menu_service.observability import configure_logging, setup_observability
from canteen_menu_service.repositories.account_repository import AccountRepository
from canteen_menu_service.repositories.base import AccountStore, MenuItemStore
from canteen_menu_service.repositories.memory_repositories import (
    InMemoryAccountStore,
    InMemoryMenuItemStore,
)
from canteen_menu_service.repositories.menu_repository import MenuItemRepository
from canteen_menu_service.services.menu_api_client import MenuApiClient

logger = logging.getLogger(__name__)


def get_dynamodb_resource(settings: Settings) -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    if settings.dynamodb_endpoint:
        # Local DynamoDB - use environment variables or defaults for credentials
        logger.info(f"Using local DynamoDB at {settings.dynamodb_endpoint}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=settings.dynamodb_endpoint,
            region_name=settings.aws_region,
            aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )

    logger.info(f"Using AWS DynamoDB in region {settings.aws_region}")
    # Production - boto3 will use default credential chain (IAM role, env vars, etc.)
    return boto3.resource("dynamodb", region_name=settings.aws_region)


def create_stores(settings: Settings) -> tuple[MenuItemStore, AccountStore]:
    """Create the menu and account stores for the configured catalog backend.

    The HTTP backend only serves menu items; its accounts still live in
    DynamoDB.

    Raises:
        ValueError: If the HTTP backend is selected without MENU_API_BASE_URL
    """
    if settings.catalog_backend == CatalogBackend.MEMORY:
        logger.warning("Using in-memory stores - data is lost on restart")
        return InMemoryMenuItemStore(), InMemoryAccountStore()

    dynamodb_resource = get_dynamodb_resource(settings)
    account_store = AccountRepository(dynamodb_resource=dynamodb_resource, table_name=settings.users_table)

    if settings.catalog_backend == CatalogBackend.HTTP:
        if not settings.menu_api_base_url:
            raise ValueError("MENU_API_BASE_URL must be set when CATALOG_BACKEND is http")
        logger.info(f"Menu items served by {settings.menu_api_base_url}")
        return MenuApiClient(settings.menu_api_base_url, api_key=settings.menu_api_key), account_store

    logger.info(f"Repositories configured - menu: {settings.menu_table}, users: {settings.users_table}")
    menu_store = MenuItemRepository(dynamodb_resource=dynamodb_resource, table_name=settings.menu_table)
    return menu_store, account_store


def create_identity_provider(settings: Settings) -> IdentityProvider:
    """Create the identity provider.

    Raises:
        ValueError: If Cognito is selected without a user pool and app client
    """
    if settings.identity_backend == IdentityBackend.MEMORY:
        logger.warning("Using in-memory identity provider - not for production use")
        provider = InMemoryIdentityProvider()
        if settings.bootstrap_admin_email and settings.bootstrap_admin_password:
            provider.add_user(settings.bootstrap_admin_email, settings.bootstrap_admin_password, Role.ADMIN)
            logger.info(f"Bootstrap admin {settings.bootstrap_admin_email} registered")
        return provider

    if not settings.cognito_user_pool_id or not settings.cognito_client_id:
        raise ValueError("COGNITO_USER_POOL_ID and COGNITO_CLIENT_ID must be set in environment")

    client = boto3.client(
        "cognito-idp", region_name=settings.aws_region, endpoint_url=settings.cognito_endpoint
    )
    logger.info(f"Cognito user pool {settings.cognito_user_pool_id} configured")
    return CognitoIdentityProvider(
        client, user_pool_id=settings.cognito_user_pool_id, client_id=settings.cognito_client_id
    )


def create_application(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Loads settings and configures logging
    2. Creates the catalog and account stores
    3. Creates the identity provider
    4. Wires the AppContext and FastAPI app
    5. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    logger.info(
        f"Initializing canteen menu service - catalog: {settings.catalog_backend.value}, "
        f"delete policy: {settings.delete_policy.value}"
    )

    menu_store, account_store = create_stores(settings)
    identity_provider = create_identity_provider(settings)

    context = AppContext.build(settings, menu_store, account_store, identity_provider)
    app = create_app(context)

    if settings.otel_enabled:
        setup_observability(app, environment=settings.environment)

    logger.info("Canteen menu service initialized successfully")
    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    settings = Settings.from_env()

    logger.info(f"Starting development server on {settings.host}:{settings.port}")
    logger.info(f"API documentation available at http://{settings.host}:{settings.port}/docs")

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower(),
    )
