"""FastAPI dependencies for bearer token authentication.

Provides dependency injection functions that turn the Authorization header
into a Principal using the AuthService held on the application context.
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from canteen_menu_service.context import AppContext
from canteen_menu_service.exceptions import AuthenticationError
from canteen_menu_service.models.account_models import Principal


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the AppContext attached at start-up."""
    return request.app.state.context


def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    """Extract the access token from an ``Authorization: Bearer <token>`` header.

    Returns:
        The token, or None if no Authorization header was sent

    Raises:
        AuthenticationError: If the header is present but malformed
    """
    if not authorization:
        return None

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Malformed Authorization header, expected a bearer token")

    return token.strip()


async def get_optional_principal(
    context: Annotated[AppContext, Depends(get_context)],
    token: Annotated[str | None, Depends(get_bearer_token)],
) -> Principal | None:
    """Resolve the caller if a token was sent, None for anonymous requests."""
    if token is None:
        return None
    return await context.auth_service.resolve_principal(token)


async def get_principal(
    principal: Annotated[Principal | None, Depends(get_optional_principal)],
) -> Principal:
    """Resolve the caller, rejecting anonymous requests.

    Raises:
        AuthenticationError: 401 if no valid token was sent
    """
    if principal is None:
        raise AuthenticationError("Sign in required")
    return principal


def require_token(token: Annotated[str | None, Depends(get_bearer_token)]) -> str:
    """Return the raw access token, rejecting anonymous requests."""
    if token is None:
        raise AuthenticationError("Sign in required")
    return token
