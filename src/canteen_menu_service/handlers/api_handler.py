"""FastAPI application exposing the menu, auth and admin endpoints."""

import json
import logging
from collections.abc import AsyncIterator
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel

from canteen_menu_service.auth.api_dependencies import (
    get_principal,
    require_token,
)
from canteen_menu_service.context import AppContext
from canteen_menu_service.exceptions import CanteenError, FieldError, ValidationError
from canteen_menu_service.models.account_models import Account, AuthSession, Principal
from canteen_menu_service.models.menu_models import (
    CATEGORIES,
    DEFAULT_LEVEL,
    LEVELS,
    CanteenLevel,
    Category,
)
from canteen_menu_service.services.live_menu_view import LiveMenuView

logger = logging.getLogger(__name__)

PASSWORD_RESET_MESSAGE = "If an account exists for this email, a password reset link has been sent"

JsonBody = Annotated[dict[str, Any], Body()]


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    catalog_backend: str


class SessionResponse(BaseModel):
    """Response model for sign in, sign up, re-authentication and sign out."""

    state: str
    uid: str | None = None
    email: str | None = None
    role: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None

    @classmethod
    def from_session(cls, session: AuthSession) -> "SessionResponse":
        return cls(
            state=session.state.value,
            uid=session.identity.uid if session.identity else None,
            email=session.identity.email if session.identity else None,
            role=session.role.value if session.role else None,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=session.expires_in,
        )


class AccountResponse(BaseModel):
    """Response model for an account record."""

    uid: str
    email: str
    role: str
    pending: bool
    created_at: str
    created_by: str
    updated_at: str | None = None
    updated_by: str | None = None
    last_sign_in_at: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            uid=account.uid,
            email=account.email,
            role=account.role.value,
            pending=account.pending,
            created_at=account.created_at.isoformat(),
            created_by=account.created_by,
            updated_at=account.updated_at.isoformat() if account.updated_at else None,
            updated_by=account.updated_by,
            last_sign_in_at=account.last_sign_in_at.isoformat() if account.last_sign_in_at else None,
        )


class SignUpResponse(BaseModel):
    account: AccountResponse
    session: SessionResponse


class MeResponse(BaseModel):
    """The caller's principal and, if one exists, their account record."""

    uid: str
    email: str
    role: str | None
    account: AccountResponse | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class DeleteResponse(BaseModel):
    success: bool = True
    id: str
    deleted: bool


def _parse_level(value: str | None) -> CanteenLevel | None:
    if value is None or value == "":
        return None
    if value not in LEVELS:
        raise ValidationError(
            [FieldError(field="level", message=f"Invalid canteen level. Must be one of: {', '.join(LEVELS)}")]
        )
    return CanteenLevel(value)


def _parse_category(value: str | None) -> Category | None:
    if value is None or value == "":
        return None
    if value not in CATEGORIES:
        raise ValidationError(
            [FieldError(field="category", message=f"Invalid category. Must be one of: {', '.join(CATEGORIES)}")]
        )
    return Category(value)


def _sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def create_app(context: AppContext) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        context: Wired stores and services the routes delegate to

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Canteen Menu Service API",
        description="Public canteen menus with live updates, plus admin menu and account management",
        version="1.0.0",
    )

    # Store the context in app state for access in dependencies
    app.state.context = context
    menu_service = context.menu_service
    auth_service = context.auth_service
    account_service = context.account_service
    error_service = context.error_service

    @app.exception_handler(CanteenError)
    async def canteen_error_handler(request: Request, exc: CanteenError) -> JSONResponse:
        status_code, body = error_service.from_canteen_error(exc, request.url.path)
        return error_service.to_json_response(status_code, body)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        status_code, body = error_service.from_request_validation(exc, request.url.path)
        return error_service.to_json_response(status_code, body)

    @app.middleware("http")
    async def fallback_boundary(request: Request, call_next: Any) -> Response:
        """Answer any exception that escaped the handlers above with a generic 500."""
        try:
            return await call_next(request)
        except Exception as e:
            status_code, body = error_service.from_unexpected(e, request.url.path)
            return error_service.to_json_response(status_code, body)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="healthy", catalog_backend=context.settings.catalog_backend.value)

    # Public menu

    @app.get("/menu", tags=["Menu"])
    async def list_menu(level: str | None = None, category: str | None = None) -> list[dict[str, Any]]:
        """List menu items ordered by canteen level, category and name.

        Args:
            level: Optional canteen level filter (e.g., "Level 1")
            category: Optional category filter (e.g., "Dessert")
        """
        items = await menu_service.list_items(_parse_level(level), _parse_category(category))
        return [item.to_api_dict() for item in items]

    @app.get("/menu/stream", tags=["Menu"])
    async def stream_menu(
        request: Request, level: str | None = None, category: str | None = None
    ) -> StreamingResponse:
        """Server-Sent Events feed of the listing for one canteen level.

        Sends a snapshot immediately and another after every change at that
        level, with comment lines as keepalives in between.
        """
        view = LiveMenuView(
            menu_service,
            context.notifier,
            level=_parse_level(level) or DEFAULT_LEVEL,
            category=_parse_category(category),
        )
        keepalive = context.settings.live_keepalive_seconds

        async def events() -> AsyncIterator[str]:
            try:
                initial = await view.open()
                yield _sse("snapshot", initial.to_api_dict())
                async for snapshot in view.snapshots(keepalive_seconds=keepalive):
                    if await request.is_disconnected():
                        break
                    if snapshot is None:
                        yield ": keepalive\n\n"
                    else:
                        yield _sse("snapshot", snapshot.to_api_dict())
            finally:
                view.close()

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    # Admin menu CRUD

    @app.post("/menu", status_code=201, tags=["Menu"])
    async def create_menu_item(
        body: JsonBody, principal: Annotated[Principal, Depends(get_principal)]
    ) -> dict[str, Any]:
        item = await menu_service.create(principal, body)
        return item.to_api_dict()

    @app.put("/menu", tags=["Menu"])
    async def update_menu_item(
        body: JsonBody, principal: Annotated[Principal, Depends(get_principal)]
    ) -> dict[str, Any]:
        """Replace a menu item. The body carries the id alongside the fields."""
        item_id = body.get("id")
        item = await menu_service.update(principal, str(item_id) if item_id is not None else "", body)
        return item.to_api_dict()

    @app.delete("/menu", response_model=DeleteResponse, tags=["Menu"])
    async def delete_menu_item(
        principal: Annotated[Principal, Depends(get_principal)], id: str = ""
    ) -> DeleteResponse:
        deleted = await menu_service.delete(principal, id)
        return DeleteResponse(id=id, deleted=deleted)

    # Authentication

    @app.post("/auth/sign-in", response_model=SessionResponse, tags=["Auth"])
    async def sign_in(body: JsonBody) -> SessionResponse:
        session = await auth_service.sign_in(body)
        return SessionResponse.from_session(session)

    @app.post("/auth/sign-up", status_code=201, response_model=SignUpResponse, tags=["Auth"])
    async def sign_up(body: JsonBody) -> SignUpResponse:
        result = await auth_service.sign_up(body)
        return SignUpResponse(
            account=AccountResponse.from_account(result.account),
            session=SessionResponse.from_session(result.session),
        )

    @app.post("/auth/sign-out", response_model=SessionResponse, tags=["Auth"])
    async def sign_out(token: Annotated[str, Depends(require_token)]) -> SessionResponse:
        session = await auth_service.sign_out(token)
        return SessionResponse.from_session(session)

    @app.post("/auth/password-reset", response_model=MessageResponse, tags=["Auth"])
    async def password_reset(body: JsonBody) -> MessageResponse:
        await auth_service.request_password_reset(body)
        return MessageResponse(message=PASSWORD_RESET_MESSAGE)

    @app.post("/auth/reauthenticate", response_model=SessionResponse, tags=["Auth"])
    async def reauthenticate(
        body: JsonBody, principal: Annotated[Principal, Depends(get_principal)]
    ) -> SessionResponse:
        session = await auth_service.reauthenticate(principal, body)
        return SessionResponse.from_session(session)

    @app.get("/auth/me", response_model=MeResponse, tags=["Auth"])
    async def me(principal: Annotated[Principal, Depends(get_principal)]) -> MeResponse:
        account = await auth_service.describe(principal)
        return MeResponse(
            uid=principal.uid,
            email=principal.email,
            role=principal.role.value if principal.role else None,
            account=AccountResponse.from_account(account) if account else None,
        )

    # Account administration

    @app.get("/admin/accounts", response_model=list[AccountResponse], tags=["Accounts"])
    async def list_accounts(
        principal: Annotated[Principal, Depends(get_principal)],
    ) -> list[AccountResponse]:
        accounts = await account_service.list_accounts(principal)
        return [AccountResponse.from_account(account) for account in accounts]

    @app.post("/admin/accounts", status_code=201, response_model=AccountResponse, tags=["Accounts"])
    async def create_account(
        body: JsonBody, principal: Annotated[Principal, Depends(get_principal)]
    ) -> AccountResponse:
        """Create an account, or send an invitation when no password is given."""
        account = await account_service.create_account(principal, body)
        return AccountResponse.from_account(account)

    @app.put("/admin/accounts/{uid}/role", response_model=AccountResponse, tags=["Accounts"])
    async def update_account_role(
        uid: str, body: JsonBody, principal: Annotated[Principal, Depends(get_principal)]
    ) -> AccountResponse:
        account = await account_service.update_role(principal, uid, body)
        return AccountResponse.from_account(account)

    @app.delete("/admin/accounts/{uid}", response_model=MessageResponse, tags=["Accounts"])
    async def delete_account(
        uid: str, principal: Annotated[Principal, Depends(get_principal)]
    ) -> MessageResponse:
        await account_service.delete_account(principal, uid)
        return MessageResponse(message=f"Account {uid} deleted")

    return app
