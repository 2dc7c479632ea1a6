"""Catalog store backed by a remote /menu REST endpoint."""

import logging
from typing import Any

import httpx

from canteen_menu_service.exceptions import (
    BackendUnavailableError,
    FieldError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from canteen_menu_service.models.menu_models import CanteenLevel, MenuItem
from canteen_menu_service.repositories.base import MenuItemStore, sort_menu_items
from canteen_menu_service.validation.schemas import MenuItemInput

logger = logging.getLogger(__name__)


def _wire_id(item_id: str) -> str | int:
    # Relational deployments use autoincrement integer keys.
    return int(item_id) if item_id.isdigit() else item_id


class MenuApiClient(MenuItemStore):
    """HTTP client for a menu CRUD endpoint.

    Speaks the endpoint's contract: ``GET /menu?level=``, ``POST /menu``,
    ``PUT /menu`` and ``DELETE /menu?id=``, exchanging records in the
    camelCase MenuItem shape.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the menu API client.

        Args:
            base_url: Base URL of the endpoint (e.g., "https://canteen.example.com/api")
            api_key: Optional key sent as X-API-Key for service-to-service calls
            transport: Optional httpx transport, used to stub the endpoint in tests
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.transport = transport

    async def list_items(self, level: CanteenLevel | None = None) -> list[MenuItem]:
        params = {"level": level.value} if level is not None else None
        data = await self._request("GET", "list menu items", params=params)
        return sort_menu_items([MenuItem.from_api_dict(record) for record in data or []])

    async def get_item(self, item_id: str) -> MenuItem | None:
        # The endpoint has no single-item route.
        items = await self.list_items()
        return next((item for item in items if item.id == item_id), None)

    async def create_item(self, fields: MenuItemInput) -> MenuItem:
        data = await self._request("POST", "create the menu item", json=self._payload(fields))
        return MenuItem.from_api_dict(data)

    async def replace_item(self, item_id: str, fields: MenuItemInput) -> MenuItem:
        payload = {"id": _wire_id(item_id), **self._payload(fields)}
        data = await self._request("PUT", "update the menu item", json=payload, item_id=item_id)
        return MenuItem.from_api_dict(data)

    async def delete_item(self, item_id: str, must_exist: bool = True) -> None:
        try:
            await self._request(
                "DELETE", "delete the menu item", params={"id": item_id}, item_id=item_id
            )
        except NotFoundError:
            if must_exist:
                raise
            logger.info(f"Menu item {item_id} already absent, delete treated as no-op")

    def _payload(self, fields: MenuItemInput) -> dict[str, Any]:
        return {
            "name": fields.name,
            "price": float(fields.price),
            "category": fields.category.value,
            "canteenLevel": fields.canteen_level.value,
        }

    async def _request(
        self,
        method: str,
        operation: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        item_id: str | None = None,
    ) -> Any:
        url = f"{self.base_url}/menu"
        headers = {"X-API-Key": self.api_key} if self.api_key else {}

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.request(
                    method, url, params=params, json=json, headers=headers
                )
        except httpx.RequestError as e:
            logger.error(f"Menu endpoint unreachable while trying to {operation}: {e}")
            raise BackendUnavailableError(
                f"The catalog backend is unavailable, could not {operation}"
            ) from e

        if response.status_code in (401, 403):
            raise PermissionDeniedError(f"The catalog backend refused to {operation}")
        if response.status_code == 404:
            raise NotFoundError(f"Menu item {item_id} not found" if item_id else "Not found")
        if response.status_code in (400, 422):
            message = self._error_message(response) or (
                f"The catalog backend rejected the request to {operation}"
            )
            raise ValidationError([FieldError(field="__root__", message=message)])
        if response.is_error:
            logger.error(f"Menu endpoint returned {response.status_code} while trying to {operation}")
            raise BackendUnavailableError(
                f"The catalog backend is unavailable, could not {operation}",
                details={"status_code": response.status_code},
            )

        return response.json()

    def _error_message(self, response: httpx.Response) -> str | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("error") or body.get("message")
        return None
