"""DynamoDB repository for menu items.

Items live in a single table keyed by id. Listings scan the table (the
catalog is a few hundred items at most) and sort in memory; the level filter
is pushed down as a FilterExpression.
"""

import asyncio
import logging
import uuid
from datetime import UTC, datetime
from typing import Any

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from canteen_menu_service.exceptions import NotFoundError
from canteen_menu_service.models.menu_models import CanteenLevel, MenuItem
from canteen_menu_service.repositories.base import MenuItemStore, sort_menu_items
from canteen_menu_service.repositories.dynamodb_errors import (
    CONDITIONAL_CHECK_FAILED,
    error_code,
    translate_backend_error,
)
from canteen_menu_service.validation.schemas import MenuItemInput

logger = logging.getLogger(__name__)


class MenuItemRepository(MenuItemStore):
    """Repository for menu item CRUD operations.

    Manages menu item records in DynamoDB with id as partition key.
    """

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: Table = dynamodb_resource.Table(table_name)

    async def list_items(self, level: CanteenLevel | None = None) -> list[MenuItem]:
        scan_kwargs: dict[str, Any] = {}
        if level is not None:
            scan_kwargs["FilterExpression"] = Attr("canteen_level").eq(level.value)

        items: list[MenuItem] = []
        try:
            while True:
                response = await asyncio.to_thread(self.table.scan, **scan_kwargs)
                items.extend(MenuItem.from_dynamodb_item(raw) for raw in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key

        except (ClientError, BotoCoreError) as e:
            raise translate_backend_error(e, "list menu items") from e

        return sort_menu_items(items)

    async def get_item(self, item_id: str) -> MenuItem | None:
        try:
            response = await asyncio.to_thread(self.table.get_item, Key={"id": item_id})
        except (ClientError, BotoCoreError) as e:
            raise translate_backend_error(e, "load the menu item") from e

        if "Item" not in response:
            return None

        return MenuItem.from_dynamodb_item(response["Item"])

    async def create_item(self, fields: MenuItemInput) -> MenuItem:
        item = MenuItem(
            id=uuid.uuid4().hex,
            name=fields.name,
            price=fields.price,
            category=fields.category,
            canteen_level=fields.canteen_level,
            created_at=datetime.now(UTC),
        )

        try:
            await asyncio.to_thread(
                self.table.put_item,
                Item=item.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(id)",
            )
        except (ClientError, BotoCoreError) as e:
            raise translate_backend_error(e, "create the menu item") from e

        logger.info(f"Created menu item {item.id} on {item.canteen_level.value}")
        return item

    async def replace_item(self, item_id: str, fields: MenuItemInput) -> MenuItem:
        try:
            response = await asyncio.to_thread(
                self.table.update_item,
                Key={"id": item_id},
                UpdateExpression=(
                    "SET #name = :name, price = :price, category = :category, "
                    "canteen_level = :level"
                ),
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames={"#name": "name"},
                ExpressionAttributeValues={
                    ":name": fields.name,
                    ":price": fields.price,
                    ":category": fields.category.value,
                    ":level": fields.canteen_level.value,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise NotFoundError(f"Menu item {item_id} not found") from e
            raise translate_backend_error(e, "update the menu item") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "update the menu item") from e

        return MenuItem.from_dynamodb_item(response["Attributes"])

    async def delete_item(self, item_id: str, must_exist: bool = True) -> None:
        delete_kwargs: dict[str, Any] = {"Key": {"id": item_id}}
        if must_exist:
            delete_kwargs["ConditionExpression"] = "attribute_exists(id)"

        try:
            await asyncio.to_thread(self.table.delete_item, **delete_kwargs)
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise NotFoundError(f"Menu item {item_id} not found") from e
            raise translate_backend_error(e, "delete the menu item") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "delete the menu item") from e
