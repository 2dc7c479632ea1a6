"""DynamoDB repository for account role records."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from canteen_menu_service.exceptions import ConflictError, NotFoundError
from canteen_menu_service.models.account_models import Account, Role
from canteen_menu_service.repositories.base import AccountStore
from canteen_menu_service.repositories.dynamodb_errors import (
    CONDITIONAL_CHECK_FAILED,
    error_code,
    translate_backend_error,
)

logger = logging.getLogger(__name__)

EMAIL_INDEX = "email-index"


class AccountRepository(AccountStore):
    """Repository for account CRUD operations.

    Manages account records in DynamoDB with uid as partition key and a
    Global Secondary Index on email.
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

    async def get_account(self, uid: str) -> Account | None:
        try:
            response = await asyncio.to_thread(self.table.get_item, Key={"uid": uid})
        except (ClientError, BotoCoreError) as e:
            raise translate_backend_error(e, "load the account") from e

        if "Item" not in response:
            return None

        return Account.from_dynamodb_item(response["Item"])

    async def find_by_email(self, email: str) -> Account | None:
        try:
            response = await asyncio.to_thread(
                self.table.query,
                IndexName=EMAIL_INDEX,
                KeyConditionExpression="email = :email",
                ExpressionAttributeValues={":email": email.lower()},
                Limit=1,
            )
        except (ClientError, BotoCoreError) as e:
            raise translate_backend_error(e, "look up the account") from e

        items = response.get("Items", [])
        return Account.from_dynamodb_item(items[0]) if items else None

    async def list_accounts(self) -> list[Account]:
        scan_kwargs: dict[str, Any] = {}
        accounts: list[Account] = []
        try:
            while True:
                response = await asyncio.to_thread(self.table.scan, **scan_kwargs)
                accounts.extend(
                    Account.from_dynamodb_item(item) for item in response.get("Items", [])
                )
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key

        except (ClientError, BotoCoreError) as e:
            raise translate_backend_error(e, "list accounts") from e

        return sorted(accounts, key=lambda account: account.email)

    async def create_account(self, account: Account) -> Account:
        try:
            await asyncio.to_thread(
                self.table.put_item,
                Item=account.to_dynamodb_item(),
                ConditionExpression="attribute_not_exists(uid)",
            )
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise ConflictError(f"Account {account.uid} already exists") from e
            raise translate_backend_error(e, "create the account") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "create the account") from e

        logger.info(f"Created account {account.uid} with role {account.role.value}")
        return account

    async def update_role(self, uid: str, role: Role, updated_by: str) -> Account:
        try:
            response = await asyncio.to_thread(
                self.table.update_item,
                Key={"uid": uid},
                UpdateExpression="SET #role = :role, updated_at = :at, updated_by = :by",
                ConditionExpression="attribute_exists(uid)",
                ExpressionAttributeNames={"#role": "role"},
                ExpressionAttributeValues={
                    ":role": role.value,
                    ":at": datetime.now(UTC).isoformat(),
                    ":by": updated_by,
                },
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise NotFoundError(f"Account {uid} not found") from e
            raise translate_backend_error(e, "update the account role") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "update the account role") from e

        return Account.from_dynamodb_item(response["Attributes"])

    async def record_sign_in(self, uid: str, signed_in_at: datetime) -> None:
        try:
            await asyncio.to_thread(
                self.table.update_item,
                Key={"uid": uid},
                UpdateExpression="SET last_sign_in_at = :at, pending = :pending",
                ConditionExpression="attribute_exists(uid)",
                ExpressionAttributeValues={
                    ":at": signed_in_at.isoformat(),
                    ":pending": False,
                },
            )
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise NotFoundError(f"Account {uid} not found") from e
            raise translate_backend_error(e, "record the sign in") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "record the sign in") from e

    async def delete_account(self, uid: str) -> None:
        try:
            await asyncio.to_thread(
                self.table.delete_item,
                Key={"uid": uid},
                ConditionExpression="attribute_exists(uid)",
            )
        except ClientError as e:
            if error_code(e) == CONDITIONAL_CHECK_FAILED:
                raise NotFoundError(f"Account {uid} not found") from e
            raise translate_backend_error(e, "delete the account") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "delete the account") from e
