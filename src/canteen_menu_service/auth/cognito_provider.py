"""Amazon Cognito user pool implementation of IdentityProvider.

The user pool is expected to use email as its username attribute, so the
Cognito username is the immutable sub and doubles as the account uid. Roles
are carried in the ``custom:role`` user attribute.
"""

import asyncio
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from mypy_boto3_cognito_idp import CognitoIdentityProviderClient

from canteen_menu_service.auth.identity_provider import (
    GENERIC_SIGN_IN_FAILURE,
    IdentityProvider,
    ProviderTokens,
)
from canteen_menu_service.exceptions import (
    AuthenticationError,
    ConflictError,
    FieldError,
    NotFoundError,
    ValidationError,
)
from canteen_menu_service.models.account_models import Identity, Role
from canteen_menu_service.repositories.dynamodb_errors import error_code, translate_backend_error

logger = logging.getLogger(__name__)

ROLE_ATTRIBUTE = "custom:role"

_CREDENTIAL_FAILURES = {
    "NotAuthorizedException",
    "UserNotFoundException",
    "UserNotConfirmedException",
    "PasswordResetRequiredException",
}


def _attributes(raw: list[dict[str, Any]]) -> dict[str, str]:
    return {attr["Name"]: attr["Value"] for attr in raw}


def _identity(username: str, attributes: dict[str, str]) -> Identity:
    claims = {"role": attributes[ROLE_ATTRIBUTE]} if ROLE_ATTRIBUTE in attributes else {}
    return Identity(
        uid=attributes.get("sub", username),
        email=attributes.get("email", "").lower(),
        claims=claims,
    )


class CognitoIdentityProvider(IdentityProvider):
    """Identity provider backed by a Cognito user pool."""

    def __init__(
        self,
        cognito_client: CognitoIdentityProviderClient,
        user_pool_id: str,
        client_id: str,
    ) -> None:
        """Initialize the provider.

        Args:
            cognito_client: Boto3 cognito-idp client
            user_pool_id: User pool for admin operations
            client_id: App client used for user-facing flows
        """
        self.client = cognito_client
        self.user_pool_id = user_pool_id
        self.client_id = client_id

    async def sign_in(self, email: str, password: str) -> ProviderTokens:
        try:
            response = await asyncio.to_thread(
                self.client.initiate_auth,
                AuthFlow="USER_PASSWORD_AUTH",
                ClientId=self.client_id,
                AuthParameters={"USERNAME": email, "PASSWORD": password},
            )
        except ClientError as e:
            if error_code(e) in _CREDENTIAL_FAILURES:
                logger.info(f"Sign in rejected by Cognito: {error_code(e)}")
                raise AuthenticationError(GENERIC_SIGN_IN_FAILURE) from e
            raise translate_backend_error(e, "sign in") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "sign in") from e

        result = response.get("AuthenticationResult")
        if not result:
            # Invited users must set a permanent password first.
            logger.info(f"Sign in needs challenge {response.get('ChallengeName')}")
            raise AuthenticationError(
                "Please finish setting up your account from the invitation email",
                error_code="ACCOUNT_SETUP_REQUIRED",
            )

        return ProviderTokens(
            access_token=result["AccessToken"],
            refresh_token=result.get("RefreshToken"),
            expires_in=result.get("ExpiresIn"),
        )

    async def sign_up(self, email: str, password: str) -> Identity:
        try:
            response = await asyncio.to_thread(
                self.client.sign_up,
                ClientId=self.client_id,
                Username=email,
                Password=password,
                UserAttributes=[{"Name": "email", "Value": email}],
            )
        except ClientError as e:
            if error_code(e) == "UsernameExistsException":
                raise ConflictError("An account with this email already exists") from e
            if error_code(e) == "InvalidPasswordException":
                raise ValidationError(
                    [FieldError(field="password", message="Password does not meet requirements")]
                ) from e
            raise translate_backend_error(e, "create the account") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "create the account") from e

        return Identity(uid=response["UserSub"], email=email)

    async def get_identity(self, access_token: str) -> Identity:
        try:
            response = await asyncio.to_thread(self.client.get_user, AccessToken=access_token)
        except ClientError as e:
            if error_code(e) in _CREDENTIAL_FAILURES:
                raise AuthenticationError("Your session has expired, please sign in again") from e
            raise translate_backend_error(e, "verify the session") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "verify the session") from e

        return _identity(response["Username"], _attributes(response.get("UserAttributes", [])))

    async def sign_out(self, access_token: str) -> None:
        try:
            await asyncio.to_thread(self.client.global_sign_out, AccessToken=access_token)
        except ClientError as e:
            if error_code(e) in _CREDENTIAL_FAILURES:
                # Already revoked or expired.
                return
            raise translate_backend_error(e, "sign out") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "sign out") from e

    async def send_password_reset(self, email: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.forgot_password, ClientId=self.client_id, Username=email
            )
        except ClientError as e:
            if error_code(e) in _CREDENTIAL_FAILURES:
                logger.info("Password reset requested for an unknown or disabled account")
                return
            raise translate_backend_error(e, "send the password reset email") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "send the password reset email") from e

    async def create_user(self, email: str, password: str | None, role: Role) -> Identity:
        create_kwargs: dict[str, Any] = {
            "UserPoolId": self.user_pool_id,
            "Username": email,
            "UserAttributes": [
                {"Name": "email", "Value": email},
                {"Name": "email_verified", "Value": "true"},
                {"Name": ROLE_ATTRIBUTE, "Value": role.value},
            ],
        }
        if password is not None:
            create_kwargs["MessageAction"] = "SUPPRESS"

        try:
            response = await asyncio.to_thread(self.client.admin_create_user, **create_kwargs)
            user = response["User"]
            if password is not None:
                await asyncio.to_thread(
                    self.client.admin_set_user_password,
                    UserPoolId=self.user_pool_id,
                    Username=user["Username"],
                    Password=password,
                    Permanent=True,
                )
        except ClientError as e:
            if error_code(e) == "UsernameExistsException":
                raise ConflictError("An account with this email already exists") from e
            raise translate_backend_error(e, "create the user") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "create the user") from e

        return _identity(user["Username"], _attributes(user.get("Attributes", [])))

    async def set_role_claim(self, uid: str, role: Role) -> None:
        try:
            await asyncio.to_thread(
                self.client.admin_update_user_attributes,
                UserPoolId=self.user_pool_id,
                Username=uid,
                UserAttributes=[{"Name": ROLE_ATTRIBUTE, "Value": role.value}],
            )
        except ClientError as e:
            if error_code(e) == "UserNotFoundException":
                raise NotFoundError(f"User {uid} not found") from e
            raise translate_backend_error(e, "update the role claim") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "update the role claim") from e

    async def delete_user(self, uid: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.admin_delete_user, UserPoolId=self.user_pool_id, Username=uid
            )
        except ClientError as e:
            if error_code(e) == "UserNotFoundException":
                raise NotFoundError(f"User {uid} not found") from e
            raise translate_backend_error(e, "delete the user") from e
        except BotoCoreError as e:
            raise translate_backend_error(e, "delete the user") from e
