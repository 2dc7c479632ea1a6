"""Validation schemas for menu items and account credentials.

Each schema turns raw form/JSON input into a normalized, sanitized record or
raises ValidationError with one FieldError per failing field. The caller's
input mapping is never modified.
"""

import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    validate_email,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from canteen_menu_service.exceptions import FieldError, ValidationError
from canteen_menu_service.models.account_models import ROLES, Role
from canteen_menu_service.models.menu_models import CATEGORIES, LEVELS, CanteenLevel, Category
from canteen_menu_service.validation.sanitize import sanitize_input

NAME_MAX_LENGTH = 100
PRICE_MAX = Decimal("10000")
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100

_MISSING_MESSAGES = {
    "name": "Name is required",
    "price": "Price is required",
    "category": "Category is required",
    "canteen_level": "Canteen level is required",
    "email": "Email is required",
    "password": "Password is required",
    "confirm_password": "Please confirm your password",
    "role": "Role is required",
}

# Input aliases reported under their canonical field name.
_FIELD_NAMES = {
    "canteenLevel": "canteen_level",
    "confirmPassword": "confirm_password",
}

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def _fail(code: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(code, message)


def _clean_email(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise _fail("email_required", "Email is required")
    try:
        _, email = validate_email(value.strip())
    except PydanticCustomError:
        raise _fail("email_invalid", "Invalid email format") from None
    return sanitize_input(email.lower())


def _check_password_length(value: Any, min_length: int = 1) -> str:
    if not isinstance(value, str) or not value:
        raise _fail("password_required", "Password is required")
    if len(value) < min_length:
        raise _fail(
            "password_too_short", f"Password must be at least {min_length} characters"
        )
    if len(value) > PASSWORD_MAX_LENGTH:
        raise _fail(
            "password_too_long",
            f"Password must be less than {PASSWORD_MAX_LENGTH} characters",
        )
    return value


def _check_password_strength(value: Any) -> str:
    value = _check_password_length(value, PASSWORD_MIN_LENGTH)
    if not re.search(r"[A-Z]", value):
        raise _fail("password_uppercase", "Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", value):
        raise _fail("password_lowercase", "Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", value):
        raise _fail("password_digit", "Password must contain at least one number")
    return value


def _check_role(value: Any) -> Role:
    if isinstance(value, Role):
        return value
    if not isinstance(value, str) or not value:
        raise _fail("role_required", "Role is required")
    if value not in ROLES:
        raise _fail("role_invalid", f"Invalid role. Must be one of: {', '.join(ROLES)}")
    return Role(value)


class MenuItemInput(BaseModel):
    """Validated, sanitized menu item fields (everything except id/created_at)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str
    price: Decimal
    category: Category
    canteen_level: CanteenLevel = Field(
        validation_alias=AliasChoices("canteen_level", "canteenLevel")
    )

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise _fail("name_required", "Name is required")
        value = value.strip()
        if len(value) > NAME_MAX_LENGTH:
            raise _fail(
                "name_too_long", f"Name must be less than {NAME_MAX_LENGTH} characters"
            )
        value = sanitize_input(value)
        if not value:
            raise _fail("name_required", "Name is required")
        return value

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, value: Any) -> Decimal:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise _fail("price_required", "Price is required")
        if isinstance(value, bool):
            raise _fail("price_invalid", "Price must be a number")
        try:
            price = Decimal(str(value).strip())
        except InvalidOperation:
            raise _fail("price_invalid", "Price must be a number") from None
        if not price.is_finite():
            raise _fail("price_invalid", "Price must be a number")
        return price

    @field_validator("price")
    @classmethod
    def check_price_range(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise _fail("price_not_positive", "Price must be positive")
        if value > PRICE_MAX:
            raise _fail("price_too_high", "Price must be less than 10,000")
        return value

    @field_validator("category", mode="before")
    @classmethod
    def check_category(cls, value: Any) -> Category:
        if isinstance(value, Category):
            return value
        if not isinstance(value, str) or not value:
            raise _fail("category_required", "Category is required")
        if value not in CATEGORIES:
            raise _fail(
                "category_invalid", f"Invalid category. Must be one of: {', '.join(CATEGORIES)}"
            )
        return Category(value)

    @field_validator("canteen_level", mode="before")
    @classmethod
    def check_canteen_level(cls, value: Any) -> CanteenLevel:
        if isinstance(value, CanteenLevel):
            return value
        if not isinstance(value, str) or not value:
            raise _fail("canteen_level_required", "Canteen level is required")
        if value not in LEVELS:
            raise _fail(
                "canteen_level_invalid",
                f"Invalid canteen level. Must be one of: {', '.join(LEVELS)}",
            )
        return CanteenLevel(value)


class SignInInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    email: str
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value: Any) -> str:
        return _clean_email(value)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, value: Any) -> str:
        return _check_password_length(value)


class SignUpInput(BaseModel):
    """Self-registration form. The password must be strong and confirmed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    email: str
    password: str
    confirm_password: str = Field(
        validation_alias=AliasChoices("confirm_password", "confirmPassword"), repr=False
    )

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value: Any) -> str:
        return _clean_email(value)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, value: Any) -> str:
        return _check_password_strength(value)

    @field_validator("confirm_password", mode="before")
    @classmethod
    def check_confirmation(cls, value: Any, info: ValidationInfo) -> str:
        if not isinstance(value, str) or not value:
            raise _fail("confirm_password_required", "Please confirm your password")
        password = info.data.get("password")
        if password is not None and value != password:
            raise _fail("password_mismatch", "Passwords don't match")
        return value


class ReauthenticateInput(BaseModel):
    """Password confirmation before a sensitive account operation."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    password: str = Field(repr=False)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, value: Any) -> str:
        return _check_password_length(value)


class PasswordResetInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    email: str

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value: Any) -> str:
        return _clean_email(value)


class CreateAccountInput(BaseModel):
    """Admin-issued account creation. Password is optional for invitations."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    email: str
    password: str | None = Field(default=None, repr=False)
    role: Role = Role.CONTENT_MANAGER

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value: Any) -> str:
        return _clean_email(value)

    @field_validator("password", mode="before")
    @classmethod
    def check_password(cls, value: Any) -> str | None:
        if value is None:
            return None
        return _check_password_strength(value)

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, value: Any) -> Role:
        return _check_role(value)


class RoleUpdateInput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    role: Role

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, value: Any) -> Role:
        return _check_role(value)


def _field_errors(exc: PydanticValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        field = _FIELD_NAMES.get(str(loc[0]), str(loc[0])) if loc else "__root__"
        if error["type"] == "missing":
            message = _MISSING_MESSAGES.get(field, f"{field} is required")
        elif not loc:
            message = "Invalid input"
        else:
            message = error["msg"]
        errors.append(FieldError(field=field, message=message))
    return errors


def validate_input(schema: type[SchemaT], data: Mapping[str, Any] | None) -> SchemaT:
    """Validate raw input against a schema.

    Args:
        schema: One of the schema classes in this module
        data: Raw input mapping (left untouched)

    Returns:
        The validated schema instance

    Raises:
        ValidationError: With every field error; the first one is the message
    """
    try:
        return schema.model_validate(dict(data) if data is not None else None)
    except PydanticValidationError as e:
        raise ValidationError(_field_errors(e)) from None


def validate_menu_item(data: Mapping[str, Any]) -> MenuItemInput:
    return validate_input(MenuItemInput, data)


def validate_sign_in(data: Mapping[str, Any]) -> SignInInput:
    return validate_input(SignInInput, data)


def validate_sign_up(data: Mapping[str, Any]) -> SignUpInput:
    return validate_input(SignUpInput, data)


def validate_reauthenticate(data: Mapping[str, Any]) -> ReauthenticateInput:
    return validate_input(ReauthenticateInput, data)


def validate_password_reset(data: Mapping[str, Any]) -> PasswordResetInput:
    return validate_input(PasswordResetInput, data)


def validate_create_account(data: Mapping[str, Any]) -> CreateAccountInput:
    return validate_input(CreateAccountInput, data)


def validate_role_update(data: Mapping[str, Any]) -> RoleUpdateInput:
    return validate_input(RoleUpdateInput, data)
