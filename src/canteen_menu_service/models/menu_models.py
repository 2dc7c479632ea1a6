"""Menu data models.

A MenuItem is one dish offered at one canteen level. Items are stored in
DynamoDB (snake_case attributes) and exchanged with the REST endpoint in the
camelCase shape the public menu pages consume.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Category(str, Enum):
    """Menu categories, in display order."""

    MAIN_COURSE = "Main Course"
    DESSERT = "Dessert"
    BEVERAGE = "Beverage"
    SNACKS = "Snacks"


class CanteenLevel(str, Enum):
    """Physical canteen floors a menu belongs to."""

    LEVEL_1 = "Level 1"
    LEVEL_2 = "Level 2"
    LEVEL_3 = "Level 3"


CATEGORIES: tuple[str, ...] = tuple(c.value for c in Category)
LEVELS: tuple[str, ...] = tuple(level.value for level in CanteenLevel)

DEFAULT_LEVEL = CanteenLevel.LEVEL_1


class MenuItem(BaseModel):
    """Menu item as persisted in the catalog."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Opaque identifier assigned by the store")
    name: str = Field(..., description="Sanitized item name", min_length=1, max_length=100)
    price: Decimal = Field(..., description="Item price", gt=0, le=10000)
    category: Category = Field(..., description="Menu category")
    canteen_level: CanteenLevel = Field(..., description="Canteen level the item is served on")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Server-assigned creation time"
    )

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)

    def sort_key(self) -> tuple[str, str, str]:
        """Listing order: canteen level, then category, then name."""
        return (self.canteen_level.value, self.category.value, self.name)

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "category": self.category.value,
            "canteen_level": self.canteen_level.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            MenuItem: Parsed model instance
        """
        return cls(
            id=item["id"],
            name=item["name"],
            price=Decimal(str(item["price"])),
            category=Category(item["category"]),
            canteen_level=CanteenLevel(item["canteen_level"]),
            created_at=datetime.fromisoformat(item["created_at"]),
        )

    def to_api_dict(self) -> dict[str, Any]:
        """Convert to the REST endpoint's camelCase JSON shape."""
        return {
            "id": self.id,
            "name": self.name,
            "price": float(self.price),
            "category": self.category.value,
            "canteenLevel": self.canteen_level.value,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_api_dict(cls, data: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from a REST endpoint JSON record.

        Accepts both camelCase and snake_case keys; numeric ids are stringified.
        """
        created_at = data.get("createdAt") or data.get("created_at")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            price=Decimal(str(data["price"])),
            category=Category(data["category"]),
            canteen_level=CanteenLevel(data.get("canteenLevel") or data["canteen_level"]),
            created_at=(
                datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at
                else datetime.now(UTC)
            ),
        )
