"""Catalog change notification models."""

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

from canteen_menu_service.models.menu_models import CanteenLevel


class ChangeType(str, Enum):
    """Kind of catalog mutation."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeEvent(BaseModel):
    """A single catalog change.

    Delivery is best effort: events may be duplicated or dropped, so consumers
    re-fetch the listing rather than applying events incrementally.

    Attributes:
        change_type: What happened to the item
        item_id: The affected menu item
        canteen_level: Level the item belonged to, used for filtered subscriptions.
            For updates that move an item, previous_level holds the old level.
        occurred_at: When the change was committed
    """

    change_type: ChangeType
    item_id: str
    canteen_level: CanteenLevel | None = None
    previous_level: CanteenLevel | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def affects(self, level: CanteenLevel | None) -> bool:
        """Whether a subscriber filtered on level should see this event."""
        if level is None or self.canteen_level is None:
            return True
        return level in (self.canteen_level, self.previous_level)
