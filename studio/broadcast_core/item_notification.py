"""
Notifications posted by rundown items to the player that owns them.

Every notification carries the posting item's id so the player can route
it, and drop it when the item is no longer the one it cares about.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Optional


class NotificationKind(enum.Enum):
    POSITION = "position"
    STOPPED = "stopped"
    PROPERTY_CHANGED = "property_changed"
    REMOVE_REQUESTED = "remove_requested"


@dataclass(frozen=True)
class ItemNotification:
    """
    A single message from a rundown item.

    Attributes:
        kind: What happened
        item_id: Id of the posting item
        elapsed: Seconds since media start (POSITION only)
        property_name: Name of the changed attribute (PROPERTY_CHANGED only)
    """
    kind: NotificationKind
    item_id: uuid.UUID
    elapsed: Optional[float] = None
    property_name: Optional[str] = None
