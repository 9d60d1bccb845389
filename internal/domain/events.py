"""
Domain events emitted after accepted product mutations.

Events are transient notifications carrying the full denormalized product
snapshot. They are published on one topic per action.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .product import ProductDetails


DEFAULT_TOPIC_PREFIX = "product"


class EventType(str, Enum):
    """Event actions, one topic each."""

    CREATED = "created"
    UPDATED = "updated"
    APPROVED = "approved"
    DELETED = "deleted"

    def topic(self, prefix: str = DEFAULT_TOPIC_PREFIX) -> str:
        """Topic name for this action (e.g. 'product.created')."""
        return f"{prefix}.{self.value}"


def all_topics(prefix: str = DEFAULT_TOPIC_PREFIX) -> list[str]:
    """Return every product topic for a prefix."""
    return [event_type.topic(prefix) for event_type in EventType]


@dataclass
class DomainEvent:
    """
    Product event ready for publishing.

    Attributes:
        event_type: Action tag.
        product_id: Storage id of the product, used as the message key.
        payload: JSON-compatible event body.
    """
    event_type: EventType
    product_id: str
    payload: dict[str, Any]

    def topic(self, prefix: str = DEFAULT_TOPIC_PREFIX) -> str:
        """Topic this event is published on."""
        return self.event_type.topic(prefix)

    @classmethod
    def from_details(
        cls,
        event_type: EventType,
        details: ProductDetails,
        previous: Optional[dict[str, Any]] = None,
    ) -> "DomainEvent":
        """
        Build an event from a denormalized product view.

        'updated' events wrap the new snapshot under ``new_data`` and carry
        the previous snapshot; every other action sends the snapshot itself
        with an ``action`` tag.

        Args:
            event_type: Action tag.
            details: Denormalized product view after the mutation
                (before it, for deletions).
            previous: Snapshot before an update.

        Returns:
            DomainEvent.
        """
        snapshot = details.to_dict()
        product_id = str(details.product.id)

        if event_type == EventType.UPDATED:
            payload = {
                "id": product_id,
                "action": event_type.value,
                "new_data": snapshot,
                "previous_data": previous,
            }
        else:
            payload = {**snapshot, "action": event_type.value}

        return cls(event_type=event_type, product_id=product_id, payload=payload)
