"""In-process change notifications.

Writers publish a ChangeNotification after each committed insert, update or
delete; readers subscribe to one table with an equality filter (for example
``{"task_id": ...}``) and consume matching notifications as an async iterator.

Delivery is at-least-once per subscriber and FIFO per subscriber only. A
subscriber whose queue is full loses its oldest pending notification; the
loss is counted (see Subscription.take_dropped) so the reader can tell its
client to refetch.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeNotification:
    table: str
    event_type: ChangeType
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None
    commit_timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def record(self) -> dict[str, Any]:
        """The row the notification is about: new for writes, old for deletes."""
        if self.new is not None:
            return self.new
        return self.old or {}

    def to_message(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "eventType": self.event_type.value,
            "new": self.new,
            "old": self.old,
            "commit_timestamp": self.commit_timestamp.isoformat(),
        }


_CLOSED = object()


class Subscription:
    """A filtered stream of notifications for one table."""

    def __init__(self, bus: "ChangeBus", table: str, filters: dict[str, Any], maxsize: int):
        self.id = str(uuid4())
        self.table = table
        self.filters = {key: str(value) for key, value in filters.items()}
        self._bus = bus
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, notification: ChangeNotification) -> bool:
        if notification.table != self.table:
            return False
        record = notification.record
        return all(str(record.get(key)) == value for key, value in self.filters.items())

    def deliver(self, notification: ChangeNotification) -> None:
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self._dropped += 1
            logger.warning(
                "Realtime subscription %s on %s is lagging; dropped oldest notification",
                self.id,
                self.table,
            )
        self._queue.put_nowait(notification)

    def take_dropped(self) -> int:
        """Notifications lost to a full queue since the last call."""
        dropped, self._dropped = self._dropped, 0
        return dropped

    async def get(self) -> ChangeNotification | None:
        """Next notification, or None once the subscription is closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.unsubscribe(self)
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeNotification:
        item = await self.get()
        if item is None:
            raise StopAsyncIteration
        return item


class ChangeBus:
    """Fan-out of change notifications to filtered subscriptions."""

    def __init__(self, queue_size: int = 256):
        self._queue_size = queue_size
        self._subscriptions: dict[str, Subscription] = {}

    def subscribe(self, table: str, filters: dict[str, Any] | None = None) -> Subscription:
        subscription = Subscription(self, table, filters or {}, self._queue_size)
        self._subscriptions[subscription.id] = subscription
        logger.debug(
            "Realtime subscribe %s table=%s filters=%s",
            subscription.id,
            table,
            subscription.filters,
        )
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if self._subscriptions.pop(subscription.id, None) is not None:
            logger.debug("Realtime unsubscribe %s", subscription.id)
            subscription.close()

    def publish(self, notification: ChangeNotification) -> int:
        """Deliver to every matching subscription; returns the delivery count."""
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if subscription.matches(notification):
                subscription.deliver(notification)
                delivered += 1
        return delivered

    def publish_insert(self, table: str, new: dict[str, Any]) -> int:
        return self.publish(ChangeNotification(table, ChangeType.INSERT, new=new))

    def publish_update(self, table: str, new: dict[str, Any], old: dict[str, Any] | None = None) -> int:
        return self.publish(ChangeNotification(table, ChangeType.UPDATE, new=new, old=old))

    def publish_delete(self, table: str, old: dict[str, Any]) -> int:
        return self.publish(ChangeNotification(table, ChangeType.DELETE, old=old))

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def close(self) -> None:
        for subscription in list(self._subscriptions.values()):
            subscription.close()


def to_record(schema: type[BaseModel], obj: Any) -> dict[str, Any]:
    """JSON-safe row payload for a notification."""
    return schema.model_validate(obj).model_dump(mode="json")
