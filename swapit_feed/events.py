# swapit_feed/events.py
"""Listing lifecycle events and the in-process channel that delivers them.

Each ``publish`` schedules one asyncio task per subscribed handler and
returns immediately; the publisher never learns whether handling succeeded.
Delivery order across tasks is not guaranteed.
"""
import asyncio
from collections import defaultdict, deque
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, ClassVar, Deque, Dict, List, Optional, Set
from pydantic import BaseModel, Field
from .utils import logger, utcnow


class EventKind(str, Enum):
    LISTING_CREATED = "ListingCreated"
    LISTING_UPDATED = "ListingUpdated"
    LISTING_WITHDRAWN = "ListingWithdrawn"
    LISTING_SOLD = "ListingSold"
    FEED_UPDATED = "FeedUpdated"


class Event(BaseModel):
    kind: ClassVar[EventKind]
    timestamp: datetime = Field(default_factory=utcnow)


class ListingEvent(Event):
    listing_id: str


class ListingCreated(ListingEvent):
    kind: ClassVar[EventKind] = EventKind.LISTING_CREATED


class ListingUpdated(ListingEvent):
    kind: ClassVar[EventKind] = EventKind.LISTING_UPDATED


class ListingWithdrawn(ListingEvent):
    kind: ClassVar[EventKind] = EventKind.LISTING_WITHDRAWN
    by_user_id: Optional[str] = None


class ListingSold(ListingEvent):
    kind: ClassVar[EventKind] = EventKind.LISTING_SOLD
    buyer_id: Optional[str] = None


class FeedUpdated(Event):
    kind: ClassVar[EventKind] = EventKind.FEED_UPDATED
    message: str = "Feed updated"


Handler = Callable[[Event], Awaitable[None]]


class EventChannel:
    def __init__(self, history_size: int = 1000):
        self._subscribers: Dict[EventKind, List[Handler]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()
        self._history: Deque[Event] = deque(maxlen=history_size)

    def subscribe(self, kind: EventKind, handler: Handler) -> None:
        self._subscribers[kind].append(handler)

    def unsubscribe(self, kind: EventKind, handler: Handler) -> None:
        try:
            self._subscribers[kind].remove(handler)
        except ValueError:
            pass

    def subscribers(self, kind: EventKind) -> List[Handler]:
        return list(self._subscribers.get(kind, []))

    async def publish(self, event: Event) -> None:
        """Record ``event`` and schedule delivery to every subscriber of its kind."""
        self._history.append(event)
        for handler in self.subscribers(event.kind):
            task = asyncio.create_task(self._deliver(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: Handler, event: Event) -> None:
        try:
            await handler(event)
        except Exception:
            logger.exception("Handler %s failed for %s", getattr(handler, "__name__", handler), event.kind.value)

    async def settle(self) -> None:
        """Wait until every scheduled delivery, including ones scheduled meanwhile, is done."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def history(self) -> List[Event]:
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
