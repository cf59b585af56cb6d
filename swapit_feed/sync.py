# swapit_feed/sync.py
"""Keeps the feed index eventually consistent with the listing source.

Every handler runs as its own task and is fire-and-forget: failures are
logged with the listing id and event kind and never reach the publisher.
Writes are full-snapshot replaces and the last write to finish wins. A stale
``ListingUpdated`` processed after a ``ListingWithdrawn`` can therefore put
the summary back until the next event for that listing arrives; the index
converges once in-flight events settle, it is not kept strictly consistent.

Store writes are plain synchronous SQLAlchemy calls made from the handler
coroutines, so they run on the event loop. A slow database write holds up
every other coroutine on that loop, including other handlers, until it
commits.
"""
import asyncio
from datetime import datetime
from typing import Callable, Optional
from pydantic import ValidationError
from sqlalchemy.orm import Session
from . import crud
from .errors import ListingNotFoundError, ListingSourceError
from .events import (
    EventChannel, EventKind, FeedUpdated, ListingCreated, ListingEvent,
    ListingSold, ListingUpdated, ListingWithdrawn,
)
from .schemas import ListingSnapshot, ListingSummary
from .sources import ListingSource
from .utils import logger, utcnow


class FeedSynchronizer:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        channel: EventChannel,
        source: ListingSource,
        fetch_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._channel = channel
        self._source = source
        self._fetch_timeout = fetch_timeout
        self._clock = clock
        self._registered = False

    def _handlers(self):
        return {
            EventKind.LISTING_CREATED: self.handle_created,
            EventKind.LISTING_UPDATED: self.handle_updated,
            EventKind.LISTING_WITHDRAWN: self.handle_withdrawn,
            EventKind.LISTING_SOLD: self.handle_sold,
        }

    def register(self) -> None:
        if self._registered:
            return
        for kind, handler in self._handlers().items():
            self._channel.subscribe(kind, handler)
        self._registered = True

    def unregister(self) -> None:
        for kind, handler in self._handlers().items():
            self._channel.unsubscribe(kind, handler)
        self._registered = False

    async def handle_created(self, event: ListingCreated) -> None:
        try:
            snapshot = await self._fetch(event.listing_id)
            if snapshot.is_active:
                await self._upsert(snapshot)
            else:
                logger.debug("Listing %s created with status %s, not indexed", event.listing_id, snapshot.status.value)
        except ListingNotFoundError:
            # lost a race with a later deletion
            logger.warning("Dropping %s for %s: listing not found", event.kind.value, event.listing_id)
        except Exception:
            self._log_failure(event)

    async def handle_updated(self, event: ListingUpdated) -> None:
        try:
            try:
                snapshot = await self._fetch(event.listing_id)
            except ListingNotFoundError:
                logger.info("Listing %s is gone from the source, removing from feed", event.listing_id)
                await self._remove(event.listing_id)
                return
            if snapshot.is_active:
                await self._upsert(snapshot)
            else:
                await self._remove(event.listing_id)
        except Exception:
            self._log_failure(event)

    async def handle_withdrawn(self, event: ListingWithdrawn) -> None:
        await self._remove_for(event)

    async def handle_sold(self, event: ListingSold) -> None:
        await self._remove_for(event)

    async def _remove_for(self, event: ListingEvent) -> None:
        # the event alone is authoritative for removal
        try:
            await self._remove(event.listing_id)
        except Exception:
            self._log_failure(event)

    async def _fetch(self, listing_id: str) -> ListingSnapshot:
        try:
            snapshot = await asyncio.wait_for(self._source.get_listing(listing_id), timeout=self._fetch_timeout)
        except ListingNotFoundError:
            raise
        except asyncio.TimeoutError as e:
            raise ListingSourceError(f"Timed out fetching listing {listing_id}") from e
        except Exception as e:
            raise ListingSourceError(f"Could not retrieve listing {listing_id}: {e}") from e
        if snapshot is None:
            raise ListingNotFoundError(listing_id)
        if not isinstance(snapshot, ListingSnapshot):
            try:
                snapshot = ListingSnapshot.model_validate(snapshot)
            except ValidationError as e:
                raise ListingSourceError(f"Malformed snapshot for listing {listing_id}: {e}") from e
        return snapshot

    async def _upsert(self, snapshot: ListingSnapshot) -> None:
        summary = ListingSummary.from_snapshot(snapshot, synced_at=self._clock())
        self._run(crud.upsert_summary, summary)
        logger.info("Synced listing %s into feed", snapshot.id)
        await self._notify(f"Listing {snapshot.id} synced into feed")

    async def _remove(self, listing_id: str) -> None:
        if self._run(crud.remove_summary, listing_id):
            logger.info("Removed listing %s from feed", listing_id)
            await self._notify(f"Listing {listing_id} removed from feed")

    def _run(self, op, *args):
        db = self._session_factory()
        try:
            return op(db, *args)
        finally:
            db.close()

    async def _notify(self, message: str) -> None:
        await self._channel.publish(FeedUpdated(timestamp=self._clock(), message=message))

    def _log_failure(self, event: ListingEvent) -> None:
        logger.exception("Failed to process %s for listing %s", event.kind.value, event.listing_id)
