# swapit_feed/sources.py
"""Read access to the authoritative listing store.

The feed only ever calls ``get_listing``. ``InMemoryListingSource`` is a
dict-backed stand-in for local runs and tests; its mutators mirror the
lifecycle operations of the real store but emit no events.
"""
import asyncio
from typing import Dict, Optional, Protocol, runtime_checkable
from .errors import ListingNotFoundError
from .schemas import ListingSnapshot, ListingStatus
from .utils import utcnow


@runtime_checkable
class ListingSource(Protocol):
    async def get_listing(self, listing_id: str) -> Optional[ListingSnapshot]:
        """Return the current snapshot, or ``None`` when the listing does not exist."""
        ...


class InMemoryListingSource:
    def __init__(self, latency: float = 0.0):
        self.latency = latency
        self._listings: Dict[str, ListingSnapshot] = {}

    async def get_listing(self, listing_id: str) -> Optional[ListingSnapshot]:
        if self.latency:
            await asyncio.sleep(self.latency)
        return self._listings.get(listing_id)

    def put(self, snapshot: ListingSnapshot) -> ListingSnapshot:
        self._listings[snapshot.id] = snapshot
        return snapshot

    def update(self, listing_id: str, **changes) -> ListingSnapshot:
        existing = self._require(listing_id)
        changes.setdefault("updated_at", utcnow())
        updated = ListingSnapshot.model_validate({**existing.model_dump(), **changes})
        self._listings[listing_id] = updated
        return updated

    def set_status(self, listing_id: str, status: ListingStatus) -> ListingSnapshot:
        return self.update(listing_id, status=status)

    def withdraw(self, listing_id: str) -> ListingSnapshot:
        return self.set_status(listing_id, ListingStatus.WITHDRAWN)

    def sell(self, listing_id: str) -> ListingSnapshot:
        return self.set_status(listing_id, ListingStatus.SOLD)

    def delete(self, listing_id: str) -> None:
        self._listings.pop(listing_id, None)

    def _require(self, listing_id: str) -> ListingSnapshot:
        try:
            return self._listings[listing_id]
        except KeyError:
            raise ListingNotFoundError(listing_id) from None
