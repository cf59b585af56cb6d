# swapit_feed/services.py
"""Public surface of the feed.

Every read validates its arguments before touching storage and raises
``InvalidInputError`` on bad input; storage failures surface as
``StorageError``.
"""
from typing import Callable, Iterable, Optional
from sqlalchemy.orm import Session
from .errors import InvalidInputError
from .events import EventChannel, FeedUpdated
from .query import (
    DEFAULT_PAGE_SIZE, FeedQueryEngine, PriceBound, validate_page,
    validate_price_bounds, validate_tag, validate_tags,
)
from .schemas import FeedFilters, FeedView
from .utils import logger


class FeedService:
    def __init__(self, session_factory: Callable[[], Session], channel: EventChannel,
                 query_engine: Optional[FeedQueryEngine] = None):
        self._channel = channel
        self._engine = query_engine or FeedQueryEngine(session_factory)

    def get_latest(self, n: int = DEFAULT_PAGE_SIZE, page: int = 1) -> FeedView:
        validate_page(n, page)
        return self._engine.execute(FeedFilters(), n, page)

    def filter_by_tag(self, tag: str, n: int = DEFAULT_PAGE_SIZE, page: int = 1) -> FeedView:
        validate_page(n, page)
        filters = FeedFilters(tags=[validate_tag(tag)])
        return self._engine.execute(filters, n, page)

    def filter_by_tags(self, tags: Iterable[str], n: int = DEFAULT_PAGE_SIZE, page: int = 1) -> FeedView:
        """Listings carrying any of ``tags``."""
        validate_page(n, page)
        filters = FeedFilters(tags=validate_tags(tags))
        return self._engine.execute(filters, n, page)

    def filter_by_price(self, min_price: PriceBound = None, max_price: PriceBound = None,
                        n: int = DEFAULT_PAGE_SIZE, page: int = 1) -> FeedView:
        validate_page(n, page)
        low, high = validate_price_bounds(min_price, max_price, required=True)
        return self._engine.execute(FeedFilters(min_price=low, max_price=high), n, page)

    def filter_by_combined(self, tag: Optional[str] = None, min_price: PriceBound = None,
                           max_price: PriceBound = None, n: int = DEFAULT_PAGE_SIZE,
                           page: int = 1, tags: Optional[Iterable[str]] = None) -> FeedView:
        """Conjunction of whichever predicates are given; none given behaves like ``get_latest``.

        ``tags`` matches listings carrying any of them and cannot be combined
        with ``tag``.
        """
        validate_page(n, page)
        if tag is not None and tags is not None:
            raise InvalidInputError("Pass either tag or tags, not both.")
        if tags is not None:
            tags = validate_tags(tags)
        elif tag is not None:
            tags = [validate_tag(tag)]
        low, high = validate_price_bounds(min_price, max_price)
        return self._engine.execute(FeedFilters(tags=tags, min_price=low, max_price=high), n, page)

    def filter_by_tags_and_price(self, tags: Iterable[str], min_price: PriceBound = None,
                                 max_price: PriceBound = None, n: int = DEFAULT_PAGE_SIZE,
                                 page: int = 1) -> FeedView:
        return self.filter_by_combined(None, min_price, max_price, n, page, tags=tags)

    async def refresh_feed(self) -> FeedUpdated:
        event = FeedUpdated(message="Feed refreshed")
        await self._channel.publish(event)
        logger.info("Feed refresh notification published")
        return event
