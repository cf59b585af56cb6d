# swapit_feed/query.py
"""Read path of the feed: input validation, predicate building and paging."""
import math
import os
from typing import Callable, List, Optional, Tuple, Union
from dotenv import load_dotenv
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import crud
from .errors import InvalidInputError, StorageError
from .schemas import FeedFilters, FeedView, Money, SortSpec
from .utils import logger

load_dotenv()

DEFAULT_PAGE_SIZE = int(os.getenv("FEED_DEFAULT_PAGE_SIZE", "20"))

PriceBound = Union[Money, int, float, None]

# largest offset or limit the database accepts (signed 64-bit)
MAX_OFFSET = 2 ** 63 - 1


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_page(n, page) -> None:
    if not _is_int(n) or n <= 0:
        raise InvalidInputError("Page size (n) must be a positive integer.")
    if not _is_int(page) or page <= 0:
        raise InvalidInputError("Page number must be a positive integer.")
    if n > MAX_OFFSET or (page - 1) * n > MAX_OFFSET:
        raise InvalidInputError("Page window is out of range.")


def validate_tag(tag) -> str:
    if not isinstance(tag, str) or not tag.strip():
        raise InvalidInputError("Tag must be a non-empty string.")
    return tag.strip()


def validate_tags(tags) -> List[str]:
    if not isinstance(tags, (list, tuple, set, frozenset)) or not tags:
        raise InvalidInputError("Tags must be a non-empty list of strings.")
    return sorted({validate_tag(t) for t in tags})


def _bound_amount(value: PriceBound, label: str) -> Optional[float]:
    if value is None:
        return None
    amount = value.amount if isinstance(value, Money) else value
    if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
        raise InvalidInputError(f"{label} price must be a number.")
    if amount < 0:
        raise InvalidInputError(f"{label} price must be a non-negative number.")
    return float(amount)


def validate_price_bounds(min_price: PriceBound, max_price: PriceBound,
                          required: bool = False) -> Tuple[Optional[float], Optional[float]]:
    low = _bound_amount(min_price, "Minimum")
    high = _bound_amount(max_price, "Maximum")
    if required and low is None and high is None:
        raise InvalidInputError("At least one of minimum or maximum price is required.")
    if low is not None and high is not None and low > high:
        raise InvalidInputError("Minimum price cannot be greater than maximum price.")
    return low, high


def total_pages(total: int, page_size: int) -> int:
    return math.ceil(total / page_size)


class FeedQueryEngine:
    """Runs validated filters against the index and shapes a ``FeedView``."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def execute(self, filters: FeedFilters, page_size: int, page: int) -> FeedView:
        skip = (page - 1) * page_size
        try:
            db = self._session_factory()
            try:
                res = crud.query_summaries(db, filters, skip=skip, limit=page_size)
            finally:
                db.close()
        except SQLAlchemyError as e:
            logger.exception("Feed query failed: %s", filters.model_dump())
            raise StorageError("Failed to query feed.") from e
        return FeedView(
            items=res["items"],
            total_count=res["total"],
            page=page,
            page_size=page_size,
            total_pages=total_pages(res["total"], page_size),
            filters=filters,
            sort=SortSpec(),
        )
