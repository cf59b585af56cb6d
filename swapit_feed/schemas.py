# swapit_feed/schemas.py
import math
from enum import Enum
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from .utils import as_utc


class ListingStatus(str, Enum):
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"
    SOLD = "sold"
    PENDING = "pending"


class Money(BaseModel):
    amount: float
    currency: str = Field("USD", min_length=1, max_length=8)


class ListingSnapshot(BaseModel):
    """Full listing as returned by the authoritative listing store."""
    id: str = Field(..., min_length=1, max_length=255)
    title: str
    description: Optional[str] = None
    price: Money
    tags: List[str] = Field(default_factory=list)
    status: ListingStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    seller_id: str
    image_url: Optional[str] = None

    @field_validator("price")
    @classmethod
    def _price_not_negative(cls, v: Money) -> Money:
        if not math.isfinite(v.amount) or v.amount < 0:
            raise ValueError("price amount must be a finite, non-negative number")
        return v

    @field_validator("created_at", "updated_at")
    @classmethod
    def _to_utc(cls, v):
        return as_utc(v) if v is not None else v

    @property
    def is_active(self) -> bool:
        return self.status is ListingStatus.ACTIVE


class ListingSummary(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    price: Money
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    last_updated_at: datetime
    seller_id: str

    @field_validator("tags")
    @classmethod
    def _tag_set(cls, v: List[str]) -> List[str]:
        # same normalization as query tags
        return sorted({t.strip() for t in v if t.strip()})

    @field_validator("created_at", "last_updated_at")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @classmethod
    def from_snapshot(cls, snapshot: ListingSnapshot, synced_at: datetime) -> "ListingSummary":
        return cls(
            id=snapshot.id,
            title=snapshot.title,
            description=snapshot.description,
            image_url=snapshot.image_url,
            price=snapshot.price,
            tags=snapshot.tags,
            created_at=snapshot.created_at,
            last_updated_at=synced_at,
            seller_id=snapshot.seller_id,
        )


class FeedFilters(BaseModel):
    """Predicates of a feed query. ``None`` means the predicate was not supplied."""
    tags: Optional[List[str]] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None

    def is_empty(self) -> bool:
        return self.tags is None and self.min_price is None and self.max_price is None


class SortSpec(BaseModel):
    field: str = "created_at"
    direction: str = "desc"
    tie_breaker: str = "id"


class FeedView(BaseModel):
    items: List[ListingSummary]
    total_count: int
    page: int
    page_size: int
    total_pages: int
    filters: FeedFilters
    sort: SortSpec = Field(default_factory=SortSpec)
