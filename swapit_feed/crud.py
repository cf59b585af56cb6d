# swapit_feed/crud.py
"""Feed index store: idempotent upsert, removal and filtered, paginated reads.

No business validation happens here; callers hand in validated summaries
and filters.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy import and_
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional
from .models import FeedEntry, FeedEntryTag
from .schemas import FeedFilters, ListingSummary, Money

_NATIVE_UPSERT = {"postgresql": pg_insert, "sqlite": sqlite_insert}

def _entry_values(summary: ListingSummary) -> Dict[str, Any]:
    return {
        "id": summary.id,
        "title": summary.title,
        "description": summary.description,
        "image_url": summary.image_url,
        "price_amount": summary.price.amount,
        "price_currency": summary.price.currency,
        "seller_id": summary.seller_id,
        "created_at": summary.created_at,
        "last_updated_at": summary.last_updated_at,
    }

def _to_summary(entry: FeedEntry) -> ListingSummary:
    return ListingSummary(
        id=entry.id,
        title=entry.title,
        description=entry.description,
        image_url=entry.image_url,
        price=Money(amount=entry.price_amount, currency=entry.price_currency),
        tags=[row.tag for row in entry.tag_rows],
        created_at=entry.created_at,
        last_updated_at=entry.last_updated_at,
        seller_id=entry.seller_id,
    )

def upsert_summary(db: Session, summary: ListingSummary):
    """Replace the stored summary for ``summary.id`` (or insert it).

    Every column except ``created_at`` is overwritten and the tag rows are
    replaced wholesale, all in one commit.
    """
    table = FeedEntry.__table__
    values = _entry_values(summary)
    insert = _NATIVE_UPSERT.get(db.get_bind().dialect.name)
    try:
        if insert is not None:
            stmt = insert(table).values(**values)
            excluded = {c.name: stmt.excluded[c.name] for c in table.columns if c.name not in ("id", "created_at")}
            stmt = stmt.on_conflict_do_update(index_elements=["id"], set_=excluded)
            db.execute(stmt)
        else:
            first_created = db.query(FeedEntry.created_at).filter(FeedEntry.id == summary.id).scalar()
            if first_created is not None:
                values["created_at"] = first_created
            db.merge(FeedEntry(**values))
            db.flush()
        created_at = db.query(FeedEntry.created_at).filter(FeedEntry.id == summary.id).scalar()
        db.query(FeedEntryTag).filter(FeedEntryTag.listing_id == summary.id).delete(synchronize_session=False)
        db.add_all([
            FeedEntryTag(listing_id=summary.id, tag=tag, created_at=created_at, price_amount=summary.price.amount)
            for tag in summary.tags
        ])
        db.commit()
    except Exception:
        db.rollback()
        raise

def remove_summary(db: Session, listing_id: str) -> bool:
    try:
        db.query(FeedEntryTag).filter(FeedEntryTag.listing_id == listing_id).delete(synchronize_session=False)
        removed = db.query(FeedEntry).filter(FeedEntry.id == listing_id).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return removed > 0

def summary_exists(db: Session, listing_id: str) -> bool:
    return db.query(FeedEntry.id).filter(FeedEntry.id == listing_id).first() is not None

def get_summary(db: Session, listing_id: str) -> Optional[ListingSummary]:
    entry = db.query(FeedEntry).filter(FeedEntry.id == listing_id).first()
    return _to_summary(entry) if entry else None

def count_summaries(db: Session) -> int:
    return db.query(FeedEntry).count()

def tagged_listings(db: Session, filters: FeedFilters):
    """Ordered (listing_id, created_at) rows matching the tag and price predicates.

    Reads only ``feed_index_tags`` so the compound tag indexes serve the
    lookup and the ordering. A listing matching several tags appears once.
    """
    q = db.query(FeedEntryTag.listing_id, FeedEntryTag.created_at)
    if len(filters.tags) == 1:
        q = q.filter(FeedEntryTag.tag == filters.tags[0])
    else:
        q = q.filter(FeedEntryTag.tag.in_(filters.tags)).distinct()
    if filters.min_price is not None:
        q = q.filter(FeedEntryTag.price_amount >= filters.min_price)
    if filters.max_price is not None:
        q = q.filter(FeedEntryTag.price_amount <= filters.max_price)
    return q.order_by(FeedEntryTag.created_at.desc(), FeedEntryTag.listing_id.desc())

def _query_by_tags(db: Session, filters: FeedFilters, skip: int, limit: int):
    matches = tagged_listings(db, filters)
    total = matches.count()
    ids = [row.listing_id for row in matches.offset(skip).limit(limit).all()]
    entries = {}
    if ids:
        entries = {e.id: e for e in db.query(FeedEntry).filter(FeedEntry.id.in_(ids)).all()}
    return {"total": total, "items": [_to_summary(entries[i]) for i in ids if i in entries]}

def query_summaries(db: Session, filters: FeedFilters, skip: int = 0, limit: int = 20):
    if filters.tags is not None:
        return _query_by_tags(db, filters, skip, limit)
    q = db.query(FeedEntry)
    conds = []
    if filters.min_price is not None:
        conds.append(FeedEntry.price_amount >= filters.min_price)
    if filters.max_price is not None:
        conds.append(FeedEntry.price_amount <= filters.max_price)
    if conds:
        q = q.filter(and_(*conds))
    total = q.count()
    entries = (
        q.order_by(FeedEntry.created_at.desc(), FeedEntry.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return {"total": total, "items": [_to_summary(e) for e in entries]}
