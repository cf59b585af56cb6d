# swapit_feed/models.py
"""SQLAlchemy ORM models for the feed index.

``FeedEntry`` holds one denormalized summary per active listing. Tags live in
``FeedEntryTag`` rows that also carry ``created_at`` and ``price_amount`` so
tag queries have compound indexes to use.
"""
from sqlalchemy import Column, Text, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from .db import Base

class FeedEntry(Base):
    __tablename__ = "feed_index"
    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text)
    image_url = Column(Text)
    price_amount = Column(Numeric(asdecimal=False), nullable=False)
    price_currency = Column(Text, nullable=False)
    seller_id = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    last_updated_at = Column(DateTime(timezone=True), nullable=False)

    tag_rows = relationship("FeedEntryTag", lazy="selectin", order_by="FeedEntryTag.tag")

class FeedEntryTag(Base):
    __tablename__ = "feed_index_tags"
    listing_id = Column(Text, ForeignKey("feed_index.id", ondelete="CASCADE"), primary_key=True)
    tag = Column(Text, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    price_amount = Column(Numeric(asdecimal=False), nullable=False)

Index("idx_feed_created", FeedEntry.created_at.desc(), FeedEntry.id.desc())
Index("idx_feed_price", FeedEntry.price_amount)
Index("idx_feed_price_created", FeedEntry.price_amount, FeedEntry.created_at.desc())
# tag lookups use the leading column of the compound indexes
Index("idx_feed_tags_tag_created", FeedEntryTag.tag, FeedEntryTag.created_at.desc(), FeedEntryTag.listing_id.desc())
Index("idx_feed_tags_tag_price_created", FeedEntryTag.tag, FeedEntryTag.price_amount, FeedEntryTag.created_at.desc())
