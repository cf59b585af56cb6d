# swapit_feed/db.py
"""Database engine and session utilities for the feed index.

The URL comes from ``FEED_DATABASE_URL``; PostgreSQL in deployment, SQLite
for local runs and tests.
"""
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .utils import retry

load_dotenv()

DATABASE_URL = os.getenv("FEED_DATABASE_URL", "sqlite:///./swapit_feed.db")

# Normalize SQLAlchemy URL scheme (SQLAlchemy 2.x doesn't accept 'postgres://')
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)


def make_engine(url: str = DATABASE_URL):
    if url.startswith("sqlite"):
        # request handlers and event handlers may share the engine across threads
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    # tuned pool settings for cloud DB
    return create_engine(
        url,
        pool_size=int(os.getenv("DB_POOL_SIZE", 5)),
        max_overflow=int(os.getenv("DB_MAX_OVERFLOW", 10)),
        pool_pre_ping=True
    )


engine = make_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


@retry(OperationalError, tries=3, delay=1, backoff=2)
def init_db(bind=None):
    """Create the feed tables and their indexes if they do not exist yet."""
    from . import models  # noqa: F401 ensure models are imported so tables are known
    Base.metadata.create_all(bind=bind if bind is not None else engine)
