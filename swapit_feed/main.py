# swapit_feed/main.py
"""FastAPI wiring for the feed.

The feed only fills up when listing events reach its channel. A host service
embeds it with ``create_app(source=<its listing source>, channel=<the channel
it publishes lifecycle events on>)``. The module-level ``app`` (for
``uvicorn swapit_feed.main:app``) has an empty in-memory source and nothing
publishing into its channel, so it serves whatever the index already holds;
it is meant for local experiments and for reading an index filled by another
process sharing ``FEED_DATABASE_URL``.
"""
import os
from dotenv import load_dotenv
from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker
from . import db
from .api.routes import router as api_router
from .events import EventChannel
from .scheduler import start_refresh_scheduler
from .services import FeedService
from .sources import InMemoryListingSource, ListingSource
from .sync import FeedSynchronizer
from .utils import logger

load_dotenv()
FETCH_TIMEOUT = os.getenv("FEED_FETCH_TIMEOUT_SECONDS")
REFRESH_INTERVAL = os.getenv("FEED_REFRESH_INTERVAL_SECONDS")


def create_app(engine=None, source: ListingSource = None, channel: EventChannel = None,
               refresh_interval: float = None) -> FastAPI:
    """Wire the feed index, synchronizer and HTTP routes into a FastAPI app.

    Without a ``source`` the app runs against an empty in-memory listing
    source, which is only useful for local experiments.
    """
    bind = engine if engine is not None else db.engine
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=bind)
    channel = channel or EventChannel()
    if source is None:
        logger.warning("No listing source configured, using an in-memory source")
        source = InMemoryListingSource()
    if refresh_interval is None and REFRESH_INTERVAL:
        refresh_interval = float(REFRESH_INTERVAL)

    synchronizer = FeedSynchronizer(
        session_factory, channel, source,
        fetch_timeout=float(FETCH_TIMEOUT) if FETCH_TIMEOUT else None,
    )
    service = FeedService(session_factory, channel)

    app = FastAPI(title="SwapIt Feed")
    app.state.session_factory = session_factory
    app.state.channel = channel
    app.state.listing_source = source
    app.state.synchronizer = synchronizer
    app.state.feed_service = service
    app.state.scheduler = None
    app.include_router(api_router)

    @app.on_event("startup")
    async def on_startup():
        db.init_db(bind)
        synchronizer.register()
        if refresh_interval:
            app.state.scheduler = start_refresh_scheduler(service, refresh_interval)

    @app.on_event("shutdown")
    async def on_shutdown():
        if app.state.scheduler is not None:
            app.state.scheduler.shutdown(wait=False)
        await channel.settle()
        synchronizer.unregister()

    return app


app = create_app()
