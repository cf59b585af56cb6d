# swapit_feed/scheduler.py
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from .services import FeedService
from .utils import logger

def start_refresh_scheduler(service: FeedService, interval_seconds: float) -> AsyncIOScheduler:
    """Publish a ``FeedUpdated`` poke every ``interval_seconds`` for polling consumers.

    Must be called from inside a running event loop.
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(service.refresh_feed, 'interval', seconds=interval_seconds,
                      id="feed-refresh", coalesce=True, max_instances=1)
    scheduler.start()
    logger.info("Feed refresh scheduler started (every %ss)", interval_seconds)
    return scheduler
