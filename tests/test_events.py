# tests/test_events.py
import asyncio
from swapit_feed.events import EventChannel, EventKind, FeedUpdated, ListingCreated, ListingSold


def test_publish_does_not_wait_for_handlers():
    channel = EventChannel()
    seen = []

    async def slow_handler(event):
        await asyncio.sleep(0.01)
        seen.append(event.listing_id)

    channel.subscribe(EventKind.LISTING_CREATED, slow_handler)

    async def scenario():
        await channel.publish(ListingCreated(listing_id="a"))
        assert seen == []
        assert channel.pending == 1
        await channel.settle()
        assert seen == ["a"]
        assert channel.pending == 0

    asyncio.run(scenario())


def test_handler_failure_is_isolated():
    channel = EventChannel()
    seen = []

    async def broken(event):
        raise RuntimeError("boom")

    async def healthy(event):
        seen.append(event.listing_id)

    channel.subscribe(EventKind.LISTING_SOLD, broken)
    channel.subscribe(EventKind.LISTING_SOLD, healthy)

    async def scenario():
        await channel.publish(ListingSold(listing_id="s1", buyer_id="b1"))
        await channel.settle()

    asyncio.run(scenario())
    assert seen == ["s1"]


def test_settle_waits_for_follow_up_events():
    channel = EventChannel()
    refreshed = []

    async def on_created(event):
        await channel.publish(FeedUpdated(message=f"added {event.listing_id}"))

    async def on_feed_updated(event):
        await asyncio.sleep(0.01)
        refreshed.append(event.message)

    channel.subscribe(EventKind.LISTING_CREATED, on_created)
    channel.subscribe(EventKind.FEED_UPDATED, on_feed_updated)

    async def scenario():
        await channel.publish(ListingCreated(listing_id="c1"))
        await channel.settle()

    asyncio.run(scenario())
    assert refreshed == ["added c1"]


def test_history_is_bounded_and_clearable():
    channel = EventChannel(history_size=2)

    async def scenario():
        for i in range(3):
            await channel.publish(ListingCreated(listing_id=f"id-{i}"))

    asyncio.run(scenario())
    assert [e.listing_id for e in channel.history] == ["id-1", "id-2"]
    channel.clear_history()
    assert channel.history == []


def test_unsubscribe_unknown_handler_is_ignored():
    channel = EventChannel()

    async def handler(event):
        pass

    channel.unsubscribe(EventKind.LISTING_UPDATED, handler)
    channel.subscribe(EventKind.LISTING_UPDATED, handler)
    channel.unsubscribe(EventKind.LISTING_UPDATED, handler)
    assert channel.subscribers(EventKind.LISTING_UPDATED) == []
