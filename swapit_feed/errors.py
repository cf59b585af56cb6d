# swapit_feed/errors.py
"""Error taxonomy of the feed.

``InvalidInputError`` and ``StorageError`` reach callers of the read
operations. ``ListingNotFoundError`` and ``ListingSourceError`` only occur
while processing events and are handled inside the synchronizer.
"""


class FeedError(Exception):
    code = "FEED_GENERIC_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(FeedError):
    """The request was malformed: bad page window, tag or price bounds."""
    code = "FEED_INVALID_INPUT"


class ListingNotFoundError(FeedError):
    code = "FEED_LISTING_NOT_FOUND"

    def __init__(self, listing_id: str):
        super().__init__(f"Listing {listing_id} not found in the listing source.")
        self.listing_id = listing_id


class ListingSourceError(FeedError):
    """Fetching a snapshot from the listing source failed."""
    code = "FEED_LISTING_SOURCE_ERROR"


class StorageError(FeedError):
    """The feed index could not be read or written."""
    code = "FEED_DATABASE_ERROR"
