# tests/conftest.py
import pytest
from sqlalchemy.orm import sessionmaker
from swapit_feed.db import init_db, make_engine
from swapit_feed.events import EventChannel
from swapit_feed.services import FeedService
from swapit_feed.sources import InMemoryListingSource
from swapit_feed.sync import FeedSynchronizer
from factories import SYNC_TIME


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'feed.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def channel():
    return EventChannel()


@pytest.fixture
def source():
    return InMemoryListingSource()


@pytest.fixture
def synchronizer(session_factory, channel, source):
    sync = FeedSynchronizer(session_factory, channel, source, clock=lambda: SYNC_TIME)
    sync.register()
    return sync


@pytest.fixture
def feed(session_factory, channel):
    return FeedService(session_factory, channel)
