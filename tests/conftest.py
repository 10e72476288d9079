import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.pool import StaticPool

# Add project root to path to allow importing app modules
PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT / 'backend'))

from app.database import build_engine, build_session_factory, transaction
from app.models import Base, Category
from app.schemas import ResourceCreate
from app.services.lifecycle import ResourceLifecycleEngine
from app.services.moderation import Caller, ModerationGateway


class FakeClock:
    """Strictly increasing timestamps, one second apart."""

    def __init__(self, start=datetime(2024, 1, 15, 12, 0, 0)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lifecycle(session_factory, clock):
    return ResourceLifecycleEngine(session_factory, clock=clock)


@pytest.fixture
def gateway(lifecycle):
    return ModerationGateway(lifecycle)


@pytest.fixture
def moderator():
    return Caller(identity="mod@farlandet.example", is_moderator=True)


@pytest.fixture
def visitor():
    return Caller(identity="parent@example.com", is_moderator=False)


@pytest.fixture
def category_id(session_factory):
    with transaction(session_factory) as session:
        category = Category(name="Sleep", description="Sleep routines")
        session.add(category)
        session.flush()
        return category.id


@pytest.fixture
def make_resource(lifecycle):
    """Submit a resource through the engine and return the response."""

    def _make(title="Sleep Guide", tags=("baby", "sleep"), **fields):
        fields.setdefault("resource_type", "article")
        return lifecycle.submit(ResourceCreate(title=title, tags=list(tags), **fields))

    return _make
