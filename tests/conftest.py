import os

import pytest

from tests.helpers import ADMIN, JWT_SECRET, RETIRED, STAFF, STAFF_2, SUPABASE_URL

# Must be in place before the app (and its dotenv loading) is imported.
os.environ["SUPABASE_JWT_SECRET"] = JWT_SECRET
os.environ["PUBLIC_SUPABASE_URL"] = SUPABASE_URL
os.environ["SECRET_API_KEY"] = "service-role-key"

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.core.dependencies import get_clock, get_record_store  # noqa: E402

from tests.fakes import FakeClock, InMemoryRecordStore, QueuedPushChannel  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    store = InMemoryRecordStore(clock=clock)
    store.add_profile(ADMIN, role="admin", nickname="Boss")
    store.add_profile(STAFF, role="staff", nickname="Kim")
    store.add_profile(STAFF_2, role="staff", nickname="Ahn")
    store.add_profile(RETIRED, role="staff", is_active=False)
    return store


@pytest.fixture
def channel(store):
    return QueuedPushChannel(store)


@pytest.fixture
def api_app(store, clock):
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock.now
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(api_app):
    return TestClient(api_app)
