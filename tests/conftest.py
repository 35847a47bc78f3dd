"""
Shared test fixtures.

Provides:
  • a temporary SQLite store and a course to book on
  • the engine services wired the way the app lifespan wires them,
    with an in-memory lock service and a fixed clock
  • a FastAPI TestClient running the full lifespan against a temp database

The `client` fixture runs the lifespan (DB init / shutdown) with auth
bypassed; `unauthed_client` leaves authentication in place.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from teesheet.db import TeeSheetStore
from teesheet.dependencies import get_current_actor
from teesheet.main import app
from teesheet.models import Course
from teesheet.services.blocks import BlockRegistry
from teesheet.services.booking import BookingCoordinator
from teesheet.services.cache import InMemoryCacheService, TeeSheetCache
from teesheet.services.events import StoreEventSink
from teesheet.services.lifecycle import FlightLifecycle
from teesheet.services.locks import InMemoryLockService
from teesheet.services.schedules import ScheduleService
from teesheet.services.tee_sheet import TeeSheetService
from tests.mocks.models import COURSE_CREATE, FIXED_NOW, MOCK_ACTOR, TENANT
from tests.mocks.services import RecordingLineItemGenerator


# ── Engine fixtures ────────────────────────────────────────────────────────


@pytest_asyncio.fixture()
async def store(tmp_path) -> TeeSheetStore:
    store = TeeSheetStore(str(tmp_path / "test.db"))
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture()
async def course(store: TeeSheetStore) -> Course:
    return await store.create_course(TENANT, COURSE_CREATE)


@pytest.fixture()
def cache() -> TeeSheetCache:
    return TeeSheetCache(InMemoryCacheService())


@pytest.fixture()
def blocks(store: TeeSheetStore) -> BlockRegistry:
    return BlockRegistry(store)


@pytest.fixture()
def locks() -> InMemoryLockService:
    return InMemoryLockService()


@pytest.fixture()
def events(store: TeeSheetStore) -> StoreEventSink:
    return StoreEventSink(store)


@pytest.fixture()
def line_items() -> RecordingLineItemGenerator:
    return RecordingLineItemGenerator()


@pytest.fixture()
def tee_sheet(store, cache, blocks) -> TeeSheetService:
    return TeeSheetService(store, cache, blocks)


@pytest.fixture()
def booking(store, tee_sheet, blocks, locks, events, line_items) -> BookingCoordinator:
    return BookingCoordinator(
        store, tee_sheet, blocks, locks, events,
        line_items=line_items, clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def lifecycle(store, events, line_items) -> FlightLifecycle:
    return FlightLifecycle(store, events, line_items=line_items, clock=lambda: FIXED_NOW)


@pytest.fixture()
def schedules(store, cache) -> ScheduleService:
    return ScheduleService(store, cache)


# ── API fixtures ───────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, tmp_path):
    """
    Point the app lifespan at a temp database with in-process locks and
    disable rate limiting.
    """
    monkeypatch.setattr("teesheet.config.DB_PATH", str(tmp_path / "api.db"))
    monkeypatch.setattr("teesheet.config.LOCK_BACKEND", "memory")

    from teesheet.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)


@pytest.fixture()
def client(_test_env) -> TestClient:
    """
    FastAPI TestClient with a temp DB and auth bypassed.

    Uses a context manager so the lifespan runs (DB init/shutdown).
    """
    async def _mock_current_actor():
        return MOCK_ACTOR

    app.dependency_overrides[get_current_actor] = _mock_current_actor

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()


@pytest.fixture()
def unauthed_client(_test_env) -> TestClient:
    """
    TestClient without auth overrides: requests are rejected unless
    a token is provided.
    """
    app.dependency_overrides.clear()

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

    app.dependency_overrides.clear()
