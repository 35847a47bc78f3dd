"""
FastAPI application – tee-sheet scheduling and flight booking.

The lifespan opens the database, wires the services onto ``app.state`` and
runs the lock sweeper; engine errors are mapped to HTTP status codes here.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from teesheet import __version__, config
from teesheet.db import TeeSheetStore
from teesheet.errors import TeeSheetError
from teesheet.rate_limit import limiter
from teesheet.routers import admin, flights, health, tee_sheet
from teesheet.services.blocks import BlockRegistry
from teesheet.services.booking import BookingCoordinator
from teesheet.services.cache import InMemoryCacheService, TeeSheetCache
from teesheet.services.events import StoreEventSink
from teesheet.services.lifecycle import FlightLifecycle
from teesheet.services.line_items import LoggingLineItemGenerator
from teesheet.services.locks import InMemoryLockService, LockService, LockSweeper, SqliteLockService
from teesheet.services.schedules import ScheduleService
from teesheet.services.tee_sheet import TeeSheetService

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
)
logger = logging.getLogger(__name__)


def _lock_service(store: TeeSheetStore) -> LockService:
    if config.LOCK_BACKEND == "memory":
        return InMemoryLockService()
    if config.LOCK_BACKEND == "sqlite":
        return SqliteLockService(store)
    raise ValueError(f"Unknown LOCK_BACKEND {config.LOCK_BACKEND!r}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    store = TeeSheetStore(config.DB_PATH)
    await store.connect()

    cache = TeeSheetCache(InMemoryCacheService())
    blocks = BlockRegistry(store)
    locks = _lock_service(store)
    events = StoreEventSink(store)
    line_items = LoggingLineItemGenerator()

    tee_sheet_service = TeeSheetService(
        store, cache, blocks, max_players=config.MAX_PLAYERS_PER_SLOT,
    )
    app.state.store = store
    app.state.cache = cache
    app.state.locks = locks
    app.state.tee_sheet = tee_sheet_service
    app.state.booking = BookingCoordinator(
        store, tee_sheet_service, blocks, locks, events,
        line_items=line_items,
        lock_ttl=config.SLOT_LOCK_TTL_SECONDS,
        max_players=config.MAX_PLAYERS_PER_SLOT,
    )
    app.state.lifecycle = FlightLifecycle(
        store, events, line_items=line_items, max_players=config.MAX_PLAYERS_PER_SLOT,
    )
    app.state.schedules = ScheduleService(store, cache)

    sweeper = LockSweeper(locks, interval=config.LOCK_SWEEP_INTERVAL)
    await sweeper.start()
    logger.info("Tee-sheet engine ready (locks: %s)", config.LOCK_BACKEND)

    yield

    await sweeper.stop()
    await store.close()


app = FastAPI(
    title="Club Tee Sheet API",
    description="Tee-sheet scheduling and flight booking for golf clubs",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TeeSheetError)
async def tee_sheet_error_handler(request: Request, exc: TeeSheetError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(health.router)
app.include_router(tee_sheet.router)
app.include_router(flights.router)
app.include_router(admin.router)
