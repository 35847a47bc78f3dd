"""
Liveness endpoint; unauthenticated and not rate limited.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from teesheet import __version__
from teesheet.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Service and database status")
async def get_health(request: Request) -> HealthResponse:
    database_ok = await request.app.state.store.ping()
    return HealthResponse(
        status="ok" if database_ok else "degraded",
        version=__version__,
        database="ok" if database_ok else "unavailable",
        timestamp=datetime.now(timezone.utc),
    )
