import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Cookie, Depends, Header, HTTPException, Request, status

from teesheet.config import JWT_ALGORITHM, JWT_EXPIRY_DAYS, JWT_SECRET
from teesheet.models import Actor
from teesheet.services.booking import BookingCoordinator
from teesheet.services.lifecycle import FlightLifecycle
from teesheet.services.schedules import ScheduleService
from teesheet.services.tee_sheet import TeeSheetService

logger = logging.getLogger(__name__)


# ── JWT / Session ──────────────────────────────────────────────────────────


def create_jwt(user_id: str, tenant_id: str, email: str | None = None) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "tenant": tenant_id,
        "email": email,
        "iat": now,
        "exp": now + timedelta(days=JWT_EXPIRY_DAYS),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


async def get_current_actor(
    session: Annotated[str | None, Cookie()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> Actor:
    token = _bearer_token(authorization) or session
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
        )

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please log in again.",
        ) from None
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session. Please log in again.",
        ) from None

    user_id: str | None = payload.get("sub")
    tenant_id: str | None = payload.get("tenant")
    if not user_id or not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload.",
        )

    return Actor(user_id=user_id, email=payload.get("email"), tenant_id=tenant_id)


CurrentActor = Annotated[Actor, Depends(get_current_actor)]


# ── Services (wired in the app lifespan) ───────────────────────────────────


def get_tee_sheet_service(request: Request) -> TeeSheetService:
    return request.app.state.tee_sheet


def get_booking_coordinator(request: Request) -> BookingCoordinator:
    return request.app.state.booking


def get_flight_lifecycle(request: Request) -> FlightLifecycle:
    return request.app.state.lifecycle


def get_schedule_service(request: Request) -> ScheduleService:
    return request.app.state.schedules


TeeSheet = Annotated[TeeSheetService, Depends(get_tee_sheet_service)]
Booking = Annotated[BookingCoordinator, Depends(get_booking_coordinator)]
Lifecycle = Annotated[FlightLifecycle, Depends(get_flight_lifecycle)]
Schedules = Annotated[ScheduleService, Depends(get_schedule_service)]
