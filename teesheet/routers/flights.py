"""
Flight endpoints – booking, player changes, cancellation, check-in.
"""

from fastapi import APIRouter, Request, status

from teesheet.dependencies import Booking, CurrentActor, Lifecycle
from teesheet.models import (
    DomainEvent,
    Flight,
    FlightCancel,
    FlightCreate,
    FlightPlayersUpdate,
    FlightUpdate,
)
from teesheet.rate_limit import BOOKING, limiter

router = APIRouter(prefix="/api/flights", tags=["flights"])


@router.post(
    "",
    response_model=Flight,
    status_code=status.HTTP_201_CREATED,
    operation_id="createFlight",
    summary="Book a tee time",
)
@limiter.limit(BOOKING)
async def create_flight(
    request: Request, body: FlightCreate, actor: CurrentActor, booking: Booking,
) -> Flight:
    """
    Book a flight of 1–4 players.  409 when the slot is full or being
    booked by someone else; 400 when the time is blocked.
    """
    return await booking.create_flight(actor, body)


@router.get(
    "/{flight_id}",
    response_model=Flight,
    operation_id="getFlight",
    summary="Get a flight with its players",
)
async def get_flight(flight_id: str, actor: CurrentActor, lifecycle: Lifecycle) -> Flight:
    return await lifecycle.get_flight(actor.tenant_id, flight_id)


@router.patch(
    "/{flight_id}",
    response_model=Flight,
    operation_id="updateFlight",
    summary="Change holes, notes or status",
)
@limiter.limit(BOOKING)
async def update_flight(
    request: Request,
    flight_id: str,
    body: FlightUpdate,
    actor: CurrentActor,
    lifecycle: Lifecycle,
) -> Flight:
    return await lifecycle.update_flight(actor, flight_id, body)


@router.put(
    "/{flight_id}/players",
    response_model=Flight,
    operation_id="updateFlightPlayers",
    summary="Replace the players of a flight",
)
@limiter.limit(BOOKING)
async def update_flight_players(
    request: Request,
    flight_id: str,
    body: FlightPlayersUpdate,
    actor: CurrentActor,
    lifecycle: Lifecycle,
) -> Flight:
    return await lifecycle.update_flight_players(actor, flight_id, body.players)


@router.post(
    "/{flight_id}/cancel",
    response_model=Flight,
    operation_id="cancelFlight",
    summary="Cancel a flight",
)
@limiter.limit(BOOKING)
async def cancel_flight(
    request: Request,
    flight_id: str,
    body: FlightCancel,
    actor: CurrentActor,
    lifecycle: Lifecycle,
) -> Flight:
    return await lifecycle.cancel_flight(actor, flight_id, body.reason)


@router.post(
    "/{flight_id}/check-in",
    response_model=Flight,
    operation_id="checkInFlight",
    summary="Check in a confirmed flight and all its players",
)
async def check_in_flight(flight_id: str, actor: CurrentActor, lifecycle: Lifecycle) -> Flight:
    return await lifecycle.checkin_flight(actor, flight_id)


@router.get(
    "/{flight_id}/events",
    response_model=list[DomainEvent],
    operation_id="listFlightEvents",
    summary="Audit trail of a flight",
)
async def list_flight_events(
    flight_id: str, actor: CurrentActor, lifecycle: Lifecycle,
) -> list[DomainEvent]:
    return await lifecycle.list_events(actor.tenant_id, flight_id)
