"""
Post-booking side effects.

After a flight is booked (or its players replaced) the billing side
derives line items for green fees, carts, caddies and rentals.  That work
belongs to another subsystem; here it is a pluggable hook whose failure
never undoes the booking.
"""

from __future__ import annotations

import logging
from typing import Protocol

from teesheet.models import Flight, RequestOption

logger = logging.getLogger(__name__)


class LineItemGenerator(Protocol):
    async def generate_for_flight(self, flight: Flight) -> None: ...


class LoggingLineItemGenerator:
    """Default hook: records what a billing integration would charge."""

    async def generate_for_flight(self, flight: Flight) -> None:
        extras = sum(
            1
            for p in flight.players
            for request in (p.cart_request, p.caddy_request, p.rental_request)
            if request == RequestOption.REQUEST
        )
        logger.info(
            "Line items for %s: %d green fees, %d extras",
            flight.booking_number or flight.id, len(flight.players), extras,
        )


async def generate_line_items(generator: LineItemGenerator | None, flight: Flight) -> None:
    """Run *generator*; log and carry on if it fails – staff can add items by hand."""
    if generator is None:
        return
    try:
        await generator.generate_for_flight(flight)
    except Exception as exc:
        logger.warning("Failed to generate line items for tee time %s: %s", flight.id, exc)
