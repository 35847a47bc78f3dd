"""
Test doubles for the engine's pluggable collaborators.
"""

from __future__ import annotations

from teesheet.models import DomainEvent, Flight


class RecordingLineItemGenerator:
    """Remembers every flight it was asked to bill."""

    def __init__(self) -> None:
        self.flights: list[Flight] = []

    async def generate_for_flight(self, flight: Flight) -> None:
        self.flights.append(flight)


class FailingLineItemGenerator:
    """Always fails, like a billing backend that is down."""

    def __init__(self) -> None:
        self.calls = 0

    async def generate_for_flight(self, flight: Flight) -> None:
        self.calls += 1
        raise RuntimeError("billing unavailable")


class FailingEventSink:
    """An event sink whose writes always fail."""

    async def append(self, event: DomainEvent) -> DomainEvent:
        raise RuntimeError("event store unavailable")

    async def list_for_aggregate(
        self, tenant_id: str, aggregate_type: str, aggregate_id: str,
    ) -> list[DomainEvent]:
        return []
