"""
Append-only domain event sink.

Flights record every lifecycle change as a :class:`DomainEvent`.  Events
are never updated or deleted.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from teesheet.db import TeeSheetStore
from teesheet.models import Actor, DomainEvent

logger = logging.getLogger(__name__)

FLIGHT_AGGREGATE = "TeeTime"


class EventSink(Protocol):
    async def append(self, event: DomainEvent) -> DomainEvent: ...

    async def list_for_aggregate(
        self, tenant_id: str, aggregate_type: str, aggregate_id: str,
    ) -> list[DomainEvent]: ...


class StoreEventSink:
    """:class:`EventSink` backed by the ``domain_events`` table."""

    def __init__(self, store: TeeSheetStore) -> None:
        self._store = store

    async def append(self, event: DomainEvent) -> DomainEvent:
        stored = await self._store.append_event(event)
        logger.debug(
            "Event %s %s/%s appended", stored.event_type,
            stored.aggregate_type, stored.aggregate_id,
        )
        return stored

    async def list_for_aggregate(
        self, tenant_id: str, aggregate_type: str, aggregate_id: str,
    ) -> list[DomainEvent]:
        return await self._store.list_events(tenant_id, aggregate_type, aggregate_id)


def flight_event(
    actor: Actor, flight_id: str, event_type: str, payload: dict[str, Any] | None = None,
) -> DomainEvent:
    return DomainEvent(
        tenant_id=actor.tenant_id,
        aggregate_type=FLIGHT_AGGREGATE,
        aggregate_id=flight_id,
        event_type=event_type,
        payload=payload or {},
        user_id=actor.user_id,
        user_email=actor.email,
    )
