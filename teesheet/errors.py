"""
Error taxonomy for the tee-sheet engine.

Services raise these; the HTTP layer maps them to status codes in
``teesheet.main``.  Conflict and invalid-request errors carry enough
detail (remaining capacity, block) for a caller to build a useful message.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)


class TeeSheetError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message}


class NotFound(TeeSheetError):
    """Course, flight, schedule or block absent or not owned by the tenant."""

    status_code = 404


class Conflict(TeeSheetError):
    """Slot lock not acquired, capacity exceeded, overlapping schedule or a lost status race."""

    status_code = 409

    def __init__(self, message: str, *, remaining_capacity: int | None = None) -> None:
        super().__init__(message)
        self.remaining_capacity = remaining_capacity

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.remaining_capacity is not None:
            body["remaining_capacity"] = self.remaining_capacity
        return body


class InvalidRequest(TeeSheetError):
    """Blocked time, invalid state transition or malformed input."""

    status_code = 400

    def __init__(self, message: str, *, block: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.block = block

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.block is not None:
            body["block"] = self.block
        return body


class Fatal(TeeSheetError):
    """Persistence or lock service unavailable. Details are not exposed."""

    status_code = 500

    def to_dict(self) -> dict[str, Any]:
        return {"detail": "Internal error"}


@contextmanager
def store_errors() -> Iterator[None]:
    """Re-raise database failures as :class:`Fatal`."""
    try:
        yield
    except aiosqlite.Error as exc:
        logger.exception("Persistence failure")
        raise Fatal("Persistence layer unavailable") from exc
