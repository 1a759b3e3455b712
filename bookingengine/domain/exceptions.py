"""
Domain-specific exception hierarchy for the booking engine.
"""

from __future__ import annotations

from typing import Optional


class BookingEngineError(Exception):
    """Base class for all application-level errors."""

    retryable = False


class ValidationError(BookingEngineError, ValueError):
    """Raised when a request is rejected before any store call."""


class InvalidTransitionError(ValidationError):
    """Raised when a reservation cannot move from its status via an event."""

    def __init__(self, reservation_id: str, status: str, event: str):
        self.reservation_id = reservation_id
        self.status = status
        self.event = event
        super().__init__(
            f"Reservation {reservation_id} cannot '{event}' while '{status}'"
        )


class ConflictError(BookingEngineError):
    """
    Raised when the requested slot is occupied.

    Callers should regenerate slots and retry; the engine never picks another
    slot on their behalf.
    """

    retryable = True

    def __init__(
        self,
        message: str,
        *,
        professional_id: Optional[str] = None,
        date: Optional[str] = None,
        time: Optional[str] = None,
        conflicting: Optional[str] = None,
    ):
        self.professional_id = professional_id
        self.date = date
        self.time = time
        self.conflicting = conflicting
        super().__init__(message)


class NotFoundError(BookingEngineError):
    """Raised when a row is missing or was altered concurrently."""


class PermissionDenied(BookingEngineError):
    """Surfaced from the data store; opaque to the engine."""


class StoreError(BookingEngineError):
    """Raised when the data store cannot be reached or answers unexpectedly."""


class StoreTimeoutError(StoreError, TimeoutError):
    """Raised when a store call exceeds the caller's deadline."""

    retryable = True
