"""
Query façade consumed by the services.

Every store implementation (in-memory, HTTP) satisfies this protocol. The
store is the single point of concurrency control: it must reject overlapping
active reservations of one professional on one date with ``ConflictError``
even when the engine's pre-check passed.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, List, Optional, Protocol, Sequence, Tuple, TypeVar

from pendulum import Date

from ..domain.exceptions import StoreTimeoutError
from ..domain.models import (
    BookingRequest,
    Business,
    DateRange,
    Expense,
    Professional,
    Reservation,
    ReservationStatus,
    TimeRange,
    WeeklySchedule,
)

T = TypeVar("T")


class ReservationStoreProtocol(Protocol):
    """Protocol describing the data-store behaviour needed by the services."""

    async def get_business(self, business_id: str) -> Business:
        """Return the business or raise NotFoundError."""

    async def get_professional(self, professional_id: str) -> Professional:
        """Return the professional or raise NotFoundError."""

    async def list_professionals(self, business_id: str) -> List[Professional]:
        """Return the professionals of a business."""

    async def get_effective_schedule(
        self,
        business_id: str,
        professional_id: Optional[str] = None,
    ) -> Tuple[WeeklySchedule, Optional[WeeklySchedule]]:
        """Return (business schedule, professional override or None)."""

    async def list_busy_intervals(
        self,
        professional_id: str,
        date: Date,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[TimeRange]:
        """Return intervals of the professional's non-canceled reservations on a date."""

    async def get_reservation(self, reservation_id: str) -> Reservation:
        """Return the reservation or raise NotFoundError."""

    async def create_reservation(self, request: BookingRequest) -> Reservation:
        """Insert a reservation or raise ConflictError."""

    async def update_reservation_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected: Optional[Sequence[ReservationStatus]] = None,
    ) -> Reservation:
        """
        Set the status of a reservation.

        ``expected`` guards against concurrent changes; a row that is missing
        or no longer in one of those statuses raises NotFoundError.
        """

    async def reschedule_reservation(
        self,
        reservation_id: str,
        date: Date,
        time: str,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        expected: Optional[Sequence[ReservationStatus]] = None,
    ) -> Reservation:
        """
        Move a reservation or raise ConflictError.

        Like ``update_reservation_status``, a row that is missing or no longer
        in one of the ``expected`` statuses raises NotFoundError.
        """

    async def purge_reservation(self, reservation_id: str) -> None:
        """Delete a reservation; zero deleted rows raise NotFoundError."""

    async def list_reservations(
        self,
        business_id: str,
        date_range: DateRange,
        professional_id: Optional[str] = None,
    ) -> List[Reservation]:
        """Return reservations of a business in the range, any status."""

    async def list_expenses(self, business_id: str, date_range: DateRange) -> List[Expense]:
        """Return expenses of a business in the range."""


async def call_store(operation: str, awaitable: Awaitable[T], timeout_seconds: Optional[float]) -> T:
    """
    Await a store call under the caller's deadline.

    A timeout is surfaced as StoreTimeoutError, which is retryable.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except StoreTimeoutError:
        raise
    except asyncio.TimeoutError as exc:
        raise StoreTimeoutError(
            f"{operation} did not complete within {timeout_seconds}s"
        ) from exc
