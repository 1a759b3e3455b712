"""
In-memory reservation store for tests, demos and the CLI's offline mode.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
import uuid
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pendulum import Date

from ..domain.exceptions import ConflictError, NotFoundError
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
    to_date,
)
from .records import business_from_row, expense_from_row, professional_from_row, reservation_from_row

logger = logging.getLogger(__name__)


class InMemoryReservationStore:
    """
    Store that keeps every record in dictionaries.

    It plays the role of the database: writes are serialized under a lock
    and an overlapping active reservation for the same professional and date
    is rejected with ConflictError, whatever the caller checked before.
    """

    def __init__(
        self,
        businesses: Iterable[Business] = (),
        professionals: Iterable[Professional] = (),
        reservations: Iterable[Reservation] = (),
        expenses: Iterable[Expense] = (),
    ):
        self._businesses: Dict[str, Business] = {b.id: b for b in businesses}
        self._professionals: Dict[str, Professional] = {p.id: p for p in professionals}
        self._reservations: Dict[str, Reservation] = {r.id: r for r in reservations}
        self._expenses: Dict[str, Expense] = {e.id: e for e in expenses}
        self._lock = threading.Lock()

    @classmethod
    def from_json_file(cls, data_file: Path) -> "InMemoryReservationStore":
        """
        Load records from a JSON fixture.

        The file holds ``salons``, ``professionals``, ``appointments`` and
        ``expenses`` lists using the database column names.
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Data file not found: {data_file}")

        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        return cls(
            businesses=[business_from_row(row) for row in data.get("salons", [])],
            professionals=[professional_from_row(row) for row in data.get("professionals", [])],
            reservations=[reservation_from_row(row) for row in data.get("appointments", [])],
            expenses=[expense_from_row(row) for row in data.get("expenses", [])],
        )

    async def get_business(self, business_id: str) -> Business:
        try:
            return self._businesses[business_id]
        except KeyError:
            raise NotFoundError(f"Business {business_id} not found") from None

    async def get_professional(self, professional_id: str) -> Professional:
        try:
            return self._professionals[professional_id]
        except KeyError:
            raise NotFoundError(f"Professional {professional_id} not found") from None

    async def list_professionals(self, business_id: str) -> List[Professional]:
        return [p for p in self._professionals.values() if p.business_id == business_id]

    async def get_effective_schedule(
        self,
        business_id: str,
        professional_id: Optional[str] = None,
    ) -> Tuple[WeeklySchedule, Optional[WeeklySchedule]]:
        business = await self.get_business(business_id)
        override = None
        if professional_id is not None:
            override = (await self.get_professional(professional_id)).schedule_override
        return business.weekly_schedule, override

    async def list_busy_intervals(
        self,
        professional_id: str,
        date: Date,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[TimeRange]:
        day = to_date(date)
        return [
            r.interval
            for r in self._active_for(professional_id, day)
            if r.id != exclude_reservation_id
        ]

    async def get_reservation(self, reservation_id: str) -> Reservation:
        try:
            return self._reservations[reservation_id]
        except KeyError:
            raise NotFoundError(f"Reservation {reservation_id} not found") from None

    async def create_reservation(self, request: BookingRequest) -> Reservation:
        reservation = Reservation(
            id=str(uuid.uuid4()),
            **{f.name: getattr(request, f.name) for f in dataclasses.fields(request)},
        )
        with self._lock:
            self._reject_overlap(reservation)
            self._reservations[reservation.id] = reservation
        return reservation

    async def update_reservation_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected: Optional[Sequence[ReservationStatus]] = None,
    ) -> Reservation:
        with self._lock:
            current = self._reservations.get(reservation_id)
            if current is None or (expected is not None and current.status not in expected):
                raise NotFoundError(
                    f"Reservation {reservation_id} not found or changed concurrently"
                )
            updated = dataclasses.replace(current, status=status)
            self._reservations[reservation_id] = updated
        return updated

    async def reschedule_reservation(
        self,
        reservation_id: str,
        date: Date,
        time: str,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        expected: Optional[Sequence[ReservationStatus]] = None,
    ) -> Reservation:
        with self._lock:
            current = self._reservations.get(reservation_id)
            if current is None or (expected is not None and current.status not in expected):
                raise NotFoundError(
                    f"Reservation {reservation_id} not found or changed concurrently"
                )
            moved = dataclasses.replace(current, date=to_date(date), time=time, status=status)
            self._reject_overlap(moved)
            self._reservations[reservation_id] = moved
        return moved

    async def purge_reservation(self, reservation_id: str) -> None:
        with self._lock:
            if self._reservations.pop(reservation_id, None) is None:
                raise NotFoundError(f"Reservation {reservation_id} was not deleted: no such row")

    async def list_reservations(
        self,
        business_id: str,
        date_range: DateRange,
        professional_id: Optional[str] = None,
    ) -> List[Reservation]:
        return [
            r for r in self._reservations.values()
            if r.business_id == business_id
            and date_range.contains(r.date)
            and (professional_id is None or r.professional_id == professional_id)
        ]

    async def list_expenses(self, business_id: str, date_range: DateRange) -> List[Expense]:
        return [
            e for e in self._expenses.values()
            if e.business_id == business_id and date_range.contains(e.date)
        ]

    def _active_for(self, professional_id: str, day: Date) -> List[Reservation]:
        return [
            r for r in self._reservations.values()
            if r.professional_id == professional_id and r.date == day and r.is_active
        ]

    def _reject_overlap(self, reservation: Reservation) -> None:
        if reservation.professional_id is None or not reservation.is_active:
            return

        for other in self._active_for(reservation.professional_id, reservation.date):
            if other.id != reservation.id and other.interval.overlaps(reservation.interval):
                logger.debug("Store rejected %s: overlaps %s", reservation.id, other.id)
                raise ConflictError(
                    f"Professional {reservation.professional_id} is already booked "
                    f"{other.interval} on {reservation.date.to_date_string()}",
                    professional_id=reservation.professional_id,
                    date=reservation.date.to_date_string(),
                    time=reservation.time,
                    conflicting=str(other.interval),
                )
