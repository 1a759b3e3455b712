"""
Application service for availability queries and reservation lifecycle.

The service coordinates the query façade (see ``ports``) with the pure domain
components: it resolves the effective window, asks the ``SlotCalculator`` for
start times, pre-checks requested slots, and validates state transitions
before pushing changes back to the store. The pre-checks are best effort;
the store still has the final word on overlaps.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import ConflictError, ValidationError
from ..domain.lifecycle import ReservationEvent, next_status
from ..domain.models import (
    BookingRequest,
    DateRange,
    Reservation,
    Slot,
    TimeRange,
    TimeWindow,
    format_clock,
    parse_clock,
    to_date,
)
from ..domain.slot_calculator import SlotCalculator
from ..domain.time_window import resolve_time_window
from .ports import ReservationStoreProtocol, call_store

logger = logging.getLogger(__name__)


class BookingService:
    """
    Orchestrates slot generation and reservation state changes.

    Dependency inversion toward a protocol makes it easy to plug in the HTTP
    store or the in-memory implementation in tests.
    """

    def __init__(
        self,
        store: ReservationStoreProtocol,
        slot_calculator: SlotCalculator,
        *,
        timeout_seconds: Optional[float] = 10.0,
        timezone: str = "UTC",
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._store = store
        self._slot_calculator = slot_calculator
        self._timeout_seconds = timeout_seconds
        self._clock = clock or (lambda: pendulum.now(timezone))

    async def available_slots(
        self,
        *,
        business_id: str,
        professional_id: Optional[str],
        date,
        duration_minutes: int,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[Slot]:
        """
        Compute bookable start times for a professional on a date.

        Closed days, away professionals and durations that never fit yield an
        empty list.
        """
        SlotCalculator.validate_duration(duration_minutes)
        day = to_date(date)

        if professional_id is not None:
            professional = await self._call(
                "get_professional", self._store.get_professional(professional_id)
            )
            if not professional.is_bookable:
                logger.debug("Professional %s is %s; no slots", professional_id, professional.status.value)
                return []

        window = await self._resolve_window(business_id, professional_id, day)
        if window.closed:
            return []

        busy = await self._busy_intervals(professional_id, day, exclude_reservation_id)

        return self._slot_calculator.generate_slots(
            window=window,
            duration_minutes=duration_minutes,
            busy_intervals=busy,
            target_date=day,
            now=self._clock(),
            exclude_reservation_id=exclude_reservation_id,
        )

    async def create_reservation(
        self,
        request: BookingRequest,
        *,
        enforce_lead_time: bool = True,
    ) -> Reservation:
        """
        Create a reservation after checking the slot is still free.

        Raises:
            ValidationError: If the slot lies outside opening hours or too soon
            ConflictError: If the slot is occupied (regenerate slots and retry)
        """
        await self._ensure_slot(
            business_id=request.business_id,
            professional_id=request.professional_id,
            day=request.date,
            time=request.time,
            duration_minutes=request.duration_minutes,
            now=self._clock() if enforce_lead_time else None,
        )

        reservation = await self._call(
            "create_reservation", self._store.create_reservation(request)
        )
        logger.info(
            "Reservation %s created for %s at %s (%s)",
            reservation.id,
            reservation.date.to_date_string(),
            reservation.time,
            reservation.status.value,
        )
        return reservation

    async def confirm(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationEvent.CONFIRM)

    async def complete(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationEvent.COMPLETE)

    async def cancel(self, reservation_id: str) -> Reservation:
        return await self._transition(reservation_id, ReservationEvent.CANCEL)

    async def reschedule(self, reservation_id: str, date, time: str) -> Reservation:
        """
        Move a reservation to a new date/time; it becomes confirmed.

        The reservation's own interval never blocks the move.
        """
        reservation = await self._call(
            "get_reservation", self._store.get_reservation(reservation_id)
        )
        target = next_status(reservation, ReservationEvent.RESCHEDULE)
        day = to_date(date)

        await self._ensure_slot(
            business_id=reservation.business_id,
            professional_id=reservation.professional_id,
            day=day,
            time=time,
            duration_minutes=reservation.duration_minutes,
            now=None,
            exclude_reservation_id=reservation.id,
        )

        try:
            updated = await self._call(
                "reschedule_reservation",
                self._store.reschedule_reservation(
                    reservation.id, day, time, status=target, expected=[reservation.status]
                ),
            )
        except ConflictError as e:
            if e.professional_id is not None:
                raise
            raise ConflictError(
                str(e),
                professional_id=reservation.professional_id,
                date=e.date or day.to_date_string(),
                time=e.time or time,
                conflicting=e.conflicting,
            ) from e
        logger.info(
            "Reservation %s moved from %s %s to %s %s",
            reservation.id,
            reservation.date.to_date_string(),
            reservation.time,
            updated.date.to_date_string(),
            updated.time,
        )
        return updated

    async def purge(self, reservation_id: str, *, confirmed: bool = False) -> None:
        """
        Hard-delete a canceled reservation.

        Raises:
            ValidationError: Without explicit staff confirmation
            InvalidTransitionError: If the reservation is not canceled
            NotFoundError: If no row was deleted
        """
        if not confirmed:
            raise ValidationError("Purging a reservation requires explicit confirmation")

        reservation = await self._call(
            "get_reservation", self._store.get_reservation(reservation_id)
        )
        next_status(reservation, ReservationEvent.PURGE)

        await self._call("purge_reservation", self._store.purge_reservation(reservation_id))
        logger.warning("Reservation %s purged", reservation_id)

    async def day_agenda(self, professional_id: str, date) -> List[Reservation]:
        """Non-canceled reservations of a professional on a date, by start time."""
        day = to_date(date)
        professional = await self._call(
            "get_professional", self._store.get_professional(professional_id)
        )
        reservations = await self._call(
            "list_reservations",
            self._store.list_reservations(
                professional.business_id, DateRange(day, day), professional_id=professional_id
            ),
        )
        return sorted(
            (r for r in reservations if r.is_active),
            key=lambda r: r.start_minutes,
        )

    async def reminder_candidates(self, business_id: str, date=None) -> List[Reservation]:
        """
        Reservations a notifier should remind about: pending or confirmed ones
        on ``date`` (tomorrow by default). Delivery is not done here.
        """
        day = to_date(date) if date is not None else to_date(self._clock()).add(days=1)
        reservations = await self._call(
            "list_reservations",
            self._store.list_reservations(business_id, DateRange(day, day)),
        )
        return sorted(
            (r for r in reservations if not r.is_terminal),
            key=lambda r: (r.start_minutes, r.id),
        )

    async def _transition(self, reservation_id: str, event: ReservationEvent) -> Reservation:
        reservation = await self._call(
            "get_reservation", self._store.get_reservation(reservation_id)
        )
        target = next_status(reservation, event)

        updated = await self._call(
            "update_reservation_status",
            self._store.update_reservation_status(
                reservation_id, target, expected=[reservation.status]
            ),
        )
        logger.info(
            "Reservation %s: %s -> %s", reservation_id, reservation.status.value, target.value
        )
        return updated

    async def _resolve_window(
        self,
        business_id: str,
        professional_id: Optional[str],
        day,
    ) -> TimeWindow:
        business_schedule, override = await self._call(
            "get_effective_schedule",
            self._store.get_effective_schedule(business_id, professional_id),
        )
        return resolve_time_window(business_schedule, override, day)

    async def _busy_intervals(
        self,
        professional_id: Optional[str],
        day,
        exclude_reservation_id: Optional[str],
    ) -> List[TimeRange]:
        # Reservations for "any professional" do not block anyone's calendar
        if professional_id is None:
            return []
        return await self._call(
            "list_busy_intervals",
            self._store.list_busy_intervals(professional_id, day, exclude_reservation_id),
        )

    async def _ensure_slot(
        self,
        *,
        business_id: str,
        professional_id: Optional[str],
        day,
        time: str,
        duration_minutes: int,
        now: Optional[DateTime],
        exclude_reservation_id: Optional[str] = None,
    ) -> None:
        SlotCalculator.validate_duration(duration_minutes)
        day = to_date(day)
        start = parse_clock(time)
        candidate = TimeRange(start=start, end=start + duration_minutes)

        if professional_id is not None:
            professional = await self._call(
                "get_professional", self._store.get_professional(professional_id)
            )
            if not professional.is_bookable:
                raise ValidationError(f"Professional {professional_id} is not taking bookings")

        window = await self._resolve_window(business_id, professional_id, day)
        if not self._slot_calculator.fits_window(window, candidate):
            raise ValidationError(
                f"{format_clock(start)} for {duration_minutes} min is outside opening hours "
                f"on {day.to_date_string()}"
            )

        earliest = self._slot_calculator.earliest_start(day, now)
        if earliest is not None and start < earliest:
            raise ValidationError(
                f"{format_clock(start)} on {day.to_date_string()} is too soon to book"
            )

        busy = SlotCalculator.effective_busy(
            await self._busy_intervals(professional_id, day, exclude_reservation_id),
            exclude_reservation_id,
        )
        conflict = SlotCalculator.find_conflict(candidate, busy)
        if conflict is not None:
            logger.debug("Slot %s on %s rejected, overlaps %s", candidate, day, conflict)
            raise ConflictError(
                f"{candidate} on {day.to_date_string()} overlaps an existing reservation ({conflict})",
                professional_id=professional_id,
                date=day.to_date_string(),
                time=format_clock(start),
                conflicting=str(conflict),
            )

    async def _call(self, operation: str, awaitable):
        return await call_store(operation, awaitable, self._timeout_seconds)
