"""
Core business logic for calculating bookable time slots.

This is the heart of the availability engine - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from datetime import date
from typing import Iterable, List, Optional

from pendulum import DateTime

from .exceptions import ValidationError
from .models import MINUTES_PER_DAY, Slot, TimeRange, TimeWindow, format_clock, to_date


class SlotCalculator:
    """
    Calculates bookable start times for one professional on one date.

    Algorithm:
    1. Walk the effective window from opening time in granularity steps
    2. Drop candidates that would run past closing time
    3. On the current day, drop candidates before now + buffer
    4. Drop candidates overlapping a busy interval (half-open test)
    5. Return the remaining start times in ascending order
    """

    def __init__(self, granularity_minutes: int = 30, same_day_buffer_minutes: int = 15):
        if granularity_minutes <= 0:
            raise ValueError(f"Granularity must be positive, got {granularity_minutes}")
        if same_day_buffer_minutes < 0:
            raise ValueError(f"Same-day buffer cannot be negative, got {same_day_buffer_minutes}")

        self.granularity_minutes = granularity_minutes
        self.same_day_buffer_minutes = same_day_buffer_minutes

    def generate_slots(
        self,
        window: TimeWindow,
        duration_minutes: int,
        busy_intervals: Iterable[TimeRange],
        target_date: date,
        now: Optional[DateTime] = None,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[Slot]:
        """
        Enumerate every start time at which ``duration_minutes`` fits.

        Args:
            window: Effective opening window for the date
            duration_minutes: Total duration of the requested services
            busy_intervals: Intervals already occupied on that date
            target_date: The date being booked
            now: Current local time; enables the same-day cutoff
            exclude_reservation_id: Reservation being rescheduled, whose own
                interval does not block it

        Returns:
            Ascending list of Slot values; empty for closed days or when the
            duration does not fit at all.
        """
        self.validate_duration(duration_minutes)

        opening = window.as_range()
        if opening is None or duration_minutes > opening.duration_minutes():
            return []

        busy = self.effective_busy(busy_intervals, exclude_reservation_id)
        earliest = self.earliest_start(target_date, now)

        slots: List[Slot] = []
        for start in range(opening.start, opening.end, self.granularity_minutes):
            end = start + duration_minutes

            if end > opening.end:
                break

            if earliest is not None and start < earliest:
                continue

            if self.find_conflict(TimeRange(start=start, end=end), busy) is not None:
                continue

            slots.append(Slot(time=format_clock(start), start=start, end=end))

        return slots

    def is_available(
        self,
        window: TimeWindow,
        candidate: TimeRange,
        busy_intervals: Iterable[TimeRange],
        target_date: date,
        now: Optional[DateTime] = None,
        exclude_reservation_id: Optional[str] = None,
    ) -> bool:
        """
        Check one start time with the same rules as ``generate_slots``.

        The start does not have to be on the granularity grid.
        """
        if not self.fits_window(window, candidate):
            return False

        earliest = self.earliest_start(target_date, now)
        if earliest is not None and candidate.start < earliest:
            return False

        busy = self.effective_busy(busy_intervals, exclude_reservation_id)
        return self.find_conflict(candidate, busy) is None

    @staticmethod
    def validate_duration(duration_minutes: int) -> None:
        if duration_minutes <= 0:
            raise ValidationError(f"Duration must be positive, got {duration_minutes}")

    @staticmethod
    def fits_window(window: TimeWindow, candidate: TimeRange) -> bool:
        """Check the candidate lies fully inside the opening window."""
        opening = window.as_range()
        return opening is not None and opening.contains(candidate)

    def earliest_start(self, target_date: date, now: Optional[DateTime]) -> Optional[int]:
        """
        Earliest allowed start (minutes) on ``target_date``, or None if unrestricted.

        Past dates get a cutoff past midnight so nothing can be booked on them.
        """
        if now is None:
            return None

        today = to_date(now)
        day = to_date(target_date)

        if day > today:
            return None
        if day < today:
            return MINUTES_PER_DAY + 1

        return now.hour * 60 + now.minute + self.same_day_buffer_minutes

    @staticmethod
    def effective_busy(
        busy_intervals: Iterable[TimeRange],
        exclude_reservation_id: Optional[str] = None,
    ) -> List[TimeRange]:
        """Drop the interval of the reservation being moved, sorted by start."""
        busy = [
            interval for interval in busy_intervals
            if exclude_reservation_id is None
            or interval.reservation_id != exclude_reservation_id
        ]
        return sorted(busy, key=lambda r: r.start)

    @staticmethod
    def find_conflict(candidate: TimeRange, busy: Iterable[TimeRange]) -> Optional[TimeRange]:
        """Return the first busy interval overlapping the candidate, if any."""
        for interval in busy:
            if candidate.overlaps(interval):
                return interval
        return None
