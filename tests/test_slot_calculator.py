"""
Tests for slot calculator.
"""

import pendulum
import pytest

from bookingengine.domain.exceptions import ValidationError
from bookingengine.domain.models import TimeRange, TimeWindow, parse_clock
from bookingengine.domain.slot_calculator import SlotCalculator

MONDAY = pendulum.date(2024, 11, 25)
NINE_TO_SIX = TimeWindow(open_minutes=540, close_minutes=1080, closed=False)


def _times(slots):
    return [slot.time for slot in slots]


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_no_busy_times_full_day(self):
        """A 60 minute service fits every half hour up to 17:00."""
        calculator = SlotCalculator(granularity_minutes=30)

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=60,
            busy_intervals=[],
            target_date=MONDAY,
        )

        times = _times(slots)
        assert times[0] == "09:00"
        assert times[-1] == "17:00"  # 17:30 + 60 would end at 18:30
        assert "17:30" not in times
        assert len(times) == 17

    def test_busy_interval_excluded(self):
        """A half hour booking at 10:00 blocks only that start."""
        calculator = SlotCalculator()

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=30,
            busy_intervals=[TimeRange(start=600, end=630)],
            target_date=MONDAY,
        )

        times = _times(slots)
        assert "10:00" not in times
        assert "09:30" in times
        assert "10:30" in times

    def test_longer_duration_blocked_by_following_booking(self):
        """09:30 + 60 would run into a booking starting at 10:00."""
        calculator = SlotCalculator()

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=60,
            busy_intervals=[TimeRange(start=600, end=660)],
            target_date=MONDAY,
        )

        times = _times(slots)
        assert "09:00" in times
        assert "09:30" not in times
        assert "10:00" not in times
        assert "10:30" not in times
        assert "11:00" in times

    def test_same_day_cutoff(self):
        """At 14:50 with a 10 minute buffer nothing before 15:00 is offered."""
        calculator = SlotCalculator(same_day_buffer_minutes=10)
        now = pendulum.datetime(2024, 11, 25, 14, 50, tz="America/Sao_Paulo")

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=30,
            busy_intervals=[],
            target_date=MONDAY,
            now=now,
        )

        assert _times(slots)[0] == "15:00"

    def test_cutoff_rounds_up_to_next_step(self):
        calculator = SlotCalculator(same_day_buffer_minutes=15)
        now = pendulum.datetime(2024, 11, 25, 14, 50)

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=30,
            busy_intervals=[],
            target_date=MONDAY,
            now=now,
        )

        assert _times(slots)[0] == "15:30"

    def test_cutoff_only_applies_today(self):
        calculator = SlotCalculator()
        yesterday_evening = pendulum.datetime(2024, 11, 24, 20, 0)

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=30,
            busy_intervals=[],
            target_date=MONDAY,
            now=yesterday_evening,
        )

        assert _times(slots)[0] == "09:00"

    def test_past_dates_have_no_slots(self):
        calculator = SlotCalculator()
        next_day = pendulum.datetime(2024, 11, 26, 8, 0)

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=30,
            busy_intervals=[],
            target_date=MONDAY,
            now=next_day,
        )

        assert slots == []

    def test_closed_window_yields_empty(self):
        calculator = SlotCalculator()

        assert calculator.generate_slots(TimeWindow.closed_day(), 30, [], MONDAY) == []

    def test_duration_longer_than_window_yields_empty(self):
        calculator = SlotCalculator()

        assert calculator.generate_slots(NINE_TO_SIX, 600, [], MONDAY) == []

    def test_non_positive_duration_rejected(self):
        calculator = SlotCalculator()

        with pytest.raises(ValidationError, match="Duration must be positive"):
            calculator.generate_slots(NINE_TO_SIX, 0, [], MONDAY)

    def test_excluded_reservation_does_not_block_itself(self):
        """When rescheduling, the reservation's own interval is ignored."""
        calculator = SlotCalculator()
        busy = [
            TimeRange(start=600, end=660, reservation_id="moving"),
            TimeRange(start=720, end=750, reservation_id="other"),
        ]

        slots = calculator.generate_slots(
            window=NINE_TO_SIX,
            duration_minutes=60,
            busy_intervals=busy,
            target_date=MONDAY,
            exclude_reservation_id="moving",
        )

        times = _times(slots)
        assert "10:00" in times
        assert "11:30" not in times
        assert "12:00" not in times

    def test_generated_slots_respect_window_and_busy(self):
        """Every slot lies inside the window and overlaps no busy interval."""
        calculator = SlotCalculator(granularity_minutes=15)
        window = TimeWindow(open_minutes=parse_clock("08:15"), close_minutes=parse_clock("19:45"), closed=False)
        busy = [
            TimeRange(start=540, end=585),
            TimeRange(start=700, end=790),
            TimeRange(start=1000, end=1010),
        ]

        for duration in (15, 30, 45, 60, 90, 120):
            slots = calculator.generate_slots(window, duration, busy, MONDAY)
            starts = [slot.start for slot in slots]

            assert starts == sorted(starts)
            for slot in slots:
                assert slot.start >= window.open_minutes
                assert slot.start + duration <= window.close_minutes
                for interval in busy:
                    assert not (slot.start < interval.end and slot.start + duration > interval.start)

    def test_is_available_off_grid(self):
        calculator = SlotCalculator(same_day_buffer_minutes=10)
        busy = [TimeRange(start=600, end=660, reservation_id="r1")]
        now = pendulum.datetime(2024, 11, 25, 9, 0)

        assert calculator.is_available(NINE_TO_SIX, TimeRange(start=555, end=600), busy, MONDAY)
        assert not calculator.is_available(NINE_TO_SIX, TimeRange(start=615, end=645), busy, MONDAY)
        assert calculator.is_available(
            NINE_TO_SIX, TimeRange(start=615, end=645), busy, MONDAY, exclude_reservation_id="r1"
        )
        assert not calculator.is_available(NINE_TO_SIX, TimeRange(start=1065, end=1095), busy, MONDAY)
        assert not calculator.is_available(NINE_TO_SIX, TimeRange(start=545, end=575), busy, MONDAY, now=now)

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            SlotCalculator(granularity_minutes=0)
        with pytest.raises(ValueError):
            SlotCalculator(same_day_buffer_minutes=-5)
