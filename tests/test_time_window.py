"""
Tests for the effective time window resolution.
"""

import pendulum

from bookingengine.domain.models import DaySchedule
from bookingengine.domain.time_window import resolve_time_window

MONDAY = pendulum.date(2024, 11, 25)
SUNDAY = pendulum.date(2024, 11, 24)

BUSINESS = {
    "monday": DaySchedule(open_time="09:00", close_time="18:00"),
    "sunday": DaySchedule(closed=True),
}


class TestResolveTimeWindow:
    """Tests for resolve_time_window."""

    def test_business_schedule_without_override(self):
        window = resolve_time_window(BUSINESS, None, MONDAY)

        assert not window.closed
        assert window.open == "09:00"
        assert window.close == "18:00"

    def test_override_wins(self):
        override = {"monday": DaySchedule(open_time="12:00", close_time="20:00")}

        window = resolve_time_window(BUSINESS, override, MONDAY)

        assert (window.open, window.close) == ("12:00", "20:00")

    def test_override_closed_day_wins_over_open_business(self):
        override = {"monday": DaySchedule(closed=True)}

        window = resolve_time_window(BUSINESS, override, MONDAY)

        assert window.closed
        assert window.open is None and window.close is None

    def test_override_can_open_a_day_the_business_closes(self):
        override = {"sunday": DaySchedule(open_time="10:00", close_time="14:00")}

        window = resolve_time_window(BUSINESS, override, SUNDAY)

        assert not window.closed
        assert window.open == "10:00"

    def test_override_without_entry_falls_back_per_weekday(self):
        override = {"tuesday": DaySchedule(closed=True)}

        window = resolve_time_window(BUSINESS, override, MONDAY)

        assert (window.open, window.close) == ("09:00", "18:00")

    def test_undefined_day_is_closed(self):
        tuesday = pendulum.date(2024, 11, 26)

        assert resolve_time_window(BUSINESS, None, tuesday).closed
        assert resolve_time_window({}, None, tuesday).closed
        assert resolve_time_window(None, None, tuesday).closed
