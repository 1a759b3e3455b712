"""
Resolution of the effective opening window for one professional on one date.
"""

from datetime import date
from typing import Mapping, Optional

from .models import DaySchedule, TimeWindow, weekday_key


def resolve_time_window(
    business_schedule: Optional[Mapping[str, DaySchedule]],
    professional_override: Optional[Mapping[str, DaySchedule]],
    target_date: date,
) -> TimeWindow:
    """
    Resolve the open/close window for ``target_date``.

    An override entry for the weekday wins verbatim, including its own
    ``closed`` flag. Without one (or without any override map) the business
    entry governs. A weekday neither source defines is closed; that is a
    valid outcome, not an error.
    """
    key = weekday_key(target_date)

    if professional_override:
        override = professional_override.get(key)
        if override is not None:
            return TimeWindow.from_day_schedule(override)

    if business_schedule:
        default = business_schedule.get(key)
        if default is not None:
            return TimeWindow.from_day_schedule(default)

    return TimeWindow.closed_day()
