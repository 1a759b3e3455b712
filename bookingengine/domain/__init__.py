"""
Domain layer - Pure business logic without external dependencies.
"""

from .lifecycle import ReservationEvent, next_status
from .metrics import BucketMode, MetricsAggregator, MetricsBundle, ReportRole
from .models import (
    BookingRequest,
    Business,
    DateRange,
    DaySchedule,
    Expense,
    Professional,
    Reservation,
    ReservationStatus,
    Service,
    Slot,
    TimeRange,
    TimeWindow,
)
from .slot_calculator import SlotCalculator
from .time_window import resolve_time_window

__all__ = [
    "BookingRequest",
    "BucketMode",
    "Business",
    "DateRange",
    "DaySchedule",
    "Expense",
    "MetricsAggregator",
    "MetricsBundle",
    "Professional",
    "ReportRole",
    "Reservation",
    "ReservationEvent",
    "ReservationStatus",
    "Service",
    "Slot",
    "SlotCalculator",
    "TimeRange",
    "TimeWindow",
    "next_status",
    "resolve_time_window",
]
