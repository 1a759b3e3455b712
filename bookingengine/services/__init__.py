"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking_service import BookingService
from .ports import ReservationStoreProtocol
from .reporting_service import ReportingService

__all__ = ["BookingService", "ReportingService", "ReservationStoreProtocol"]
