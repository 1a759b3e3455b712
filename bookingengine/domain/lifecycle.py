"""
Reservation state machine.

Purging is modelled as an event without a target status: the row is deleted.
"""

from enum import Enum
from typing import Dict, Optional, Tuple

from .exceptions import InvalidTransitionError
from .models import Reservation, ReservationStatus


class ReservationEvent(str, Enum):
    CONFIRM = "confirm"
    RESCHEDULE = "reschedule"
    COMPLETE = "complete"
    CANCEL = "cancel"
    PURGE = "purge"


_OPEN = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

# (from, event) -> to; None means the reservation is deleted
TRANSITIONS: Dict[Tuple[ReservationStatus, ReservationEvent], Optional[ReservationStatus]] = {
    **{(status, ReservationEvent.CONFIRM): ReservationStatus.CONFIRMED for status in _OPEN},
    **{(status, ReservationEvent.RESCHEDULE): ReservationStatus.CONFIRMED for status in _OPEN},
    **{(status, ReservationEvent.COMPLETE): ReservationStatus.COMPLETED for status in _OPEN},
    **{(status, ReservationEvent.CANCEL): ReservationStatus.CANCELED for status in _OPEN},
    (ReservationStatus.CANCELED, ReservationEvent.PURGE): None,
}


def can_apply(status: ReservationStatus, event: ReservationEvent) -> bool:
    return (status, event) in TRANSITIONS


def next_status(reservation: Reservation, event: ReservationEvent) -> Optional[ReservationStatus]:
    """
    Return the status ``reservation`` moves to on ``event``.

    Raises:
        InvalidTransitionError: If the event is not legal from the current status
    """
    key = (reservation.status, ReservationEvent(event))
    if key not in TRANSITIONS:
        raise InvalidTransitionError(
            reservation_id=reservation.id,
            status=reservation.status.value,
            event=ReservationEvent(event).value,
        )
    return TRANSITIONS[key]
