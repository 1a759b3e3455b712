"""
Domain models for schedules, reservations and availability calculations.

Clock times are handled as minutes from midnight internally and as ``HH:MM``
strings at the edges. Calendar days are ``pendulum.Date`` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date as date_type
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Type, TypeVar

import pendulum
from pendulum import Date

from .exceptions import ValidationError

WEEKDAY_KEYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

SERVICE_LABEL_SEPARATOR = ", "
DEFAULT_DURATION_MINUTES = 30
MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """
    Convert an ``HH:MM`` string to minutes from midnight.

    Seconds (``HH:MM:SS``, as returned by SQL time columns) are ignored.
    ``24:00`` is accepted so a day can close at midnight.
    """
    try:
        parts = value.strip().split(":")
        hours, minutes = int(parts[0]), int(parts[1])
    except (AttributeError, IndexError, ValueError) as exc:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM") from exc

    total = hours * 60 + minutes
    if hours < 0 or not 0 <= minutes < 60 or total > MINUTES_PER_DAY:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return total


def format_clock(minutes: int) -> str:
    """Format minutes from midnight as ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_date(value: Any) -> Date:
    """
    Normalize a calendar day to a ``pendulum.Date``.

    Accepts ``YYYY-MM-DD`` strings (a trailing ISO time part is dropped),
    ``datetime.date``/``datetime.datetime`` and their pendulum subclasses.
    """
    if isinstance(value, str):
        try:
            parsed = pendulum.from_format(value.split("T")[0].strip(), "YYYY-MM-DD")
        except ValueError as exc:
            raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD") from exc
        return parsed.date()

    if isinstance(value, date_type):
        return pendulum.date(value.year, value.month, value.day)

    raise ValidationError(f"Invalid date {value!r}, expected YYYY-MM-DD")


def weekday_key(day: date_type) -> str:
    """Map a calendar day to its weekday key (``monday`` ... ``sunday``)."""
    return WEEKDAY_KEYS[day.weekday()]


E = TypeVar("E", bound=Enum)


def _parse_enum(enum_cls: Type[E], value: Any, aliases: Optional[Mapping[str, str]] = None) -> E:
    if isinstance(value, enum_cls):
        return value

    normalized = str(value).strip().lower()
    if aliases:
        normalized = aliases.get(normalized, normalized)

    try:
        return enum_cls(normalized)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"Unknown {enum_cls.__name__} '{value}'. Expected one of: {allowed}"
        ) from exc


class ReservationStatus(str, Enum):
    """Stored reservation states. A purged reservation no longer exists."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @classmethod
    def parse(cls, value: Any) -> "ReservationStatus":
        # Older rows were written with the British spelling.
        return _parse_enum(cls, value, aliases={"cancelled": "canceled"})


class ExpenseStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"

    @classmethod
    def parse(cls, value: Any) -> "ExpenseStatus":
        return _parse_enum(cls, value)


class ProfessionalStatus(str, Enum):
    ACTIVE = "active"
    AWAY = "away"

    @classmethod
    def parse(cls, value: Any) -> "ProfessionalStatus":
        return _parse_enum(cls, value)


@dataclass(frozen=True)
class DaySchedule:
    """
    Opening hours for one weekday.

    Invariant: when ``closed`` is true the times are ignored; otherwise the
    day must open before it closes.
    """
    open_time: str = "09:00"
    close_time: str = "18:00"
    closed: bool = False

    def __post_init__(self):
        if self.closed:
            return
        if parse_clock(self.open_time) >= parse_clock(self.close_time):
            raise ValidationError(
                f"Opening time {self.open_time} must be before closing time {self.close_time}"
            )

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "DaySchedule":
        """
        Build from a stored ``{open, close, closed}`` mapping.

        Some screens stored ``enabled`` instead of ``closed``; both are read.
        """
        if "closed" in record:
            closed = bool(record["closed"])
        else:
            closed = not bool(record.get("enabled", True))

        return cls(
            open_time=record.get("open") or "09:00",
            close_time=record.get("close") or "18:00",
            closed=closed,
        )

    def to_record(self) -> Dict[str, Any]:
        return {"open": self.open_time, "close": self.close_time, "closed": self.closed}


WeeklySchedule = Dict[str, DaySchedule]


def parse_weekly_schedule(raw: Optional[Mapping[str, Any]]) -> Optional[WeeklySchedule]:
    """
    Parse a stored weekly schedule map.

    Returns None when no map exists at all, which is different from an empty
    map: callers fall back to the business schedule only in the former case
    and per weekday in the latter.
    """
    if raw is None:
        return None

    schedule: WeeklySchedule = {}
    for key, entry in raw.items():
        day_key = str(key).strip().lower()
        if day_key not in WEEKDAY_KEYS:
            raise ValidationError(f"Unknown weekday key '{key}'")
        if entry is None:
            continue
        schedule[day_key] = entry if isinstance(entry, DaySchedule) else DaySchedule.from_record(entry)
    return schedule


@dataclass(frozen=True)
class TimeRange:
    """
    Half-open interval ``[start, end)`` in minutes from midnight.

    Invariant: start must be before end. ``reservation_id`` tags the
    reservation occupying the interval, if any.
    """
    start: int
    end: int
    reservation_id: Optional[str] = None

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"Start {format_clock(self.start)} must be before end {format_clock(self.end)}"
            )

    def duration_minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check overlap; touching intervals do not overlap."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{format_clock(self.start)} - {format_clock(self.end)}"


@dataclass(frozen=True)
class TimeWindow:
    """Effective opening window of one professional on one date."""
    open_minutes: Optional[int] = None
    close_minutes: Optional[int] = None
    closed: bool = True

    @classmethod
    def closed_day(cls) -> "TimeWindow":
        return cls()

    @classmethod
    def from_day_schedule(cls, day: DaySchedule) -> "TimeWindow":
        if day.closed:
            return cls.closed_day()
        return cls(
            open_minutes=parse_clock(day.open_time),
            close_minutes=parse_clock(day.close_time),
            closed=False,
        )

    @property
    def open(self) -> Optional[str]:
        return None if self.open_minutes is None else format_clock(self.open_minutes)

    @property
    def close(self) -> Optional[str]:
        return None if self.close_minutes is None else format_clock(self.close_minutes)

    def as_range(self) -> Optional[TimeRange]:
        if self.closed or self.open_minutes is None or self.close_minutes is None:
            return None
        return TimeRange(start=self.open_minutes, end=self.close_minutes)


@dataclass(frozen=True)
class Slot:
    """A bookable start time. Never stored."""
    time: str
    start: int
    end: int

    def __str__(self) -> str:
        return self.time


@dataclass
class Business:
    id: str
    weekly_schedule: WeeklySchedule = field(default_factory=dict)
    name: str = ""
    active: bool = True


@dataclass
class Professional:
    """
    A bookable staff member.

    ``schedule_override`` is None when the professional has no personal
    schedule at all; the business schedule then governs every day.
    """
    id: str
    business_id: str
    commission_rate: float = 0.0
    schedule_override: Optional[WeeklySchedule] = None
    status: ProfessionalStatus = ProfessionalStatus.ACTIVE
    name: str = ""

    def __post_init__(self):
        self.status = ProfessionalStatus.parse(self.status)
        if not 0 <= self.commission_rate <= 100:
            raise ValidationError(
                f"Commission rate must be between 0 and 100, got {self.commission_rate}"
            )

    @property
    def is_bookable(self) -> bool:
        return self.status is ProfessionalStatus.ACTIVE


@dataclass(frozen=True)
class Service:
    id: str
    business_id: str
    name: str
    duration_minutes: Optional[int] = None
    price: float = 0.0
    category: str = ""

    @property
    def effective_duration(self) -> int:
        return self.duration_minutes or DEFAULT_DURATION_MINUTES


def _coerce_reservation_fields(record: Any) -> None:
    object.__setattr__(record, "date", to_date(record.date))
    object.__setattr__(record, "status", ReservationStatus.parse(record.status))
    parse_clock(record.time)
    if record.duration_minutes <= 0:
        raise ValidationError(
            f"Duration must be positive, got {record.duration_minutes}"
        )


@dataclass(frozen=True)
class Reservation:
    """
    A booking record.

    Invariant: the ``[time, time + duration)`` intervals of one professional's
    non-canceled reservations on a date never overlap. The store enforces it;
    the engine pre-checks it.
    """
    id: str
    business_id: str
    client_id: str
    date: Date
    time: str
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    value: float = 0.0
    status: ReservationStatus = ReservationStatus.PENDING
    professional_id: Optional[str] = None
    service_label: str = ""

    def __post_init__(self):
        _coerce_reservation_fields(self)

    @property
    def start_minutes(self) -> int:
        return parse_clock(self.time)

    @property
    def end_minutes(self) -> int:
        return self.start_minutes + self.duration_minutes

    @property
    def interval(self) -> TimeRange:
        return TimeRange(start=self.start_minutes, end=self.end_minutes, reservation_id=self.id)

    @property
    def services(self) -> List[str]:
        """Service names split back out of the joined label."""
        return split_service_label(self.service_label)

    @property
    def is_active(self) -> bool:
        """Active reservations occupy the professional's calendar."""
        return self.status is not ReservationStatus.CANCELED

    @property
    def is_terminal(self) -> bool:
        return self.status in (ReservationStatus.COMPLETED, ReservationStatus.CANCELED)


def split_service_label(label: str) -> List[str]:
    return [name.strip() for name in label.split(SERVICE_LABEL_SEPARATOR.strip()) if name.strip()]


@dataclass(frozen=True)
class BookingRequest:
    """Fields for creating a reservation; the store assigns the id."""
    business_id: str
    client_id: str
    date: Date
    time: str
    professional_id: Optional[str] = None
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    value: float = 0.0
    service_label: str = ""
    status: ReservationStatus = ReservationStatus.PENDING

    def __post_init__(self):
        _coerce_reservation_fields(self)
        if self.status not in (ReservationStatus.PENDING, ReservationStatus.CONFIRMED):
            raise ValidationError(
                f"New reservations start as pending or confirmed, not {self.status.value}"
            )

    @property
    def interval(self) -> TimeRange:
        start = parse_clock(self.time)
        return TimeRange(start=start, end=start + self.duration_minutes)

    @classmethod
    def from_services(
        cls,
        *,
        business_id: str,
        client_id: str,
        date: Any,
        time: str,
        services: Sequence[Service],
        professional_id: Optional[str] = None,
        status: ReservationStatus = ReservationStatus.PENDING,
    ) -> "BookingRequest":
        """
        Build a request for one or more services.

        Duration and value are the sums over the services; the price is copied
        now so later catalog edits never change the reservation.
        """
        if not services:
            raise ValidationError("At least one service is required")

        return cls(
            business_id=business_id,
            client_id=client_id,
            professional_id=professional_id,
            date=date,
            time=time,
            duration_minutes=sum(service.effective_duration for service in services),
            value=sum(service.price for service in services),
            service_label=SERVICE_LABEL_SEPARATOR.join(service.name for service in services),
            status=status,
        )


@dataclass(frozen=True)
class Expense:
    id: str
    business_id: str
    date: Date
    amount: float
    status: ExpenseStatus = ExpenseStatus.PENDING
    description: str = ""
    category: str = ""

    def __post_init__(self):
        object.__setattr__(self, "date", to_date(self.date))
        object.__setattr__(self, "status", ExpenseStatus.parse(self.status))

    @property
    def is_paid(self) -> bool:
        return self.status is ExpenseStatus.PAID


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""
    start: Date
    end: Date

    def __post_init__(self):
        object.__setattr__(self, "start", to_date(self.start))
        object.__setattr__(self, "end", to_date(self.end))
        if self.end < self.start:
            raise ValidationError(f"Range end {self.end} is before start {self.start}")

    def contains(self, day: date_type) -> bool:
        return self.start <= day <= self.end

    def days(self) -> Iterator[Date]:
        current = self.start
        while current <= self.end:
            yield current
            current = current.add(days=1)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY')} - {self.end.format('DD.MM.YYYY')}"
