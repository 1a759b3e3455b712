"""
Aggregation of reservations and expenses into revenue and performance metrics.

Pure functions over their inputs; fetching is done by the reporting service.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence

from pendulum import Date

from .exceptions import ValidationError
from .models import (
    DateRange,
    Expense,
    Professional,
    Reservation,
    ReservationStatus,
    WEEKDAY_KEYS,
    to_date,
)


class ReportRole(str, Enum):
    OWNER = "owner"
    PROFESSIONAL = "professional"


class BucketMode(str, Enum):
    DAY = "day"
    WEEK = "week"


@dataclass(frozen=True)
class SeriesPoint:
    bucket_start: Date
    gross: float
    net: float
    completed: int


@dataclass(frozen=True)
class ServiceCount:
    name: str
    count: int


@dataclass(frozen=True)
class ProfessionalRevenue:
    professional_id: str
    name: str
    revenue: float
    completed: int


@dataclass
class MetricsBundle:
    """Result of one aggregation. All-zero when nothing matched."""
    gross_revenue: float = 0.0
    net_revenue: float = 0.0
    average_ticket: float = 0.0
    completed_count: int = 0
    canceled_count: int = 0
    cancellation_rate: float = 0.0
    attendance_rate: float = 0.0
    series: List[SeriesPoint] = field(default_factory=list)
    top_services: List[ServiceCount] = field(default_factory=list)
    ranking: List[ProfessionalRevenue] = field(default_factory=list)


def _money(value: float) -> float:
    return round(value, 2)


class MetricsAggregator:
    """
    Folds reservations over a date range into a MetricsBundle.

    Net revenue depends on the viewer:
    - professional: the professional's commission on their gross
    - owner, one professional selected: gross minus that professional's commission
    - owner, all professionals: gross minus paid expenses in range (commissions
      are not subtracted at this level)
    """

    def __init__(self, top_services_limit: int = 5, week_starts_on: str = "monday"):
        if top_services_limit <= 0:
            raise ValueError(f"top_services_limit must be positive, got {top_services_limit}")
        if week_starts_on not in WEEKDAY_KEYS:
            raise ValueError(f"Unknown weekday '{week_starts_on}'")

        self.top_services_limit = top_services_limit
        self.week_starts_on = WEEKDAY_KEYS.index(week_starts_on)

    def aggregate(
        self,
        *,
        date_range: DateRange,
        role: ReportRole,
        reservations: Iterable[Reservation],
        expenses: Iterable[Expense] = (),
        professional: Optional[Professional] = None,
        professionals: Sequence[Professional] = (),
        bucket: BucketMode = BucketMode.DAY,
    ) -> MetricsBundle:
        """
        Compute the metrics bundle.

        Args:
            date_range: Inclusive range of days to report on
            role: Who is looking; selects the net-revenue formula
            reservations: Candidate reservations (filtered to range here)
            expenses: Business expenses; only used by owner views of all professionals
            professional: Restricts the report to one professional
            professionals: Known professionals, used to name ranking entries
            bucket: Daily or weekly time series

        Raises:
            ValidationError: If the professional role is used without a professional
        """
        role = ReportRole(role)
        bucket = BucketMode(bucket)

        if role is ReportRole.PROFESSIONAL and professional is None:
            raise ValidationError("Professional reports need the professional being reported on")

        selected = [
            r for r in reservations
            if date_range.contains(r.date)
            and (professional is None or r.professional_id == professional.id)
        ]
        completed = [r for r in selected if r.status is ReservationStatus.COMPLETED]
        canceled_count = sum(1 for r in selected if r.status is ReservationStatus.CANCELED)

        paid_expenses: List[Expense] = []
        if role is ReportRole.OWNER and professional is None:
            paid_expenses = [e for e in expenses if e.is_paid and date_range.contains(e.date)]

        gross = sum(r.value for r in completed)
        net = self._net(gross, role, professional, sum(e.amount for e in paid_expenses))

        settled = len(completed) + canceled_count
        bundle = MetricsBundle(
            gross_revenue=_money(gross),
            net_revenue=_money(net),
            average_ticket=_money(gross / len(completed)) if completed else 0.0,
            completed_count=len(completed),
            canceled_count=canceled_count,
            cancellation_rate=canceled_count / settled if settled else 0.0,
            attendance_rate=len(completed) / settled if settled else 0.0,
            series=self._series(date_range, bucket, role, professional, completed, paid_expenses),
            top_services=self._top_services(completed),
        )

        if role is ReportRole.OWNER:
            bundle.ranking = self._ranking(completed, professionals)

        return bundle

    @staticmethod
    def _net(
        gross: float,
        role: ReportRole,
        professional: Optional[Professional],
        paid_expenses: float,
    ) -> float:
        if role is ReportRole.PROFESSIONAL:
            return gross * professional.commission_rate / 100
        if professional is not None:
            return gross - gross * professional.commission_rate / 100
        return gross - paid_expenses

    def week_start(self, day: date) -> Date:
        day = to_date(day)
        return day.subtract(days=(day.weekday() - self.week_starts_on) % 7)

    def bucket_starts(self, date_range: DateRange, bucket: BucketMode) -> List[Date]:
        if bucket is BucketMode.DAY:
            return list(date_range.days())

        starts: List[Date] = []
        current = self.week_start(date_range.start)
        while current <= date_range.end:
            starts.append(current)
            current = current.add(days=7)
        return starts

    def bucket_for(self, day: date, bucket: BucketMode) -> Date:
        """Latest bucket boundary at or before ``day``."""
        return to_date(day) if bucket is BucketMode.DAY else self.week_start(day)

    def _series(
        self,
        date_range: DateRange,
        bucket: BucketMode,
        role: ReportRole,
        professional: Optional[Professional],
        completed: Sequence[Reservation],
        paid_expenses: Sequence[Expense],
    ) -> List[SeriesPoint]:
        starts = self.bucket_starts(date_range, bucket)
        gross_by_bucket: Dict[Date, float] = {start: 0.0 for start in starts}
        count_by_bucket: Dict[Date, int] = {start: 0 for start in starts}
        expenses_by_bucket: Dict[Date, float] = {start: 0.0 for start in starts}

        for reservation in completed:
            key = self.bucket_for(reservation.date, bucket)
            gross_by_bucket[key] += reservation.value
            count_by_bucket[key] += 1

        for expense in paid_expenses:
            expenses_by_bucket[self.bucket_for(expense.date, bucket)] += expense.amount

        return [
            SeriesPoint(
                bucket_start=start,
                gross=_money(gross_by_bucket[start]),
                net=_money(self._net(gross_by_bucket[start], role, professional, expenses_by_bucket[start])),
                completed=count_by_bucket[start],
            )
            for start in starts
        ]

    def _top_services(self, completed: Sequence[Reservation]) -> List[ServiceCount]:
        counts: Dict[str, int] = {}
        for reservation in completed:
            for name in reservation.services:
                counts[name] = counts.get(name, 0) + 1

        # sorted() is stable, so ties keep first-seen order
        ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
        return [ServiceCount(name=name, count=count) for name, count in ordered[: self.top_services_limit]]

    @staticmethod
    def _ranking(
        completed: Sequence[Reservation],
        professionals: Sequence[Professional],
    ) -> List[ProfessionalRevenue]:
        names = {p.id: p.name for p in professionals}
        revenue: Dict[str, float] = {}
        counts: Dict[str, int] = {}

        for reservation in completed:
            if reservation.professional_id is None:
                continue
            key = reservation.professional_id
            revenue[key] = revenue.get(key, 0.0) + reservation.value
            counts[key] = counts.get(key, 0) + 1

        ordered = sorted(revenue.items(), key=lambda item: item[1], reverse=True)
        return [
            ProfessionalRevenue(
                professional_id=key,
                name=names.get(key, ""),
                revenue=_money(value),
                completed=counts[key],
            )
            for key, value in ordered
        ]
