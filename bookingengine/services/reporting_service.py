"""
Application service for revenue and performance reports.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..domain.metrics import BucketMode, MetricsAggregator, MetricsBundle, ReportRole
from ..domain.models import DateRange
from .ports import ReservationStoreProtocol, call_store

logger = logging.getLogger(__name__)


class ReportingService:
    """Fetches reservations and expenses for a range and aggregates them."""

    def __init__(
        self,
        store: ReservationStoreProtocol,
        aggregator: MetricsAggregator,
        *,
        timeout_seconds: Optional[float] = 10.0,
    ) -> None:
        self._store = store
        self._aggregator = aggregator
        self._timeout_seconds = timeout_seconds

    async def build_metrics(
        self,
        *,
        business_id: str,
        date_range: DateRange,
        role: ReportRole,
        professional_id: Optional[str] = None,
        bucket: BucketMode = BucketMode.DAY,
    ) -> MetricsBundle:
        """
        Build the metrics bundle for a business.

        Expenses are only fetched for owner views over all professionals, and
        the professional list only for owner views (ranking names).
        """
        role = ReportRole(role)

        professional = None
        if professional_id is not None:
            professional = await call_store(
                "get_professional",
                self._store.get_professional(professional_id),
                self._timeout_seconds,
            )

        reservations = await call_store(
            "list_reservations",
            self._store.list_reservations(business_id, date_range, professional_id=professional_id),
            self._timeout_seconds,
        )

        expenses = []
        if role is ReportRole.OWNER and professional_id is None:
            expenses = await call_store(
                "list_expenses",
                self._store.list_expenses(business_id, date_range),
                self._timeout_seconds,
            )

        professionals = []
        if role is ReportRole.OWNER:
            professionals = await call_store(
                "list_professionals",
                self._store.list_professionals(business_id),
                self._timeout_seconds,
            )

        logger.debug(
            "Aggregating %d reservations and %d expenses for %s (%s)",
            len(reservations),
            len(expenses),
            business_id,
            date_range,
        )

        return self._aggregator.aggregate(
            date_range=date_range,
            role=role,
            reservations=reservations,
            expenses=expenses,
            professional=professional,
            professionals=professionals,
            bucket=bucket,
        )
