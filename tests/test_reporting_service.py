"""
Tests for the ReportingService against the bundled demo data.
"""

import asyncio
from pathlib import Path

import pytest

from bookingengine.adapters.memory_store import InMemoryReservationStore
from bookingengine.domain.metrics import BucketMode, MetricsAggregator, ReportRole
from bookingengine.domain.models import DateRange
from bookingengine.services.reporting_service import ReportingService

DEMO_DATA = Path(__file__).parent.parent / "demo_data.json"
WEEK = DateRange("2024-11-25", "2024-12-01")


@pytest.fixture
def store():
    return InMemoryReservationStore.from_json_file(DEMO_DATA)


def _build(store, **kwargs):
    return ReportingService(store, MetricsAggregator(**kwargs))


class TestReportingService:
    """Tests for build_metrics."""

    def test_owner_view_over_all_professionals(self, store):
        metrics = asyncio.run(
            _build(store).build_metrics(business_id="salon-1", date_range=WEEK, role=ReportRole.OWNER)
        )

        assert metrics.gross_revenue == 240
        # Only the paid expense is subtracted
        assert metrics.net_revenue == 140
        assert metrics.completed_count == 2
        # The legacy "cancelled" spelling counts as canceled
        assert metrics.canceled_count == 1
        assert metrics.cancellation_rate == pytest.approx(1 / 3)
        assert metrics.average_ticket == 120
        assert [(s.name, s.count) for s in metrics.top_services] == [
            ("Corte", 2),
            ("Escova", 1),
            ("Barba", 1),
        ]
        assert [(r.name, r.revenue) for r in metrics.ranking] == [("Marina", 150), ("Rafael", 90)]

    def test_professional_view(self, store):
        metrics = asyncio.run(
            _build(store).build_metrics(
                business_id="salon-1",
                date_range=WEEK,
                role=ReportRole.PROFESSIONAL,
                professional_id="pro-1",
            )
        )

        assert metrics.gross_revenue == 150
        assert metrics.net_revenue == 60
        assert metrics.ranking == []

    def test_owner_view_of_one_professional(self, store):
        metrics = asyncio.run(
            _build(store).build_metrics(
                business_id="salon-1",
                date_range=WEEK,
                role="owner",
                professional_id="pro-2",
            )
        )

        assert metrics.gross_revenue == 90
        assert metrics.net_revenue == 45
        assert metrics.canceled_count == 1

    def test_weekly_series(self, store):
        metrics = asyncio.run(
            _build(store).build_metrics(
                business_id="salon-1",
                date_range=DateRange("2024-11-20", "2024-12-01"),
                role=ReportRole.OWNER,
                bucket=BucketMode.WEEK,
            )
        )

        assert [point.gross for point in metrics.series] == [0, 240]
        assert [point.completed for point in metrics.series] == [0, 2]

    def test_empty_range(self, store):
        metrics = asyncio.run(
            _build(store).build_metrics(
                business_id="salon-1",
                date_range=DateRange("2025-01-01", "2025-01-03"),
                role=ReportRole.OWNER,
            )
        )

        assert metrics.gross_revenue == 0
        assert metrics.net_revenue == 0
        assert metrics.top_services == []
        assert len(metrics.series) == 3
