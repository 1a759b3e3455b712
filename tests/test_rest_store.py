"""
Tests for the PostgREST client, using a fake requests session.
"""

import asyncio
import json

import pytest
import requests

from bookingengine.adapters.rest_store import RestReservationStore
from bookingengine.domain.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    StoreError,
    StoreTimeoutError,
)
from bookingengine.domain.models import BookingRequest, DateRange, ReservationStatus

APPOINTMENT_ROW = {
    "id": "appt-1",
    "salon_id": "salon-1",
    "client_id": "client-1",
    "professional_id": "pro-1",
    "service_names": "Corte, Escova",
    "date": "2024-11-25",
    "time": "10:00:00",
    "duration_min": 90,
    "status": "confirmed",
    "valor": 150,
}


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ("" if body is None else json.dumps(body))
        self.content = self.text.encode("utf-8")
        self.reason = "Reason"

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeSession:
    """Records calls and answers with queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _store(*responses):
    session = FakeSession(*responses)
    store = RestReservationStore("https://example.test/rest/v1/", "secret", session=session)
    return store, session


class TestRequests:
    """Request shape and row decoding."""

    def test_headers_and_url(self):
        store, session = _store(FakeResponse(body=[APPOINTMENT_ROW]))

        reservation = asyncio.run(store.get_reservation("appt-1"))

        method, url, kwargs = session.calls[0]
        assert method == "GET"
        assert url == "https://example.test/rest/v1/appointments"
        assert kwargs["headers"]["apikey"] == "secret"
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert ("id", "eq.appt-1") in kwargs["params"]
        assert ("limit", "1") in kwargs["params"]
        assert reservation.time == "10:00"
        assert reservation.duration_minutes == 90
        assert reservation.services == ["Corte", "Escova"]

    def test_missing_row_is_not_found(self):
        store, _ = _store(FakeResponse(body=[]))

        with pytest.raises(NotFoundError):
            asyncio.run(store.get_reservation("nope"))

    def test_busy_intervals_exclude_canceled_and_self(self):
        store, session = _store(FakeResponse(body=[
            {"id": "appt-2", "time": "14:00", "duration_min": 60},
            {"id": "appt-3", "time": "16:30:00", "duration_min": None},
        ]))

        intervals = asyncio.run(store.list_busy_intervals("pro-1", "2024-11-25", exclude_reservation_id="appt-1"))

        params = session.calls[0][2]["params"]
        assert ("status", "not.in.(canceled,cancelled)") in params
        assert ("id", "neq.appt-1") in params
        assert ("date", "eq.2024-11-25") in params
        assert [(i.start, i.end, i.reservation_id) for i in intervals] == [
            (840, 900, "appt-2"),
            (990, 1020, "appt-3"),
        ]

    def test_create_asks_for_representation(self):
        store, session = _store(FakeResponse(status_code=201, body=[APPOINTMENT_ROW]))
        request = BookingRequest(
            business_id="salon-1",
            client_id="client-1",
            professional_id="pro-1",
            date="2024-11-25",
            time="10:00",
            duration_minutes=90,
            value=150,
            service_label="Corte, Escova",
        )

        reservation = asyncio.run(store.create_reservation(request))

        method, _, kwargs = session.calls[0]
        assert method == "POST"
        assert kwargs["headers"]["Prefer"] == "return=representation"
        assert kwargs["json"]["salon_id"] == "salon-1"
        assert kwargs["json"]["duration_min"] == 90
        assert kwargs["json"]["valor"] == 150
        assert reservation.id == "appt-1"

    def test_status_update_is_conditional(self):
        store, session = _store(FakeResponse(body=[dict(APPOINTMENT_ROW, status="completed")]))

        updated = asyncio.run(
            store.update_reservation_status(
                "appt-1", ReservationStatus.COMPLETED, expected=[ReservationStatus.CONFIRMED]
            )
        )

        params = session.calls[0][2]["params"]
        assert ("status", "in.(confirmed)") in params
        assert session.calls[0][2]["json"] == {"status": "completed"}
        assert updated.status is ReservationStatus.COMPLETED

    def test_status_update_touching_nothing(self):
        store, _ = _store(FakeResponse(body=[]))

        with pytest.raises(NotFoundError):
            asyncio.run(store.update_reservation_status("appt-1", ReservationStatus.CANCELED))

    def test_list_reservations_by_range(self):
        store, session = _store(FakeResponse(body=[APPOINTMENT_ROW]))

        reservations = asyncio.run(
            store.list_reservations("salon-1", DateRange("2024-11-25", "2024-12-01"), professional_id="pro-1")
        )

        params = session.calls[0][2]["params"]
        assert ("date", "gte.2024-11-25") in params
        assert ("date", "lte.2024-12-01") in params
        assert ("professional_id", "eq.pro-1") in params
        assert len(reservations) == 1

    def test_reschedule_is_conditional(self):
        store, session = _store(FakeResponse(body=[dict(APPOINTMENT_ROW, time="11:00:00")]))

        moved = asyncio.run(
            store.reschedule_reservation(
                "appt-1", "2024-11-25", "11:00", expected=[ReservationStatus.PENDING]
            )
        )

        kwargs = session.calls[0][2]
        assert ("status", "in.(pending)") in kwargs["params"]
        assert kwargs["json"] == {"date": "2024-11-25", "time": "11:00", "status": "confirmed"}
        assert moved.time == "11:00"

    def test_reschedule_of_changed_row_is_not_found(self):
        store, _ = _store(FakeResponse(body=[]))

        with pytest.raises(NotFoundError, match="changed concurrently"):
            asyncio.run(
                store.reschedule_reservation(
                    "appt-1", "2024-11-25", "11:00", expected=[ReservationStatus.CONFIRMED]
                )
            )


class TestPurge:
    """Hard deletes must report rows that were not removed."""

    def test_purge_deleting_a_row(self):
        store, session = _store(FakeResponse(body=[APPOINTMENT_ROW]))

        asyncio.run(store.purge_reservation("appt-1"))

        assert session.calls[0][0] == "DELETE"

    def test_purge_deleting_zero_rows(self):
        store, _ = _store(FakeResponse(body=[]))

        with pytest.raises(NotFoundError, match="was not deleted"):
            asyncio.run(store.purge_reservation("appt-1"))

    def test_purge_with_empty_body(self):
        store, _ = _store(FakeResponse(status_code=204))

        with pytest.raises(NotFoundError):
            asyncio.run(store.purge_reservation("appt-1"))


class TestErrorTranslation:
    """HTTP and database errors map onto the engine's error kinds."""

    @pytest.mark.parametrize(
        "status, body, expected",
        [
            (409, {"code": "23P01", "message": "conflicting key value violates exclusion constraint"}, ConflictError),
            (400, {"code": "23505", "message": "duplicate key"}, ConflictError),
            (401, {"message": "JWT expired"}, PermissionDenied),
            (403, {"code": "42501", "message": "permission denied"}, PermissionDenied),
            (404, {"message": "relation does not exist"}, NotFoundError),
            (500, None, StoreError),
        ],
    )
    def test_error_status(self, status, body, expected):
        store, _ = _store(FakeResponse(status_code=status, body=body, text=None if body else "boom"))

        with pytest.raises(expected):
            asyncio.run(store.get_business("salon-1"))

    def test_conflict_is_retryable(self):
        store, _ = _store(FakeResponse(status_code=409, body={"code": "23P01", "message": "overlap"}))

        with pytest.raises(ConflictError) as exc_info:
            asyncio.run(store.reschedule_reservation("appt-1", "2024-11-25", "11:00"))

        error = exc_info.value
        assert error.retryable
        assert error.date == "2024-11-25"
        assert error.time == "11:00"

    def test_conflict_on_create_names_the_slot(self):
        store, _ = _store(FakeResponse(status_code=409, body={"code": "23P01", "message": "overlap"}))
        request = BookingRequest(
            business_id="salon-1",
            client_id="client-1",
            professional_id="pro-1",
            date="2024-11-25",
            time="10:00",
        )

        with pytest.raises(ConflictError, match="overlap") as exc_info:
            asyncio.run(store.create_reservation(request))

        error = exc_info.value
        assert error.professional_id == "pro-1"
        assert error.date == "2024-11-25"
        assert error.time == "10:00"

    def test_timeout(self):
        store, _ = _store(requests.exceptions.Timeout("read timed out"))

        with pytest.raises(StoreTimeoutError):
            asyncio.run(store.list_professionals("salon-1"))

    def test_connection_error(self):
        store, _ = _store(requests.exceptions.ConnectionError("refused"))

        with pytest.raises(StoreError):
            asyncio.run(store.list_professionals("salon-1"))

    def test_invalid_json(self):
        store, _ = _store(FakeResponse(status_code=200, body=None, text="<html>"))

        with pytest.raises(StoreError, match="invalid JSON"):
            asyncio.run(store.list_professionals("salon-1"))
