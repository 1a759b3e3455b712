"""
HTTP client for the hosted booking database (PostgREST API).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests
from pendulum import Date

from ..domain.exceptions import (
    BookingEngineError,
    ConflictError,
    NotFoundError,
    PermissionDenied,
    StoreError,
    StoreTimeoutError,
)
from ..domain.models import (
    BookingRequest,
    Business,
    DateRange,
    Expense,
    Professional,
    Reservation,
    ReservationStatus,
    TimeRange,
    WeeklySchedule,
    parse_clock,
    to_date,
)
from .records import (
    business_from_row,
    expense_from_row,
    professional_from_row,
    request_to_row,
    reservation_from_row,
)

logger = logging.getLogger(__name__)

Params = List[Tuple[str, str]]


class RestReservationStore:
    """
    Client for the booking tables exposed through a PostgREST endpoint.

    Overlaps are rejected by an exclusion constraint on ``appointments``; the
    client maps that violation to ConflictError. Writes ask for the affected
    rows back so that a write touching nothing is reported instead of
    passing silently.
    """

    # exclusion_violation, unique_violation
    CONFLICT_CODES = {"23P01", "23505"}
    # insufficient_privilege
    PERMISSION_CODES = {"42501"}

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: REST root, e.g. ``https://<project>.supabase.co/rest/v1``
            api_key: Key sent as ``apikey`` and bearer token
            timeout_seconds: Per-request timeout
            session: Optional preconfigured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def get_business(self, business_id: str) -> Business:
        row = await self._fetch_one("salons", [("id", f"eq.{business_id}")], f"Business {business_id}")
        return business_from_row(row)

    async def get_professional(self, professional_id: str) -> Professional:
        row = await self._fetch_one(
            "professionals", [("id", f"eq.{professional_id}")], f"Professional {professional_id}"
        )
        return professional_from_row(row)

    async def list_professionals(self, business_id: str) -> List[Professional]:
        rows = await self._call("GET", "professionals", params=[("salon_id", f"eq.{business_id}")])
        return [professional_from_row(row) for row in rows]

    async def get_effective_schedule(
        self,
        business_id: str,
        professional_id: Optional[str] = None,
    ) -> Tuple[WeeklySchedule, Optional[WeeklySchedule]]:
        business = await self.get_business(business_id)
        override = None
        if professional_id is not None:
            override = (await self.get_professional(professional_id)).schedule_override
        return business.weekly_schedule, override

    async def list_busy_intervals(
        self,
        professional_id: str,
        date: Date,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[TimeRange]:
        params: Params = [
            ("select", "id,time,duration_min"),
            ("professional_id", f"eq.{professional_id}"),
            ("date", f"eq.{to_date(date).to_date_string()}"),
            ("status", "not.in.(canceled,cancelled)"),
        ]
        if exclude_reservation_id is not None:
            params.append(("id", f"neq.{exclude_reservation_id}"))

        rows = await self._call("GET", "appointments", params=params)

        intervals: List[TimeRange] = []
        for row in rows:
            start = parse_clock(row["time"])
            duration = int(row.get("duration_min") or 30)
            intervals.append(TimeRange(start=start, end=start + duration, reservation_id=str(row["id"])))
        return intervals

    async def get_reservation(self, reservation_id: str) -> Reservation:
        row = await self._fetch_one(
            "appointments", [("id", f"eq.{reservation_id}")], f"Reservation {reservation_id}"
        )
        return reservation_from_row(row)

    async def create_reservation(self, request: BookingRequest) -> Reservation:
        try:
            rows = await self._call(
                "POST",
                "appointments",
                payload=request_to_row(request),
                prefer="return=representation",
            )
        except ConflictError as e:
            raise _with_slot(e, request.professional_id, request.date, request.time) from e
        if not rows:
            raise StoreError("Data store accepted the reservation but returned no row")
        return reservation_from_row(rows[0])

    async def update_reservation_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        expected: Optional[Sequence[ReservationStatus]] = None,
    ) -> Reservation:
        params: Params = [("id", f"eq.{reservation_id}")]
        if expected:
            params.append(("status", f"in.({','.join(s.value for s in expected)})"))

        rows = await self._call(
            "PATCH",
            "appointments",
            params=params,
            payload={"status": status.value},
            prefer="return=representation",
        )
        if not rows:
            raise NotFoundError(
                f"Reservation {reservation_id} was not updated: missing or changed concurrently"
            )
        return reservation_from_row(rows[0])

    async def reschedule_reservation(
        self,
        reservation_id: str,
        date: Date,
        time: str,
        status: ReservationStatus = ReservationStatus.CONFIRMED,
        expected: Optional[Sequence[ReservationStatus]] = None,
    ) -> Reservation:
        day = to_date(date)
        params: Params = [("id", f"eq.{reservation_id}")]
        if expected:
            params.append(("status", f"in.({','.join(s.value for s in expected)})"))

        try:
            rows = await self._call(
                "PATCH",
                "appointments",
                params=params,
                payload={"date": day.to_date_string(), "time": time, "status": status.value},
                prefer="return=representation",
            )
        except ConflictError as e:
            raise _with_slot(e, None, day, time) from e
        if not rows:
            raise NotFoundError(
                f"Reservation {reservation_id} was not rescheduled: missing or changed concurrently"
            )
        return reservation_from_row(rows[0])

    async def purge_reservation(self, reservation_id: str) -> None:
        rows = await self._call(
            "DELETE",
            "appointments",
            params=[("id", f"eq.{reservation_id}")],
            prefer="return=representation",
        )
        if not rows:
            # Row-level security turns forbidden deletes into zero-row deletes
            raise NotFoundError(
                f"Reservation {reservation_id} was not deleted: no row matched "
                "(missing, already purged, or not permitted)"
            )

    async def list_reservations(
        self,
        business_id: str,
        date_range: DateRange,
        professional_id: Optional[str] = None,
    ) -> List[Reservation]:
        params: Params = [
            ("salon_id", f"eq.{business_id}"),
            ("date", f"gte.{date_range.start.to_date_string()}"),
            ("date", f"lte.{date_range.end.to_date_string()}"),
            ("order", "date.asc,time.asc"),
        ]
        if professional_id is not None:
            params.append(("professional_id", f"eq.{professional_id}"))

        rows = await self._call("GET", "appointments", params=params)
        return [reservation_from_row(row) for row in rows]

    async def list_expenses(self, business_id: str, date_range: DateRange) -> List[Expense]:
        rows = await self._call(
            "GET",
            "expenses",
            params=[
                ("salon_id", f"eq.{business_id}"),
                ("date", f"gte.{date_range.start.to_date_string()}"),
                ("date", f"lte.{date_range.end.to_date_string()}"),
            ],
        )
        return [expense_from_row(row) for row in rows]

    async def _fetch_one(self, table: str, params: Params, label: str) -> Dict[str, Any]:
        rows = await self._call("GET", table, params=params + [("limit", "1")])
        if not rows:
            raise NotFoundError(f"{label} not found")
        return rows[0]

    async def _call(self, method: str, table: str, **kwargs) -> List[Dict[str, Any]]:
        # requests is blocking; keep the event loop free
        return await asyncio.to_thread(self._request, method, table, **kwargs)

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Params] = None,
        payload: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Perform one HTTP request and return the decoded rows.

        Raises:
            StoreTimeoutError: If the request timed out
            StoreError: If the store is unreachable or answers unexpectedly
            PermissionDenied, NotFoundError, ConflictError: Translated HTTP errors
        """
        url = f"{self.base_url}/{table}"
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=payload,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.Timeout as e:
            raise StoreTimeoutError(
                f"{method} {table} timed out after {self.timeout_seconds}s"
            ) from e
        except requests.exceptions.RequestException as e:
            raise StoreError(f"Failed to reach data store: {e}") from e

        if response.status_code >= 400:
            raise self._translate_error(response, method, table)

        if not response.content:
            return []

        try:
            data = response.json()
        except ValueError as e:
            raise StoreError(f"Data store returned invalid JSON for {method} {table}") from e

        return data if isinstance(data, list) else [data]

    def _translate_error(self, response: requests.Response, method: str, table: str) -> BookingEngineError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        code = str(body.get("code") or "")
        message = body.get("message") or response.text or response.reason
        status = response.status_code

        logger.debug("%s %s failed with %s (%s): %s", method, table, status, code, message)

        if status in (401, 403) or code in self.PERMISSION_CODES:
            return PermissionDenied(f"{method} {table} not permitted: {message}")
        if status == 404:
            return NotFoundError(f"{method} {table}: {message}")
        if status == 409 or code in self.CONFLICT_CODES:
            return ConflictError(f"{method} {table} conflicts with existing data: {message}")
        return StoreError(f"Data store returned {status} for {method} {table}: {message}")


def _with_slot(
    error: ConflictError,
    professional_id: Optional[str],
    date: Date,
    time: str,
) -> ConflictError:
    """Copy a constraint violation, adding the slot that was being written."""
    return ConflictError(
        str(error),
        professional_id=error.professional_id or professional_id,
        date=error.date or to_date(date).to_date_string(),
        time=error.time or time,
        conflicting=error.conflicting,
    )
