"""
Mapping between stored rows and domain models.

Rows use the column names of the hosted database (``salon_id``, ``valor``,
``duration_min`` ...), shared by the HTTP store and the JSON fixtures of the
in-memory store.
"""

from typing import Any, Dict, Mapping

from ..domain.models import (
    DEFAULT_DURATION_MINUTES,
    BookingRequest,
    Business,
    Expense,
    Professional,
    Reservation,
    parse_weekly_schedule,
)


def business_from_row(row: Mapping[str, Any]) -> Business:
    return Business(
        id=str(row["id"]),
        name=row.get("nome") or row.get("name") or "",
        weekly_schedule=parse_weekly_schedule(row.get("horario_funcionamento")) or {},
        active=bool(row.get("active", True)),
    )


def professional_from_row(row: Mapping[str, Any]) -> Professional:
    return Professional(
        id=str(row["id"]),
        business_id=str(row["salon_id"]),
        name=row.get("name") or "",
        commission_rate=float(row.get("comissao") or 0),
        schedule_override=parse_weekly_schedule(row.get("horario_funcionamento")),
        status=row.get("status") or "active",
    )


def reservation_from_row(row: Mapping[str, Any]) -> Reservation:
    professional_id = row.get("professional_id")
    return Reservation(
        id=str(row["id"]),
        business_id=str(row["salon_id"]),
        client_id=str(row.get("client_id") or ""),
        professional_id=str(professional_id) if professional_id else None,
        service_label=row.get("service_names") or "",
        date=row["date"],
        time=row["time"][:5],
        duration_minutes=int(row.get("duration_min") or DEFAULT_DURATION_MINUTES),
        value=float(row.get("valor") or 0),
        status=row.get("status") or "pending",
    )


def request_to_row(request: BookingRequest) -> Dict[str, Any]:
    return {
        "salon_id": request.business_id,
        "client_id": request.client_id,
        "professional_id": request.professional_id,
        "service_names": request.service_label,
        "date": request.date.to_date_string(),
        "time": request.time,
        "duration_min": request.duration_minutes,
        "valor": request.value,
        "status": request.status.value,
    }


def expense_from_row(row: Mapping[str, Any]) -> Expense:
    return Expense(
        id=str(row["id"]),
        business_id=str(row["salon_id"]),
        date=row["date"],
        amount=float(row.get("amount") or 0),
        status=row.get("status") or "pending",
        description=row.get("description") or "",
        category=row.get("category") or "",
    )
