"""Conversions between domain objects and JSON-ready dictionaries.

Shared by the CLI and HTTP adapters so both render aggregates and parse
enum and date arguments the same way.
"""

from datetime import date
from enum import Enum
from typing import Any, TypeVar

from landtitle.core.errors import DomainError, ValidationError
from landtitle.core.models import (
    Citizen,
    Parcel,
    ParcelStats,
    RequestStats,
    TitlingRequest,
)

E = TypeVar("E", bound=Enum)


def parse_enum(enum_type: type[E], value: Any, field: str) -> E:
    """Look up an enum member by name, case-insensitively.

    Raises:
        ValidationError: If value names no member.
    """
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type[str(value).strip().upper()]
    except KeyError as e:
        allowed = ", ".join(member.name for member in enum_type)
        raise ValidationError(
            f"Invalid {field}: {value}. Allowed: {allowed}",
            details={field: value},
        ) from e


def parse_int(value: Any, field: str) -> int:
    """Accept a JSON integer or a string holding one.

    Booleans and floats are rejected rather than truncated.

    Raises:
        ValidationError: If value is not an integer.
    """
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValidationError(
            f"Invalid {field}: {value}. Expected an integer", details={field: value}
        )
    if isinstance(value, int):
        return value
    try:
        return int(value.strip(), 10)
    except ValueError as e:
        raise ValidationError(
            f"Invalid {field}: {value}. Expected an integer", details={field: value}
        ) from e


def parse_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(
            f"Invalid {field}: {value}. Expected YYYY-MM-DD", details={field: value}
        ) from e


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def parcel_to_dict(parcel: Parcel) -> dict[str, Any]:
    return {
        "code": parcel.code.value,
        "owner": parcel.owner,
        "latitude": str(parcel.location.latitude),
        "longitude": str(parcel.location.longitude),
        "area_m2": str(parcel.area),
        "area_hectares": str(parcel.area_hectares),
        "address": parcel.address,
        "status": parcel.status.name,
        "status_description": parcel.status.description,
        "registered_at": _iso(parcel.registered_at),
        "updated_at": _iso(parcel.updated_at),
        "notes": parcel.notes,
        "version": parcel.version,
    }


def request_to_dict(request: TitlingRequest) -> dict[str, Any]:
    return {
        "code": request.code.value,
        "requester_id": request.requester_id.masked,
        "requester_name": request.requester_name,
        "parcel_address": request.parcel_address,
        "request_type": request.request_type.name,
        "status": request.status.name,
        "priority": request.priority,
        "documents": list(request.documents),
        "case_file_number": request.case_file_number,
        "days_elapsed": request.days_elapsed(),
        "registered_at": _iso(request.registered_at),
        "updated_at": _iso(request.updated_at),
        "notes": request.notes,
        "version": request.version,
    }


def citizen_to_dict(citizen: Citizen) -> dict[str, Any]:
    return {
        "identity": citizen.identity.masked,
        "given_names": citizen.given_names,
        "surnames": citizen.surnames,
        "full_name": citizen.full_name,
        "birth_date": citizen.birth_date.isoformat(),
        "age": citizen.age(),
        "marital_status": citizen.marital_status.name,
        "sex": citizen.sex.name,
        "verification_status": citizen.verification_status.name,
        "address": citizen.address,
        "phone": citizen.phone,
        "email": citizen.email,
        "last_verified_at": _iso(citizen.last_verified_at),
        "version": citizen.version,
    }


def parcel_stats_to_dict(stats: ParcelStats) -> dict[str, Any]:
    return {
        "total": stats.total,
        "by_status": dict(stats.by_status),
        "formalized_percentage": round(stats.formalized_percentage, 2),
        "active_percentage": round(stats.active_percentage, 2),
    }


def request_stats_to_dict(stats: RequestStats) -> dict[str, Any]:
    return {
        "total": stats.total,
        "by_status": dict(stats.by_status),
        "by_type": dict(stats.by_type),
        "in_progress": stats.in_progress,
        "finished": stats.finished,
        "delayed": stats.delayed,
        "urgent": stats.urgent,
        "success_percentage": round(stats.success_percentage, 2),
        "generated_at": stats.generated_at.isoformat(),
    }


def error_to_dict(operation: str, error: DomainError) -> dict[str, Any]:
    return {
        "status": "error",
        "operation": operation,
        "error": error.kind,
        "message": error.message,
        "details": error.details,
    }
