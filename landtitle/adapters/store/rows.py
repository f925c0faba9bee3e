"""Row parsing shared by the SQL store adapters.

Rows are accessed by column name, so both aiosqlite.Row and asyncpg.Record
work. SQLite hands back text for timestamps, decimals and document lists;
PostgreSQL hands back native types. The helpers accept either.
"""

import json
import logging
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from landtitle.core.errors import DomainError
from landtitle.core.geo import ParcelLocation
from landtitle.core.identifiers import IdentityNumber, ParcelCode, RequestCode
from landtitle.core.models import (
    Citizen,
    MaritalStatus,
    Parcel,
    ParcelStatus,
    RequestStatus,
    RequestType,
    Sex,
    TitlingRequest,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]

REQUEST_SEQUENCE = "request"
CASE_FILE_SEQUENCE = "case_file"


def _datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _documents(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(json.loads(value))
    return tuple(value)


def _parse(kind: str, build):
    try:
        return build()
    except (KeyError, IndexError, TypeError, ValueError, DomainError) as e:
        logger.error(f"Failed to parse {kind} row: {e}")
        raise ValueError(f"Row parsing failed: {e}") from e


def row_to_parcel(row: Row) -> Parcel:
    """Convert a database row to a Parcel.

    Raises:
        ValueError: If the row is malformed or contains invalid data.
    """
    return _parse(
        "parcel",
        lambda: Parcel(
            code=ParcelCode.create(row["code"]),
            owner=row["owner"],
            location=ParcelLocation.create(row["latitude"], row["longitude"]),
            area=Decimal(str(row["area"])),
            address=row["address"],
            status=ParcelStatus(row["status"]),
            registered_at=_datetime(row["registered_at"]),
            updated_at=_datetime(row["updated_at"]),
            notes=row["notes"],
            version=int(row["version"]),
        ),
    )


def row_to_request(row: Row) -> TitlingRequest:
    """Convert a database row to a TitlingRequest.

    Request codes are stored verbatim, so the stored prefix is kept
    rather than re-validated against the configured one.

    Raises:
        ValueError: If the row is malformed or contains invalid data.
    """
    return _parse(
        "titling request",
        lambda: TitlingRequest(
            code=RequestCode(row["code"]),
            requester_id=IdentityNumber.create(row["requester_id"]),
            requester_name=row["requester_name"],
            parcel_address=row["parcel_address"],
            request_type=RequestType(row["request_type"]),
            status=RequestStatus(row["status"]),
            registered_at=_datetime(row["registered_at"]),
            priority=int(row["priority"]),
            documents=_documents(row["documents"]),
            case_file_number=row["case_file_number"],
            updated_at=_datetime(row["updated_at"]),
            notes=row["notes"],
            version=int(row["version"]),
        ),
    )


def row_to_citizen(row: Row) -> Citizen:
    """Convert a database row to a Citizen.

    Raises:
        ValueError: If the row is malformed or contains invalid data.
    """
    return _parse(
        "citizen",
        lambda: Citizen(
            identity=IdentityNumber.create(row["identity"]),
            given_names=row["given_names"],
            surnames=row["surnames"],
            birth_date=_date(row["birth_date"]),
            marital_status=MaritalStatus(row["marital_status"]),
            sex=Sex(row["sex"]),
            verification_status=VerificationStatus(row["verification_status"]),
            registered_at=_datetime(row["registered_at"]),
            address=row["address"],
            phone=row["phone"],
            email=row["email"],
            updated_at=_datetime(row["updated_at"]),
            last_verified_at=_datetime(row["last_verified_at"]),
            notes=row["notes"],
            version=int(row["version"]),
        ),
    )
