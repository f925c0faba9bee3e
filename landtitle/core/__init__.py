"""Core domain logic for the land-titling registry.

This package contains zero external dependencies and represents
the pure business logic of the application. All persistence and
delivery concerns are handled by the adapters package.
"""

from .errors import (
    ConflictError,
    DomainError,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from .geo import ParcelLocation
from .identifiers import CaseFileNumber, IdentityNumber, ParcelCode, RequestCode
from .models import (
    Citizen,
    MaritalStatus,
    Parcel,
    ParcelStats,
    ParcelStatus,
    RequestStats,
    RequestStatus,
    RequestType,
    Sex,
    TitlingRequest,
    VerificationStatus,
)

__all__ = [
    "CaseFileNumber",
    "Citizen",
    "ConflictError",
    "DomainError",
    "IdentityNumber",
    "InvalidStateTransition",
    "MaritalStatus",
    "NotFound",
    "Parcel",
    "ParcelCode",
    "ParcelLocation",
    "ParcelStats",
    "ParcelStatus",
    "RequestCode",
    "RequestStats",
    "RequestStatus",
    "RequestType",
    "Sex",
    "TitlingRequest",
    "ValidationError",
    "VerificationStatus",
]
