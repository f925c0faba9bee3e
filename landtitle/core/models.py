"""Domain models for the land-titling registry.

Aggregates here are immutable: every mutation returns a new instance
built with dataclasses.replace(), leaving the caller's copy untouched.
All models use only Python standard library types.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType

from .errors import InvalidStateTransition, ValidationError
from .geo import ParcelLocation
from .identifiers import IdentityNumber, ParcelCode, RequestCode


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _require_text(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value.strip()


def _optional_text(value: str | None) -> str | None:
    return value.strip() if value is not None else None


def _to_area(value: Decimal | float | int | str) -> Decimal:
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValidationError(
            "Parcel area must be a number", details={"area": value}
        ) from e


# ============================================================================
# PARCELS
# ============================================================================


class ParcelStatus(Enum):
    """Lifecycle states for a cadastral parcel.

    FORMALIZED is absorbing: once a title is granted the parcel never
    changes status again.
    """

    ACTIVE = "ACTIVE"
    UNDER_REVIEW = "UNDER_REVIEW"
    FORMALIZED = "FORMALIZED"
    SUSPENDED = "SUSPENDED"
    INACTIVE = "INACTIVE"

    @property
    def description(self) -> str:
        return _PARCEL_STATUS_DESCRIPTIONS[self]

    def can_transition_to(self, target: "ParcelStatus") -> bool:
        return self in _PARCEL_ALLOWED_SOURCES[target]


_PARCEL_STATUS_DESCRIPTIONS = {
    ParcelStatus.ACTIVE: "Active - formalization in progress",
    ParcelStatus.UNDER_REVIEW: "Under review - requires additional verification",
    ParcelStatus.FORMALIZED: "Formalized - title granted",
    ParcelStatus.SUSPENDED: "Suspended - process temporarily halted",
    ParcelStatus.INACTIVE: "Inactive - process cancelled",
}

# target -> statuses it may be entered from
_PARCEL_ALLOWED_SOURCES: dict[ParcelStatus, frozenset[ParcelStatus]] = {
    ParcelStatus.FORMALIZED: frozenset(
        {ParcelStatus.ACTIVE, ParcelStatus.UNDER_REVIEW}
    ),
    ParcelStatus.INACTIVE: frozenset(ParcelStatus) - {ParcelStatus.FORMALIZED},
    ParcelStatus.UNDER_REVIEW: frozenset(ParcelStatus)
    - {ParcelStatus.FORMALIZED, ParcelStatus.INACTIVE},
    ParcelStatus.SUSPENDED: frozenset(ParcelStatus) - {ParcelStatus.FORMALIZED},
    ParcelStatus.ACTIVE: frozenset(ParcelStatus) - {ParcelStatus.FORMALIZED},
}


@dataclass(frozen=True, eq=False)
class Parcel:
    """A surveyed unit of land tracked for formalization.

    Identity is the parcel code; two Parcel instances with the same code
    compare equal regardless of their other fields.
    """

    code: ParcelCode
    owner: str
    location: ParcelLocation
    area: Decimal  # square meters
    address: str
    status: ParcelStatus
    registered_at: datetime
    updated_at: datetime | None = None
    notes: str | None = None
    version: int = 0

    def __post_init__(self) -> None:
        """Validate parcel invariants on creation or deserialization."""
        if not self.owner or not self.owner.strip():
            raise ValidationError("Owner name must not be empty")
        if not self.address or not self.address.strip():
            raise ValidationError("Parcel address must not be empty")
        if self.area is None or not self.area.is_finite() or self.area <= 0:
            raise ValidationError(
                f"Parcel area must be positive, got {self.area}",
                details={"area": str(self.area)},
            )

    @classmethod
    def create(
        cls,
        code: ParcelCode,
        owner: str,
        location: ParcelLocation,
        area: Decimal | float | int | str,
        address: str,
        notes: str | None = None,
    ) -> "Parcel":
        """Create a new parcel in ACTIVE status."""
        return cls(
            code=code,
            owner=_require_text(owner, "Owner name must not be empty"),
            location=location,
            area=_to_area(area),
            address=_require_text(address, "Parcel address must not be empty"),
            status=ParcelStatus.ACTIVE,
            registered_at=_utcnow(),
            notes=_optional_text(notes),
        )

    def change_status(self, target: ParcelStatus) -> "Parcel":
        """Return a copy in the target status.

        Raises:
            InvalidStateTransition: If the status table forbids the change.
        """
        if not self.status.can_transition_to(target):
            raise InvalidStateTransition(self.status, target)
        return replace(self, status=target, updated_at=_utcnow())

    def change_owner(self, owner: str) -> "Parcel":
        return replace(
            self,
            owner=_require_text(owner, "Owner name must not be empty"),
            updated_at=_utcnow(),
        )

    def update_notes(self, notes: str | None) -> "Parcel":
        return replace(self, notes=_optional_text(notes), updated_at=_utcnow())

    @property
    def is_active(self) -> bool:
        return self.status in {ParcelStatus.ACTIVE, ParcelStatus.UNDER_REVIEW}

    @property
    def is_formalized(self) -> bool:
        return self.status == ParcelStatus.FORMALIZED

    @property
    def area_hectares(self) -> Decimal:
        return (self.area / Decimal(10000)).quantize(
            Decimal("0.0001"), rounding=ROUND_HALF_UP
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Parcel):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        return (
            f"Parcel[code={self.code}, owner={self.owner}, "
            f"area={self.area:.2f}m2, status={self.status.name}]"
        )


# ============================================================================
# TITLING REQUESTS
# ============================================================================


class RequestType(Enum):
    """Kinds of titling request a citizen may file."""

    INDIVIDUAL_TITLING = "INDIVIDUAL_TITLING"
    COLLECTIVE_TITLING = "COLLECTIVE_TITLING"
    CADASTRAL_UPDATE = "CADASTRAL_UPDATE"
    SUBDIVISION = "SUBDIVISION"
    MERGER = "MERGER"


class RequestStatus(Enum):
    """Workflow states for a titling request.

    The happy path runs RECEIVED → UNDER_EVALUATION → INSPECTION_PENDING →
    INSPECTION_DONE → LEGAL_REVIEW → TITLE_GENERATED → SENT_TO_REGISTRY →
    REGISTERED → TITLE_DELIVERED. IN_REMEDIATION loops back to evaluation
    once the citizen supplies missing documents.
    """

    RECEIVED = "RECEIVED"
    UNDER_EVALUATION = "UNDER_EVALUATION"
    INSPECTION_PENDING = "INSPECTION_PENDING"
    INSPECTION_DONE = "INSPECTION_DONE"
    LEGAL_REVIEW = "LEGAL_REVIEW"
    TITLE_GENERATED = "TITLE_GENERATED"
    SENT_TO_REGISTRY = "SENT_TO_REGISTRY"
    REGISTERED = "REGISTERED"
    TITLE_DELIVERED = "TITLE_DELIVERED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"
    IN_REMEDIATION = "IN_REMEDIATION"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_REQUEST_STATUSES

    @property
    def requires_citizen_action(self) -> bool:
        return self == RequestStatus.IN_REMEDIATION

    def allowed_targets(self) -> frozenset["RequestStatus"]:
        return _REQUEST_TRANSITIONS.get(self, frozenset())

    def can_transition_to(self, target: "RequestStatus") -> bool:
        return not self.is_terminal and target in self.allowed_targets()


_TERMINAL_REQUEST_STATUSES = frozenset(
    {RequestStatus.TITLE_DELIVERED, RequestStatus.REJECTED, RequestStatus.ARCHIVED}
)

_REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.RECEIVED: frozenset(
        {RequestStatus.UNDER_EVALUATION, RequestStatus.REJECTED}
    ),
    RequestStatus.UNDER_EVALUATION: frozenset(
        {
            RequestStatus.INSPECTION_PENDING,
            RequestStatus.IN_REMEDIATION,
            RequestStatus.REJECTED,
        }
    ),
    RequestStatus.INSPECTION_PENDING: frozenset(
        {RequestStatus.INSPECTION_DONE, RequestStatus.REJECTED}
    ),
    RequestStatus.INSPECTION_DONE: frozenset({RequestStatus.LEGAL_REVIEW}),
    RequestStatus.LEGAL_REVIEW: frozenset(
        {RequestStatus.TITLE_GENERATED, RequestStatus.REJECTED}
    ),
    RequestStatus.TITLE_GENERATED: frozenset({RequestStatus.SENT_TO_REGISTRY}),
    RequestStatus.SENT_TO_REGISTRY: frozenset(
        {RequestStatus.REGISTERED, RequestStatus.REJECTED}
    ),
    RequestStatus.REGISTERED: frozenset({RequestStatus.TITLE_DELIVERED}),
    RequestStatus.IN_REMEDIATION: frozenset(
        {RequestStatus.UNDER_EVALUATION, RequestStatus.ARCHIVED}
    ),
}

PRIORITY_NORMAL = 1
PRIORITY_HIGH = 2
PRIORITY_URGENT = 3


@dataclass(frozen=True, eq=False)
class TitlingRequest:
    """A case opened by a citizen to obtain legal title over a parcel.

    State Transitions:
        Only the edges in the workflow table are legal. Terminal states
        (TITLE_DELIVERED, REJECTED, ARCHIVED) accept no further change.
    """

    code: RequestCode
    requester_id: IdentityNumber
    requester_name: str
    parcel_address: str
    request_type: RequestType
    status: RequestStatus
    registered_at: datetime
    priority: int = PRIORITY_NORMAL
    documents: tuple[str, ...] = ()  # ordered, duplicates allowed
    case_file_number: str | None = None
    updated_at: datetime | None = None
    notes: str | None = None
    version: int = 0

    def __post_init__(self) -> None:
        """Validate request invariants on creation or deserialization."""
        if self.priority not in (PRIORITY_NORMAL, PRIORITY_HIGH, PRIORITY_URGENT):
            raise ValidationError(
                f"Priority must be 1 (normal) to 3 (urgent), got {self.priority}",
                details={"priority": self.priority},
            )
        if isinstance(self.documents, list):
            object.__setattr__(self, "documents", tuple(self.documents))

    @classmethod
    def create(
        cls,
        code: RequestCode,
        requester_id: IdentityNumber | str,
        requester_name: str,
        parcel_address: str,
        request_type: RequestType,
        notes: str | None = None,
    ) -> "TitlingRequest":
        """Open a new request in RECEIVED status with normal priority."""
        if not isinstance(requester_id, IdentityNumber):
            requester_id = IdentityNumber.create(requester_id)
        return cls(
            code=code,
            requester_id=requester_id,
            requester_name=_require_text(
                requester_name, "Requester name must not be empty"
            ),
            parcel_address=_require_text(
                parcel_address, "Parcel address must not be empty"
            ),
            request_type=request_type,
            status=RequestStatus.RECEIVED,
            registered_at=_utcnow(),
            notes=_optional_text(notes),
        )

    def change_status(
        self, target: RequestStatus, notes: str | None = None
    ) -> "TitlingRequest":
        """Return a copy in the target status.

        Raises:
            InvalidStateTransition: If the current status is terminal or the
                edge is not in the workflow table.
        """
        if self.status.is_terminal:
            raise InvalidStateTransition(
                self.status, target, reason=f"{self.status.name} is a terminal status"
            )
        if target not in self.status.allowed_targets():
            raise InvalidStateTransition(self.status, target)
        return replace(
            self,
            status=target,
            notes=notes.strip() if notes is not None else self.notes,
            updated_at=_utcnow(),
        )

    def add_document(self, name: str) -> "TitlingRequest":
        document = _require_text(name, "Document name must not be empty")
        return replace(
            self, documents=(*self.documents, document), updated_at=_utcnow()
        )

    def assign_case_file(self, number: str) -> "TitlingRequest":
        return replace(
            self,
            case_file_number=_require_text(
                number, "Case-file number must not be empty"
            ),
            updated_at=_utcnow(),
        )

    def change_priority(self, priority: int) -> "TitlingRequest":
        if priority not in (PRIORITY_NORMAL, PRIORITY_HIGH, PRIORITY_URGENT):
            raise ValidationError(
                "Priority must be between 1 (normal) and 3 (urgent)",
                details={"priority": priority},
            )
        return replace(self, priority=priority, updated_at=_utcnow())

    def update_notes(self, notes: str | None) -> "TitlingRequest":
        return replace(self, notes=_optional_text(notes), updated_at=_utcnow())

    def days_elapsed(self, today: date | None = None) -> int:
        """Whole days between the registration date and today (UTC dates)."""
        if today is None:
            today = _utcnow().date()
        return (today - self.registered_at.astimezone(UTC).date()).days

    @property
    def is_in_progress(self) -> bool:
        return not self.status.is_terminal

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TitlingRequest):
            return NotImplemented
        return self.code == other.code

    def __hash__(self) -> int:
        return hash(self.code)

    def __str__(self) -> str:
        return (
            f"TitlingRequest[code={self.code}, requester={self.requester_name}, "
            f"status={self.status.name}, type={self.request_type.name}]"
        )


# ============================================================================
# CITIZENS
# ============================================================================


class MaritalStatus(Enum):
    SINGLE = "SINGLE"
    MARRIED = "MARRIED"
    WIDOWED = "WIDOWED"
    DIVORCED = "DIVORCED"
    COMMON_LAW = "COMMON_LAW"


class Sex(Enum):
    MALE = "M"
    FEMALE = "F"


class VerificationStatus(Enum):
    """State of identity verification against the civil registry."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    VERIFICATION_ERROR = "VERIFICATION_ERROR"
    BLOCKED = "BLOCKED"


CITIZEN_NAME_PATTERN = re.compile(r"^[a-zA-ZÀ-ÿñÑ\s]{2,50}$")
_PHONE_PATTERN = re.compile(r"^[0-9]{9}$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MINIMUM_AGE_YEARS = 18
REVERIFICATION_DAYS = 90


def _years_between(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return years


@dataclass(frozen=True, eq=False)
class Citizen:
    """A natural person who may file titling requests.

    Identity is the national identity number.
    """

    identity: IdentityNumber
    given_names: str
    surnames: str
    birth_date: date
    marital_status: MaritalStatus
    sex: Sex
    verification_status: VerificationStatus
    registered_at: datetime
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    updated_at: datetime | None = None
    last_verified_at: datetime | None = None
    notes: str | None = None
    version: int = 0

    @classmethod
    def create(
        cls,
        identity: IdentityNumber,
        given_names: str,
        surnames: str,
        birth_date: date,
        marital_status: MaritalStatus,
        sex: Sex,
    ) -> "Citizen":
        """Register a citizen pending verification.

        Raises:
            ValidationError: If a name has invalid characters or the person
                is younger than 18.
        """
        for label, value in (("Given names", given_names), ("Surnames", surnames)):
            if value is None or not CITIZEN_NAME_PATTERN.match(value.strip()):
                raise ValidationError(
                    f"{label} may only contain letters, accents and spaces (2-50 characters)"
                )
        if _years_between(birth_date, _utcnow().date()) < MINIMUM_AGE_YEARS:
            raise ValidationError(
                f"Citizen must be at least {MINIMUM_AGE_YEARS} years old",
                details={"birth_date": birth_date.isoformat()},
            )
        return cls(
            identity=identity,
            given_names=given_names.strip().upper(),
            surnames=surnames.strip().upper(),
            birth_date=birth_date,
            marital_status=marital_status,
            sex=sex,
            verification_status=VerificationStatus.PENDING,
            registered_at=_utcnow(),
        )

    def update_contact(
        self,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> "Citizen":
        phone = _optional_text(phone)
        email = _optional_text(email)
        if phone and not _PHONE_PATTERN.match(phone):
            raise ValidationError("Phone number must have 9 digits")
        if email and not _EMAIL_PATTERN.match(email):
            raise ValidationError("Email address is not well formed")
        return replace(
            self,
            address=_optional_text(address),
            phone=phone,
            email=email.lower() if email else email,
            updated_at=_utcnow(),
        )

    def mark_verified(self, notes: str | None = None) -> "Citizen":
        now = _utcnow()
        return replace(
            self,
            verification_status=VerificationStatus.VERIFIED,
            last_verified_at=now,
            updated_at=now,
            notes=notes,
        )

    def mark_verification_error(self, reason: str) -> "Citizen":
        now = _utcnow()
        return replace(
            self,
            verification_status=VerificationStatus.VERIFICATION_ERROR,
            last_verified_at=now,
            updated_at=now,
            notes=reason,
        )

    @property
    def full_name(self) -> str:
        return f"{self.given_names} {self.surnames}"

    def age(self, today: date | None = None) -> int:
        return _years_between(self.birth_date, today or _utcnow().date())

    @property
    def is_verified(self) -> bool:
        return self.verification_status == VerificationStatus.VERIFIED

    def needs_reverification(self, now: datetime | None = None) -> bool:
        """Never verified while pending, or last verified over 90 days ago."""
        if self.last_verified_at is None:
            return self.verification_status == VerificationStatus.PENDING
        now = now or _utcnow()
        return (now - self.last_verified_at).days > REVERIFICATION_DAYS

    @property
    def has_contact_details(self) -> bool:
        return bool(self.phone) or bool(self.email)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Citizen):
            return NotImplemented
        return self.identity == other.identity

    def __hash__(self) -> int:
        return hash(self.identity)

    def __str__(self) -> str:
        return (
            f"Citizen[identity={self.identity.masked}, name={self.full_name}, "
            f"verification={self.verification_status.name}]"
        )


# ============================================================================
# STATISTICS
# ============================================================================


@dataclass(frozen=True)
class ParcelStats:
    """Aggregate counts over the parcel registry."""

    total: int
    by_status: Mapping[str, int]  # status name -> count (immutable at runtime)

    def __post_init__(self) -> None:
        object.__setattr__(self, "by_status", MappingProxyType(dict(self.by_status)))

    def _percentage(self, status: ParcelStatus) -> float:
        if self.total == 0:
            return 0.0
        return self.by_status.get(status.name, 0) / self.total * 100.0

    @property
    def formalized_percentage(self) -> float:
        return self._percentage(ParcelStatus.FORMALIZED)

    @property
    def active_percentage(self) -> float:
        return self._percentage(ParcelStatus.ACTIVE)


@dataclass(frozen=True)
class RequestStats:
    """Aggregate counts over titling requests."""

    total: int
    by_status: Mapping[str, int]
    by_type: Mapping[str, int]
    delayed: int = 0  # in progress for 60 days or more
    urgent: int = 0  # priority 3
    generated_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        object.__setattr__(self, "by_status", MappingProxyType(dict(self.by_status)))
        object.__setattr__(self, "by_type", MappingProxyType(dict(self.by_type)))

    @property
    def in_progress(self) -> int:
        return sum(
            count
            for name, count in self.by_status.items()
            if not RequestStatus[name].is_terminal
        )

    @property
    def finished(self) -> int:
        return sum(
            count
            for name, count in self.by_status.items()
            if RequestStatus[name].is_terminal
        )

    @property
    def success_percentage(self) -> float:
        if self.total == 0:
            return 0.0
        delivered = self.by_status.get(RequestStatus.TITLE_DELIVERED.name, 0)
        return delivered / self.total * 100.0
