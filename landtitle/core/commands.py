"""Input commands accepted by the application services.

Commands carry raw, caller-supplied values. validate() checks the shape of
the input before any aggregate is built; aggregate factories then enforce
their own invariants.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from .errors import ValidationError
from .geo import CoordinateInput
from .identifiers import IdentityNumber, ParcelCode
from .models import MaritalStatus, RequestStatus, RequestType, Sex
from .titling_rules import (
    MAX_ADDRESS_LENGTH,
    MIN_ADDRESS_LENGTH,
    REQUESTER_NAME_PATTERN,
    SUBDIVISION_ADDRESS_KEYWORDS,
    address_mentions,
)

MAX_NOTES_LENGTH = 500

# Stricter than the domain rule, which only warns.
COLLECTIVE_COMMAND_KEYWORDS = (
    "mz",
    "manzana",
    "conjunto",
    "asociación",
    "agrupación",
)


def _check_notes(notes: str | None) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(
            f"Notes must not exceed {MAX_NOTES_LENGTH} characters",
            details={"length": len(notes)},
        )


@dataclass(frozen=True)
class RegisterParcelCommand:
    code: str
    owner: str
    latitude: CoordinateInput
    longitude: CoordinateInput
    area: Decimal | float | int | str
    address: str
    notes: str | None = None

    def validate(self) -> None:
        ParcelCode.create(self.code)
        if not self.owner or not self.owner.strip():
            raise ValidationError("Owner name is required")
        if not self.address or not self.address.strip():
            raise ValidationError("Parcel address is required")
        _check_notes(self.notes)


@dataclass(frozen=True)
class UpdateParcelCommand:
    """Owner and/or notes change. Fields left as None are not touched."""

    code: str
    owner: str | None = None
    notes: str | None = None

    def validate(self) -> None:
        ParcelCode.create(self.code)
        if self.owner is not None and not self.owner.strip():
            raise ValidationError("Owner name must not be blank")
        _check_notes(self.notes)


@dataclass(frozen=True)
class CreateRequestCommand:
    requester_id: str
    requester_name: str
    parcel_address: str
    request_type: RequestType
    notes: str | None = None
    documents: tuple[str, ...] = field(default_factory=tuple)

    def validate(self) -> None:
        """Check input shape and type-specific address requirements.

        Raises:
            ValidationError: On the first rule that fails.
        """
        IdentityNumber.create(self.requester_id)

        name = (self.requester_name or "").strip()
        if not REQUESTER_NAME_PATTERN.match(name):
            raise ValidationError(
                "Requester name must be 2-100 letters, accents or spaces",
                details={"requester_name": self.requester_name},
            )

        address = (self.parcel_address or "").strip()
        if not MIN_ADDRESS_LENGTH <= len(address) <= MAX_ADDRESS_LENGTH:
            raise ValidationError(
                f"Parcel address must have between {MIN_ADDRESS_LENGTH} and "
                f"{MAX_ADDRESS_LENGTH} characters"
            )

        if not isinstance(self.request_type, RequestType):
            raise ValidationError("Request type is required")

        _check_notes(self.notes)

        if self.request_type == RequestType.COLLECTIVE_TITLING:
            if not address_mentions(address, COLLECTIVE_COMMAND_KEYWORDS):
                raise ValidationError(
                    "For collective titling, the address must name a block, "
                    "housing group, or association",
                    details={"parcel_address": address},
                )
        elif self.request_type == RequestType.SUBDIVISION:
            if not address_mentions(address, SUBDIVISION_ADDRESS_KEYWORDS):
                raise ValidationError(
                    "For subdivision, the address must specify the lot to subdivide",
                    details={"parcel_address": address},
                )


@dataclass(frozen=True)
class ChangeRequestStatusCommand:
    code: str
    target: RequestStatus
    actor: str
    notes: str | None = None

    def validate(self) -> None:
        if not self.code or not self.code.strip():
            raise ValidationError("Request code is required")
        if not isinstance(self.target, RequestStatus):
            raise ValidationError("Target status is required")
        if not self.actor or not self.actor.strip():
            raise ValidationError("Actor is required")
        _check_notes(self.notes)


@dataclass(frozen=True)
class UpdateRequestCommand:
    code: str
    priority: int | None = None
    notes: str | None = None

    def validate(self) -> None:
        if not self.code or not self.code.strip():
            raise ValidationError("Request code is required")
        if self.priority is not None and self.priority not in (1, 2, 3):
            raise ValidationError(
                "Priority must be between 1 and 3", details={"priority": self.priority}
            )
        _check_notes(self.notes)


@dataclass(frozen=True)
class RegisterCitizenCommand:
    identity: str
    given_names: str
    surnames: str
    birth_date: date
    marital_status: MaritalStatus
    sex: Sex
    address: str | None = None
    phone: str | None = None
    email: str | None = None

    def validate(self) -> None:
        IdentityNumber.create(self.identity)
        if not isinstance(self.birth_date, date):
            raise ValidationError("Birth date is required")
        if not isinstance(self.marital_status, MaritalStatus):
            raise ValidationError("Marital status is required")
        if not isinstance(self.sex, Sex):
            raise ValidationError("Sex is required")
