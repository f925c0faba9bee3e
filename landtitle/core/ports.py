"""Port interfaces for the land-titling registry.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Port Interface Categories:

1. **Driven Ports** (core calls out to adapters)
   - ParcelRepositoryPort: Persist and query cadastral parcels
   - TitlingRequestRepositoryPort: Persist and query titling requests
   - CitizenRepositoryPort: Persist and query citizens
   - AlertNotificationPort: Report requests that need attention

2. **Driving Ports** (adapters/external systems call into core)
   - CadastrePort: Parcel registration and lifecycle
   - TitlingPort: Titling request workflow
   - CitizenPort: Citizen registration and verification
"""

from abc import ABC, abstractmethod

from .commands import (
    ChangeRequestStatusCommand,
    CreateRequestCommand,
    RegisterCitizenCommand,
    RegisterParcelCommand,
    UpdateParcelCommand,
    UpdateRequestCommand,
)
from .geo import ParcelLocation
from .identifiers import IdentityNumber, ParcelCode, RequestCode
from .models import (
    Citizen,
    Parcel,
    ParcelStats,
    ParcelStatus,
    RequestStats,
    RequestStatus,
    RequestType,
    TitlingRequest,
    VerificationStatus,
)


# ============================================================================
# DRIVEN PORTS (Core calls out to adapters)
# ============================================================================


class ParcelRepositoryPort(ABC):
    """Port for persisting and querying cadastral parcels.

    Implementations must enforce code uniqueness and the optimistic
    version check on save().
    """

    @abstractmethod
    async def save(self, parcel: Parcel) -> Parcel:
        """Insert or update a parcel.

        Args:
            parcel: Aggregate to persist. Its version must equal the stored
                version (0 for a parcel that was never saved).

        Returns:
            The persisted parcel with version incremented by one.

        Raises:
            ConflictError: If the stored version differs from parcel.version.
        """

    @abstractmethod
    async def get_by_code(self, code: ParcelCode) -> Parcel | None:
        """Retrieve a parcel by its cadastral code.

        Returns:
            Parcel object, or None if not found.
        """

    @abstractmethod
    async def exists(self, code: ParcelCode) -> bool:
        """Check whether a parcel with this code is stored."""

    @abstractmethod
    async def find_by_owner(self, owner: str) -> list[Parcel]:
        """Retrieve all parcels whose owner matches exactly."""

    @abstractmethod
    async def find_by_status(self, status: ParcelStatus) -> list[Parcel]:
        """Retrieve all parcels in the given status."""

    @abstractmethod
    async def find_nearby(
        self, location: ParcelLocation, radius_m: float
    ) -> list[Parcel]:
        """Retrieve parcels within a radius of a location.

        Args:
            location: Center point.
            radius_m: Search radius in meters (inclusive).

        Returns:
            Parcels whose haversine distance to location is <= radius_m,
            nearest first.
        """

    @abstractmethod
    async def find_by_district(
        self,
        department: str,
        province: str | None = None,
        district: str | None = None,
    ) -> list[Parcel]:
        """Retrieve parcels by the geographic prefix of their code.

        Args:
            department: Two-digit department code (required).
            province: Two-digit province code (optional).
            district: Two-digit district code (optional, needs province).

        Returns:
            Parcels whose code starts with the given prefix.
        """

    @abstractmethod
    async def list_all(self, limit: int = 100, offset: int = 0) -> list[Parcel]:
        """Retrieve a page of parcels ordered by code."""

    @abstractmethod
    async def count(self) -> int:
        """Total number of stored parcels."""

    @abstractmethod
    async def count_by_status(self) -> dict[ParcelStatus, int]:
        """Count parcels grouped by status. Absent statuses are omitted."""


class TitlingRequestRepositoryPort(ABC):
    """Port for persisting and querying titling requests.

    Also owns the per-year sequences used to generate request codes and
    case-file numbers, so that numbering survives restarts.
    """

    @abstractmethod
    async def save(self, request: TitlingRequest) -> TitlingRequest:
        """Insert or update a request.

        Returns:
            The persisted request with version incremented by one.

        Raises:
            ConflictError: If the stored version differs from request.version.
        """

    @abstractmethod
    async def get_by_code(self, code: RequestCode) -> TitlingRequest | None:
        """Retrieve a request by code, or None if not found."""

    @abstractmethod
    async def find_by_requester(
        self, requester_id: IdentityNumber
    ) -> list[TitlingRequest]:
        """Retrieve all requests filed by a citizen, newest first."""

    @abstractmethod
    async def find_by_status(self, status: RequestStatus) -> list[TitlingRequest]:
        """Retrieve all requests in the given status, oldest first."""

    @abstractmethod
    async def find_by_case_file(self, case_file_number: str) -> TitlingRequest | None:
        """Retrieve the request holding a case-file number, or None."""

    @abstractmethod
    async def list_all(
        self, limit: int = 100, offset: int = 0
    ) -> list[TitlingRequest]:
        """Retrieve a page of requests, oldest first."""

    @abstractmethod
    async def count(self) -> int:
        """Total number of stored requests."""

    @abstractmethod
    async def count_by_status(self) -> dict[RequestStatus, int]:
        """Count requests grouped by status. Absent statuses are omitted."""

    @abstractmethod
    async def count_by_type(self) -> dict[RequestType, int]:
        """Count requests grouped by type. Absent types are omitted."""

    @abstractmethod
    async def next_request_number(self, year: int) -> int:
        """Reserve the next request sequence number for a year.

        Returns:
            A number >= 1 that has never been returned for this year.
        """

    @abstractmethod
    async def next_case_file_number(self, year: int) -> int:
        """Reserve the next case-file sequence number for a year."""


class CitizenRepositoryPort(ABC):
    """Port for persisting and querying citizens."""

    @abstractmethod
    async def save(self, citizen: Citizen) -> Citizen:
        """Insert or update a citizen.

        Returns:
            The persisted citizen with version incremented by one.

        Raises:
            ConflictError: If the stored version differs from citizen.version.
        """

    @abstractmethod
    async def get_by_identity(self, identity: IdentityNumber) -> Citizen | None:
        """Retrieve a citizen by identity number, or None if not found."""

    @abstractmethod
    async def exists(self, identity: IdentityNumber) -> bool:
        """Check whether a citizen with this identity is stored."""

    @abstractmethod
    async def find_by_verification_status(
        self, status: VerificationStatus
    ) -> list[Citizen]:
        """Retrieve all citizens in the given verification status."""

    @abstractmethod
    async def list_all(self, limit: int = 100, offset: int = 0) -> list[Citizen]:
        """Retrieve a page of citizens ordered by surname."""

    @abstractmethod
    async def count(self) -> int:
        """Total number of stored citizens."""


class AlertNotificationPort(ABC):
    """Port for reporting requests that need follow-up.

    Adapters deliver alerts to a destination (stdout, email, issue
    tracker). Delivery failures should be logged by the adapter and
    re-raised; the caller decides whether to continue.
    """

    @abstractmethod
    async def notify_attention(self, request: TitlingRequest, message: str) -> None:
        """Report a request that requires immediate attention.

        Args:
            request: The request being flagged.
            message: Alert text produced by the titling rules.
        """

    @abstractmethod
    async def report_summary(self, stats: RequestStats) -> None:
        """Report periodic workflow statistics."""


# ============================================================================
# DRIVING PORTS (Adapters/external systems call into core)
# ============================================================================


class CadastrePort(ABC):
    """Port for parcel registration and lifecycle operations.

    Driving port: the CLI and HTTP adapters invoke these methods.
    Implementation lives in the core (cadastre_service.py).
    """

    @abstractmethod
    async def register_parcel(self, command: RegisterParcelCommand) -> Parcel:
        """Validate and store a new parcel.

        Raises:
            ValidationError: If the command is malformed.
            ConflictError: If the code exists or the location overlaps a
                neighbor within the overlap threshold.
        """

    @abstractmethod
    async def get_parcel(self, code: str) -> Parcel:
        """Retrieve a parcel.

        Raises:
            NotFound: If no parcel has this code.
        """

    @abstractmethod
    async def find_by_owner(self, owner: str) -> list[Parcel]:
        """Retrieve parcels held by an owner."""

    @abstractmethod
    async def find_by_status(self, status: ParcelStatus) -> list[Parcel]:
        """Retrieve parcels in a status."""

    @abstractmethod
    async def update_parcel(self, command: UpdateParcelCommand) -> Parcel:
        """Change a parcel's owner and/or notes.

        Raises:
            NotFound: If no parcel has this code.
        """

    @abstractmethod
    async def change_parcel_status(self, code: str, target: ParcelStatus) -> Parcel:
        """Move a parcel to a new status.

        Raises:
            NotFound: If no parcel has this code.
            InvalidStateTransition: If the status table forbids the change.
        """

    @abstractmethod
    async def find_nearby(
        self,
        latitude: float | str,
        longitude: float | str,
        radius_m: float,
    ) -> list[Parcel]:
        """Retrieve parcels around a point."""

    @abstractmethod
    async def find_by_district(
        self,
        department: str,
        province: str | None = None,
        district: str | None = None,
    ) -> list[Parcel]:
        """Retrieve parcels by the geographic prefix of their code.

        Raises:
            ValidationError: If a component is not two digits, or district
                is given without province.
        """

    @abstractmethod
    async def find_potential_duplicates(self, code: str) -> list[Parcel]:
        """Retrieve same-owner parcels that look like duplicates of one parcel."""

    @abstractmethod
    async def list_parcels(self, limit: int = 100, offset: int = 0) -> list[Parcel]:
        """Retrieve a page of parcels."""

    @abstractmethod
    async def get_statistics(self) -> ParcelStats:
        """Summarize the registry by status."""


class TitlingPort(ABC):
    """Port for the titling request workflow.

    Driving port: the CLI and HTTP adapters invoke these methods.
    Implementation lives in the core (titling_service.py).
    """

    @abstractmethod
    async def create_request(self, command: CreateRequestCommand) -> TitlingRequest:
        """Validate, number, prioritize, and store a new request.

        Raises:
            ValidationError: If the command or domain rules reject the input.
        """

    @abstractmethod
    async def get_request(self, code: str) -> TitlingRequest:
        """Retrieve a request.

        Raises:
            NotFound: If no request has this code.
        """

    @abstractmethod
    async def get_by_case_file(self, case_file_number: str) -> TitlingRequest:
        """Retrieve the request that carries a case-file number.

        Raises:
            NotFound: If no request has this case-file number.
        """

    @abstractmethod
    async def list_requests(
        self, limit: int = 100, offset: int = 0
    ) -> list[TitlingRequest]:
        """Retrieve a page of requests, oldest first."""

    @abstractmethod
    async def find_by_requester(self, requester_id: str) -> list[TitlingRequest]:
        """Retrieve requests filed by a citizen."""

    @abstractmethod
    async def find_by_status(self, status: RequestStatus) -> list[TitlingRequest]:
        """Retrieve requests in a status."""

    @abstractmethod
    async def update_request(self, command: UpdateRequestCommand) -> TitlingRequest:
        """Change a request's priority and/or notes."""

    @abstractmethod
    async def change_status(
        self, command: ChangeRequestStatusCommand
    ) -> TitlingRequest:
        """Move a request along the workflow.

        Assigns a case-file number on first entry to UNDER_EVALUATION.

        Raises:
            NotFound: If no request has this code.
            InvalidStateTransition: If the workflow forbids the change.
        """

    @abstractmethod
    async def add_document(self, code: str, document: str) -> TitlingRequest:
        """Attach a document name to a request."""

    @abstractmethod
    async def find_requiring_attention(self) -> list[TitlingRequest]:
        """Retrieve flagged requests and send an alert for each one."""

    @abstractmethod
    async def get_statistics(self) -> RequestStats:
        """Summarize requests by status and type."""

    @abstractmethod
    async def archive_request(self, code: str) -> bool:
        """Soft-delete a request by moving it to ARCHIVED.

        Returns:
            True if the request exists (terminal requests are left as they are),
            False if no request has this code.

        Raises:
            InvalidStateTransition: If ARCHIVED is not a listed edge from the
                current status.
        """


class CitizenPort(ABC):
    """Port for citizen registration and verification.

    Driving port: the CLI and HTTP adapters invoke these methods.
    Implementation lives in the core (citizen_service.py).
    """

    @abstractmethod
    async def register_citizen(self, command: RegisterCitizenCommand) -> Citizen:
        """Register a citizen pending verification.

        Raises:
            ValidationError: If the command is malformed or the citizen is
                under age.
            ConflictError: If the identity number is already registered.
        """

    @abstractmethod
    async def get_citizen(self, identity: str) -> Citizen:
        """Retrieve a citizen.

        Raises:
            NotFound: If no citizen has this identity number.
        """

    @abstractmethod
    async def update_contact(
        self,
        identity: str,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> Citizen:
        """Replace all of a citizen's contact details.

        Full replacement: a field left as None is cleared, not kept.
        """

    @abstractmethod
    async def mark_verified(self, identity: str, notes: str | None = None) -> Citizen:
        """Record a successful verification against the civil registry."""

    @abstractmethod
    async def mark_verification_error(self, identity: str, reason: str) -> Citizen:
        """Record a failed verification."""

    @abstractmethod
    async def find_needing_reverification(self) -> list[Citizen]:
        """Retrieve citizens whose verification is missing or stale."""

    @abstractmethod
    async def list_citizens(
        self,
        verification_status: VerificationStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Citizen]:
        """Retrieve a page of citizens, optionally in one verification status."""

    @abstractmethod
    async def count_citizens(self) -> int:
        """Total number of registered citizens."""
