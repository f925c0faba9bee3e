"""Fake repository implementations for testing."""

from collections import Counter
from dataclasses import replace

from landtitle.core.errors import ConflictError
from landtitle.core.geo import ParcelLocation
from landtitle.core.identifiers import IdentityNumber, ParcelCode, RequestCode
from landtitle.core.models import (
    Citizen,
    Parcel,
    ParcelStatus,
    RequestStatus,
    RequestType,
    TitlingRequest,
    VerificationStatus,
)
from landtitle.core.ports import (
    CitizenRepositoryPort,
    ParcelRepositoryPort,
    TitlingRequestRepositoryPort,
)


def _check_version(kind: str, key: str, stored, incoming) -> None:
    """Apply the same optimistic version rule as the real stores."""
    if stored is None:
        if incoming.version != 0:
            raise ConflictError(
                f"{kind} {key} does not exist at version {incoming.version}"
            )
    elif stored.version != incoming.version:
        raise ConflictError(
            f"{kind} {key} was modified concurrently",
            details={"expected": incoming.version, "actual": stored.version},
        )


class FakeParcelRepository(ParcelRepositoryPort):
    """In-memory parcel store for testing.

    Tracks saves and lookups for test assertions.
    """

    def __init__(self):
        self.parcels: dict[str, Parcel] = {}
        self.saved_parcels: list[Parcel] = []
        self.find_nearby_calls: list[tuple[ParcelLocation, float]] = []

    async def save(self, parcel: Parcel) -> Parcel:
        _check_version(
            "Parcel", parcel.code.value, self.parcels.get(parcel.code.value), parcel
        )
        saved = replace(parcel, version=parcel.version + 1)
        self.parcels[parcel.code.value] = saved
        self.saved_parcels.append(saved)
        return saved

    async def get_by_code(self, code: ParcelCode) -> Parcel | None:
        return self.parcels.get(code.value)

    async def exists(self, code: ParcelCode) -> bool:
        return code.value in self.parcels

    async def find_by_owner(self, owner: str) -> list[Parcel]:
        return [p for p in self._ordered() if p.owner == owner]

    async def find_by_status(self, status: ParcelStatus) -> list[Parcel]:
        return [p for p in self._ordered() if p.status == status]

    async def find_nearby(
        self, location: ParcelLocation, radius_m: float
    ) -> list[Parcel]:
        self.find_nearby_calls.append((location, radius_m))
        nearby = [p for p in self.parcels.values() if p.location.is_within(location, radius_m)]
        return sorted(nearby, key=lambda p: p.location.distance_to(location))

    async def find_by_district(
        self,
        department: str,
        province: str | None = None,
        district: str | None = None,
    ) -> list[Parcel]:
        prefix = department + (province or "") + (district or "")
        return [p for p in self._ordered() if p.code.value.startswith(prefix)]

    async def list_all(self, limit: int = 100, offset: int = 0) -> list[Parcel]:
        return self._ordered()[offset : offset + limit]

    async def count(self) -> int:
        return len(self.parcels)

    async def count_by_status(self) -> dict[ParcelStatus, int]:
        return dict(Counter(p.status for p in self.parcels.values()))

    def _ordered(self) -> list[Parcel]:
        return [self.parcels[key] for key in sorted(self.parcels)]

    def reset(self) -> None:
        """Clear all stored parcels and call history."""
        self.parcels.clear()
        self.saved_parcels.clear()
        self.find_nearby_calls.clear()


class FakeTitlingRequestRepository(TitlingRequestRepositoryPort):
    """In-memory titling request store for testing.

    Sequences start at 1 per year, like the real stores.
    """

    def __init__(self):
        self.requests: dict[str, TitlingRequest] = {}
        self.saved_requests: list[TitlingRequest] = []
        self.sequences: dict[tuple[str, int], int] = {}

    async def save(self, request: TitlingRequest) -> TitlingRequest:
        _check_version(
            "Request", request.code.value, self.requests.get(request.code.value), request
        )
        saved = replace(request, version=request.version + 1)
        self.requests[request.code.value] = saved
        self.saved_requests.append(saved)
        return saved

    async def get_by_code(self, code: RequestCode) -> TitlingRequest | None:
        return self.requests.get(code.value)

    async def find_by_requester(
        self, requester_id: IdentityNumber
    ) -> list[TitlingRequest]:
        matches = [r for r in self.requests.values() if r.requester_id == requester_id]
        return sorted(matches, key=lambda r: r.registered_at, reverse=True)

    async def find_by_status(self, status: RequestStatus) -> list[TitlingRequest]:
        return [r for r in self._oldest_first() if r.status == status]

    async def find_by_case_file(self, case_file_number: str) -> TitlingRequest | None:
        for request in self.requests.values():
            if request.case_file_number == case_file_number:
                return request
        return None

    async def list_all(
        self, limit: int = 100, offset: int = 0
    ) -> list[TitlingRequest]:
        return self._oldest_first()[offset : offset + limit]

    async def count(self) -> int:
        return len(self.requests)

    async def count_by_status(self) -> dict[RequestStatus, int]:
        return dict(Counter(r.status for r in self.requests.values()))

    async def count_by_type(self) -> dict[RequestType, int]:
        return dict(Counter(r.request_type for r in self.requests.values()))

    async def next_request_number(self, year: int) -> int:
        return self._next("request", year)

    async def next_case_file_number(self, year: int) -> int:
        return self._next("case_file", year)

    def _next(self, name: str, year: int) -> int:
        value = self.sequences.get((name, year), 0) + 1
        self.sequences[(name, year)] = value
        return value

    def _oldest_first(self) -> list[TitlingRequest]:
        return sorted(self.requests.values(), key=lambda r: (r.registered_at, r.code.value))

    def reset(self) -> None:
        """Clear all stored requests, sequences and call history."""
        self.requests.clear()
        self.saved_requests.clear()
        self.sequences.clear()


class FakeCitizenRepository(CitizenRepositoryPort):
    """In-memory citizen store for testing."""

    def __init__(self):
        self.citizens: dict[str, Citizen] = {}
        self.saved_citizens: list[Citizen] = []
        self.list_all_calls: list[tuple[int, int]] = []

    async def save(self, citizen: Citizen) -> Citizen:
        _check_version(
            "Citizen",
            citizen.identity.masked,
            self.citizens.get(citizen.identity.value),
            citizen,
        )
        saved = replace(citizen, version=citizen.version + 1)
        self.citizens[citizen.identity.value] = saved
        self.saved_citizens.append(saved)
        return saved

    async def get_by_identity(self, identity: IdentityNumber) -> Citizen | None:
        return self.citizens.get(identity.value)

    async def exists(self, identity: IdentityNumber) -> bool:
        return identity.value in self.citizens

    async def find_by_verification_status(
        self, status: VerificationStatus
    ) -> list[Citizen]:
        return [c for c in self._ordered() if c.verification_status == status]

    async def list_all(self, limit: int = 100, offset: int = 0) -> list[Citizen]:
        self.list_all_calls.append((limit, offset))
        return self._ordered()[offset : offset + limit]

    async def count(self) -> int:
        return len(self.citizens)

    def _ordered(self) -> list[Citizen]:
        return sorted(
            self.citizens.values(), key=lambda c: (c.surnames, c.given_names, c.identity.value)
        )

    def reset(self) -> None:
        """Clear all stored citizens and call history."""
        self.citizens.clear()
        self.saved_citizens.clear()
        self.list_all_calls.clear()
