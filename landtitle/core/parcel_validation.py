"""Registration and duplicate checks for cadastral parcels.

These checks need the repository, so unlike the titling rules they are
async. Thresholds come from configuration; the defaults are the values
the cadastre uses.
"""

import logging

from .errors import ConflictError, InvalidStateTransition, NotFound
from .identifiers import ParcelCode
from .models import Parcel, ParcelStatus
from .ports import ParcelRepositoryPort

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_RADIUS_M = 50.0
DEFAULT_OVERLAP_THRESHOLD_M = 10.0
DEFAULT_DUPLICATE_RADIUS_M = 100.0
DEFAULT_SIMILARITY_THRESHOLD = 0.7

_MIN_TOKEN_LENGTH = 3


def address_similarity(a: str, b: str) -> float:
    """Token overlap between two addresses in [0, 1].

    Counts each token of a (longer than two characters) that also appears
    in b, divided by the token count of the longer address.
    """
    tokens_a = a.lower().strip().split()
    tokens_b = b.lower().strip().split()
    longest = max(len(tokens_a), len(tokens_b))
    if longest == 0:
        return 0.0

    vocabulary_b = set(tokens_b)
    shared = sum(
        1
        for token in tokens_a
        if len(token) >= _MIN_TOKEN_LENGTH and token in vocabulary_b
    )
    return shared / longest


class ParcelValidationService:
    """Checks a parcel against what is already registered."""

    def __init__(
        self,
        repository: ParcelRepositoryPort,
        search_radius_m: float = DEFAULT_SEARCH_RADIUS_M,
        overlap_threshold_m: float = DEFAULT_OVERLAP_THRESHOLD_M,
        duplicate_radius_m: float = DEFAULT_DUPLICATE_RADIUS_M,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        self.repository = repository
        self.search_radius_m = search_radius_m
        self.overlap_threshold_m = overlap_threshold_m
        self.duplicate_radius_m = duplicate_radius_m
        self.similarity_threshold = similarity_threshold

    async def validate_registration(self, parcel: Parcel) -> None:
        """Reject a parcel whose code exists or whose location overlaps.

        Raises:
            ConflictError: If the code is taken, or another parcel lies
                strictly closer than the overlap threshold.
        """
        if await self.repository.exists(parcel.code):
            raise ConflictError(
                f"A parcel with code {parcel.code} already exists",
                details={"code": str(parcel.code)},
            )

        neighbors = await self.repository.find_nearby(
            parcel.location, self.search_radius_m
        )
        for neighbor in neighbors:
            if neighbor.code == parcel.code:
                continue
            distance = parcel.location.distance_to(neighbor.location)
            if distance < self.overlap_threshold_m:
                raise ConflictError(
                    f"Possible overlap: parcel {parcel.code} is {distance:.2f} m "
                    f"from existing parcel {neighbor.code}",
                    details={
                        "code": str(parcel.code),
                        "neighbor": str(neighbor.code),
                        "distance_m": round(distance, 2),
                    },
                )

        logger.debug(
            f"Parcel {parcel.code} passed registration checks "
            f"({len(neighbors)} neighbors within {self.search_radius_m} m)",
            extra={"parcel_code": str(parcel.code)},
        )

    async def find_potential_duplicates(self, parcel: Parcel) -> list[Parcel]:
        """Return same-owner parcels that are close and share an address.

        Returns:
            Candidates within the duplicate radius whose address contains
            (or is contained in) this parcel's address, or whose token
            similarity exceeds the threshold. Never includes the parcel
            itself.
        """
        address = parcel.address.lower().strip()
        duplicates = []

        for candidate in await self.repository.find_by_owner(parcel.owner):
            if candidate.code == parcel.code:
                continue
            if (
                parcel.location.distance_to(candidate.location)
                >= self.duplicate_radius_m
            ):
                continue

            other = candidate.address.lower().strip()
            if (
                address in other
                or other in address
                or address_similarity(address, other) > self.similarity_threshold
            ):
                duplicates.append(candidate)

        if duplicates:
            logger.info(
                f"Found {len(duplicates)} potential duplicates of {parcel.code}",
                extra={
                    "parcel_code": str(parcel.code),
                    "duplicates": [str(d.code) for d in duplicates],
                },
            )
        return duplicates

    async def validate_status_change(
        self, code: ParcelCode, target: ParcelStatus
    ) -> Parcel:
        """Load a parcel and check the status table allows the change.

        Returns:
            The stored parcel, unchanged.

        Raises:
            NotFound: If no parcel has this code.
            InvalidStateTransition: If the table forbids the change.
        """
        parcel = await self.repository.get_by_code(code)
        if parcel is None:
            raise NotFound("Parcel", str(code))
        if not parcel.status.can_transition_to(target):
            raise InvalidStateTransition(parcel.status, target)
        return parcel
