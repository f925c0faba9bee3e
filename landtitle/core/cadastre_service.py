"""Cadastre service: implements CadastrePort for parcel operations.

Orchestrates validate-then-persist sequences for parcels: registration
with code and overlap checks, owner and notes updates, status changes,
spatial queries, and registry statistics.
"""

import logging
import re

from .commands import RegisterParcelCommand, UpdateParcelCommand
from .errors import NotFound, ValidationError
from .geo import ParcelLocation
from .identifiers import ParcelCode
from .models import Parcel, ParcelStats, ParcelStatus
from .parcel_validation import ParcelValidationService
from .ports import CadastrePort, ParcelRepositoryPort

logger = logging.getLogger(__name__)

_TWO_DIGITS = re.compile(r"^[0-9]{2}$")


class CadastreService(CadastrePort):
    """Core implementation of CadastrePort."""

    def __init__(
        self,
        repository: ParcelRepositoryPort,
        validation: ParcelValidationService,
    ):
        """Initialize the cadastre service.

        Args:
            repository: ParcelRepositoryPort implementation for persistence.
            validation: Registration and duplicate checks bound to the same
                repository.
        """
        self.repository = repository
        self.validation = validation

    async def register_parcel(self, command: RegisterParcelCommand) -> Parcel:
        command.validate()

        parcel = Parcel.create(
            code=ParcelCode.create(command.code),
            owner=command.owner,
            location=ParcelLocation.create(command.latitude, command.longitude),
            area=command.area,
            address=command.address,
            notes=command.notes,
        )
        await self.validation.validate_registration(parcel)
        saved = await self.repository.save(parcel)

        logger.info(
            f"Parcel {saved.code} registered",
            extra={
                "parcel_code": str(saved.code),
                "location": str(saved.location),
                "area_m2": str(saved.area),
            },
        )
        return saved

    async def get_parcel(self, code: str) -> Parcel:
        parcel_code = ParcelCode.create(code)
        parcel = await self.repository.get_by_code(parcel_code)
        if parcel is None:
            raise NotFound("Parcel", str(parcel_code))
        return parcel

    async def find_by_owner(self, owner: str) -> list[Parcel]:
        return await self.repository.find_by_owner(owner.strip())

    async def find_by_status(self, status: ParcelStatus) -> list[Parcel]:
        return await self.repository.find_by_status(status)

    async def update_parcel(self, command: UpdateParcelCommand) -> Parcel:
        command.validate()
        parcel = await self.get_parcel(command.code)

        if command.owner is not None:
            parcel = parcel.change_owner(command.owner)
        if command.notes is not None:
            parcel = parcel.update_notes(command.notes)

        saved = await self.repository.save(parcel)
        logger.info(
            f"Parcel {saved.code} updated",
            extra={"parcel_code": str(saved.code), "version": saved.version},
        )
        return saved

    async def change_parcel_status(self, code: str, target: ParcelStatus) -> Parcel:
        parcel = await self.validation.validate_status_change(
            ParcelCode.create(code), target
        )
        previous = parcel.status
        saved = await self.repository.save(parcel.change_status(target))

        logger.info(
            f"Parcel {saved.code} status changed {previous.name} -> {target.name}",
            extra={
                "parcel_code": str(saved.code),
                "from_status": previous.name,
                "to_status": target.name,
            },
        )
        return saved

    async def find_nearby(
        self,
        latitude: float | str,
        longitude: float | str,
        radius_m: float,
    ) -> list[Parcel]:
        if radius_m <= 0:
            raise ValidationError(
                f"Radius must be positive, got {radius_m}",
                details={"radius_m": radius_m},
            )
        center = ParcelLocation.create(latitude, longitude)
        return await self.repository.find_nearby(center, radius_m)

    async def find_by_district(
        self,
        department: str,
        province: str | None = None,
        district: str | None = None,
    ) -> list[Parcel]:
        for label, value in (
            ("department", department),
            ("province", province),
            ("district", district),
        ):
            if value is not None and not _TWO_DIGITS.match(value):
                raise ValidationError(
                    f"{label.capitalize()} must be a two-digit code",
                    details={label: value},
                )
        if department is None:
            raise ValidationError("Department is required")
        if district is not None and province is None:
            raise ValidationError("District requires a province")

        return await self.repository.find_by_district(department, province, district)

    async def find_potential_duplicates(self, code: str) -> list[Parcel]:
        parcel = await self.get_parcel(code)
        return await self.validation.find_potential_duplicates(parcel)

    async def list_parcels(self, limit: int = 100, offset: int = 0) -> list[Parcel]:
        return await self.repository.list_all(limit=limit, offset=offset)

    async def get_statistics(self) -> ParcelStats:
        counts = await self.repository.count_by_status()
        total = await self.repository.count()
        stats = ParcelStats(
            total=total,
            by_status={status.name: counts.get(status, 0) for status in ParcelStatus},
        )
        logger.debug(
            f"Parcel statistics: {total} parcels",
            extra={"by_status": dict(stats.by_status)},
        )
        return stats
