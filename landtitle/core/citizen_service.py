"""Citizen service: implements CitizenPort for registration and verification."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from .commands import RegisterCitizenCommand
from .errors import ConflictError, NotFound
from .identifiers import IdentityNumber
from .models import Citizen, VerificationStatus
from .ports import CitizenPort, CitizenRepositoryPort

logger = logging.getLogger(__name__)

_SCAN_PAGE_SIZE = 500


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CitizenService(CitizenPort):
    """Core implementation of CitizenPort."""

    def __init__(
        self,
        repository: CitizenRepositoryPort,
        now: Callable[[], datetime] = _utc_now,
    ):
        self.repository = repository
        self.now = now

    async def register_citizen(self, command: RegisterCitizenCommand) -> Citizen:
        command.validate()
        identity = IdentityNumber.create(command.identity)

        if await self.repository.exists(identity):
            raise ConflictError(
                f"A citizen with identity {identity.masked} is already registered",
                details={"identity": identity.masked},
            )

        citizen = Citizen.create(
            identity=identity,
            given_names=command.given_names,
            surnames=command.surnames,
            birth_date=command.birth_date,
            marital_status=command.marital_status,
            sex=command.sex,
        )
        if command.address or command.phone or command.email:
            citizen = citizen.update_contact(
                address=command.address, phone=command.phone, email=command.email
            )

        saved = await self.repository.save(citizen)
        logger.info(
            f"Citizen {identity.masked} registered",
            extra={"identity": identity.masked},
        )
        return saved

    async def get_citizen(self, identity: str) -> Citizen:
        identity_number = IdentityNumber.create(identity)
        citizen = await self.repository.get_by_identity(identity_number)
        if citizen is None:
            raise NotFound("Citizen", identity_number.masked)
        return citizen

    async def update_contact(
        self,
        identity: str,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> Citizen:
        citizen = await self.get_citizen(identity)
        saved = await self.repository.save(
            citizen.update_contact(address=address, phone=phone, email=email)
        )
        logger.info(
            f"Contact details updated for citizen {saved.identity.masked}",
            extra={"identity": saved.identity.masked},
        )
        return saved

    async def mark_verified(self, identity: str, notes: str | None = None) -> Citizen:
        citizen = await self.get_citizen(identity)
        saved = await self.repository.save(citizen.mark_verified(notes))
        logger.info(
            f"Citizen {saved.identity.masked} verified",
            extra={"identity": saved.identity.masked},
        )
        return saved

    async def mark_verification_error(self, identity: str, reason: str) -> Citizen:
        citizen = await self.get_citizen(identity)
        saved = await self.repository.save(citizen.mark_verification_error(reason))
        logger.warning(
            f"Verification failed for citizen {saved.identity.masked}: {reason}",
            extra={"identity": saved.identity.masked, "reason": reason},
        )
        return saved

    async def find_needing_reverification(self) -> list[Citizen]:
        now = self.now()
        result = []
        offset = 0
        while True:
            page = await self.repository.list_all(limit=_SCAN_PAGE_SIZE, offset=offset)
            result.extend(c for c in page if c.needs_reverification(now))
            if len(page) < _SCAN_PAGE_SIZE:
                break
            offset += _SCAN_PAGE_SIZE
        return result

    async def list_citizens(
        self,
        verification_status: VerificationStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Citizen]:
        if verification_status is None:
            return await self.repository.list_all(limit=limit, offset=offset)
        matching = await self.repository.find_by_verification_status(
            verification_status
        )
        return matching[offset : offset + limit]

    async def count_citizens(self) -> int:
        return await self.repository.count()
