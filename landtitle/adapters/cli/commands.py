"""CLI command implementations for the land-titling registry.

Maps named commands with JSON arguments to the driving ports
(CadastrePort, TitlingPort, CitizenPort). Every command returns a
JSON-ready dictionary with a "status" of "success" or "error"; domain
errors never escape as exceptions.

The HTTP adapter reuses this handler, so a command behaves the same
whether it arrives from the terminal or over the network.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from landtitle.adapters.presenters import (
    citizen_to_dict,
    error_to_dict,
    parcel_stats_to_dict,
    parcel_to_dict,
    parse_date,
    parse_enum,
    parse_int,
    request_stats_to_dict,
    request_to_dict,
)
from landtitle.core.commands import (
    ChangeRequestStatusCommand,
    CreateRequestCommand,
    RegisterCitizenCommand,
    RegisterParcelCommand,
    UpdateParcelCommand,
    UpdateRequestCommand,
)
from landtitle.core.errors import DomainError
from landtitle.core.models import (
    MaritalStatus,
    ParcelStatus,
    RequestStatus,
    RequestType,
    Sex,
    VerificationStatus,
)
from landtitle.core.ports import CadastrePort, CitizenPort, TitlingPort

logger = logging.getLogger(__name__)

DEFAULT_NEARBY_RADIUS_M = 100.0

# command -> (required arguments, optional arguments)
COMMANDS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "register_parcel": (
        ("code", "owner", "latitude", "longitude", "area", "address"),
        ("notes",),
    ),
    "show_parcel": (("code",), ()),
    "update_parcel": (("code",), ("owner", "notes")),
    "change_parcel_status": (("code", "status"), ()),
    "list_parcels": (
        (),
        ("status", "owner", "department", "province", "district", "limit", "offset"),
    ),
    "nearby_parcels": (("latitude", "longitude"), ("radius",)),
    "parcel_duplicates": (("code",), ()),
    "parcel_stats": ((), ()),
    "create_request": (
        ("requester_id", "requester_name", "parcel_address", "request_type"),
        ("notes", "documents"),
    ),
    "show_request": ((), ("code", "case_file_number")),
    "list_requests": ((), ("status", "requester_id", "limit", "offset")),
    "update_request": (("code",), ("priority", "notes")),
    "change_request_status": (("code", "status", "actor"), ("notes",)),
    "add_document": (("code", "document"), ()),
    "archive_request": (("code",), ()),
    "attention": ((), ()),
    "request_stats": ((), ()),
    "register_citizen": (
        ("identity", "given_names", "surnames", "birth_date", "marital_status", "sex"),
        ("address", "phone", "email"),
    ),
    "show_citizen": (("identity",), ()),
    "update_contact": (("identity",), ("address", "phone", "email")),
    "verify_citizen": (("identity",), ("notes",)),
    "verification_error": (("identity", "reason"), ()),
    "reverification_due": ((), ()),
    "list_citizens": ((), ("verification_status", "limit", "offset")),
}


class CLICommandHandler:
    """Handles CLI commands by delegating to the driving ports."""

    def __init__(
        self,
        cadastre: CadastrePort,
        titling: TitlingPort,
        citizens: CitizenPort,
    ):
        """Initialize the CLI command handler.

        Args:
            cadastre: CadastrePort implementation for parcel commands.
            titling: TitlingPort implementation for request commands.
            citizens: CitizenPort implementation for citizen commands.
        """
        self.cadastre = cadastre
        self.titling = titling
        self.citizens = citizens

    async def execute(self, command: str, args: dict[str, Any]) -> dict[str, Any]:
        """Run a named command with JSON arguments.

        Raises:
            ValueError: If the command is unknown or a required argument is
                missing. Domain failures are returned as error dictionaries.
        """
        if command not in COMMANDS:
            raise ValueError(
                f"Unknown command: {command}. Use 'help' for available commands."
            )

        required, optional = COMMANDS[command]
        missing = [name for name in required if args.get(name) is None]
        if missing:
            raise ValueError(f"Missing required parameter: {', '.join(missing)}")

        accepted = {k: v for k, v in args.items() if k in required or k in optional}
        return await getattr(self, command)(**accepted)

    async def _run(
        self,
        operation: str,
        action: Callable[[], Awaitable[dict[str, Any]]],
    ) -> dict[str, Any]:
        try:
            data = await action()
        except DomainError as e:
            logger.warning(
                f"{operation} failed: {e.message}",
                extra={"operation": operation, "error": e.kind},
            )
            return error_to_dict(operation, e)
        return {"status": "success", "operation": operation, **data}

    # ------------------------------------------------------------------
    # Parcels
    # ------------------------------------------------------------------

    async def register_parcel(
        self,
        code: str,
        owner: str,
        latitude: float | str,
        longitude: float | str,
        area: float | str,
        address: str,
        notes: str | None = None,
    ) -> dict[str, Any]:
        async def action():
            parcel = await self.cadastre.register_parcel(
                RegisterParcelCommand(
                    code=code,
                    owner=owner,
                    latitude=latitude,
                    longitude=longitude,
                    area=area,
                    address=address,
                    notes=notes,
                )
            )
            return {
                "message": f"Parcel {parcel.code} registered",
                "parcel": parcel_to_dict(parcel),
            }

        return await self._run("register_parcel", action)

    async def show_parcel(self, code: str) -> dict[str, Any]:
        async def action():
            return {"parcel": parcel_to_dict(await self.cadastre.get_parcel(code))}

        return await self._run("show_parcel", action)

    async def update_parcel(
        self, code: str, owner: str | None = None, notes: str | None = None
    ) -> dict[str, Any]:
        async def action():
            parcel = await self.cadastre.update_parcel(
                UpdateParcelCommand(code=code, owner=owner, notes=notes)
            )
            return {
                "message": f"Parcel {parcel.code} updated",
                "parcel": parcel_to_dict(parcel),
            }

        return await self._run("update_parcel", action)

    async def change_parcel_status(self, code: str, status: str) -> dict[str, Any]:
        async def action():
            target = parse_enum(ParcelStatus, status, "status")
            parcel = await self.cadastre.change_parcel_status(code, target)
            return {
                "message": f"Parcel {parcel.code} is now {parcel.status.name}",
                "parcel": parcel_to_dict(parcel),
            }

        return await self._run("change_parcel_status", action)

    async def list_parcels(
        self,
        status: str | None = None,
        owner: str | None = None,
        department: str | None = None,
        province: str | None = None,
        district: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List parcels with at most one filter: status, owner, or district."""

        async def action():
            if status is not None:
                parcels = await self.cadastre.find_by_status(
                    parse_enum(ParcelStatus, status, "status")
                )
            elif owner is not None:
                parcels = await self.cadastre.find_by_owner(owner)
            elif department is not None:
                parcels = await self.cadastre.find_by_district(
                    str(department),
                    str(province) if province is not None else None,
                    str(district) if district is not None else None,
                )
            else:
                parcels = await self.cadastre.list_parcels(
                    parse_int(limit, "limit"), parse_int(offset, "offset")
                )
            return {
                "count": len(parcels),
                "parcels": [parcel_to_dict(p) for p in parcels],
            }

        return await self._run("list_parcels", action)

    async def nearby_parcels(
        self,
        latitude: float | str,
        longitude: float | str,
        radius: float = DEFAULT_NEARBY_RADIUS_M,
    ) -> dict[str, Any]:
        async def action():
            parcels = await self.cadastre.find_nearby(latitude, longitude, float(radius))
            return {
                "count": len(parcels),
                "parcels": [parcel_to_dict(p) for p in parcels],
            }

        return await self._run("nearby_parcels", action)

    async def parcel_duplicates(self, code: str) -> dict[str, Any]:
        async def action():
            parcels = await self.cadastre.find_potential_duplicates(code)
            return {
                "count": len(parcels),
                "parcels": [parcel_to_dict(p) for p in parcels],
            }

        return await self._run("parcel_duplicates", action)

    async def parcel_stats(self) -> dict[str, Any]:
        async def action():
            stats = await self.cadastre.get_statistics()
            return {"stats": parcel_stats_to_dict(stats)}

        return await self._run("parcel_stats", action)

    # ------------------------------------------------------------------
    # Titling requests
    # ------------------------------------------------------------------

    async def create_request(
        self,
        requester_id: str,
        requester_name: str,
        parcel_address: str,
        request_type: str,
        notes: str | None = None,
        documents: list[str] | None = None,
    ) -> dict[str, Any]:
        async def action():
            request = await self.titling.create_request(
                CreateRequestCommand(
                    requester_id=str(requester_id),
                    requester_name=requester_name,
                    parcel_address=parcel_address,
                    request_type=parse_enum(RequestType, request_type, "request_type"),
                    notes=notes,
                    documents=tuple(documents or ()),
                )
            )
            return {
                "message": f"Titling request {request.code} created",
                "request": request_to_dict(request),
            }

        return await self._run("create_request", action)

    async def show_request(
        self, code: str | None = None, case_file_number: str | None = None
    ) -> dict[str, Any]:
        """Look a request up by its code or by its case-file number."""
        if code is None and case_file_number is None:
            raise ValueError("Missing required parameter: code or case_file_number")

        async def action():
            if code is not None:
                request = await self.titling.get_request(code)
            else:
                request = await self.titling.get_by_case_file(str(case_file_number))
            return {"request": request_to_dict(request)}

        return await self._run("show_request", action)

    async def list_requests(
        self,
        status: str | None = None,
        requester_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        """List requests by requester or status, or page through all of them."""

        async def action():
            if requester_id is not None:
                requests = await self.titling.find_by_requester(str(requester_id))
            elif status is not None:
                requests = await self.titling.find_by_status(
                    parse_enum(RequestStatus, status, "status")
                )
            else:
                requests = await self.titling.list_requests(
                    parse_int(limit, "limit"), parse_int(offset, "offset")
                )
            return {
                "count": len(requests),
                "requests": [request_to_dict(r) for r in requests],
            }

        return await self._run("list_requests", action)

    async def update_request(
        self, code: str, priority: int | None = None, notes: str | None = None
    ) -> dict[str, Any]:
        async def action():
            if priority is not None:
                new_priority = parse_int(priority, "priority")
            else:
                new_priority = None
            request = await self.titling.update_request(
                UpdateRequestCommand(
                    code=code,
                    priority=new_priority,
                    notes=notes,
                )
            )
            return {
                "message": f"Titling request {request.code} updated",
                "request": request_to_dict(request),
            }

        return await self._run("update_request", action)

    async def change_request_status(
        self, code: str, status: str, actor: str, notes: str | None = None
    ) -> dict[str, Any]:
        async def action():
            request = await self.titling.change_status(
                ChangeRequestStatusCommand(
                    code=code,
                    target=parse_enum(RequestStatus, status, "status"),
                    actor=actor,
                    notes=notes,
                )
            )
            return {
                "message": f"Titling request {request.code} is now {request.status.name}",
                "request": request_to_dict(request),
            }

        return await self._run("change_request_status", action)

    async def add_document(self, code: str, document: str) -> dict[str, Any]:
        async def action():
            request = await self.titling.add_document(code, document)
            return {
                "message": f"Document added to {request.code}",
                "request": request_to_dict(request),
            }

        return await self._run("add_document", action)

    async def archive_request(self, code: str) -> dict[str, Any]:
        async def action():
            archived = await self.titling.archive_request(code)
            message = (
                f"Titling request {code} archived"
                if archived
                else f"Titling request {code} not found"
            )
            return {"archived": archived, "message": message}

        return await self._run("archive_request", action)

    async def attention(self) -> dict[str, Any]:
        async def action():
            requests = await self.titling.find_requiring_attention()
            return {
                "count": len(requests),
                "requests": [request_to_dict(r) for r in requests],
            }

        return await self._run("attention", action)

    async def request_stats(self) -> dict[str, Any]:
        async def action():
            stats = await self.titling.get_statistics()
            return {"stats": request_stats_to_dict(stats)}

        return await self._run("request_stats", action)

    # ------------------------------------------------------------------
    # Citizens
    # ------------------------------------------------------------------

    async def register_citizen(
        self,
        identity: str,
        given_names: str,
        surnames: str,
        birth_date: str,
        marital_status: str,
        sex: str,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> dict[str, Any]:
        async def action():
            citizen = await self.citizens.register_citizen(
                RegisterCitizenCommand(
                    identity=str(identity),
                    given_names=given_names,
                    surnames=surnames,
                    birth_date=parse_date(birth_date, "birth_date"),
                    marital_status=parse_enum(
                        MaritalStatus, marital_status, "marital_status"
                    ),
                    sex=_parse_sex(sex),
                    address=address,
                    phone=phone,
                    email=email,
                )
            )
            return {
                "message": f"Citizen {citizen.identity.masked} registered",
                "citizen": citizen_to_dict(citizen),
            }

        return await self._run("register_citizen", action)

    async def show_citizen(self, identity: str) -> dict[str, Any]:
        async def action():
            citizen = await self.citizens.get_citizen(str(identity))
            return {"citizen": citizen_to_dict(citizen)}

        return await self._run("show_citizen", action)

    async def update_contact(
        self,
        identity: str,
        address: str | None = None,
        phone: str | None = None,
        email: str | None = None,
    ) -> dict[str, Any]:
        async def action():
            citizen = await self.citizens.update_contact(
                str(identity), address=address, phone=phone, email=email
            )
            return {"citizen": citizen_to_dict(citizen)}

        return await self._run("update_contact", action)

    async def verify_citizen(
        self, identity: str, notes: str | None = None
    ) -> dict[str, Any]:
        async def action():
            citizen = await self.citizens.mark_verified(str(identity), notes)
            return {"citizen": citizen_to_dict(citizen)}

        return await self._run("verify_citizen", action)

    async def verification_error(self, identity: str, reason: str) -> dict[str, Any]:
        async def action():
            citizen = await self.citizens.mark_verification_error(str(identity), reason)
            return {"citizen": citizen_to_dict(citizen)}

        return await self._run("verification_error", action)

    async def reverification_due(self) -> dict[str, Any]:
        async def action():
            citizens = await self.citizens.find_needing_reverification()
            return {
                "count": len(citizens),
                "citizens": [citizen_to_dict(c) for c in citizens],
            }

        return await self._run("reverification_due", action)

    async def list_citizens(
        self,
        verification_status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        async def action():
            citizens = await self.citizens.list_citizens(
                verification_status=(
                    parse_enum(
                        VerificationStatus, verification_status, "verification_status"
                    )
                    if verification_status is not None
                    else None
                ),
                limit=parse_int(limit, "limit"),
                offset=parse_int(offset, "offset"),
            )
            return {
                "count": len(citizens),
                "total": await self.citizens.count_citizens(),
                "citizens": [citizen_to_dict(c) for c in citizens],
            }

        return await self._run("list_citizens", action)


def _parse_sex(value: str) -> Sex:
    """Accept either the member name (MALE) or its code (M)."""
    normalized = str(value).strip().upper()
    for member in Sex:
        if normalized in (member.name, member.value):
            return member
    return parse_enum(Sex, value, "sex")
