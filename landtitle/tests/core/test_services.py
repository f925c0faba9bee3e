"""Unit tests for the cadastre, titling and citizen services.

The services are exercised against in-memory fakes, so these tests cover
orchestration: what gets validated, saved, numbered and alerted.
"""

from dataclasses import replace
from datetime import UTC, date, datetime, timedelta

import pytest

from landtitle.core.cadastre_service import CadastreService
from landtitle.core.citizen_service import CitizenService
from landtitle.core.commands import (
    ChangeRequestStatusCommand,
    CreateRequestCommand,
    RegisterCitizenCommand,
    RegisterParcelCommand,
    UpdateParcelCommand,
    UpdateRequestCommand,
)
from landtitle.core.errors import (
    ConflictError,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from landtitle.core.identifiers import IdentityNumber
from landtitle.core.models import (
    MaritalStatus,
    ParcelStatus,
    RequestStatus,
    RequestType,
    Sex,
    VerificationStatus,
)
from landtitle.core.parcel_validation import ParcelValidationService
from landtitle.core.titling_rules import TitlingDomainService
from landtitle.core.titling_service import ARCHIVE_NOTE, TitlingService
from landtitle.tests.fakes import (
    FakeAlertNotifier,
    FakeCitizenRepository,
    FakeParcelRepository,
    FakeTitlingRequestRepository,
)

TODAY = datetime.now(UTC).date()


def register_parcel_command(
    code: str = "150101-001-002-003",
    lat: str = "-12.046400",
    owner: str = "Juan Perez",
    address: str = "Av. Abancay 123, Lima",
) -> RegisterParcelCommand:
    return RegisterParcelCommand(
        code=code,
        owner=owner,
        latitude=lat,
        longitude="-77.042800",
        area="250.5",
        address=address,
    )


def create_request_command(**overrides) -> CreateRequestCommand:
    fields = {
        "requester_id": "20001234",
        "requester_name": "Ana Lucia Flores",
        "parcel_address": "Calle Las Flores 789, San Borja",
        "request_type": RequestType.INDIVIDUAL_TITLING,
    }
    fields.update(overrides)
    return CreateRequestCommand(**fields)


def register_citizen_command(**overrides) -> RegisterCitizenCommand:
    fields = {
        "identity": "20001234",
        "given_names": "Ana Lucia",
        "surnames": "Flores Rojas",
        "birth_date": date(1980, 5, 17),
        "marital_status": MaritalStatus.MARRIED,
        "sex": Sex.FEMALE,
    }
    fields.update(overrides)
    return RegisterCitizenCommand(**fields)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def parcel_repository() -> FakeParcelRepository:
    return FakeParcelRepository()


@pytest.fixture
def cadastre(parcel_repository: FakeParcelRepository) -> CadastreService:
    return CadastreService(
        repository=parcel_repository,
        validation=ParcelValidationService(parcel_repository),
    )


@pytest.fixture
def request_repository() -> FakeTitlingRequestRepository:
    return FakeTitlingRequestRepository()


@pytest.fixture
def notifier() -> FakeAlertNotifier:
    return FakeAlertNotifier()


@pytest.fixture
def titling(
    request_repository: FakeTitlingRequestRepository, notifier: FakeAlertNotifier
) -> TitlingService:
    return TitlingService(
        repository=request_repository,
        rules=TitlingDomainService(),
        notification=notifier,
    )


@pytest.fixture
def citizen_repository() -> FakeCitizenRepository:
    return FakeCitizenRepository()


@pytest.fixture
def citizens(citizen_repository: FakeCitizenRepository) -> CitizenService:
    return CitizenService(repository=citizen_repository)


# ============================================================================
# CadastreService
# ============================================================================


@pytest.mark.asyncio
class TestCadastreService:
    async def test_register_parcel(
        self, cadastre: CadastreService, parcel_repository: FakeParcelRepository
    ) -> None:
        parcel = await cadastre.register_parcel(register_parcel_command())
        assert parcel.status == ParcelStatus.ACTIVE
        assert parcel.version == 1
        assert str(parcel.area) == "250.5"
        assert len(parcel_repository.saved_parcels) == 1

    async def test_register_rejects_invalid_command(
        self, cadastre: CadastreService, parcel_repository: FakeParcelRepository
    ) -> None:
        with pytest.raises(ValidationError):
            await cadastre.register_parcel(register_parcel_command(code="15-01"))
        assert parcel_repository.saved_parcels == []

    async def test_register_rejects_overlap(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        with pytest.raises(ConflictError):
            await cadastre.register_parcel(
                register_parcel_command(code="150101-001-002-004", lat="-12.046445")
            )

    async def test_get_parcel_not_found(self, cadastre: CadastreService) -> None:
        with pytest.raises(NotFound) as exc_info:
            await cadastre.get_parcel("150101-001-002-003")
        assert exc_info.value.kind == "not_found"

    async def test_update_parcel(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        updated = await cadastre.update_parcel(
            UpdateParcelCommand(
                code="150101-001-002-003", owner="Maria Quispe", notes="sold"
            )
        )
        assert updated.owner == "Maria Quispe"
        assert updated.notes == "sold"
        assert updated.version == 2

    async def test_change_parcel_status(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        parcel = await cadastre.change_parcel_status(
            "150101-001-002-003", ParcelStatus.FORMALIZED
        )
        assert parcel.status == ParcelStatus.FORMALIZED
        with pytest.raises(InvalidStateTransition):
            await cadastre.change_parcel_status(
                "150101-001-002-003", ParcelStatus.ACTIVE
            )

    async def test_find_nearby_sorted_by_distance(
        self, cadastre: CadastreService
    ) -> None:
        await cadastre.register_parcel(
            register_parcel_command(code="150101-001-002-005", lat="-12.046800")
        )
        await cadastre.register_parcel(
            register_parcel_command(code="150101-001-002-004", lat="-12.046600")
        )
        await cadastre.register_parcel(
            register_parcel_command(code="150101-001-002-009", lat="-12.056400")
        )
        nearby = await cadastre.find_nearby("-12.046400", "-77.042800", 100)
        assert [p.code.value for p in nearby] == [
            "150101-001-002-004",
            "150101-001-002-005",
        ]

    @pytest.mark.parametrize("radius", [0, -5])
    async def test_find_nearby_rejects_non_positive_radius(
        self, cadastre: CadastreService, radius: float
    ) -> None:
        with pytest.raises(ValidationError):
            await cadastre.find_nearby(-12.0464, -77.0428, radius)

    async def test_find_by_district(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        await cadastre.register_parcel(
            register_parcel_command(code="150102-001-002-003", lat="-12.1")
        )
        await cadastre.register_parcel(
            register_parcel_command(code="040101-001-002-003", lat="-16.4")
        )
        assert len(await cadastre.find_by_district("15")) == 2
        assert len(await cadastre.find_by_district("15", "01", "02")) == 1
        assert await cadastre.find_by_district("07") == []

    @pytest.mark.parametrize(
        ("department", "province", "district"),
        [("1", None, None), ("15", "1A", None), ("15", None, "01")],
    )
    async def test_find_by_district_validation(
        self, cadastre: CadastreService, department, province, district
    ) -> None:
        with pytest.raises(ValidationError):
            await cadastre.find_by_district(department, province, district)

    async def test_find_potential_duplicates(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        await cadastre.register_parcel(
            register_parcel_command(
                code="150101-001-002-004",
                lat="-12.046800",
                address="Av. Abancay 123, Lima, Peru",
            )
        )
        duplicates = await cadastre.find_potential_duplicates("150101-001-002-003")
        assert [p.code.value for p in duplicates] == ["150101-001-002-004"]

    async def test_list_and_find(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        await cadastre.register_parcel(
            register_parcel_command(
                code="150101-001-002-004", lat="-12.1", owner="Maria Quispe"
            )
        )
        assert len(await cadastre.list_parcels(limit=1)) == 1
        assert len(await cadastre.list_parcels(offset=1)) == 1
        assert [p.owner for p in await cadastre.find_by_owner(" Maria Quispe ")] == [
            "Maria Quispe"
        ]
        assert len(await cadastre.find_by_status(ParcelStatus.ACTIVE)) == 2

    async def test_statistics_fill_every_status(self, cadastre: CadastreService) -> None:
        await cadastre.register_parcel(register_parcel_command())
        await cadastre.register_parcel(
            register_parcel_command(code="150101-001-002-004", lat="-12.1")
        )
        await cadastre.change_parcel_status("150101-001-002-004", ParcelStatus.FORMALIZED)

        stats = await cadastre.get_statistics()
        assert stats.total == 2
        assert set(stats.by_status) == {s.name for s in ParcelStatus}
        assert stats.by_status["FORMALIZED"] == 1
        assert stats.by_status["SUSPENDED"] == 0
        assert stats.formalized_percentage == 50.0
        assert stats.active_percentage == 50.0


# ============================================================================
# TitlingService
# ============================================================================


@pytest.mark.asyncio
class TestTitlingServiceCreate:
    async def test_create_request(self, titling: TitlingService) -> None:
        request = await titling.create_request(create_request_command())
        assert request.code.value == f"SOL-{TODAY.year}-000001"
        assert request.status == RequestStatus.RECEIVED
        assert request.priority == 1
        assert request.version == 1

    async def test_codes_are_sequential(self, titling: TitlingService) -> None:
        first = await titling.create_request(create_request_command())
        second = await titling.create_request(create_request_command())
        assert first.code.number == 1
        assert second.code.number == 2

    async def test_custom_prefix(
        self,
        request_repository: FakeTitlingRequestRepository,
        notifier: FakeAlertNotifier,
    ) -> None:
        service = TitlingService(
            repository=request_repository,
            rules=TitlingDomainService(),
            notification=notifier,
            request_prefix="TIT",
        )
        request = await service.create_request(create_request_command())
        assert request.code.prefix == "TIT"
        assert (await service.get_request(request.code.value)) == request

    async def test_blacklisted_identity_rejected(
        self, titling: TitlingService, request_repository: FakeTitlingRequestRepository
    ) -> None:
        with pytest.raises(ValidationError):
            await titling.create_request(create_request_command(requester_id="12345678"))
        assert request_repository.saved_requests == []
        assert request_repository.sequences == {}

    async def test_documents_and_priority_applied(self, titling: TitlingService) -> None:
        request = await titling.create_request(
            create_request_command(
                requester_name="Rosa de la Cruz", documents=("DNI", "plan")
            )
        )
        assert request.documents == ("DNI", "plan")
        assert request.priority == 2

    async def test_subdivision_without_lot_rejected(self, titling: TitlingService) -> None:
        with pytest.raises(ValidationError):
            await titling.create_request(
                create_request_command(request_type=RequestType.SUBDIVISION)
            )


@pytest.mark.asyncio
class TestTitlingServiceWorkflow:
    async def test_entering_evaluation_assigns_case_file_once(
        self, titling: TitlingService
    ) -> None:
        request = await titling.create_request(create_request_command())
        code = request.code.value

        evaluated = await titling.change_status(
            ChangeRequestStatusCommand(code, RequestStatus.UNDER_EVALUATION, "evaluator")
        )
        assert evaluated.case_file_number == f"EXP-{TODAY.year}-000001"
        assert evaluated.notes == "Status changed to UNDER_EVALUATION by evaluator"

        await titling.change_status(
            ChangeRequestStatusCommand(code, RequestStatus.IN_REMEDIATION, "evaluator")
        )
        back = await titling.change_status(
            ChangeRequestStatusCommand(
                code, RequestStatus.UNDER_EVALUATION, "evaluator", notes="docs received"
            )
        )
        assert back.case_file_number == f"EXP-{TODAY.year}-000001"
        assert back.notes == "docs received"

    async def test_case_file_lookup(
        self, titling: TitlingService, request_repository: FakeTitlingRequestRepository
    ) -> None:
        request = await titling.create_request(create_request_command())
        evaluated = await titling.change_status(
            ChangeRequestStatusCommand(
                request.code.value, RequestStatus.UNDER_EVALUATION, "evaluator"
            )
        )
        found = await request_repository.find_by_case_file(evaluated.case_file_number)
        assert found == evaluated

    async def test_skipping_inspection_is_rejected(self, titling: TitlingService) -> None:
        request = await titling.create_request(create_request_command())
        code = request.code.value
        for target in (RequestStatus.UNDER_EVALUATION, RequestStatus.INSPECTION_PENDING):
            await titling.change_status(ChangeRequestStatusCommand(code, target, "clerk"))

        with pytest.raises(InvalidStateTransition):
            await titling.change_status(
                ChangeRequestStatusCommand(code, RequestStatus.LEGAL_REVIEW, "clerk")
            )

    async def test_terminal_request_rejects_changes(self, titling: TitlingService) -> None:
        request = await titling.create_request(create_request_command())
        code = request.code.value
        await titling.change_status(
            ChangeRequestStatusCommand(code, RequestStatus.REJECTED, "clerk")
        )
        with pytest.raises(InvalidStateTransition):
            await titling.change_status(
                ChangeRequestStatusCommand(code, RequestStatus.UNDER_EVALUATION, "clerk")
            )

    async def test_unknown_request(self, titling: TitlingService) -> None:
        with pytest.raises(NotFound):
            await titling.get_request(f"SOL-{TODAY.year}-000099")
        with pytest.raises(ValidationError):
            await titling.get_request("not-a-code")

    async def test_update_request(self, titling: TitlingService) -> None:
        request = await titling.create_request(create_request_command())
        updated = await titling.update_request(
            UpdateRequestCommand(request.code.value, priority=3, notes="escalated")
        )
        assert updated.priority == 3
        assert updated.notes == "escalated"

    async def test_add_document(self, titling: TitlingService) -> None:
        request = await titling.create_request(create_request_command())
        updated = await titling.add_document(request.code.value, "Possession proof")
        assert updated.documents == ("Possession proof",)
        with pytest.raises(ValidationError):
            await titling.add_document(request.code.value, " ")

    async def test_find_by_requester_newest_first(self, titling: TitlingService) -> None:
        first = await titling.create_request(create_request_command())
        second = await titling.create_request(create_request_command())
        found = await titling.find_by_requester("20001234")
        assert {r.code for r in found} == {first.code, second.code}
        assert found[0].registered_at >= found[1].registered_at
        with pytest.raises(ValidationError):
            await titling.find_by_requester("123")

    async def test_archive_request_from_remediation(
        self, titling: TitlingService
    ) -> None:
        request = await titling.create_request(create_request_command())
        for target in (RequestStatus.UNDER_EVALUATION, RequestStatus.IN_REMEDIATION):
            await titling.change_status(
                ChangeRequestStatusCommand(request.code.value, target, "clerk")
            )

        assert await titling.archive_request(request.code.value) is True

        archived = await titling.get_request(request.code.value)
        assert archived.status == RequestStatus.ARCHIVED
        assert archived.notes == ARCHIVE_NOTE

    async def test_archive_missing_request_returns_false(
        self, titling: TitlingService
    ) -> None:
        assert await titling.archive_request(f"SOL-{TODAY.year}-000042") is False

    @pytest.mark.parametrize(
        "path",
        [
            (),
            (RequestStatus.UNDER_EVALUATION,),
            (RequestStatus.UNDER_EVALUATION, RequestStatus.INSPECTION_PENDING),
        ],
    )
    async def test_archive_off_the_workflow_table_fails(
        self, titling: TitlingService, path: tuple[RequestStatus, ...]
    ) -> None:
        request = await titling.create_request(create_request_command())
        for target in path:
            await titling.change_status(
                ChangeRequestStatusCommand(request.code.value, target, "clerk")
            )

        with pytest.raises(InvalidStateTransition):
            await titling.archive_request(request.code.value)

        unchanged = await titling.get_request(request.code.value)
        assert unchanged.status != RequestStatus.ARCHIVED

    async def test_archive_terminal_request_is_left_alone(
        self, titling: TitlingService
    ) -> None:
        request = await titling.create_request(create_request_command())
        rejected = await titling.change_status(
            ChangeRequestStatusCommand(
                request.code.value, RequestStatus.REJECTED, "clerk"
            )
        )

        assert await titling.archive_request(request.code.value) is True

        stored = await titling.get_request(request.code.value)
        assert stored.status == RequestStatus.REJECTED
        assert stored.version == rejected.version

    async def test_get_by_case_file(self, titling: TitlingService) -> None:
        request = await titling.create_request(create_request_command())
        evaluated = await titling.change_status(
            ChangeRequestStatusCommand(
                request.code.value, RequestStatus.UNDER_EVALUATION, "clerk"
            )
        )

        found = await titling.get_by_case_file(
            f" {evaluated.case_file_number.lower()} "
        )

        assert found.code == request.code
        with pytest.raises(NotFound):
            await titling.get_by_case_file(f"EXP-{TODAY.year}-000999")
        with pytest.raises(ValidationError):
            await titling.get_by_case_file("  ")

    async def test_list_requests_pages_oldest_first(
        self, titling: TitlingService
    ) -> None:
        codes = [
            (await titling.create_request(create_request_command())).code
            for _ in range(3)
        ]

        assert [r.code for r in await titling.list_requests()] == codes
        assert [r.code for r in await titling.list_requests(limit=1, offset=2)] == [
            codes[2]
        ]

    async def test_concurrent_writer_conflicts(
        self, titling: TitlingService, request_repository: FakeTitlingRequestRepository
    ) -> None:
        request = await titling.create_request(create_request_command())
        stale = request
        await titling.update_request(UpdateRequestCommand(request.code.value, notes="a"))
        with pytest.raises(ConflictError):
            await request_repository.save(stale.update_notes("b"))


@pytest.mark.asyncio
class TestTitlingServiceAttention:
    def _service_at(
        self,
        offset_days: int,
        request_repository: FakeTitlingRequestRepository,
        notifier: FakeAlertNotifier,
    ) -> TitlingService:
        return TitlingService(
            repository=request_repository,
            rules=TitlingDomainService(),
            notification=notifier,
            today=lambda: TODAY + timedelta(days=offset_days),
        )

    async def test_nothing_flagged_for_fresh_requests(
        self, titling: TitlingService, notifier: FakeAlertNotifier
    ) -> None:
        await titling.create_request(create_request_command())
        assert await titling.find_requiring_attention() == []
        assert notifier.alerts == []

    async def test_delayed_and_remediation_requests_flagged(
        self,
        titling: TitlingService,
        request_repository: FakeTitlingRequestRepository,
        notifier: FakeAlertNotifier,
    ) -> None:
        delayed = await titling.create_request(create_request_command())
        remediation = await titling.create_request(create_request_command())
        for target in (RequestStatus.UNDER_EVALUATION, RequestStatus.IN_REMEDIATION):
            await titling.change_status(
                ChangeRequestStatusCommand(remediation.code.value, target, "clerk")
            )
        stored = request_repository.requests[delayed.code.value]
        request_repository.requests[delayed.code.value] = replace(
            stored, registered_at=stored.registered_at - timedelta(days=65)
        )

        flagged = await titling.find_requiring_attention()

        assert {r.code for r in flagged} == {delayed.code, remediation.code}
        messages = {request.code.value: message for request, message in notifier.alerts}
        assert messages[delayed.code.value] == "ALERT: Request possibly delayed (65 days)."
        assert messages[remediation.code.value] == (
            "ALERT: Additional documents required from the citizen."
        )

    async def test_rejected_requests_are_flagged(
        self, titling: TitlingService, notifier: FakeAlertNotifier
    ) -> None:
        request = await titling.create_request(create_request_command())
        await titling.change_status(
            ChangeRequestStatusCommand(request.code.value, RequestStatus.REJECTED, "clerk")
        )
        assert [r.code for r in await titling.find_requiring_attention()] == [request.code]

    async def test_notifier_failure_does_not_stop_scan(
        self,
        request_repository: FakeTitlingRequestRepository,
        notifier: FakeAlertNotifier,
    ) -> None:
        service = self._service_at(80, request_repository, notifier)
        await service.create_request(create_request_command())
        await service.create_request(create_request_command())
        notifier.should_fail = True

        flagged = await service.find_requiring_attention()

        assert len(flagged) == 2
        assert notifier.notify_call_count == 2

    async def test_statistics(
        self,
        titling: TitlingService,
        request_repository: FakeTitlingRequestRepository,
    ) -> None:
        first = await titling.create_request(create_request_command())
        await titling.create_request(
            create_request_command(
                request_type=RequestType.COLLECTIVE_TITLING,
                parcel_address="Asociación Los Olivos Mz C",
            )
        )
        await titling.update_request(UpdateRequestCommand(first.code.value, priority=3))
        stored = request_repository.requests[first.code.value]
        request_repository.requests[first.code.value] = replace(
            stored, registered_at=stored.registered_at - timedelta(days=61)
        )

        stats = await titling.get_statistics()

        assert stats.total == 2
        assert stats.by_status["RECEIVED"] == 2
        assert stats.by_status["TITLE_DELIVERED"] == 0
        assert stats.by_type["COLLECTIVE_TITLING"] == 1
        assert stats.by_type["MERGER"] == 0
        assert stats.delayed == 1
        assert stats.urgent == 1
        assert stats.in_progress == 2
        assert stats.finished == 0
        assert stats.success_percentage == 0.0


# ============================================================================
# CitizenService
# ============================================================================


@pytest.mark.asyncio
class TestCitizenService:
    async def test_register_citizen(self, citizens: CitizenService) -> None:
        citizen = await citizens.register_citizen(
            register_citizen_command(phone="987654321", email="Ana@Example.com")
        )
        assert citizen.full_name == "ANA LUCIA FLORES ROJAS"
        assert citizen.verification_status == VerificationStatus.PENDING
        assert citizen.email == "ana@example.com"
        assert citizen.has_contact_details
        assert citizen.version == 1

    async def test_register_twice_conflicts(self, citizens: CitizenService) -> None:
        await citizens.register_citizen(register_citizen_command())
        with pytest.raises(ConflictError) as exc_info:
            await citizens.register_citizen(register_citizen_command())
        assert "20****34" in exc_info.value.message

    async def test_register_minor_rejected(self, citizens: CitizenService) -> None:
        with pytest.raises(ValidationError, match="18"):
            await citizens.register_citizen(
                register_citizen_command(birth_date=TODAY - timedelta(days=365 * 10))
            )

    async def test_register_invalid_names(self, citizens: CitizenService) -> None:
        with pytest.raises(ValidationError):
            await citizens.register_citizen(register_citizen_command(given_names="A1"))

    async def test_get_citizen_not_found_is_masked(self, citizens: CitizenService) -> None:
        with pytest.raises(NotFound) as exc_info:
            await citizens.get_citizen("20001234")
        assert exc_info.value.key == "20****34"

    async def test_update_contact_validation(self, citizens: CitizenService) -> None:
        await citizens.register_citizen(register_citizen_command())
        with pytest.raises(ValidationError):
            await citizens.update_contact("20001234", phone="12345")
        with pytest.raises(ValidationError):
            await citizens.update_contact("20001234", email="not-an-email")
        updated = await citizens.update_contact(
            "20001234", address="Jr. Puno 456", phone="987654321"
        )
        assert updated.phone == "987654321"
        assert updated.address == "Jr. Puno 456"

    async def test_verification_lifecycle(self, citizens: CitizenService) -> None:
        await citizens.register_citizen(register_citizen_command())
        verified = await citizens.mark_verified("20001234", "checked against registry")
        assert verified.is_verified
        assert verified.last_verified_at is not None

        failed = await citizens.mark_verification_error("20001234", "registry mismatch")
        assert failed.verification_status == VerificationStatus.VERIFICATION_ERROR
        assert failed.notes == "registry mismatch"

    async def test_find_needing_reverification(
        self, citizen_repository: FakeCitizenRepository
    ) -> None:
        service = CitizenService(
            repository=citizen_repository,
            now=lambda: datetime.now(UTC) + timedelta(days=120),
        )
        await service.register_citizen(register_citizen_command())
        await service.register_citizen(register_citizen_command(identity="30004567"))
        await service.register_citizen(register_citizen_command(identity="40007890"))
        await service.mark_verified("30004567")
        await service.mark_verification_error("40007890", "mismatch")

        due = await service.find_needing_reverification()

        # pending never verified, plus both checked more than 90 days "ago"
        assert {c.identity for c in due} == {
            IdentityNumber.create("20001234"),
            IdentityNumber.create("30004567"),
            IdentityNumber.create("40007890"),
        }

    async def test_recently_verified_not_due(self, citizens: CitizenService) -> None:
        await citizens.register_citizen(register_citizen_command())
        await citizens.mark_verified("20001234")
        assert await citizens.find_needing_reverification() == []

    async def test_update_contact_replaces_every_field(
        self, citizens: CitizenService
    ) -> None:
        await citizens.register_citizen(
            register_citizen_command(address="Jr. Puno 456", phone="987654321")
        )

        updated = await citizens.update_contact("20001234", email="ana@example.com")

        assert updated.email == "ana@example.com"
        assert updated.address is None
        assert updated.phone is None

    async def test_list_citizens_pages_all(
        self, citizens: CitizenService, citizen_repository: FakeCitizenRepository
    ) -> None:
        await citizens.register_citizen(register_citizen_command())
        await citizens.register_citizen(
            register_citizen_command(identity="30004567", surnames="Quispe Mamani")
        )

        page = await citizens.list_citizens(limit=1, offset=1)

        assert [c.surnames for c in page] == ["QUISPE MAMANI"]
        assert citizen_repository.list_all_calls[-1] == (1, 1)
        assert await citizens.count_citizens() == 2

    async def test_list_citizens_by_verification_status(
        self, citizens: CitizenService
    ) -> None:
        await citizens.register_citizen(register_citizen_command())
        await citizens.register_citizen(register_citizen_command(identity="30004567"))
        await citizens.register_citizen(register_citizen_command(identity="40007890"))
        await citizens.mark_verified("30004567")
        await citizens.mark_verified("40007890")

        verified = await citizens.list_citizens(VerificationStatus.VERIFIED)
        pending = await citizens.list_citizens(VerificationStatus.PENDING)
        second = await citizens.list_citizens(
            VerificationStatus.VERIFIED, limit=1, offset=1
        )

        assert {c.identity.value for c in verified} == {"30004567", "40007890"}
        assert [c.identity.value for c in pending] == ["20001234"]
        assert len(second) == 1
        assert second[0] == verified[1]
