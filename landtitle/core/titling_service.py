"""Titling service: implements TitlingPort for the request workflow.

Each operation follows the same shape: validate the input, apply the
titling rules, transform the aggregate, persist it, and log the outcome.
Request codes and case-file numbers are drawn from per-year sequences
owned by the repository.
"""

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime

from .commands import (
    ChangeRequestStatusCommand,
    CreateRequestCommand,
    UpdateRequestCommand,
)
from .errors import NotFound, ValidationError
from .identifiers import CaseFileNumber, IdentityNumber, RequestCode
from .models import (
    PRIORITY_URGENT,
    RequestStats,
    RequestStatus,
    RequestType,
    TitlingRequest,
)
from .ports import AlertNotificationPort, TitlingPort, TitlingRequestRepositoryPort
from .titling_rules import TitlingDomainService

logger = logging.getLogger(__name__)

ARCHIVE_NOTE = "Request archived by user"

# Statuses scanned for follow-up: everything still open plus REJECTED,
# which stays flagged until someone reviews it.
_ATTENTION_SCAN_STATUSES = tuple(
    status
    for status in RequestStatus
    if not status.is_terminal or status == RequestStatus.REJECTED
)


def _utc_today() -> date:
    return datetime.now(UTC).date()


class TitlingService(TitlingPort):
    """Core implementation of TitlingPort.

    All state changes are logged with the request code for audit trails.
    Requester identities only ever appear masked in logs.
    """

    def __init__(
        self,
        repository: TitlingRequestRepositoryPort,
        rules: TitlingDomainService,
        notification: AlertNotificationPort,
        request_prefix: str = RequestCode.DEFAULT_PREFIX,
        case_file_prefix: str = CaseFileNumber.DEFAULT_PREFIX,
        today: Callable[[], date] = _utc_today,
    ):
        """Initialize the titling service.

        Args:
            repository: TitlingRequestRepositoryPort implementation.
            rules: Titling rules for validation and prioritization.
            notification: AlertNotificationPort for follow-up alerts.
            request_prefix: Prefix for generated request codes.
            case_file_prefix: Prefix for generated case-file numbers.
            today: Clock returning the current date (injectable for tests).
        """
        self.repository = repository
        self.rules = rules
        self.notification = notification
        self.request_prefix = request_prefix
        self.case_file_prefix = case_file_prefix
        self.today = today

    async def create_request(self, command: CreateRequestCommand) -> TitlingRequest:
        command.validate()
        self.rules.validate_new_request(
            command.requester_id,
            command.requester_name,
            command.parcel_address,
            command.request_type,
        )

        year = self.today().year
        number = await self.repository.next_request_number(year)
        code = RequestCode.generate(year, number, self.request_prefix)

        request = TitlingRequest.create(
            code=code,
            requester_id=command.requester_id,
            requester_name=command.requester_name,
            parcel_address=command.parcel_address,
            request_type=command.request_type,
            notes=command.notes,
        )
        for document in command.documents:
            request = request.add_document(document)

        priority = self.rules.calculate_automatic_priority(request, self.today())
        if priority != request.priority:
            request = request.change_priority(priority)

        saved = await self.repository.save(request)
        logger.info(
            f"Titling request {saved.code} created",
            extra={
                "request_code": str(saved.code),
                "requester": saved.requester_id.masked,
                "request_type": saved.request_type.name,
                "priority": saved.priority,
            },
        )
        return saved

    async def get_request(self, code: str) -> TitlingRequest:
        request_code = RequestCode.parse(code, self.request_prefix)
        request = await self.repository.get_by_code(request_code)
        if request is None:
            raise NotFound("Titling request", str(request_code))
        return request

    async def get_by_case_file(self, case_file_number: str) -> TitlingRequest:
        number = case_file_number.strip().upper()
        if not number:
            raise ValidationError("Case file number must not be empty")
        request = await self.repository.find_by_case_file(number)
        if request is None:
            raise NotFound("Titling request with case file", number)
        return request

    async def list_requests(
        self, limit: int = 100, offset: int = 0
    ) -> list[TitlingRequest]:
        return await self.repository.list_all(limit=limit, offset=offset)

    async def find_by_requester(self, requester_id: str) -> list[TitlingRequest]:
        return await self.repository.find_by_requester(
            IdentityNumber.create(requester_id)
        )

    async def find_by_status(self, status: RequestStatus) -> list[TitlingRequest]:
        return await self.repository.find_by_status(status)

    async def update_request(self, command: UpdateRequestCommand) -> TitlingRequest:
        command.validate()
        request = await self.get_request(command.code)

        if command.priority is not None:
            request = request.change_priority(command.priority)
        if command.notes is not None:
            request = request.update_notes(command.notes)

        saved = await self.repository.save(request)
        logger.info(
            f"Titling request {saved.code} updated",
            extra={"request_code": str(saved.code), "priority": saved.priority},
        )
        return saved

    async def change_status(
        self, command: ChangeRequestStatusCommand
    ) -> TitlingRequest:
        """Move a request along the workflow.

        The titling rules run first, then the aggregate's own transition
        table. A case-file number is assigned the first time a request
        enters UNDER_EVALUATION.
        """
        command.validate()
        request = await self.get_request(command.code)
        previous = request.status

        self.rules.validate_status_change(request, command.target, command.actor)

        notes = command.notes or (
            f"Status changed to {command.target.name} by {command.actor}"
        )
        updated = request.change_status(command.target, notes)

        if (
            command.target == RequestStatus.UNDER_EVALUATION
            and updated.case_file_number is None
        ):
            year = self.today().year
            number = await self.repository.next_case_file_number(year)
            updated = updated.assign_case_file(
                CaseFileNumber.generate(year, number, self.case_file_prefix)
            )
            logger.info(
                f"Case file {updated.case_file_number} assigned to {updated.code}",
                extra={
                    "request_code": str(updated.code),
                    "case_file_number": updated.case_file_number,
                },
            )

        saved = await self.repository.save(updated)
        logger.info(
            f"Titling request {saved.code} status changed "
            f"{previous.name} -> {saved.status.name}",
            extra={
                "request_code": str(saved.code),
                "from_status": previous.name,
                "to_status": saved.status.name,
                "actor": command.actor,
            },
        )
        return saved

    async def add_document(self, code: str, document: str) -> TitlingRequest:
        request = await self.get_request(code)
        saved = await self.repository.save(request.add_document(document))

        logger.info(
            f"Document added to {saved.code}",
            extra={
                "request_code": str(saved.code),
                "document_count": len(saved.documents),
                "has_minimum": self.rules.has_minimum_documents(saved),
            },
        )
        return saved

    async def find_requiring_attention(self) -> list[TitlingRequest]:
        """Collect flagged requests and send one alert per request.

        A failed alert is logged and does not stop the scan.
        """
        today = self.today()
        flagged = []

        for status in _ATTENTION_SCAN_STATUSES:
            for request in await self.repository.find_by_status(status):
                if not self.rules.requires_immediate_attention(request, today):
                    continue
                flagged.append(request)

                message = self.rules.generate_alert_message(request, today)
                try:
                    await self.notification.notify_attention(request, message)
                except Exception as e:
                    logger.error(
                        f"Failed to send alert for {request.code}: {e}",
                        exc_info=True,
                    )

        logger.info(
            f"{len(flagged)} titling requests require attention",
            extra={"flagged": [str(r.code) for r in flagged]},
        )
        return flagged

    async def get_statistics(self) -> RequestStats:
        today = self.today()
        by_status = await self.repository.count_by_status()
        by_type = await self.repository.count_by_type()
        total = await self.repository.count()

        delayed = 0
        urgent = 0
        for status in RequestStatus:
            if status.is_terminal:
                continue
            for request in await self.repository.find_by_status(status):
                if request.days_elapsed(today) >= self.rules.delay_alert_days:
                    delayed += 1
                if request.priority >= PRIORITY_URGENT:
                    urgent += 1

        return RequestStats(
            total=total,
            by_status={s.name: by_status.get(s, 0) for s in RequestStatus},
            by_type={t.name: by_type.get(t, 0) for t in RequestType},
            delayed=delayed,
            urgent=urgent,
        )

    async def archive_request(self, code: str) -> bool:
        """Soft delete: move a request to ARCHIVED through the workflow table.

        A request that already reached a terminal status is left untouched.

        Returns:
            True if the request exists, False otherwise.

        Raises:
            InvalidStateTransition: If ARCHIVED is not reachable from the
                current status.
        """
        request = await self.repository.get_by_code(
            RequestCode.parse(code, self.request_prefix)
        )
        if request is None:
            return False

        if request.status.is_terminal:
            logger.info(
                f"Titling request {request.code} already {request.status.name}, "
                "nothing to archive",
                extra={"request_code": str(request.code)},
            )
            return True

        saved = await self.repository.save(
            request.change_status(RequestStatus.ARCHIVED, ARCHIVE_NOTE)
        )
        logger.info(
            f"Titling request {saved.code} archived",
            extra={"request_code": str(saved.code)},
        )
        return True
