"""Business rules for titling requests.

This module implements the policies that decide whether a request may be
opened, whether a status change is allowed at the call site, how urgent a
request is, and whether its paperwork is complete.
"""

import logging
import re
from datetime import date

from .errors import InvalidStateTransition, ValidationError
from .identifiers import IdentityNumber
from .models import (
    PRIORITY_HIGH,
    PRIORITY_NORMAL,
    PRIORITY_URGENT,
    RequestStatus,
    RequestType,
    TitlingRequest,
)

logger = logging.getLogger(__name__)

REQUESTER_NAME_PATTERN = re.compile(r"^[a-zA-ZÀ-ÿñÑ\s]{2,100}$")
_ELDERLY_TITLE_PATTERN = re.compile(r"\b(doña|don)\b")

MIN_ADDRESS_LENGTH = 10
MAX_ADDRESS_LENGTH = 200

MAX_PROCESS_DAYS = 90
DELAY_ALERT_DAYS = 60
URGENT_MARGIN_DAYS = 15

COLLECTIVE_ADDRESS_KEYWORDS = ("mz", "manzana", "conjunto", "asociación")
SUBDIVISION_ADDRESS_KEYWORDS = ("lote", "lt")

REQUIRED_DOCUMENTS: dict[RequestType, int] = {
    RequestType.INDIVIDUAL_TITLING: 3,  # identity, proof of possession, plan
    RequestType.COLLECTIVE_TITLING: 5,  # plus assembly minutes and beneficiary list
    RequestType.CADASTRAL_UPDATE: 2,  # identity and previous title
    RequestType.SUBDIVISION: 4,
    RequestType.MERGER: 4,
}

# target -> the only status it may be entered from, checked before the
# generic workflow table
_REQUIRED_PREDECESSOR: dict[RequestStatus, tuple[RequestStatus, str]] = {
    RequestStatus.INSPECTION_DONE: (
        RequestStatus.INSPECTION_PENDING,
        "inspection can only be marked done from INSPECTION_PENDING",
    ),
    RequestStatus.TITLE_GENERATED: (
        RequestStatus.LEGAL_REVIEW,
        "a title can only be generated after legal review",
    ),
    RequestStatus.SENT_TO_REGISTRY: (
        RequestStatus.TITLE_GENERATED,
        "only a generated title can be sent to the registry",
    ),
    RequestStatus.TITLE_DELIVERED: (
        RequestStatus.REGISTERED,
        "a title can only be delivered after registration",
    ),
}


def address_mentions(address: str, keywords: tuple[str, ...]) -> bool:
    lowered = address.lower()
    return any(keyword in lowered for keyword in keywords)


class TitlingDomainService:
    """Decides whether titling requests are acceptable and how urgent they are.

    Pure decision logic: no I/O, only logging.
    """

    def __init__(
        self,
        max_process_days: int = MAX_PROCESS_DAYS,
        delay_alert_days: int = DELAY_ALERT_DAYS,
        urgent_margin_days: int = URGENT_MARGIN_DAYS,
    ):
        self.max_process_days = max_process_days
        self.delay_alert_days = delay_alert_days
        self.urgent_margin_days = urgent_margin_days

    def validate_new_request(
        self,
        requester_id: str,
        requester_name: str,
        parcel_address: str,
        request_type: RequestType,
    ) -> None:
        """Check that a new request may be opened.

        SUBDIVISION addresses must name the lot. COLLECTIVE_TITLING addresses
        that do not name a block or association are only logged.

        Raises:
            ValidationError: If any field is malformed.
        """
        identity = IdentityNumber.create(requester_id)
        logger.debug(
            f"Validating new request for {identity.masked}",
            extra={"requester": identity.masked, "request_type": request_type.name},
        )

        if requester_name is None or not REQUESTER_NAME_PATTERN.match(
            requester_name.strip()
        ):
            raise ValidationError(
                "Requester name may only contain letters, accents and spaces "
                "(2-100 characters)",
                details={"requester_name": requester_name},
            )

        address = (parcel_address or "").strip()
        if len(address) < MIN_ADDRESS_LENGTH:
            raise ValidationError(
                f"Parcel address must have at least {MIN_ADDRESS_LENGTH} characters"
            )
        if len(address) > MAX_ADDRESS_LENGTH:
            raise ValidationError(
                f"Parcel address must not exceed {MAX_ADDRESS_LENGTH} characters"
            )

        self._validate_type_specific_address(request_type, address)

        logger.info(
            f"New request validated for {identity.masked} ({request_type.name})",
            extra={"requester": identity.masked, "request_type": request_type.name},
        )

    def validate_status_change(
        self, request: TitlingRequest, target: RequestStatus, actor: str
    ) -> None:
        """Apply call-site preconditions before the aggregate's own table.

        Raises:
            InvalidStateTransition: If the request is terminal or the target
                requires a specific predecessor that does not match.
        """
        logger.debug(
            f"Validating {request.status.name} -> {target.name} for {request.code}",
            extra={"request_code": str(request.code), "actor": actor},
        )

        if request.status.is_terminal:
            raise InvalidStateTransition(
                request.status,
                target,
                reason=f"{request.status.name} is a terminal status",
            )

        required = _REQUIRED_PREDECESSOR.get(target)
        if required is not None:
            predecessor, reason = required
            if request.status != predecessor:
                raise InvalidStateTransition(request.status, target, reason=reason)

        logger.info(
            f"Status change {request.status.name} -> {target.name} validated "
            f"for {request.code} by {actor}",
            extra={"request_code": str(request.code), "actor": actor},
        )

    def calculate_automatic_priority(
        self, request: TitlingRequest, today: date | None = None
    ) -> int:
        """Score a request from 1 (normal) to 3 (urgent).

        Raised to at least 2 for probable elderly requesters, requests
        delayed past the alert threshold, and collective titling. Forced to
        3 once the request is within the urgent margin of the maximum
        processing time.
        """
        priority = PRIORITY_NORMAL
        days = request.days_elapsed(today)

        if self.is_probably_elderly(request.requester_name):
            priority = max(priority, PRIORITY_HIGH)

        if days >= self.delay_alert_days:
            priority = max(priority, PRIORITY_HIGH)

        if days >= self.max_process_days - self.urgent_margin_days:
            priority = PRIORITY_URGENT

        if request.request_type == RequestType.COLLECTIVE_TITLING:
            priority = max(priority, PRIORITY_HIGH)

        logger.info(
            f"Priority {priority} calculated for {request.code}",
            extra={"request_code": str(request.code), "days_elapsed": days},
        )
        return priority

    def requires_immediate_attention(
        self, request: TitlingRequest, today: date | None = None
    ) -> bool:
        if request.priority >= PRIORITY_URGENT:
            return True
        if request.days_elapsed(today) >= self.delay_alert_days:
            return True
        return request.status in {RequestStatus.IN_REMEDIATION, RequestStatus.REJECTED}

    def generate_alert_message(
        self, request: TitlingRequest, today: date | None = None
    ) -> str | None:
        """Compose a follow-up alert, or None if nothing needs attention."""
        if not self.requires_immediate_attention(request, today):
            return None

        days = request.days_elapsed(today)
        parts = ["ALERT:"]

        if days >= self.max_process_days:
            parts.append(
                f"Request exceeds maximum processing time ({self.max_process_days} days)."
            )
        elif days >= self.delay_alert_days:
            parts.append(f"Request possibly delayed ({days} days).")

        if request.priority >= PRIORITY_URGENT:
            parts.append("URGENT PRIORITY.")

        if request.status == RequestStatus.IN_REMEDIATION:
            parts.append("Additional documents required from the citizen.")

        return " ".join(parts)

    @staticmethod
    def required_documents(request_type: RequestType) -> int:
        return REQUIRED_DOCUMENTS[request_type]

    def has_minimum_documents(self, request: TitlingRequest) -> bool:
        return len(request.documents) >= self.required_documents(request.request_type)

    @staticmethod
    def is_probably_elderly(name: str) -> bool:
        """Naming heuristic: particles and honorifics common among older citizens."""
        lowered = name.lower()
        return (
            "de la" in lowered
            or "del " in lowered
            or _ELDERLY_TITLE_PATTERN.search(lowered) is not None
        )

    @staticmethod
    def _validate_type_specific_address(
        request_type: RequestType, address: str
    ) -> None:
        if request_type == RequestType.COLLECTIVE_TITLING:
            if not address_mentions(address, COLLECTIVE_ADDRESS_KEYWORDS):
                logger.warning(
                    f"Address may be incorrect for collective titling: {address}",
                    extra={"request_type": request_type.name},
                )
        elif request_type == RequestType.SUBDIVISION:
            if not address_mentions(address, SUBDIVISION_ADDRESS_KEYWORDS):
                raise ValidationError(
                    "For subdivision, the address must specify the lot to subdivide",
                    details={"parcel_address": address},
                )
