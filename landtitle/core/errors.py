"""Domain errors for the land-titling registry.

These exceptions represent domain-level failures and are independent
of infrastructure concerns (HTTP, database, CLI). Adapters translate
them into their own error representations.
"""

from typing import Any


class DomainError(Exception):
    """Base exception for all registry domain errors."""

    kind = "domain_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(DomainError, ValueError):
    """Raised when input is malformed or out of range."""

    kind = "validation_error"


class ConflictError(DomainError):
    """Raised on uniqueness, overlap, or concurrent-update violations."""

    kind = "conflict"


class InvalidStateTransition(DomainError):
    """Raised when a status change is not permitted from the current status."""

    kind = "invalid_state_transition"

    def __init__(self, current: Any, requested: Any, reason: str | None = None):
        self.current = current
        self.requested = requested
        current_name = getattr(current, "name", current)
        requested_name = getattr(requested, "name", requested)
        message = f"Transition not allowed from {current_name} to {requested_name}"
        if reason:
            message += f": {reason}"
        super().__init__(
            message,
            details={"current": current_name, "requested": requested_name},
        )


class NotFound(DomainError):
    """Raised when a referenced aggregate does not exist."""

    kind = "not_found"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(
            f"{entity} not found: {key}", details={"entity": entity, "key": key}
        )
