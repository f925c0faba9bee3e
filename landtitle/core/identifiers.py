"""Identifier value objects: national identity numbers and registry codes.

All identifiers are immutable and validated on construction. Use the
factory classmethods rather than the constructors directly.
"""

import re
from dataclasses import dataclass

from .errors import ValidationError

_IDENTITY_PATTERN = re.compile(r"^[0-9]{8}$")
_PARCEL_CODE_PATTERN = re.compile(r"^[0-9]{6}-[0-9]{3}-[0-9]{3}-[0-9]{3}$")

# Known test values that are syntactically valid but never issued.
_BLACKLISTED_IDENTITIES = frozenset({"12345678", "87654321"})

MIN_CODE_YEAR = 2020
MAX_CODE_YEAR = 2100
MAX_SEQUENCE_NUMBER = 999999


@dataclass(frozen=True)
class IdentityNumber:
    """An 8-digit national identity number."""

    value: str

    @classmethod
    def create(cls, raw: str | None) -> "IdentityNumber":
        """Validate and normalize a raw identity number.

        Raises:
            ValidationError: If empty, not exactly 8 digits, made of a single
                repeated digit, or a blacklisted test value.
        """
        if raw is None or not raw.strip():
            raise ValidationError("Identity number must not be empty")

        cleaned = raw.strip()
        if not _IDENTITY_PATTERN.match(cleaned):
            raise ValidationError(
                "Identity number must have exactly 8 numeric digits",
                details={"value": cleaned},
            )
        if len(set(cleaned)) == 1 or cleaned in _BLACKLISTED_IDENTITIES:
            raise ValidationError(
                "Identity number is not valid", details={"value": cleaned}
            )
        return cls(cleaned)

    @classmethod
    def is_valid(cls, raw: str | None) -> bool:
        """Non-raising check using the same rules as create()."""
        try:
            cls.create(raw)
        except ValidationError:
            return False
        return True

    @property
    def masked(self) -> str:
        """Masked form for logs and UI, e.g. 20****34."""
        return f"{self.value[:2]}****{self.value[6:]}"

    @property
    def formatted(self) -> str:
        """Dotted display form, e.g. 20.001.234."""
        return f"{self.value[:2]}.{self.value[2:5]}.{self.value[5:]}"

    @property
    def first_seven_digits(self) -> str:
        return self.value[:7]

    @property
    def verification_digit(self) -> int:
        return int(self.value[7])

    @property
    def is_probably_adult(self) -> bool:
        """Advisory heuristic: older numbers start with lower digits."""
        return int(self.value[:2]) <= 60

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ParcelCode:
    """Structured cadastral code: XXXXXX-XXX-XXX-XXX.

    The leading six digits encode department, province, and district
    (two digits each); the remaining groups identify sector, block, and lot.
    """

    value: str

    @classmethod
    def create(cls, raw: str | None) -> "ParcelCode":
        if raw is None or not raw.strip():
            raise ValidationError("Parcel code must not be empty")

        cleaned = raw.strip()
        if not _PARCEL_CODE_PATTERN.match(cleaned):
            raise ValidationError(
                "Parcel code must have the format XXXXXX-XXX-XXX-XXX",
                details={"value": cleaned},
            )
        return cls(cleaned)

    @property
    def department(self) -> str:
        return self.value[0:2]

    @property
    def province(self) -> str:
        return self.value[2:4]

    @property
    def district(self) -> str:
        return self.value[4:6]

    def __str__(self) -> str:
        return self.value


def _check_sequence_bounds(year: int, number: int) -> None:
    if year < MIN_CODE_YEAR or year > MAX_CODE_YEAR:
        raise ValidationError(
            f"Year must be between {MIN_CODE_YEAR} and {MAX_CODE_YEAR}",
            details={"year": year},
        )
    if number < 1 or number > MAX_SEQUENCE_NUMBER:
        raise ValidationError(
            f"Sequence number must be between 1 and {MAX_SEQUENCE_NUMBER}",
            details={"number": number},
        )


@dataclass(frozen=True)
class RequestCode:
    """Titling request code: PREFIX-YYYY-NNNNNN (e.g. SOL-2024-000001)."""

    value: str

    DEFAULT_PREFIX = "SOL"

    @classmethod
    def parse(cls, raw: str | None, prefix: str = DEFAULT_PREFIX) -> "RequestCode":
        """Parse an existing request code.

        Raises:
            ValidationError: If the format, year, or number is invalid.
        """
        if raw is None or not raw.strip():
            raise ValidationError("Request code must not be empty")

        cleaned = raw.strip().upper()
        pattern = rf"^{re.escape(prefix.upper())}-(\d{{4}})-(\d{{6}})$"
        match = re.match(pattern, cleaned)
        if not match:
            raise ValidationError(
                f"Request code must have the format {prefix.upper()}-YYYY-NNNNNN",
                details={"value": cleaned},
            )
        _check_sequence_bounds(int(match.group(1)), int(match.group(2)))
        return cls(cleaned)

    @classmethod
    def generate(
        cls, year: int, number: int, prefix: str = DEFAULT_PREFIX
    ) -> "RequestCode":
        _check_sequence_bounds(year, number)
        return cls(f"{prefix.upper()}-{year}-{number:06d}")

    @property
    def prefix(self) -> str:
        return self.value.rsplit("-", 2)[0]

    @property
    def year(self) -> int:
        return int(self.value.rsplit("-", 2)[1])

    @property
    def number(self) -> int:
        return int(self.value.rsplit("-", 2)[2])

    def __str__(self) -> str:
        return self.value


class CaseFileNumber:
    """Generator for case-file numbers assigned at entry to evaluation."""

    DEFAULT_PREFIX = "EXP"

    @staticmethod
    def generate(year: int, number: int, prefix: str = DEFAULT_PREFIX) -> str:
        _check_sequence_bounds(year, number)
        return f"{prefix.upper()}-{year}-{number:06d}"
