"""
Value Objects for the catalog domain.

Value objects are immutable and defined by their attributes. This module also
holds the GS1 check-digit rules used to validate product identity codes.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import DomainValidationError


VALID_GTIN_LENGTHS = (8, 12, 13, 14)

GTIN_TYPES = {
    8: "GTIN-8",
    12: "GTIN-12 (UPC-A)",
    13: "GTIN-13 (EAN-13)",
    14: "GTIN-14",
}

_NON_DIGITS = re.compile(r"[^0-9]")


def format_gtin(gtin: object) -> str:
    """
    Normalize a GTIN by removing spaces, dashes and any other non-digit.

    Args:
        gtin: Raw GTIN value.

    Returns:
        Digits-only GTIN, or an empty string for non-string input.
    """
    if not isinstance(gtin, str):
        return ""
    return _NON_DIGITS.sub("", gtin)


def is_valid_gtin_format(gtin: object) -> bool:
    """Return True if the normalized GTIN has a GS1 length (8, 12, 13, 14)."""
    return len(format_gtin(gtin)) in VALID_GTIN_LENGTHS


def calculate_check_digit(body: str) -> int:
    """
    Calculate the GS1 check digit for a GTIN without its last digit.

    Digits are weighted from the right: the rightmost digit of the body
    gets weight 3, the next one weight 1, alternating.

    Args:
        body: GTIN digits excluding the check digit.

    Returns:
        Check digit (0-9).
    """
    total = 0
    for position, digit in enumerate(reversed(body), start=1):
        total += int(digit) * (3 if position % 2 == 1 else 1)
    return (10 - total % 10) % 10


def validate_gtin_check_digit(gtin: object) -> bool:
    """
    Validate the check digit of a complete GTIN.

    Args:
        gtin: GTIN including its check digit.

    Returns:
        True if the last digit matches the calculated check digit.
    """
    normalized = format_gtin(gtin)
    if len(normalized) not in VALID_GTIN_LENGTHS:
        return False
    return calculate_check_digit(normalized[:-1]) == int(normalized[-1])


@dataclass
class GtinValidation:
    """
    Result of a full GTIN validation.

    Attributes:
        is_valid: Whether the GTIN passed every check.
        errors: Human-readable failures, in check order.
        normalized: Digits-only GTIN.
        type: GS1 type name (e.g. 'GTIN-13 (EAN-13)') when the length is valid.
    """
    is_valid: bool = False
    errors: list[str] = field(default_factory=list)
    normalized: str = ""
    type: Optional[str] = None


def validate_gtin(gtin: object) -> GtinValidation:
    """
    Validate a GTIN against the GS1 standard.

    Args:
        gtin: GTIN to validate.

    Returns:
        GtinValidation with details.
    """
    result = GtinValidation()

    if not gtin:
        result.errors.append("GTIN is required")
        return result

    normalized = format_gtin(gtin)
    result.normalized = normalized

    if not normalized.isdigit():
        result.errors.append("GTIN must contain only digits")
        return result

    if len(normalized) not in VALID_GTIN_LENGTHS:
        result.errors.append("GTIN must have 8, 12, 13 or 14 digits")
        return result

    result.type = GTIN_TYPES[len(normalized)]

    if not validate_gtin_check_digit(normalized):
        result.errors.append("Invalid GS1 check digit")
        return result

    result.is_valid = True
    return result


def is_valid_gtin(gtin: object) -> bool:
    """Return True if the GTIN passes every GS1 check."""
    return validate_gtin(gtin).is_valid


def get_gtin_validation_error(gtin: object) -> Optional[str]:
    """
    Build a descriptive error message for an invalid GTIN.

    Args:
        gtin: GTIN to describe.

    Returns:
        Error message, or None if the GTIN is valid.
    """
    validation = validate_gtin(gtin)
    if validation.is_valid:
        return None

    return (
        f'Invalid GTIN: "{gtin}". {", ".join(validation.errors)}. '
        "A GTIN must follow the GS1 standard (8, 12, 13 or 14 digits with a "
        "correct check digit)."
    )


SAMPLE_VALID_GTINS = {
    "GTIN-8": "12345670",
    "GTIN-12": "123456789012",
    "GTIN-13": "1234567890128",
    "GTIN-14": "12345678901231",
}


class Role(str, Enum):
    """Actor roles."""

    PROVIDER = "provider"
    EDITOR = "editor"
    ADMIN = "admin"


ELEVATED_ROLES = frozenset({Role.EDITOR, Role.ADMIN})


@dataclass(frozen=True)
class Actor:
    """
    Authenticated actor performing an operation.

    Attributes:
        id: User identifier.
        role: User role.
    """
    id: str
    role: Role = Role.PROVIDER

    def __post_init__(self) -> None:
        """Validate actor constraints."""
        if not self.id:
            raise DomainValidationError("Actor ID cannot be empty")
        if not isinstance(self.role, Role):
            try:
                object.__setattr__(self, "role", Role(self.role))
            except ValueError:
                raise DomainValidationError(f"Unknown role '{self.role}'")

    @property
    def is_elevated(self) -> bool:
        """Whether the actor may approve and mutate any product."""
        return self.role in ELEVATED_ROLES


PERMISSIONS: dict[Role, dict[str, tuple[str, ...]]] = {
    Role.PROVIDER: {
        "products": ("create", "read_own", "update_own"),
        "history": ("read_own",),
    },
    Role.EDITOR: {
        "products": ("create", "read_all", "update_all", "delete", "approve"),
        "history": ("read_all",),
    },
    Role.ADMIN: {
        "products": ("create", "read_all", "update_all", "delete", "approve"),
        "history": ("read_all",),
    },
}


def has_permission(actor: Optional[Actor], resource: str, action: str) -> bool:
    """
    Check whether an actor holds a permission.

    Args:
        actor: Acting user, or None when unauthenticated.
        resource: Resource name (e.g. 'products').
        action: Action name (e.g. 'approve').

    Returns:
        True if the actor's role grants the action on the resource.
    """
    if actor is None:
        return False
    return action in PERMISSIONS.get(actor.role, {}).get(resource, ())


def is_elevated(actor: Optional[Actor]) -> bool:
    """Return True for editor and admin actors."""
    return actor is not None and actor.is_elevated
