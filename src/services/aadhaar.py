"""Aadhaar number validation and identity verification.

Aadhaar numbers carry a Verhoeff check digit as their last digit.  The
Verhoeff scheme uses multiplication in the dihedral group D5 together
with a position-dependent permutation, which detects every single-digit
error and every adjacent transposition.

The validator is strict: it accepts only exactly twelve
ASCII digits and never normalises its input.  Callers that accept
user-typed numbers (``1234 5678 9010``, ``1234-5678-9010``) should run
:func:`normalise` first.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Final

import structlog

from src.models.complaint import IdentityVerification
from src.services.errors import IdentityVerificationError

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Verhoeff tables
# ---------------------------------------------------------------------------

# Multiplication table of the dihedral group D5.
_D: Final[tuple[tuple[int, ...], ...]] = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 2, 3, 4, 0, 6, 7, 8, 9, 5),
    (2, 3, 4, 0, 1, 7, 8, 9, 5, 6),
    (3, 4, 0, 1, 2, 8, 9, 5, 6, 7),
    (4, 0, 1, 2, 3, 9, 5, 6, 7, 8),
    (5, 9, 8, 7, 6, 0, 4, 3, 2, 1),
    (6, 5, 9, 8, 7, 1, 0, 4, 3, 2),
    (7, 6, 5, 9, 8, 2, 1, 0, 4, 3),
    (8, 7, 6, 5, 9, 3, 2, 1, 0, 4),
    (9, 8, 7, 6, 5, 4, 3, 2, 1, 0),
)

# Position permutation; row i applies to the i-th digit from the right (mod 8).
_P: Final[tuple[tuple[int, ...], ...]] = (
    (0, 1, 2, 3, 4, 5, 6, 7, 8, 9),
    (1, 5, 7, 6, 2, 8, 3, 0, 9, 4),
    (5, 8, 0, 3, 7, 9, 6, 1, 4, 2),
    (8, 9, 1, 6, 0, 4, 3, 5, 2, 7),
    (9, 4, 5, 3, 1, 2, 6, 8, 7, 0),
    (4, 2, 8, 6, 5, 7, 3, 9, 0, 1),
    (2, 7, 9, 3, 8, 0, 6, 4, 1, 5),
    (7, 0, 4, 6, 9, 1, 3, 2, 5, 8),
)

# Multiplicative inverses in D5, used only to generate check digits.
_INV: Final[tuple[int, ...]] = (0, 4, 3, 2, 1, 5, 6, 7, 8, 9)

_AADHAAR_RE: Final = re.compile(r"\d{12}", re.ASCII)
_PAYLOAD_RE: Final = re.compile(r"\d{11}", re.ASCII)
_SEPARATORS_RE: Final = re.compile(r"[\s-]+")

# Numbers that pass the checksum but are known demo/test values.
_BLOCKED_NUMBERS: Final[frozenset[str]] = frozenset(
    {
        "000000000000",
        "111111111111",
        "123456789012",
        "222222222222",
        "999999999999",
    }
)

# Coarse region hint keyed by the first digit.  Informational only.
_REGION_BY_FIRST_DIGIT: Final[dict[str, tuple[str, str]]] = {
    "0": ("Special Cases", "Various"),
    "1": ("Delhi/NCR", "North"),
    "2": ("Haryana/Punjab", "North"),
    "3": ("Rajasthan", "West"),
    "4": ("Maharashtra", "West"),
    "5": ("Karnataka", "South"),
    "6": ("Tamil Nadu", "South"),
    "7": ("West Bengal", "East"),
    "8": ("Bihar/Jharkhand", "East"),
    "9": ("Other States", "Various"),
}


# ---------------------------------------------------------------------------
# Checksum
# ---------------------------------------------------------------------------


def validate(candidate: object) -> bool:
    """Return *True* if *candidate* is a 12-digit Verhoeff-valid number.

    Malformed input (wrong length, non-digits, non-ASCII digits,
    surrounding whitespace, non-string values) yields *False*; this
    function never raises.
    """
    if not isinstance(candidate, str) or _AADHAAR_RE.fullmatch(candidate) is None:
        return False

    check = 0
    for position, char in enumerate(reversed(candidate)):
        check = _D[check][_P[position % 8][int(char)]]
    return check == 0


def compute_check_digit(payload: str) -> str:
    """Return the Verhoeff check digit for an 11-digit *payload*.

    Raises
    ------
    ValueError
        If *payload* is not exactly eleven ASCII digits.
    """
    if _PAYLOAD_RE.fullmatch(payload) is None:
        raise ValueError("payload must be exactly 11 digits")

    check = 0
    # The check digit will occupy position 0, so payload digits start at 1.
    for position, char in enumerate(reversed(payload), start=1):
        check = _D[check][_P[position % 8][int(char)]]
    return str(_INV[check])


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------


def normalise(raw: str) -> str:
    """Strip whitespace and hyphens from a user-typed number."""
    return _SEPARATORS_RE.sub("", raw)


def format_number(number: str) -> str:
    """Group a (possibly partial) number as ``XXXX-XXXX-XXXX``."""
    digits = re.sub(r"\D", "", number)
    return "-".join(digits[i : i + 4] for i in range(0, min(len(digits), 12), 4))


def mask_number(number: str) -> str:
    """Hide all but the last four digits: ``XXXX-XXXX-1234``."""
    if _AADHAAR_RE.fullmatch(number or "") is None:
        return "XXXX-XXXX-XXXX"
    return f"XXXX-XXXX-{number[-4:]}"


def is_blocked_pattern(number: str) -> bool:
    """Reject repeated-digit numbers and well-known demo numbers."""
    return number in _BLOCKED_NUMBERS or len(set(number)) == 1


def region_for(number: str) -> tuple[str, str]:
    """Return ``(state_hint, region)`` derived from the first digit."""
    if _AADHAAR_RE.fullmatch(number or "") is None:
        return ("Unknown", "Unknown")
    return _REGION_BY_FIRST_DIGIT[number[0]]


# ---------------------------------------------------------------------------
# Identity verification
# ---------------------------------------------------------------------------


def verify_identity(
    number: str,
    *,
    name: str | None = None,
    gender: str | None = None,
    state: str | None = None,
    district: str | None = None,
    verified_at: datetime | None = None,
) -> IdentityVerification:
    """Build an :class:`IdentityVerification` for a checksum-valid number.

    *state* defaults to the first-digit hint when the caller has no
    better source.

    Raises
    ------
    IdentityVerificationError
        If the number fails the Verhoeff check or is a blocked pattern.
    """
    masked = mask_number(number)
    if not validate(number):
        logger.info("aadhaar.verify.checksum_failed", masked_number=masked)
        raise IdentityVerificationError("Invalid Aadhaar number. Please check and try again.")
    if is_blocked_pattern(number):
        logger.info("aadhaar.verify.blocked_pattern", masked_number=masked)
        raise IdentityVerificationError("Test or placeholder Aadhaar numbers are not allowed.")

    state_hint, region = region_for(number)
    record = IdentityVerification(
        aadhaar_number=number,
        masked_number=masked,
        name=name,
        gender=gender,
        state=state or state_hint,
        district=district,
        region=region,
        verified_at=verified_at or datetime.now(UTC),
    )
    logger.info("aadhaar.verify.accepted", masked_number=masked, region=region)
    return record
