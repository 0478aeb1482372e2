"""Domain errors raised by the complaint core.

All of them are per-operation and recoverable; the calling layer maps
them to user-facing messages (validation, conflict, not found).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pydantic import ValidationError as PydanticValidationError


class ComplaintError(Exception):
    """Base class for complaint-core failures."""


class ValidationError(ComplaintError, ValueError):
    """Missing or malformed complaint fields."""

    def __init__(self, field_errors: dict[str, str]) -> None:
        self.field_errors = dict(field_errors)
        details = "; ".join(f"{field}: {msg}" for field, msg in sorted(self.field_errors.items()))
        super().__init__(f"Invalid complaint data ({details})")

    @classmethod
    def from_pydantic(cls, exc: PydanticValidationError) -> ValidationError:
        errors: dict[str, str] = {}
        for err in exc.errors():
            field = ".".join(str(part) for part in err["loc"]) or "__root__"
            errors.setdefault(field, err["msg"])
        return cls(errors)


class InvalidTransitionError(ComplaintError):
    """A status change the workflow does not allow."""

    def __init__(self, complaint_id: str, current_status: str, requested_status: str) -> None:
        self.complaint_id = complaint_id
        self.current_status = str(current_status)
        self.requested_status = str(requested_status)
        super().__init__(
            f"Complaint {complaint_id} cannot move from {self.current_status!r} to {self.requested_status!r}"
        )


class UniquenessConflict(ComplaintError):
    """The identifier is already taken (or was once taken) in storage."""

    def __init__(self, complaint_id: str) -> None:
        self.complaint_id = complaint_id
        super().__init__(f"Complaint identifier {complaint_id} is already in use")


class ComplaintNotFoundError(ComplaintError, LookupError):
    def __init__(self, complaint_id: str) -> None:
        self.complaint_id = complaint_id
        super().__init__(f"Complaint {complaint_id} not found")


class StaleComplaintError(ComplaintError):
    """Optimistic version check failed while saving."""

    def __init__(self, complaint_id: str, expected_version: int, stored_version: int) -> None:
        self.complaint_id = complaint_id
        self.expected_version = expected_version
        self.stored_version = stored_version
        super().__init__(
            f"Complaint {complaint_id} was modified concurrently "
            f"(expected stored version {expected_version}, found {stored_version})"
        )


class IdentityVerificationError(ComplaintError, ValueError):
    """A national-ID number was rejected for a verified report."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)
