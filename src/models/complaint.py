"""Complaint data models for NaiyakSetu.

A complaint is created once at submission and afterwards changes only
through the lifecycle engine.  Every accepted status change appends one
:class:`StatusHistoryEntry`; entries are frozen and the list is never
reordered, so the last entry always mirrors the complaint's current
status.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from src.models.enums import (
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    ContactMethod,
    ReporterType,
)


class StatusHistoryEntry(BaseModel):
    """One immutable line of the audit trail."""

    model_config = {"frozen": True}

    status: ComplaintStatus
    note: str = ""
    actor_reference: str | None = None
    changed_at: datetime


class Comment(BaseModel):
    model_config = {"frozen": True}

    author_id: str | None = None
    comment: str = Field(..., min_length=1, max_length=2000)
    is_internal: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ComplaintLocation(BaseModel):
    """Where the issue was reported.  Stored as given, never queried."""

    address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    formatted: str | None = None


class IdentityVerification(BaseModel):
    """Verified national-ID record attached to a ``verified`` report.

    ``aadhaar_number`` is always a checksum-valid 12-digit string;
    ``masked_number`` is the only form that should leave the core.
    """

    model_config = {"frozen": True}

    aadhaar_number: str = Field(..., pattern=r"^\d{12}$")
    masked_number: str
    name: str | None = None
    gender: str | None = None
    state: str | None = None
    district: str | None = None
    region: str | None = None
    verified_at: datetime


class IdentityClaim(BaseModel):
    """National-ID details supplied with a verified report.

    The number must already be normalised (digits only); see
    :func:`src.services.aadhaar.normalise`.
    """

    aadhaar_number: str
    name: str | None = Field(default=None, max_length=200)
    gender: str | None = None
    state: str | None = None
    district: str | None = None


class ComplaintDraft(BaseModel):
    """Fields supplied by the citizen at submission time."""

    title: str = Field(..., max_length=200)
    category: ComplaintCategory
    description: str = Field(..., max_length=5000)
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    reporter_type: ReporterType = ReporterType.ANONYMOUS
    contact_method: ContactMethod = ContactMethod.EMAIL
    phone: str | None = Field(default=None, max_length=20)
    location: ComplaintLocation | None = None
    user_id: str | None = None
    department_id: str | None = None
    estimated_resolution_date: datetime | None = None

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


class Complaint(BaseModel):
    """A civic complaint and its full audit trail."""

    model_config = {"frozen": False}

    complaint_id: str
    title: str
    category: ComplaintCategory
    description: str
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    status: ComplaintStatus = ComplaintStatus.SUBMITTED
    reporter_type: ReporterType = ReporterType.ANONYMOUS
    contact_method: ContactMethod = ContactMethod.EMAIL
    phone: str | None = None
    location: ComplaintLocation | None = None
    user_id: str | None = None
    assigned_to: str | None = None
    department_id: str | None = None
    identity_verification: IdentityVerification | None = None
    status_history: list[StatusHistoryEntry] = Field(..., min_length=1)
    comments: list[Comment] = Field(default_factory=list)
    estimated_resolution_date: datetime | None = None
    resolved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @model_validator(mode="after")
    def _history_matches_status(self) -> Complaint:
        if self.status_history[-1].status != self.status:
            raise ValueError(
                f"last status_history entry is {self.status_history[-1].status!s}, "
                f"complaint status is {self.status!s}"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def current_entry(self) -> StatusHistoryEntry:
        return self.status_history[-1]
