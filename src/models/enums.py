from __future__ import annotations

from enum import StrEnum


class ComplaintCategory(StrEnum):
    """Fixed set of civic complaint categories."""

    __slots__ = ()

    ROADS_INFRASTRUCTURE = "Roads & Infrastructure"
    WATER_SUPPLY = "Water Supply"
    ELECTRICITY = "Electricity"
    SANITATION_WASTE = "Sanitation & Waste"
    PUBLIC_SAFETY = "Public Safety"
    TRAFFIC_TRANSPORTATION = "Traffic & Transportation"
    ENVIRONMENT = "Environment"
    HEALTH_SERVICES = "Health Services"
    PLOT_ISSUE = "Plot Issue"
    PLUMBING = "Plumbing"
    GARBAGE = "Garbage"
    NOISE = "Noise"
    OTHER = "Other"


class ComplaintPriority(StrEnum):
    __slots__ = ()

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ComplaintStatus(StrEnum):
    """Workflow states of a complaint.

    ``closed`` and ``rejected`` are terminal.  ``resolved`` may still be
    reopened when policy allows it.
    """

    __slots__ = ()

    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES: frozenset[ComplaintStatus] = frozenset(
    {ComplaintStatus.CLOSED, ComplaintStatus.REJECTED}
)


class ReporterType(StrEnum):
    __slots__ = ()

    ANONYMOUS = "anonymous"
    PSEUDONYMOUS = "pseudonymous"
    VERIFIED = "verified"


class ContactMethod(StrEnum):
    __slots__ = ()

    EMAIL = "email"
    PHONE = "phone"
    BOTH = "both"


class StatsScopeKind(StrEnum):
    """Which slice of complaints a stats summary covers."""

    __slots__ = ()

    GLOBAL = "global"
    REPORTER = "reporter"
    DEPARTMENT = "department"
