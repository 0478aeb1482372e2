from src.models.complaint import (
    Comment,
    Complaint,
    ComplaintDraft,
    ComplaintLocation,
    IdentityClaim,
    IdentityVerification,
    StatusHistoryEntry,
)
from src.models.enums import (
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    ContactMethod,
    ReporterType,
    StatsScopeKind,
)
from src.models.stats import StatsScope, StatsSummary

__all__ = [
    "Comment",
    "Complaint",
    "ComplaintCategory",
    "ComplaintDraft",
    "ComplaintLocation",
    "ComplaintPriority",
    "ComplaintStatus",
    "ContactMethod",
    "IdentityClaim",
    "IdentityVerification",
    "ReporterType",
    "StatsScope",
    "StatsScopeKind",
    "StatsSummary",
    "StatusHistoryEntry",
]
