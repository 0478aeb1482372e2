"""NaiyakSetu service layer -- identifiers, Aadhaar checks, lifecycle, storage and stats."""

from __future__ import annotations

from src.services.complaint_id import ComplaintIdGenerator
from src.services.complaint_store import ComplaintStore, InMemoryComplaintStore
from src.services.complaints import ComplaintService
from src.services.errors import (
    ComplaintError,
    ComplaintNotFoundError,
    IdentityVerificationError,
    InvalidTransitionError,
    StaleComplaintError,
    UniquenessConflict,
    ValidationError,
)
from src.services.lifecycle import ALLOWED_TRANSITIONS, ComplaintLifecycleEngine
from src.services.sequence import InMemorySequenceBackend, RedisSequenceBackend, SequenceProvider
from src.services.stats import ComplaintStatsService, aggregate

__all__ = [
    "ALLOWED_TRANSITIONS",
    "ComplaintError",
    "ComplaintIdGenerator",
    "ComplaintLifecycleEngine",
    "ComplaintNotFoundError",
    "ComplaintService",
    "ComplaintStatsService",
    "ComplaintStore",
    "IdentityVerificationError",
    "InMemoryComplaintStore",
    "InMemorySequenceBackend",
    "InvalidTransitionError",
    "RedisSequenceBackend",
    "SequenceProvider",
    "StaleComplaintError",
    "UniquenessConflict",
    "ValidationError",
    "aggregate",
]
