"""Complaint service -- submission, moderation and reporting.

Ties the pure pieces (identifier formatting, Aadhaar checks, the
lifecycle engine, stats aggregation) to the stateful collaborators
(sequence provider, complaint store).

Concurrency:
    * every write to an existing complaint runs under a per-complaint
      :class:`asyncio.Lock` covering load -> mutate -> save, so history
      entries are appended in the order the writes were accepted;
    * the store's version check rejects any write that slipped past the
      lock (e.g. another process);
    * identifier collisions at insert time are retried with a fresh
      sequence value.
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Final

import pydantic
import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from src.models.complaint import Complaint, ComplaintDraft, IdentityClaim
from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus, ReporterType
from src.models.stats import StatsScope, StatsSummary
from src.services import aadhaar
from src.services.errors import ComplaintNotFoundError, UniquenessConflict, ValidationError
from src.services.stats import in_scope

if TYPE_CHECKING:
    from src.services.complaint_id import ComplaintIdGenerator
    from src.services.complaint_store import ComplaintStore
    from src.services.lifecycle import ComplaintLifecycleEngine
    from src.services.sequence import SequenceProvider
    from src.services.stats import ComplaintStatsService

logger = structlog.get_logger(__name__)

_SEQUENCE_NAME: Final[str] = "complaint"


class ComplaintService:
    """Application-level operations on complaints.

    Parameters
    ----------
    store:
        Persistence collaborator enforcing identifier uniqueness.
    sequence:
        Atomic counter for the identifier's sequence component.
    engine:
        The lifecycle engine; the only component that mutates complaints.
    id_generator:
        Formats identifiers from sequence values.
    stats:
        Cached stats, invalidated after every accepted write.
    max_id_attempts:
        How many fresh identifiers to try when the store reports a
        :class:`UniquenessConflict`.
    """

    __slots__ = (
        "_clock",
        "_engine",
        "_ids",
        "_locks",
        "_max_id_attempts",
        "_sequence",
        "_stats",
        "_store",
    )

    def __init__(
        self,
        *,
        store: ComplaintStore,
        sequence: SequenceProvider,
        engine: ComplaintLifecycleEngine,
        id_generator: ComplaintIdGenerator,
        stats: ComplaintStatsService,
        max_id_attempts: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._sequence = sequence
        self._engine = engine
        self._ids = id_generator
        self._stats = stats
        self._max_id_attempts = max_id_attempts
        self._clock = clock or (lambda: datetime.now(UTC))
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # -- startup ---------------------------------------------------------------

    async def initialise(self) -> None:
        """Advance the sequence past the records already in the store."""
        existing = await self._store.count_existing()
        await self._sequence.seed(_SEQUENCE_NAME, existing)
        logger.info("complaints.initialised", existing=existing)

    # -- submission ------------------------------------------------------------

    async def submit(
        self,
        fields: Mapping[str, Any] | ComplaintDraft,
        *,
        identity: IdentityClaim | None = None,
        actor: str | None = None,
    ) -> Complaint:
        """Register a new complaint and return it.

        Raises
        ------
        ValidationError
            Malformed fields or identity data on a non-verified report.
        IdentityVerificationError
            The national-ID number failed the checksum or is blocked.
        UniquenessConflict
            Every attempted identifier was already taken.
        """
        draft = self._parse_draft(fields)

        verification = None
        if identity is not None:
            if draft.reporter_type != ReporterType.VERIFIED:
                raise ValidationError({"identity": "only allowed for verified reporters"})
            verification = aadhaar.verify_identity(
                identity.aadhaar_number,
                name=identity.name,
                gender=identity.gender,
                state=identity.state,
                district=identity.district,
                verified_at=self._clock(),
            )

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(UniquenessConflict),
            stop=stop_after_attempt(self._max_id_attempts),
            reraise=True,
        ):
            with attempt:
                sequence = await self._sequence.next_value(_SEQUENCE_NAME)
                complaint_id = self._ids.next(sequence, self._clock())
                complaint = self._engine.create(
                    draft,
                    complaint_id=complaint_id,
                    actor=actor,
                    identity_verification=verification,
                )
                await self._store.save(complaint)

        self._stats.invalidate()
        logger.info(
            "complaints.submitted",
            complaint_id=complaint.complaint_id,
            category=complaint.category,
            priority=complaint.priority,
            attempts=attempt.retry_state.attempt_number,
        )
        return complaint

    @staticmethod
    def _parse_draft(fields: Mapping[str, Any] | ComplaintDraft) -> ComplaintDraft:
        if isinstance(fields, ComplaintDraft):
            return fields
        try:
            return ComplaintDraft.model_validate(dict(fields))
        except pydantic.ValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

    # -- reads -----------------------------------------------------------------

    async def get(self, complaint_id: str) -> Complaint:
        complaint = await self._store.load_by_id(complaint_id)
        if complaint is None:
            raise ComplaintNotFoundError(complaint_id)
        return complaint

    async def list_complaints(
        self,
        scope: StatsScope | None = None,
        *,
        status: ComplaintStatus | str | None = None,
        category: ComplaintCategory | str | None = None,
        priority: ComplaintPriority | str | None = None,
    ) -> list[Complaint]:
        """Complaints in *scope* matching the optional filters, newest first.

        Raises
        ------
        ValidationError
            A filter value is not a known status, category or priority.
        """
        scope = scope or StatsScope.everything()
        wanted: dict[str, Any] = {}
        errors: dict[str, str] = {}
        for field, enum_type, value in (
            ("status", ComplaintStatus, status),
            ("category", ComplaintCategory, category),
            ("priority", ComplaintPriority, priority),
        ):
            if value is None:
                continue
            try:
                wanted[field] = enum_type(value)
            except ValueError:
                errors[field] = f"unknown value {value!r}"
        if errors:
            raise ValidationError(errors)

        matches = [
            c
            for c in await self._store.list_all()
            if in_scope(c, scope) and all(getattr(c, field) == value for field, value in wanted.items())
        ]
        matches.sort(key=lambda c: c.created_at, reverse=True)
        return matches

    async def stats(self, scope: StatsScope | None = None) -> StatsSummary:
        return await self._stats.get(scope)

    # -- writes ----------------------------------------------------------------

    async def transition(
        self,
        complaint_id: str,
        new_status: ComplaintStatus | str,
        note: str | None = None,
        actor: str | None = None,
    ) -> Complaint:
        """Apply a status change, serialized per complaint."""
        return await self._mutate(
            complaint_id,
            lambda complaint: self._engine.transition(complaint, new_status, note, actor),
        )

    async def assign(
        self,
        complaint_id: str,
        *,
        assigned_to: str | None = None,
        department_id: str | None = None,
        actor: str | None = None,
    ) -> Complaint:
        return await self._mutate(
            complaint_id,
            lambda complaint: self._engine.assign(
                complaint,
                assigned_to=assigned_to,
                department_id=department_id,
                actor=actor,
            ),
        )

    async def add_comment(
        self,
        complaint_id: str,
        comment: str,
        *,
        author_id: str | None = None,
        is_internal: bool = False,
    ) -> Complaint:
        return await self._mutate(
            complaint_id,
            lambda complaint: self._engine.add_comment(
                complaint,
                comment,
                author_id=author_id,
                is_internal=is_internal,
            ),
        )

    def _lock_for(self, complaint_id: str) -> asyncio.Lock:
        lock = self._locks.get(complaint_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[complaint_id] = lock
        return lock

    async def _mutate(
        self,
        complaint_id: str,
        change: Callable[[Complaint], Complaint],
    ) -> Complaint:
        lock = self._lock_for(complaint_id)
        async with lock:
            complaint = await self.get(complaint_id)
            version = complaint.version
            change(complaint)
            if complaint.version != version:
                await self._store.save(complaint)
                self._stats.invalidate()
        return complaint
