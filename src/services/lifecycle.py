"""Complaint lifecycle engine -- the status state machine and audit trail.

The engine is the only code that mutates a :class:`Complaint`.  Each
accepted change appends exactly one :class:`StatusHistoryEntry` (status
changes) or one :class:`Comment`, bumps ``version`` and refreshes
``updated_at``.  History entries are never removed or reordered.

Workflow
--------
The workflow is permissive: moderators reopen and reclassify complaints.
Any open status may move to any *other* status.  ``closed`` and
``rejected`` are terminal; re-sending a terminal complaint its own
status is a no-op, anything else is an :class:`InvalidTransitionError`.
Reopening a ``resolved`` complaint is governed by policy
(``allow_reopen_resolved``).

+--------------+----------------------------------------------------------+
| From         | Allowed targets                                          |
+--------------+----------------------------------------------------------+
| submitted    | acknowledged, in_progress, resolved, closed, rejected    |
| acknowledged | submitted, in_progress, resolved, closed, rejected       |
| in_progress  | submitted, acknowledged, resolved, closed, rejected      |
| resolved     | submitted*, acknowledged*, in_progress*, closed, rejected|
| closed       | (terminal)                                               |
| rejected     | (terminal)                                               |
+--------------+----------------------------------------------------------+

``*`` reopen targets, only when ``allow_reopen_resolved`` is set.

The engine itself holds no locks.  Callers that share complaints
between coroutines must serialize :meth:`transition` per complaint
(see :class:`~src.services.complaints.ComplaintService`).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any, Final

import pydantic
import structlog

from src.models.complaint import (
    Comment,
    Complaint,
    ComplaintDraft,
    IdentityVerification,
    StatusHistoryEntry,
)
from src.models.enums import ComplaintStatus, ReporterType
from src.services import aadhaar
from src.services.errors import InvalidTransitionError, ValidationError

logger = structlog.get_logger(__name__)

_S = ComplaintStatus

ALLOWED_TRANSITIONS: Final[dict[ComplaintStatus, frozenset[ComplaintStatus]]] = {
    _S.SUBMITTED: frozenset({_S.ACKNOWLEDGED, _S.IN_PROGRESS, _S.RESOLVED, _S.CLOSED, _S.REJECTED}),
    _S.ACKNOWLEDGED: frozenset({_S.SUBMITTED, _S.IN_PROGRESS, _S.RESOLVED, _S.CLOSED, _S.REJECTED}),
    _S.IN_PROGRESS: frozenset({_S.SUBMITTED, _S.ACKNOWLEDGED, _S.RESOLVED, _S.CLOSED, _S.REJECTED}),
    _S.RESOLVED: frozenset({_S.SUBMITTED, _S.ACKNOWLEDGED, _S.IN_PROGRESS, _S.CLOSED, _S.REJECTED}),
    _S.CLOSED: frozenset(),
    _S.REJECTED: frozenset(),
}

REOPEN_TARGETS: Final[frozenset[ComplaintStatus]] = frozenset(
    {_S.SUBMITTED, _S.ACKNOWLEDGED, _S.IN_PROGRESS}
)

_CREATED_NOTE: Final[str] = "Complaint submitted"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ComplaintLifecycleEngine:
    """Creates complaints and applies status changes.

    Parameters
    ----------
    allow_reopen_resolved:
        Whether a ``resolved`` complaint may move back to an open status.
    clock:
        Zero-argument callable returning an aware ``datetime``.  Injected
        so that tests get deterministic timestamps.
    """

    __slots__ = ("_allow_reopen_resolved", "_clock")

    def __init__(
        self,
        *,
        allow_reopen_resolved: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._allow_reopen_resolved = allow_reopen_resolved
        self._clock = clock or _utcnow

    # -- transition table ----------------------------------------------------

    def allowed_targets(self, status: ComplaintStatus | str) -> frozenset[ComplaintStatus]:
        """Statuses reachable from *status* under the current policy."""
        current = ComplaintStatus(status)
        targets = ALLOWED_TRANSITIONS[current]
        if current == ComplaintStatus.RESOLVED and not self._allow_reopen_resolved:
            targets = targets - REOPEN_TARGETS
        return targets

    def can_transition(self, current: ComplaintStatus | str, target: ComplaintStatus | str) -> bool:
        return ComplaintStatus(target) in self.allowed_targets(current)

    # -- creation --------------------------------------------------------------

    def create(
        self,
        initial_fields: Mapping[str, Any] | ComplaintDraft,
        *,
        complaint_id: str,
        actor: str | None = None,
        identity_verification: IdentityVerification | None = None,
    ) -> Complaint:
        """Build a new complaint in ``submitted`` with one history entry.

        Raises
        ------
        ValidationError
            Required fields missing or blank, unknown category, priority
            or reporter type, or identity data inconsistent with the
            reporter type.
        """
        if isinstance(initial_fields, ComplaintDraft):
            draft = initial_fields
        else:
            try:
                draft = ComplaintDraft.model_validate(dict(initial_fields))
            except pydantic.ValidationError as exc:
                raise ValidationError.from_pydantic(exc) from exc

        errors: dict[str, str] = {}
        if not complaint_id:
            errors["complaint_id"] = "must not be empty"
        if draft.reporter_type == ReporterType.VERIFIED:
            if identity_verification is None:
                errors["identity_verification"] = "required for verified reporters"
            elif not aadhaar.validate(identity_verification.aadhaar_number):
                errors["identity_verification"] = "Aadhaar number fails checksum"
        elif identity_verification is not None:
            errors["identity_verification"] = "only allowed for verified reporters"
        if errors:
            raise ValidationError(errors)

        now = self._clock()
        complaint = Complaint(
            complaint_id=complaint_id,
            **draft.model_dump(),
            identity_verification=identity_verification,
            status=ComplaintStatus.SUBMITTED,
            status_history=[
                StatusHistoryEntry(
                    status=ComplaintStatus.SUBMITTED,
                    note=_CREATED_NOTE,
                    actor_reference=actor,
                    changed_at=now,
                )
            ],
            created_at=now,
            updated_at=now,
        )
        logger.info(
            "complaint.created",
            complaint_id=complaint_id,
            category=complaint.category,
            reporter_type=complaint.reporter_type,
        )
        return complaint

    # -- mutation --------------------------------------------------------------

    def transition(
        self,
        complaint: Complaint,
        new_status: ComplaintStatus | str,
        note: str | None = None,
        actor: str | None = None,
    ) -> Complaint:
        """Move *complaint* to *new_status* and record it in the audit trail.

        Returns the same (mutated) complaint.  Re-applying a terminal
        status to a complaint already in it returns the complaint
        unchanged.

        Raises
        ------
        ValidationError
            *new_status* is not a known status.
        InvalidTransitionError
            The move is not allowed from the current status.
        """
        try:
            target = ComplaintStatus(new_status)
        except ValueError:
            raise ValidationError({"status": f"unknown status {new_status!r}"}) from None

        current = complaint.status
        log = logger.bind(
            complaint_id=complaint.complaint_id,
            from_status=current,
            to_status=target,
        )

        if current.is_terminal and target == current:
            log.info("complaint.transition.idempotent")
            return complaint
        if target not in self.allowed_targets(current):
            log.info("complaint.transition.rejected")
            raise InvalidTransitionError(complaint.complaint_id, current, target)

        now = self._clock()
        entry = StatusHistoryEntry(
            status=target,
            note=note or f"Status changed to {target}",
            actor_reference=actor,
            changed_at=now,
        )
        complaint.status_history.append(entry)
        complaint.status = target
        complaint.updated_at = now
        if target == ComplaintStatus.RESOLVED:
            complaint.resolved_at = now
        elif current == ComplaintStatus.RESOLVED and target in REOPEN_TARGETS:
            complaint.resolved_at = None
        complaint.version += 1

        log.info("complaint.transition.applied", version=complaint.version, actor=actor)
        return complaint

    def assign(
        self,
        complaint: Complaint,
        *,
        assigned_to: str | None = None,
        department_id: str | None = None,
        actor: str | None = None,
    ) -> Complaint:
        """Record the handler and/or department responsible for *complaint*.

        Only references are stored; the core does not own users or
        departments.  Assigning a terminal complaint is an
        :class:`InvalidTransitionError`.
        """
        if complaint.is_terminal:
            raise InvalidTransitionError(complaint.complaint_id, complaint.status, complaint.status)
        if assigned_to is None and department_id is None:
            raise ValidationError({"assigned_to": "assigned_to or department_id is required"})

        if assigned_to is not None:
            complaint.assigned_to = assigned_to
        if department_id is not None:
            complaint.department_id = department_id
        complaint.updated_at = self._clock()
        complaint.version += 1

        logger.info(
            "complaint.assigned",
            complaint_id=complaint.complaint_id,
            assigned_to=complaint.assigned_to,
            department_id=complaint.department_id,
            actor=actor,
        )
        return complaint

    def add_comment(
        self,
        complaint: Complaint,
        comment: str,
        *,
        author_id: str | None = None,
        is_internal: bool = False,
    ) -> Complaint:
        """Append a comment.  Comments never change the status."""
        now = self._clock()
        try:
            entry = Comment(
                author_id=author_id,
                comment=comment.strip(),
                is_internal=is_internal,
                created_at=now,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc

        complaint.comments.append(entry)
        complaint.updated_at = now
        complaint.version += 1
        logger.info(
            "complaint.comment_added",
            complaint_id=complaint.complaint_id,
            is_internal=is_internal,
        )
        return complaint

    # -- auditing --------------------------------------------------------------

    @staticmethod
    def audit(complaint: Complaint) -> list[str]:
        """Return every way *complaint*'s history breaks the workflow rules.

        Uses the full transition table, independent of reopen policy, so
        histories recorded under a more permissive policy still pass.
        An empty list means the audit trail is consistent.
        """
        history = complaint.status_history
        if not history:
            return ["status_history is empty"]

        problems: list[str] = []
        if history[0].status != ComplaintStatus.SUBMITTED:
            problems.append(f"first entry is {history[0].status!s}, expected submitted")
        if history[-1].status != complaint.status:
            problems.append(
                f"last entry is {history[-1].status!s} but complaint status is {complaint.status!s}"
            )
        for index, (before, after) in enumerate(zip(history, history[1:]), start=1):
            if after.status not in ALLOWED_TRANSITIONS[before.status]:
                problems.append(f"entry {index}: {before.status!s} -> {after.status!s} is not allowed")
            if after.changed_at < before.changed_at:
                problems.append(f"entry {index}: timestamp goes backwards")
        return problems
