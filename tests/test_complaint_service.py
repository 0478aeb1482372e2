"""Tests for ComplaintService: submission, serialized writes and reporting."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.models.complaint import Complaint, IdentityClaim
from src.models.enums import ComplaintStatus, ReporterType
from src.models.stats import StatsScope
from src.services.complaint_id import ComplaintIdGenerator
from src.services.complaint_store import InMemoryComplaintStore
from src.services.complaints import ComplaintService
from src.services.errors import (
    ComplaintNotFoundError,
    IdentityVerificationError,
    InvalidTransitionError,
    UniquenessConflict,
    ValidationError,
)
from src.services.lifecycle import ComplaintLifecycleEngine
from src.services.sequence import SequenceProvider
from src.services.stats import ComplaintStatsService

# UTC issue time -> time component "20260301120000"
ISSUED_AT = datetime(2026, 3, 1, 12, 0, 0, 123000, tzinfo=UTC)


class TickingClock:
    def __init__(self, start: datetime = ISSUED_AT, step: timedelta = timedelta(seconds=1)) -> None:
        self._next = start
        self._step = step

    def __call__(self) -> datetime:
        current = self._next
        self._next += self._step
        return current


class YieldingStore(InMemoryComplaintStore):
    """Gives up control on every call, like a store doing real I/O."""

    async def load_by_id(self, complaint_id: str) -> Complaint | None:
        await asyncio.sleep(0)
        return await super().load_by_id(complaint_id)

    async def save(self, complaint: Complaint) -> None:
        await asyncio.sleep(0)
        await super().save(complaint)


class CollidingStore(InMemoryComplaintStore):
    """Reports every insert as a duplicate."""

    def __init__(self) -> None:
        super().__init__()
        self.insert_attempts: list[str] = []

    async def save(self, complaint: Complaint) -> None:
        if complaint.version == 1:
            self.insert_attempts.append(complaint.complaint_id)
            raise UniquenessConflict(complaint.complaint_id)
        await super().save(complaint)


def _build(store: InMemoryComplaintStore | None = None, *, max_id_attempts: int = 5) -> ComplaintService:
    store = store if store is not None else InMemoryComplaintStore()
    return ComplaintService(
        store=store,
        sequence=SequenceProvider(),
        engine=ComplaintLifecycleEngine(clock=TickingClock()),
        id_generator=ComplaintIdGenerator(prefix="NS", sequence_width=4),
        stats=ComplaintStatsService(store, ttl_seconds=300),
        max_id_attempts=max_id_attempts,
        clock=lambda: ISSUED_AT,
    )


def _fields(**overrides: object) -> dict:
    fields: dict = {
        "title": "Loud music at night",
        "category": "Noise",
        "description": "Amplified music from the community hall past midnight.",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def service() -> ComplaintService:
    return _build()


# -----------------------------------------------------------------------
# submit()
# -----------------------------------------------------------------------


class TestSubmit:
    async def test_anonymous_submission(self, service: ComplaintService) -> None:
        complaint = await service.submit(_fields(), actor="citizen-1")
        assert complaint.complaint_id == "NS202603011200000001"
        assert complaint.status == ComplaintStatus.SUBMITTED
        assert complaint.reporter_type == ReporterType.ANONYMOUS
        assert complaint.identity_verification is None
        assert complaint.status_history[0].actor_reference == "citizen-1"

        stored = await service.get(complaint.complaint_id)
        assert stored == complaint

    async def test_identifiers_follow_sequence(self, service: ComplaintService) -> None:
        first = await service.submit(_fields())
        second = await service.submit(_fields())
        assert (first.complaint_id, second.complaint_id) == ("NS202603011200000001", "NS202603011200000002")

    async def test_concurrent_submissions_get_unique_ids(self) -> None:
        service = _build(YieldingStore())
        complaints = await asyncio.gather(*(service.submit(_fields()) for _ in range(25)))
        ids = {c.complaint_id for c in complaints}
        assert len(ids) == 25
        assert len(await service.list_complaints()) == 25

    async def test_verified_submission(self, service: ComplaintService) -> None:
        complaint = await service.submit(
            _fields(reporter_type="verified", user_id="citizen-101"),
            identity=IdentityClaim(aadhaar_number="234567890124", name="Asha Verma", district="Gurugram"),
        )
        identity = complaint.identity_verification
        assert identity is not None
        assert identity.aadhaar_number == "234567890124"
        assert identity.masked_number == "XXXX-XXXX-0124"
        assert identity.name == "Asha Verma"
        assert identity.verified_at == ISSUED_AT

    async def test_verified_without_identity_rejected(self, service: ComplaintService) -> None:
        with pytest.raises(ValidationError):
            await service.submit(_fields(reporter_type="verified"))
        assert await service.list_complaints() == []

    async def test_identity_on_anonymous_rejected(self, service: ComplaintService) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.submit(_fields(), identity=IdentityClaim(aadhaar_number="234567890124"))
        assert "identity" in exc_info.value.field_errors

    @pytest.mark.parametrize("number", ["123456789011", "999999999999", "1234"])
    async def test_bad_national_id_rejected(self, service: ComplaintService, number: str) -> None:
        with pytest.raises(IdentityVerificationError):
            await service.submit(
                _fields(reporter_type="verified"),
                identity=IdentityClaim(aadhaar_number=number),
            )
        assert await service.list_complaints() == []

    async def test_missing_fields_rejected(self, service: ComplaintService) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.submit({"title": "No category"})
        assert {"category", "description"} <= set(exc_info.value.field_errors)

    async def test_retries_after_uniqueness_conflict(self) -> None:
        store = InMemoryComplaintStore()
        squatter = ComplaintLifecycleEngine().create(_fields(), complaint_id="NS202603011200000001")
        await store.save(squatter)

        service = _build(store)
        complaint = await service.submit(_fields())
        assert complaint.complaint_id == "NS202603011200000002", "second attempt uses the next sequence value"

    async def test_gives_up_after_max_attempts(self) -> None:
        store = CollidingStore()
        service = _build(store, max_id_attempts=3)
        with pytest.raises(UniquenessConflict):
            await service.submit(_fields())
        assert store.insert_attempts == ["NS202603011200000001", "NS202603011200000002", "NS202603011200000003"]

    async def test_initialise_continues_after_existing_records(self) -> None:
        store = InMemoryComplaintStore()
        engine = ComplaintLifecycleEngine()
        for n in range(1, 4):
            await store.save(engine.create(_fields(), complaint_id=f"OLD{n}"))

        service = _build(store)
        await service.initialise()
        complaint = await service.submit(_fields())
        assert complaint.complaint_id == "NS202603011200000004"


# -----------------------------------------------------------------------
# Writes to existing complaints
# -----------------------------------------------------------------------


class TestWrites:
    async def test_transition_persists(self, service: ComplaintService) -> None:
        created = await service.submit(_fields())
        updated = await service.transition(created.complaint_id, "acknowledged", "reviewed", "moderator-1")
        assert updated.status == ComplaintStatus.ACKNOWLEDGED

        stored = await service.get(created.complaint_id)
        assert stored.status == ComplaintStatus.ACKNOWLEDGED
        assert [e.note for e in stored.status_history] == ["Complaint submitted", "reviewed"]
        assert stored.version == 2

    async def test_unknown_complaint(self, service: ComplaintService) -> None:
        with pytest.raises(ComplaintNotFoundError):
            await service.get("NS0000000000")
        with pytest.raises(ComplaintNotFoundError):
            await service.transition("NS0000000000", "acknowledged")

    async def test_rejected_transition_leaves_store_untouched(self, service: ComplaintService) -> None:
        created = await service.submit(_fields())
        await service.transition(created.complaint_id, "closed")
        with pytest.raises(InvalidTransitionError):
            await service.transition(created.complaint_id, "in_progress")

        stored = await service.get(created.complaint_id)
        assert stored.status == ComplaintStatus.CLOSED
        assert len(stored.status_history) == 2

    async def test_idempotent_terminal_is_not_saved(self, service: ComplaintService) -> None:
        created = await service.submit(_fields())
        await service.transition(created.complaint_id, "rejected")
        again = await service.transition(created.complaint_id, "rejected")
        assert again.version == 2
        assert len((await service.get(created.complaint_id)).status_history) == 2

    async def test_assign_and_comment(self, service: ComplaintService) -> None:
        created = await service.submit(_fields())
        await service.assign(created.complaint_id, assigned_to="officer-7", department_id="dept-police")
        await service.add_comment(created.complaint_id, "Patrol informed", author_id="officer-7", is_internal=True)

        stored = await service.get(created.complaint_id)
        assert stored.assigned_to == "officer-7"
        assert stored.department_id == "dept-police"
        assert [c.comment for c in stored.comments] == ["Patrol informed"]
        assert stored.version == 3
        assert stored.status == ComplaintStatus.SUBMITTED

    async def test_concurrent_transitions_are_serialized(self) -> None:
        service = _build(YieldingStore())
        created = await service.submit(_fields())
        targets = ["acknowledged" if i % 2 == 0 else "in_progress" for i in range(20)]

        await asyncio.gather(
            *(service.transition(created.complaint_id, target, actor=f"m-{i}") for i, target in enumerate(targets))
        )

        stored = await service.get(created.complaint_id)
        assert len(stored.status_history) == 21, "one entry per accepted transition plus creation"
        assert [e.status.value for e in stored.status_history] == ["submitted", *targets]
        assert [e.actor_reference for e in stored.status_history[1:]] == [f"m-{i}" for i in range(20)]
        assert stored.version == 21
        assert stored.status_history[-1].status == stored.status
        assert ComplaintLifecycleEngine.audit(stored) == []

    async def test_concurrent_terminal_resends_record_once(self) -> None:
        service = _build(YieldingStore())
        created = await service.submit(_fields())
        await asyncio.gather(*(service.transition(created.complaint_id, "closed") for _ in range(5)))

        stored = await service.get(created.complaint_id)
        assert [e.status.value for e in stored.status_history] == ["submitted", "closed"]


# -----------------------------------------------------------------------
# Reporting
# -----------------------------------------------------------------------


class TestReporting:
    async def test_list_by_scope(self, service: ComplaintService) -> None:
        await service.submit(_fields(user_id="citizen-1", department_id="dept-police"))
        await service.submit(_fields(user_id="citizen-2"))
        await service.submit(_fields(user_id="citizen-1"))

        assert len(await service.list_complaints()) == 3
        assert len(await service.list_complaints(StatsScope.for_reporter("citizen-1"))) == 2
        assert len(await service.list_complaints(StatsScope.for_department("dept-police"))) == 1

    async def test_list_is_newest_first(self, service: ComplaintService) -> None:
        first = await service.submit(_fields(title="First"))
        second = await service.submit(_fields(title="Second"))
        third = await service.submit(_fields(title="Third"))
        listed = await service.list_complaints()
        assert [c.complaint_id for c in listed] == [third.complaint_id, second.complaint_id, first.complaint_id]

    async def test_list_filters(self, service: ComplaintService) -> None:
        noise = await service.submit(_fields(priority="urgent"))
        water = await service.submit(_fields(category="Water Supply", priority="urgent", user_id="citizen-1"))
        await service.submit(_fields(category="Water Supply", priority="low", user_id="citizen-1"))
        await service.transition(noise.complaint_id, "resolved")

        by_status = await service.list_complaints(status="resolved")
        assert [c.complaint_id for c in by_status] == [noise.complaint_id]

        by_category_and_priority = await service.list_complaints(category="Water Supply", priority="urgent")
        assert [c.complaint_id for c in by_category_and_priority] == [water.complaint_id]

        scoped = await service.list_complaints(StatsScope.for_reporter("citizen-1"), priority="low")
        assert len(scoped) == 1
        assert scoped[0].priority == "low"

        assert await service.list_complaints(status=ComplaintStatus.CLOSED) == []

    async def test_list_rejects_unknown_filter_values(self, service: ComplaintService) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.list_complaints(status="escalated", category="Aliens")
        assert set(exc_info.value.field_errors) == {"status", "category"}

    async def test_writes_invalidate_stats(self, service: ComplaintService) -> None:
        created = await service.submit(_fields())
        assert (await service.stats()).by_status["submitted"] == 1

        await service.transition(created.complaint_id, "in_progress")
        summary = await service.stats()
        assert summary.by_status["submitted"] == 0
        assert summary.by_status["in_progress"] == 1

        await service.submit(_fields())
        assert (await service.stats()).total == 2

    async def test_noise_complaint_end_to_end(self, service: ComplaintService) -> None:
        created = await service.submit(_fields(category="Noise"))
        assert created.status == ComplaintStatus.SUBMITTED

        await service.transition(created.complaint_id, "acknowledged", "reviewed")
        resolved = await service.transition(created.complaint_id, "resolved")
        assert resolved.resolved_at is not None
        assert [e.status.value for e in resolved.status_history] == ["submitted", "acknowledged", "resolved"]
        assert resolved.status_history[1].note == "reviewed"

        summary = await service.stats()
        assert summary.total == 1
        assert summary.by_status == {
            "submitted": 0,
            "acknowledged": 0,
            "in_progress": 0,
            "resolved": 1,
            "closed": 0,
            "rejected": 0,
        }
