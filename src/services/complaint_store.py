"""Complaint storage contract and an in-memory implementation.

The store is the last line of defence for three invariants:

* a saved complaint is well formed -- in particular its status history is
  non-empty and ends with the current status -- or
  :class:`ValidationError` is raised;
* identifiers are unique across all time -- inserting an identifier that
  exists, or that was hard-deleted earlier, raises
  :class:`UniquenessConflict`;
* updates are not lost -- saving a complaint whose ``version`` is not
  exactly one ahead of the stored copy raises
  :class:`StaleComplaintError`.

Records are kept as orjson snapshots so that loaded complaints never
alias stored state.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

import orjson
import pydantic
import structlog

from src.models.complaint import Complaint
from src.services.errors import (
    ComplaintNotFoundError,
    StaleComplaintError,
    UniquenessConflict,
    ValidationError,
)

logger = structlog.get_logger(__name__)


@runtime_checkable
class ComplaintStore(Protocol):
    """Async persistence interface consumed by the complaint service."""

    async def count_existing(self) -> int: ...

    async def load_by_id(self, complaint_id: str) -> Complaint | None: ...

    async def save(self, complaint: Complaint) -> None: ...

    async def list_all(self) -> list[Complaint]: ...

    async def delete(self, complaint_id: str) -> None: ...


def _dump(complaint: Complaint) -> bytes:
    return orjson.dumps(complaint.model_dump(mode="json"))


def _load(raw: bytes) -> Complaint:
    return Complaint.model_validate(orjson.loads(raw))


class InMemoryComplaintStore:
    """Dict-backed store for development, tests and the demo seed.

    Individual operations are atomic with respect to each other via an
    :class:`asyncio.Lock`.  Insertion order is preserved by
    :meth:`list_all`.
    """

    __slots__ = ("_issued_ids", "_lock", "_records")

    def __init__(self) -> None:
        self._records: dict[str, bytes] = {}
        self._issued_ids: set[str] = set()
        self._lock = asyncio.Lock()

    async def count_existing(self) -> int:
        async with self._lock:
            return len(self._records)

    async def load_by_id(self, complaint_id: str) -> Complaint | None:
        async with self._lock:
            raw = self._records.get(complaint_id)
        return _load(raw) if raw is not None else None

    async def save(self, complaint: Complaint) -> None:
        """Insert a new complaint (``version == 1``) or update an existing one."""
        raw = _dump(complaint)
        try:
            _load(raw)
        except pydantic.ValidationError as exc:
            logger.warning("store.invalid_complaint", complaint_id=complaint.complaint_id)
            raise ValidationError.from_pydantic(exc) from exc
        complaint_id = complaint.complaint_id
        async with self._lock:
            stored = self._records.get(complaint_id)
            if complaint.version == 1:
                if complaint_id in self._issued_ids:
                    logger.warning("store.uniqueness_conflict", complaint_id=complaint_id)
                    raise UniquenessConflict(complaint_id)
                self._issued_ids.add(complaint_id)
            elif stored is None:
                raise ComplaintNotFoundError(complaint_id)
            else:
                stored_version = orjson.loads(stored)["version"]
                if stored_version != complaint.version - 1:
                    logger.warning(
                        "store.stale_write",
                        complaint_id=complaint_id,
                        stored_version=stored_version,
                        incoming_version=complaint.version,
                    )
                    raise StaleComplaintError(complaint_id, complaint.version - 1, stored_version)
            self._records[complaint_id] = raw

    async def list_all(self) -> list[Complaint]:
        async with self._lock:
            snapshots = list(self._records.values())
        return [_load(raw) for raw in snapshots]

    async def delete(self, complaint_id: str) -> None:
        """Administrative hard delete.  The identifier stays reserved."""
        async with self._lock:
            if self._records.pop(complaint_id, None) is None:
                raise ComplaintNotFoundError(complaint_id)
        logger.warning("store.complaint_deleted", complaint_id=complaint_id)

    def __len__(self) -> int:
        return len(self._records)
