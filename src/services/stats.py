"""Complaint statistics for dashboards.

:func:`aggregate` is a pure, single-pass reduction over a snapshot of
complaints.  :class:`ComplaintStatsService` keeps the process-wide cache
of summaries: it is filled explicitly by :meth:`refresh`, expires after
``ttl_seconds`` and is cleared by :meth:`invalidate` whenever the
complaint service accepts a write.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from src.models.complaint import Complaint
from src.models.enums import ComplaintPriority, ComplaintStatus, StatsScopeKind
from src.models.stats import StatsScope, StatsSummary

if TYPE_CHECKING:
    from src.services.complaint_store import ComplaintStore

logger = structlog.get_logger(__name__)

_SECONDS_PER_DAY = 86_400


def in_scope(complaint: Complaint, scope: StatsScope) -> bool:
    if scope.kind == StatsScopeKind.REPORTER:
        return complaint.user_id == scope.value
    if scope.kind == StatsScopeKind.DEPARTMENT:
        return complaint.department_id == scope.value
    return True


def aggregate(records: Iterable[Complaint], scope: StatsScope | None = None) -> StatsSummary:
    """Count *records* matching *scope* by status and priority.

    Every status and priority appears in the result, zero-filled.
    Records are only read.
    """
    scope = scope or StatsScope.everything()
    by_status = dict.fromkeys((s.value for s in ComplaintStatus), 0)
    by_priority = dict.fromkeys((p.value for p in ComplaintPriority), 0)
    total = 0
    resolution_seconds = 0.0
    resolved_count = 0

    for complaint in records:
        if not in_scope(complaint, scope):
            continue
        total += 1
        by_status[complaint.status.value] += 1
        by_priority[complaint.priority.value] += 1
        if complaint.resolved_at is not None:
            resolution_seconds += (complaint.resolved_at - complaint.created_at).total_seconds()
            resolved_count += 1

    average_days = (
        round(resolution_seconds / resolved_count / _SECONDS_PER_DAY, 1) if resolved_count else None
    )
    return StatsSummary(
        scope=scope,
        total=total,
        by_status=by_status,
        by_priority=by_priority,
        urgent=by_priority[ComplaintPriority.URGENT.value],
        high_priority=by_priority[ComplaintPriority.HIGH.value],
        average_resolution_days=average_days,
        generated_at=datetime.now(UTC),
    )


class ComplaintStatsService:
    """Cached, scope-keyed stats summaries over a complaint store.

    Parameters
    ----------
    store:
        Read side used to take a snapshot on refresh.  May be a read
        replica; summaries are point-in-time approximations.
    ttl_seconds:
        How long a cached summary is served.  ``0`` disables caching.
    """

    __slots__ = ("_cache", "_clock", "_generation", "_lock", "_store", "_ttl")

    def __init__(
        self,
        store: ComplaintStore,
        *,
        ttl_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: dict[str, tuple[float, StatsSummary]] = {}
        self._generation = 0
        self._lock = asyncio.Lock()

    async def get(self, scope: StatsScope | None = None) -> StatsSummary:
        """Return the cached summary for *scope*, refreshing it if stale."""
        scope = scope or StatsScope.everything()
        cached = self._cache.get(scope.cache_key)
        if cached is not None and self._clock() < cached[0]:
            return cached[1]
        return await self.refresh(scope)

    async def refresh(self, scope: StatsScope | None = None) -> StatsSummary:
        """Recompute the summary for *scope* from a fresh store snapshot."""
        scope = scope or StatsScope.everything()
        async with self._lock:
            generation = self._generation
            records = await self._store.list_all()
            summary = aggregate(records, scope)
            # A write landed while we were reading; do not cache the old view.
            if self._ttl > 0 and generation == self._generation:
                self._cache[scope.cache_key] = (self._clock() + self._ttl, summary)
        logger.info("stats.refreshed", scope=scope.cache_key, total=summary.total)
        return summary

    def invalidate(self) -> None:
        """Drop every cached summary."""
        if self._cache:
            logger.debug("stats.invalidated", entries=len(self._cache))
        self._cache.clear()
        self._generation += 1

    @property
    def cached_scopes(self) -> list[str]:
        return list(self._cache)
