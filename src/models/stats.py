"""Dashboard statistics models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, model_validator

from src.models.enums import StatsScopeKind


class StatsScope(BaseModel):
    """Selects which complaints a summary covers.

    ``global`` covers everything; ``reporter`` filters on the reporter's
    ``user_id`` and ``department`` on ``department_id``.
    """

    model_config = {"frozen": True}

    kind: StatsScopeKind = StatsScopeKind.GLOBAL
    value: str | None = None

    @model_validator(mode="after")
    def _value_matches_kind(self) -> StatsScope:
        if self.kind == StatsScopeKind.GLOBAL and self.value is not None:
            raise ValueError("global scope takes no value")
        if self.kind != StatsScopeKind.GLOBAL and not self.value:
            raise ValueError(f"{self.kind} scope requires a value")
        return self

    @classmethod
    def everything(cls) -> StatsScope:
        return cls()

    @classmethod
    def for_reporter(cls, user_id: str) -> StatsScope:
        return cls(kind=StatsScopeKind.REPORTER, value=user_id)

    @classmethod
    def for_department(cls, department_id: str) -> StatsScope:
        return cls(kind=StatsScopeKind.DEPARTMENT, value=department_id)

    @property
    def cache_key(self) -> str:
        return f"{self.kind}:{self.value or '*'}"


class StatsSummary(BaseModel):
    """Point-in-time complaint counts for one scope.

    ``by_status`` and ``by_priority`` always contain every enumerated
    value, zero-filled, and each sums to ``total``.
    """

    scope: StatsScope
    total: int = 0
    by_status: dict[str, int]
    by_priority: dict[str, int]
    urgent: int = 0
    high_priority: int = 0
    average_resolution_days: float | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
