"""Complaint identifier formatting.

Identifiers look like ``NS202603011200000042``: a fixed prefix, the UTC
issue time to the second (``YYYYMMDDHHMMSS``) and the sequence value
zero-padded to the configured width (wider values are kept in full).
The time component never wraps, so identifiers sort by issue time;
identifiers issued within the same second sort by sequence.

The generator is a pure function of its inputs.  It yields unique
identifiers only when fed unique sequence values, which is why the
sequence comes from :class:`~src.services.sequence.SequenceProvider`
(an atomic counter) and the store rejects duplicates.
"""

from __future__ import annotations

from datetime import UTC, datetime

_TIME_FORMAT = "%Y%m%d%H%M%S"
_TIME_DIGITS = 14


class ComplaintIdGenerator:
    """Formats complaint identifiers from a sequence value and issue time."""

    __slots__ = ("_prefix", "_width")

    def __init__(self, prefix: str = "NS", sequence_width: int = 4) -> None:
        if not prefix:
            raise ValueError("prefix must not be empty")
        if sequence_width < 1:
            raise ValueError("sequence_width must be positive")
        self._prefix = prefix
        self._width = sequence_width

    @property
    def prefix(self) -> str:
        return self._prefix

    def next(self, sequence_count: int, issued_at: datetime) -> str:
        """Return the identifier for *sequence_count* issued at *issued_at*.

        Naive datetimes are taken to be UTC.
        """
        if sequence_count < 0:
            raise ValueError("sequence_count must not be negative")
        if issued_at.tzinfo is None:
            issued_at = issued_at.replace(tzinfo=UTC)
        time_part = issued_at.astimezone(UTC).strftime(_TIME_FORMAT).zfill(_TIME_DIGITS)
        return f"{self._prefix}{time_part}{str(sequence_count).zfill(self._width)}"

    def split(self, complaint_id: str) -> tuple[str, datetime, int]:
        """Break an identifier into ``(prefix, issued_at, sequence)``.

        ``issued_at`` is truncated to the second.

        Raises
        ------
        ValueError
            If *complaint_id* was not produced with this prefix.
        """
        if not complaint_id.startswith(self._prefix):
            raise ValueError(f"identifier {complaint_id!r} does not start with {self._prefix!r}")
        body = complaint_id[len(self._prefix) :]
        if len(body) < _TIME_DIGITS + self._width or not (body.isascii() and body.isdigit()):
            raise ValueError(f"malformed identifier {complaint_id!r}")
        issued_at = datetime.strptime(body[:_TIME_DIGITS], _TIME_FORMAT).replace(tzinfo=UTC)
        return self._prefix, issued_at, int(body[_TIME_DIGITS:])
