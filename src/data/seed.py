"""Demo data seeding for local development.

Loads sample complaints from the bundled ``demo_complaints.json`` and
replays them through :class:`~src.services.complaints.ComplaintService`
-- submission, assignment and status changes -- so the resulting records
carry real identifiers and audit trails.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import pydantic
import structlog

from src.models.complaint import Complaint, IdentityClaim
from src.services.errors import ComplaintError, ValidationError

if TYPE_CHECKING:
    from src.services.complaints import ComplaintService

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_DATA_DIR: Path = Path(__file__).resolve().parent / "complaints"
_DEMO_COMPLAINTS_PATH: Path = _DATA_DIR / "demo_complaints.json"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_demo_complaints(path: Path | None = None) -> list[dict]:
    """Read raw demo entries from a JSON file.

    Raises
    ------
    FileNotFoundError
        If the JSON file does not exist.
    json.JSONDecodeError
        If the JSON is malformed.
    """
    file_path = path or _DEMO_COMPLAINTS_PATH

    if not file_path.exists():
        raise FileNotFoundError(f"Demo complaint file not found: {file_path}")

    with file_path.open("r", encoding="utf-8") as f:
        entries: list[dict] = json.load(f)

    logger.info("seed.loaded_entries", count=len(entries), source=str(file_path))
    return entries


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


async def seed_demo_complaints(
    service: ComplaintService,
    *,
    path: Path | None = None,
) -> list[Complaint]:
    """Submit every demo entry and replay its assignment and transitions.

    Entries that the service rejects are logged and skipped so one bad
    sample does not abort the whole seed.
    """
    seeded: list[Complaint] = []
    for index, entry in enumerate(load_demo_complaints(path)):
        try:
            complaint = await _replay(service, entry)
        except ComplaintError:
            logger.warning("seed.entry_rejected", index=index, exc_info=True)
            continue
        seeded.append(complaint)

    logger.info("seed.complete", seeded=len(seeded))
    return seeded


async def _replay(service: ComplaintService, entry: dict) -> Complaint:
    identity = None
    if raw_identity := entry.get("identity"):
        try:
            identity = IdentityClaim.model_validate(raw_identity)
        except pydantic.ValidationError as exc:
            raise ValidationError.from_pydantic(exc) from exc
    complaint = await service.submit(entry["fields"], identity=identity, actor=entry["fields"].get("user_id"))

    if assignment := entry.get("assign"):
        complaint = await service.assign(complaint.complaint_id, **assignment, actor="seed")

    for step in entry.get("transitions", []):
        complaint = await service.transition(
            complaint.complaint_id,
            step["status"],
            note=step.get("note"),
            actor=step.get("actor"),
        )
    return complaint
