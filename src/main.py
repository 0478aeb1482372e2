"""NaiyakSetu complaint core entry point.

Configures structured logging and wires the complaint services together.
The HTTP layer (out of this package) calls :func:`bootstrap` once at
startup and keeps the returned :class:`AppServices` for the lifetime of
the process.

Running ``python -m src.main`` seeds the demo complaints into an
in-memory store and logs the resulting dashboard summary.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import structlog

from config.settings import Settings, settings
from src.services.complaint_id import ComplaintIdGenerator
from src.services.complaint_store import ComplaintStore, InMemoryComplaintStore
from src.services.complaints import ComplaintService
from src.services.lifecycle import ComplaintLifecycleEngine
from src.services.sequence import SequenceProvider
from src.services.stats import ComplaintStatsService

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def configure_logging(config: Settings = settings) -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(config.log_level),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Service wiring
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class AppServices:
    """Long-lived service instances shared by request handlers."""

    store: ComplaintStore
    sequence: SequenceProvider
    engine: ComplaintLifecycleEngine
    stats: ComplaintStatsService
    complaints: ComplaintService

    async def close(self) -> None:
        await self.sequence.close()


async def bootstrap(
    config: Settings = settings,
    *,
    store: ComplaintStore | None = None,
) -> AppServices:
    """Build and initialise all complaint services.

    Parameters
    ----------
    config:
        Settings to wire from.  Defaults to the module-level singleton.
    store:
        Persistence collaborator.  Defaults to an in-memory store.
    """
    store = store if store is not None else InMemoryComplaintStore()
    sequence = SequenceProvider(redis_url=config.redis_url or None)
    engine = ComplaintLifecycleEngine(allow_reopen_resolved=config.allow_reopen_resolved)
    stats = ComplaintStatsService(store, ttl_seconds=config.stats_cache_ttl)
    complaints = ComplaintService(
        store=store,
        sequence=sequence,
        engine=engine,
        id_generator=ComplaintIdGenerator(
            prefix=config.complaint_id_prefix,
            sequence_width=config.complaint_sequence_width,
        ),
        stats=stats,
        max_id_attempts=config.complaint_id_max_attempts,
    )
    await complaints.initialise()

    logger.info(
        "app.services_initialised",
        env=config.env,
        redis_sequence=sequence.using_redis,
        reopen_resolved=config.allow_reopen_resolved,
    )
    return AppServices(
        store=store,
        sequence=sequence,
        engine=engine,
        stats=stats,
        complaints=complaints,
    )


async def _run_demo() -> None:
    from src.data.seed import seed_demo_complaints

    services = await bootstrap()
    try:
        await seed_demo_complaints(services.complaints)
        summary = await services.complaints.stats()
        logger.info("app.demo_summary", **summary.model_dump(mode="json", exclude={"scope"}))
    finally:
        await services.close()


def main() -> None:
    configure_logging()
    asyncio.run(_run_demo())


if __name__ == "__main__":
    main()
