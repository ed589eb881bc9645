"""
Ingest worker entrypoint.
Wires the osu! API source, the PostgreSQL entity store and the automation
checks into the match data worker and runs it until SIGINT/SIGTERM.
"""
from __future__ import annotations

import asyncio
import signal

from shared.config import Settings, get_settings
from shared.utils.database import DatabaseManager
from shared.utils.health_server import start_health_server
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from ingest.beatmaps import BeatmapDeduplicator
from ingest.materializer import MatchMaterializer
from ingest.requeue import policy_from_settings
from ingest.sources.base import MatchSource
from ingest.sources.osu import OsuApiSource
from ingest.store.base import EntityStore
from ingest.store.sql import SqlEntityStore
from ingest.worker import MatchDataWorker
from verifier.engine import AutomationCheckEngine

logger = get_logger(__name__)

# Retry connection on startup (e.g. Postgres not ready yet in Docker)
CONNECT_RETRY_ATTEMPTS = 10
CONNECT_RETRY_BASE_DELAY_S = 2.0


async def _connect_with_retry(connect_fn, name: str) -> None:
    """Call async connect_fn(); retry with exponential backoff on failure."""
    for attempt in range(1, CONNECT_RETRY_ATTEMPTS + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == CONNECT_RETRY_ATTEMPTS:
                raise
            delay = CONNECT_RETRY_BASE_DELAY_S * (2 ** (attempt - 1))
            logger.warning(
                "connect_retry",
                name=name,
                attempt=attempt,
                max_attempts=CONNECT_RETRY_ATTEMPTS,
                delay_s=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)


def build_worker(store: EntityStore, source: MatchSource, settings: Settings) -> MatchDataWorker:
    """Assemble the worker and its pipeline components."""
    deduplicator = BeatmapDeduplicator(store, source)
    return MatchDataWorker(
        store=store,
        source=source,
        materializer=MatchMaterializer(store, deduplicator),
        engine=AutomationCheckEngine(),
        requeue_policy=policy_from_settings(settings),
        settings=settings,
    )


async def main() -> None:
    settings = get_settings()
    setup_logging("ingest", settings)
    start_metrics_server()

    if not settings.osu_api_key:
        logger.warning("osu_api_key_missing")

    db = DatabaseManager(settings)
    await _connect_with_retry(db.connect, "Database")
    if settings.db_create_schema:
        await db.create_schema()

    source = OsuApiSource(settings)
    await source.start()
    store = SqlEntityStore(
        db,
        atomic_claim=settings.worker_atomic_claim,
        claim_lease_s=settings.worker_claim_lease_s,
    )
    worker = build_worker(store, source, settings)
    health = start_health_server("ingest", probe=worker.health)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, worker.request_shutdown)
        except (ValueError, OSError, RuntimeError, NotImplementedError) as exc:
            logger.warning("signal_handler_unavailable", signal=sig, error=str(exc))

    logger.info("ingest_service_started", atomic_claim=settings.worker_atomic_claim)
    try:
        await worker.run()
    finally:
        if health is not None:
            health.shutdown()
        await source.close()
        await db.disconnect()
        logger.info("ingest_service_stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
