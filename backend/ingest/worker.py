"""
Match data worker.
Polls the entity store for the next pending match, fetches it from the
external source, materializes and persists it, runs the automation checks
and records the verdict. One match at a time, until shutdown.
"""
from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

from shared.config import Settings, get_settings
from shared.models.enums import ProcessingStatus, VerificationStatus
from shared.models.orm import MatchORM
from shared.utils.logging import get_logger, match_log_context
from shared.utils.metrics import MATCH_PROCESSING, MATCHES_PROCESSED, atrack_latency

from ingest.errors import IngestError, SourceUnavailableError
from ingest.materializer import MatchMaterializer
from ingest.requeue import ManualRequeuePolicy, RequeuePolicy
from ingest.sources.base import MatchSource
from ingest.store.base import EntityStore
from verifier.engine import AutomationCheckEngine
from verifier.state_machine import resolve_match

logger = get_logger(__name__)


class MatchDataWorker:
    """
    The ingestion loop.

    Nothing escapes a single match: errors are logged, the match is marked
    failed and the loop moves on. Only cancellation propagates.
    """

    def __init__(
        self,
        store: EntityStore,
        source: MatchSource,
        materializer: MatchMaterializer,
        engine: AutomationCheckEngine,
        requeue_policy: Optional[RequeuePolicy] = None,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._source = source
        self._materializer = materializer
        self._engine = engine
        self._requeue_policy = requeue_policy or ManualRequeuePolicy()
        self._settings = settings or get_settings()
        self._shutdown = asyncio.Event()
        self._last_poll: Optional[float] = None
        self._processed = 0

    @property
    def idle_interval_s(self) -> float:
        return self._settings.worker_idle_interval_s

    def request_shutdown(self) -> None:
        self._shutdown.set()

    def health(self) -> dict[str, Any]:
        """Liveness probe: unhealthy once the loop has not polled for a while."""
        stale_after = max(60.0, 10 * self.idle_interval_s)
        since_poll = None if self._last_poll is None else time.monotonic() - self._last_poll
        return {
            "ok": since_poll is None or since_poll < stale_after,
            "seconds_since_poll": since_poll,
            "matches_processed": self._processed,
        }

    async def run(self) -> None:
        """Process matches until shutdown is requested; idle-wait when the queue is empty."""
        logger.info("worker_started", idle_interval_s=self.idle_interval_s)
        while not self._shutdown.is_set():
            try:
                processed = await self.process_next()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                # Store unreachable while claiming; back off like an empty queue.
                logger.error("worker_iteration_error", error=str(exc), exc_info=True)
                processed = False
            if not processed:
                await self._idle_wait()
        logger.info("worker_stopped")

    async def _idle_wait(self) -> None:
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=self.idle_interval_s)
        except asyncio.TimeoutError:
            pass

    async def process_next(self) -> bool:
        """Handle the next pending match. Returns False when the queue is empty."""
        match = await self._store.find_next_pending_match()
        self._last_poll = time.monotonic()
        if match is None:
            return False
        await self.process_match(match)
        return True

    async def process_match(self, match: MatchORM) -> None:
        outcome = "failed"
        with match_log_context(match.osu_id):
            try:
                async with atrack_latency(MATCH_PROCESSING):
                    status = await self._process(match)
                outcome = status.value
            except asyncio.CancelledError:
                outcome = "cancelled"
                raise
            except IngestError as exc:
                outcome = exc.outcome
                logger.warning("match_ingest_failed", error=str(exc), error_type=type(exc).__name__)
                await self._fail(match)
            except Exception as exc:
                logger.error("match_processing_error", error=str(exc), exc_info=True)
                await self._fail(match)
            finally:
                self._processed += 1
                MATCHES_PROCESSED.labels(outcome=outcome).inc()

    async def _process(self, match: MatchORM) -> VerificationStatus:
        result = await self._source.fetch_match(match.osu_id)
        if not result.found:
            raise SourceUnavailableError(match.osu_id, result.error or result.status.value)

        graph = await self._materializer.materialize(match, result.data)
        stored = await self._store.persist_match_graph(graph)

        prior = VerificationStatus(stored.verification_status)
        reason = self._engine.check_match_tree(stored)
        status, reason = resolve_match(prior, reason)

        await self._store.update_verification_state(stored, ProcessingStatus.DONE, status, reason)
        logger.info(
            "match_processed",
            name=stored.name,
            verification_status=status.value,
            rejection_reason=reason.value,
            games=len(stored.games),
        )
        return status

    async def _fail(self, match: MatchORM) -> None:
        await self._store.mark_failed(match)
        if self._requeue_policy.should_requeue(match):
            await self._store.requeue_match(match.osu_id)
            logger.info("match_auto_requeued", failure_count=match.failure_count)
