"""
PostgreSQL entity store on SQLAlchemy 2.0 async.
Relies on unique constraints for idempotence and uses
INSERT ... ON CONFLICT DO NOTHING for beatmaps and players.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import Select, and_, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import selectinload

from shared.models.enums import ProcessingStatus, RejectionReason, VerificationStatus
from shared.models.orm import BeatmapORM, GameORM, GameScoreORM, MatchORM, PlayerORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger

from ingest.requeue import reset_for_requeue
from ingest.store.base import EntityStore, merge_match_graph
from verifier.state_machine import resolve_processing

logger = get_logger(__name__)

PENDING_PROCESSING = [ProcessingStatus.NOT_PROCESSED.value, ProcessingStatus.MATERIALIZED.value]
# Rejected matches wait for an operator; verified ones may still need their data populated.
ELIGIBLE_VERIFICATION = [VerificationStatus.PENDING.value, VerificationStatus.VERIFIED.value]

_BEATMAP_COLUMNS = [c.key for c in BeatmapORM.__table__.columns if c.key not in ("id", "created_at")]


def pending_match_query(
    claim_lease_s: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Select[tuple[MatchORM]]:
    """
    Earliest-created eligible match first.

    With a lease, a FETCHING match whose claim is older than `claim_lease_s`
    (or has no claim time) is eligible again: its worker died mid-match.
    """
    processing = MatchORM.processing_status.in_(PENDING_PROCESSING)
    if claim_lease_s is not None:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(seconds=claim_lease_s)
        processing = or_(
            processing,
            and_(
                MatchORM.processing_status == ProcessingStatus.FETCHING.value,
                or_(MatchORM.claimed_at.is_(None), MatchORM.claimed_at < cutoff),
            ),
        )
    return (
        select(MatchORM)
        .where(processing, MatchORM.verification_status.in_(ELIGIBLE_VERIFICATION))
        .order_by(MatchORM.id)
        .limit(1)
    )


def beatmap_insert_statement(beatmaps: list[BeatmapORM]) -> Any:
    rows = [{col: getattr(b, col) for col in _BEATMAP_COLUMNS} for b in beatmaps]
    return (
        pg_insert(BeatmapORM)
        .values(rows)
        .on_conflict_do_nothing(index_elements=[BeatmapORM.osu_id])
        .returning(BeatmapORM.osu_id)
    )


def player_insert_statement(osu_ids: Iterable[int]) -> Any:
    return (
        pg_insert(PlayerORM)
        .values([{"osu_id": osu_id} for osu_id in sorted(set(osu_ids))])
        .on_conflict_do_nothing(index_elements=[PlayerORM.osu_id])
    )


class SqlEntityStore(EntityStore):
    """Entity store backed by the DatabaseManager session factory."""

    def __init__(
        self,
        db: DatabaseManager,
        atomic_claim: bool = False,
        claim_lease_s: Optional[float] = 600.0,
    ) -> None:
        self._db = db
        self._atomic_claim = atomic_claim
        self._claim_lease_s = claim_lease_s

    async def find_next_pending_match(self) -> Optional[MatchORM]:
        stmt = pending_match_query(self._claim_lease_s)
        if not self._atomic_claim:
            async with self._db.read_session() as session:
                return (await session.execute(stmt)).scalar_one_or_none()

        # Multiple workers: lock the row, flip it to FETCHING, and commit so no
        # other instance can claim it until the lease runs out.
        async with self._db.write_session() as session:
            match = (await session.execute(stmt.with_for_update(skip_locked=True))).scalar_one_or_none()
            if match is not None:
                match.processing_status = resolve_processing(
                    match.processing_status, ProcessingStatus.FETCHING
                ).value
                match.claimed_at = datetime.now(timezone.utc)
                logger.debug("match_claimed", osu_match_id=match.osu_id)
            return match

    async def existing_beatmap_ids(self, osu_ids: Iterable[int]) -> set[int]:
        ids = set(osu_ids)
        if not ids:
            return set()
        async with self._db.read_session() as session:
            result = await session.execute(select(BeatmapORM.osu_id).where(BeatmapORM.osu_id.in_(ids)))
            return set(result.scalars().all())

    async def insert_beatmaps(self, beatmaps: list[BeatmapORM]) -> int:
        if not beatmaps:
            return 0
        async with self._db.write_session() as session:
            result = await session.execute(beatmap_insert_statement(beatmaps))
            inserted = len(result.all())
        if inserted < len(beatmaps):
            logger.info("beatmaps_already_present", skipped=len(beatmaps) - inserted)
        return inserted

    async def get_beatmap_ids(self, osu_ids: Iterable[int]) -> dict[int, int]:
        ids = set(osu_ids)
        if not ids:
            return {}
        async with self._db.read_session() as session:
            result = await session.execute(
                select(BeatmapORM.osu_id, BeatmapORM.id).where(BeatmapORM.osu_id.in_(ids))
            )
            return {row.osu_id: row.id for row in result.all()}

    async def get_or_create_players(self, osu_ids: Iterable[int]) -> dict[int, int]:
        ids = set(osu_ids)
        if not ids:
            return {}
        async with self._db.write_session() as session:
            await session.execute(player_insert_statement(ids))
            result = await session.execute(
                select(PlayerORM.osu_id, PlayerORM.id).where(PlayerORM.osu_id.in_(ids))
            )
            return {row.osu_id: row.id for row in result.all()}

    async def persist_match_graph(self, match: MatchORM) -> MatchORM:
        async with self._db.write_session() as session:
            stmt = (
                select(MatchORM)
                .options(selectinload(MatchORM.games).selectinload(GameORM.scores))
                .where(MatchORM.osu_id == match.osu_id)
            )
            existing = (await session.execute(stmt)).scalar_one_or_none()
            if existing is None:
                match.processing_status = resolve_processing(
                    match.processing_status, ProcessingStatus.MATERIALIZED
                ).value
                session.add(match)
                await session.flush()
                return match

            existing.processing_status = resolve_processing(
                existing.processing_status, ProcessingStatus.MATERIALIZED
            ).value
            existing.updated_at = datetime.now(timezone.utc)
            added_games, added_scores = merge_match_graph(existing, match)

            await session.flush()
            logger.debug(
                "match_graph_merged",
                osu_match_id=existing.osu_id,
                added_games=added_games,
                added_scores=added_scores,
            )
            return existing

    async def update_verification_state(
        self,
        match: MatchORM,
        processing_status: ProcessingStatus,
        verification_status: VerificationStatus,
        rejection_reason: RejectionReason,
    ) -> None:
        processing = resolve_processing(match.processing_status, processing_status)

        game_rows = [
            {"id": g.id, "verification_status": g.verification_status, "rejection_reason": g.rejection_reason}
            for g in match.games
        ]
        score_rows = [
            {
                "id": s.id,
                "is_valid": s.is_valid,
                "verification_status": s.verification_status,
                "rejection_reason": s.rejection_reason,
            }
            for g in match.games
            for s in g.scores
        ]

        async with self._db.write_session() as session:
            await session.execute(
                update(MatchORM)
                .where(MatchORM.id == match.id)
                .values(
                    processing_status=processing.value,
                    verification_status=verification_status.value,
                    rejection_reason=rejection_reason.value,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if game_rows:
                await session.execute(update(GameORM), game_rows)
            if score_rows:
                await session.execute(update(GameScoreORM), score_rows)

        match.processing_status = processing.value
        match.verification_status = verification_status.value
        match.rejection_reason = rejection_reason.value

    async def mark_failed(self, match: MatchORM) -> None:
        processing = resolve_processing(match.processing_status, ProcessingStatus.FAILED)
        async with self._db.write_session() as session:
            await session.execute(
                update(MatchORM)
                .where(MatchORM.id == match.id)
                .values(
                    processing_status=processing.value,
                    failure_count=MatchORM.failure_count + 1,
                    updated_at=datetime.now(timezone.utc),
                )
            )
        match.processing_status = processing.value
        match.failure_count = (match.failure_count or 0) + 1

    async def requeue_match(self, osu_id: int) -> bool:
        async with self._db.write_session() as session:
            match = (
                await session.execute(select(MatchORM).where(MatchORM.osu_id == osu_id))
            ).scalar_one_or_none()
            if match is None:
                return False
            reset_for_requeue(match)
            match.updated_at = datetime.now(timezone.utc)
        logger.info("match_requeued", osu_match_id=osu_id)
        return True
