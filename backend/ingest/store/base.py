"""
Entity store contract consumed by the ingestion pipeline.
Durable storage for matches, games, scores, beatmaps and players.
"""
from __future__ import annotations

import abc
from typing import Iterable, Optional

from shared.models.enums import ProcessingStatus, RejectionReason, VerificationStatus
from shared.models.orm import BeatmapORM, GameORM, GameScoreORM, MatchORM

GAME_REFRESH_FIELDS = (
    "beatmap_osu_id",
    "beatmap_id",
    "ruleset",
    "scoring_type",
    "team_type",
    "mods",
    "start_time",
    "end_time",
)
SCORE_REFRESH_FIELDS = (
    "player_osu_id",
    "slot",
    "team",
    "score",
    "max_combo",
    "count_50",
    "count_100",
    "count_300",
    "count_miss",
    "count_katu",
    "count_geki",
    "perfect",
    "passed",
    "mods",
)


def _refresh(stored: object, fresh: object, fields: tuple[str, ...]) -> None:
    for field in fields:
        setattr(stored, field, getattr(fresh, field))


def merge_match_graph(existing: MatchORM, incoming: MatchORM) -> tuple[int, int]:
    """
    Fold a freshly materialized graph into the stored one.

    Games are matched on osu_id and scores on (game, player). Matched rows get
    the payload fields refreshed, so a game stored before its beatmap existed
    picks up the beatmap reference on the next run; unmatched rows are moved
    into the stored graph. Verdicts are left alone. Returns (added games,
    added scores).
    """
    existing.name = incoming.name
    existing.start_time = incoming.start_time
    existing.end_time = incoming.end_time

    stored_games: dict[int, GameORM] = {g.osu_id: g for g in existing.games}
    added_games = added_scores = 0
    for game in list(incoming.games):
        stored = stored_games.get(game.osu_id)
        if stored is None:
            existing.games.append(game)
            added_games += 1
            continue
        _refresh(stored, game, GAME_REFRESH_FIELDS)
        stored_scores: dict[int, GameScoreORM] = {s.player_id: s for s in stored.scores}
        for score in list(game.scores):
            current = stored_scores.get(score.player_id)
            if current is None:
                stored.scores.append(score)
                added_scores += 1
            else:
                _refresh(current, score, SCORE_REFRESH_FIELDS)
    return added_games, added_scores


class EntityStore(abc.ABC):
    """
    Abstract entity store.

    External osu! identifiers are unique. Every write is idempotent on them,
    and a unique-constraint conflict means "already exists", never an error.
    """

    @abc.abstractmethod
    async def find_next_pending_match(self) -> Optional[MatchORM]:
        """
        Return the earliest-created match that still needs data and has not
        been rejected, or None when the queue is empty.
        """
        ...

    @abc.abstractmethod
    async def existing_beatmap_ids(self, osu_ids: Iterable[int]) -> set[int]:
        """Subset of the given external beatmap ids that are already stored."""
        ...

    @abc.abstractmethod
    async def insert_beatmaps(self, beatmaps: list[BeatmapORM]) -> int:
        """Bulk insert; conflicts on osu_id are skipped. Returns rows actually inserted."""
        ...

    @abc.abstractmethod
    async def get_beatmap_ids(self, osu_ids: Iterable[int]) -> dict[int, int]:
        """Map external beatmap id -> stored beatmap primary key, for the ids that exist."""
        ...

    @abc.abstractmethod
    async def get_or_create_players(self, osu_ids: Iterable[int]) -> dict[int, int]:
        """Map external player id -> stored player primary key, creating players on first reference."""
        ...

    @abc.abstractmethod
    async def persist_match_graph(self, match: MatchORM) -> MatchORM:
        """
        Write a materialized match graph in one transaction.

        Idempotent on the match osu_id, game osu_id and (game, player) score
        identity: re-persisting the same graph never duplicates rows, and
        already stored rows take the payload fields of the new graph (see
        `merge_match_graph`). Returns the stored graph with games and scores
        loaded.
        """
        ...

    @abc.abstractmethod
    async def update_verification_state(
        self,
        match: MatchORM,
        processing_status: ProcessingStatus,
        verification_status: VerificationStatus,
        rejection_reason: RejectionReason,
    ) -> None:
        """Persist the match outcome together with every game and score verdict in the graph."""
        ...

    @abc.abstractmethod
    async def mark_failed(self, match: MatchORM) -> None:
        """Set processing status to FAILED and bump failure_count; verification is left unchanged."""
        ...

    @abc.abstractmethod
    async def requeue_match(self, osu_id: int) -> bool:
        """
        Operator hook: reset a failed or rejected match to NOT_PROCESSED/PENDING
        with no rejection reason. Returns False if the match does not exist.
        """
        ...
