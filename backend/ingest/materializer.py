"""
Materialization of raw get_match payloads into the Match/Game/Score entity graph.
Nothing is written here except beatmaps and players; the graph is returned
unsaved so the caller can persist it in a single transaction.
"""
from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from shared.models.domain import ApiGame, ApiScore, MatchPayload
from shared.models.enums import Mods, RejectionReason, VerificationStatus
from shared.models.orm import GameORM, GameScoreORM, MatchORM
from shared.utils.logging import get_logger

from ingest.beatmaps import BeatmapDeduplicator
from ingest.errors import MaterializationError
from ingest.store.base import EntityStore

logger = get_logger(__name__)


def parse_match_payload(raw: Any, osu_match_id: int) -> MatchPayload:
    """Validate a raw payload; raises MaterializationError if it is unusable."""
    try:
        payload = MatchPayload.model_validate(raw)
    except ValidationError as exc:
        raise MaterializationError(f"match {osu_match_id}: invalid payload ({exc.error_count()} errors)") from exc
    if payload.match.match_id != osu_match_id:
        raise MaterializationError(
            f"match {osu_match_id}: payload is for match {payload.match.match_id}"
        )
    return payload


def _build_score(api_score: ApiScore, game_mods: int, player_id: int) -> GameScoreORM:
    # Free mod lobbies report per-player mods on the score and shared mods on the game.
    mods = Mods(game_mods) | Mods(api_score.enabled_mods or 0)
    return GameScoreORM(
        player_id=player_id,
        player_osu_id=api_score.user_id,
        slot=api_score.slot,
        team=api_score.team,
        score=api_score.total_score,
        max_combo=api_score.max_combo,
        count_50=api_score.count_50,
        count_100=api_score.count_100,
        count_300=api_score.count_300,
        count_miss=api_score.count_miss,
        count_katu=api_score.count_katu,
        count_geki=api_score.count_geki,
        perfect=api_score.perfect,
        passed=api_score.passed,
        mods=mods.value,
        is_valid=True,
        verification_status=VerificationStatus.PENDING.value,
        rejection_reason=RejectionReason.NONE.value,
    )


def _build_game(api_game: ApiGame, beatmap_ids: dict[int, int], player_ids: dict[int, int]) -> GameORM:
    game = GameORM(
        osu_id=api_game.game_id,
        beatmap_osu_id=api_game.beatmap_id,
        beatmap_id=beatmap_ids.get(api_game.beatmap_id),
        ruleset=api_game.play_mode.value,
        scoring_type=api_game.scoring_type.value,
        team_type=api_game.team_type.value,
        mods=api_game.mods,
        start_time=api_game.start_time,
        end_time=api_game.end_time,
        verification_status=VerificationStatus.PENDING.value,
        rejection_reason=RejectionReason.NONE.value,
    )
    seen_players: set[int] = set()
    for api_score in api_game.scores:
        if api_score.user_id in seen_players:
            continue
        seen_players.add(api_score.user_id)
        game.scores.append(_build_score(api_score, api_game.mods, player_ids[api_score.user_id]))
    return game


def build_match_graph(
    handle: MatchORM,
    payload: MatchPayload,
    beatmap_ids: dict[int, int],
    player_ids: dict[int, int],
) -> MatchORM:
    """
    Build an unsaved match graph for `handle` from a validated payload.

    Games are unique by osu game id and scores by player within a game, so a
    payload that repeats entries still yields one entity each.
    """
    missing_players = payload.player_ids - player_ids.keys()
    if missing_players:
        raise MaterializationError(
            f"match {handle.osu_id}: unresolved players {sorted(missing_players)}"
        )

    match = MatchORM(
        osu_id=payload.match.match_id,
        name=payload.match.name,
        start_time=payload.match.start_time,
        end_time=payload.match.end_time,
        processing_status=handle.processing_status,
        verification_status=handle.verification_status,
        rejection_reason=RejectionReason.NONE.value,
        failure_count=handle.failure_count or 0,
        claimed_at=handle.claimed_at,
        tournament_id=handle.tournament_id,
    )
    seen_games: set[int] = set()
    for api_game in sorted(payload.games, key=lambda g: g.start_time):
        if api_game.game_id in seen_games:
            continue
        seen_games.add(api_game.game_id)
        match.games.append(_build_game(api_game, beatmap_ids, player_ids))
    return match


class MatchMaterializer:
    """Converts one raw external payload into a Match entity graph ready to persist."""

    def __init__(self, store: EntityStore, deduplicator: BeatmapDeduplicator) -> None:
        self._store = store
        self._deduplicator = deduplicator

    async def materialize(self, handle: MatchORM, raw: Any) -> MatchORM:
        payload = parse_match_payload(raw, handle.osu_id)

        await self._deduplicator.ensure_beatmaps(payload.beatmap_ids)
        beatmap_ids = await self._store.get_beatmap_ids(payload.beatmap_ids)
        player_ids = await self._store.get_or_create_players(payload.player_ids)

        match = build_match_graph(handle, payload, beatmap_ids, player_ids)
        logger.debug(
            "match_materialized",
            osu_match_id=match.osu_id,
            games=len(match.games),
            scores=sum(len(g.scores) for g in match.games),
            unresolved_beatmaps=sorted(payload.beatmap_ids - beatmap_ids.keys()),
        )
        return match
