"""Game-level automation checks. Score verdicts must already be recorded."""
from __future__ import annotations

from typing import Callable, Optional

from shared.models.enums import Mods, RejectionReason, ScoringType, TeamType, VerificationStatus
from shared.models.orm import GameORM

from verifier.checks.scores import NON_COMPETITIVE_MODS

TAG_TEAM_TYPES = (TeamType.TAG_COOP.value, TeamType.TAG_TEAM_VS.value)


def check_game_beatmap(game: GameORM) -> Optional[RejectionReason]:
    if game.beatmap_id is None:
        return RejectionReason.BEATMAP_MISSING
    return None


def check_game_scoring_type(game: GameORM) -> Optional[RejectionReason]:
    if game.scoring_type != ScoringType.SCORE_V2.value:
        return RejectionReason.INVALID_SCORING_TYPE
    return None


def check_game_team_type(game: GameORM) -> Optional[RejectionReason]:
    if game.team_type in TAG_TEAM_TYPES:
        return RejectionReason.INVALID_TEAM_TYPE
    return None


def check_game_mods(game: GameORM) -> Optional[RejectionReason]:
    if Mods(game.mods) & NON_COMPETITIVE_MODS:
        return RejectionReason.INVALID_MODS
    return None


def check_game_has_scores(game: GameORM) -> Optional[RejectionReason]:
    if not game.scores:
        return RejectionReason.NO_SCORES
    return None


def check_game_scores_pass(game: GameORM) -> Optional[RejectionReason]:
    if any(s.verification_status == VerificationStatus.REJECTED.value for s in game.scores):
        return RejectionReason.REJECTED_SCORES
    return None


GameCheck = Callable[[GameORM], Optional[RejectionReason]]

GAME_CHECKS: tuple[GameCheck, ...] = (
    check_game_beatmap,
    check_game_scoring_type,
    check_game_team_type,
    check_game_mods,
    check_game_has_scores,
    check_game_scores_pass,
)
