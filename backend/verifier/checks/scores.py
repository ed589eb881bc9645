"""Score-level automation checks."""
from __future__ import annotations

from typing import Callable, Optional

from shared.models.enums import Mods, RejectionReason
from shared.models.orm import GameScoreORM

MIN_TOTAL_SCORE = 1000

# Mods that only exist outside competitive play.
NON_COMPETITIVE_MODS = (
    Mods.RELAX | Mods.AUTOPLAY | Mods.SPUN_OUT | Mods.AUTOPILOT | Mods.CINEMA | Mods.TARGET
)

# Pairs the client never allows together; seeing one means the data is corrupt.
EXCLUSIVE_MOD_PAIRS: tuple[tuple[Mods, Mods], ...] = (
    (Mods.EASY, Mods.HARD_ROCK),
    (Mods.DOUBLE_TIME, Mods.HALF_TIME),
    (Mods.NIGHTCORE, Mods.HALF_TIME),
    (Mods.SUDDEN_DEATH, Mods.NO_FAIL),
    (Mods.PERFECT, Mods.NO_FAIL),
)


def mods_are_valid(mods: int) -> bool:
    flags = Mods(mods)
    if flags & NON_COMPETITIVE_MODS:
        return False
    return not any(a in flags and b in flags for a, b in EXCLUSIVE_MOD_PAIRS)


def check_score_mods(score: GameScoreORM) -> Optional[RejectionReason]:
    if not mods_are_valid(score.mods):
        return RejectionReason.INVALID_MODS
    return None


def check_score_minimum(score: GameScoreORM) -> Optional[RejectionReason]:
    if score.score <= MIN_TOTAL_SCORE:
        return RejectionReason.SCORE_BELOW_MINIMUM
    return None


ScoreCheck = Callable[[GameScoreORM], Optional[RejectionReason]]

SCORE_CHECKS: tuple[ScoreCheck, ...] = (
    check_score_mods,
    check_score_minimum,
)
