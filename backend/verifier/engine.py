"""
Automation check engine.
Runs the ordered checks for a score, game or match and records the first failure.
"""
from __future__ import annotations

from typing import Callable, Iterable, Optional, TypeVar

from shared.models.enums import RejectionReason, VerificationStatus
from shared.models.orm import GameORM, GameScoreORM, MatchORM
from shared.utils.logging import get_logger
from shared.utils.metrics import AUTOMATION_REJECTIONS

from verifier.checks import GAME_CHECKS, MATCH_CHECKS, SCORE_CHECKS
from verifier.state_machine import resolve

logger = get_logger(__name__)

T = TypeVar("T")


def first_failure(entity: T, checks: Iterable[Callable[[T], Optional[RejectionReason]]]) -> RejectionReason:
    """Evaluate checks in order and stop at the first one that fails."""
    for check in checks:
        reason = check(entity)
        if reason is not None:
            return reason
    return RejectionReason.NONE


def _record(entity: GameORM | GameScoreORM, kind: str, reason: RejectionReason) -> bool:
    passed = reason == RejectionReason.NONE
    entity.rejection_reason = reason.value
    entity.verification_status = resolve(VerificationStatus.PENDING, passed).value
    if not passed:
        AUTOMATION_REJECTIONS.labels(entity=kind, reason=reason.value).inc()
    return passed


class AutomationCheckEngine:
    """
    Evaluates materialized entities against the automation checks.

    Scores and games get their verdict written directly (PRE_VERIFIED or
    REJECTED). A match only gets its rejection reason: its status depends on
    the prior status and is resolved by the caller through the state machine.
    """

    def __init__(
        self,
        score_checks=SCORE_CHECKS,
        game_checks=GAME_CHECKS,
        match_checks=MATCH_CHECKS,
    ) -> None:
        self.score_checks = tuple(score_checks)
        self.game_checks = tuple(game_checks)
        self.match_checks = tuple(match_checks)

    def check_score(self, score: GameScoreORM) -> bool:
        reason = first_failure(score, self.score_checks)
        score.is_valid = reason == RejectionReason.NONE
        return _record(score, "score", reason)

    def check_game(self, game: GameORM) -> bool:
        """Game checks only; score verdicts are read as already recorded."""
        return _record(game, "game", first_failure(game, self.game_checks))

    def check_match(self, match: MatchORM) -> RejectionReason:
        """Match checks only; game verdicts are read as already recorded."""
        reason = first_failure(match, self.match_checks)
        if reason == RejectionReason.NONE:
            match.rejection_reason = reason.value
            return reason
        if match.verification_status == VerificationStatus.VERIFIED.value:
            match.rejection_reason = RejectionReason.NONE.value
            logger.warning(
                "automation_checks_overridden",
                osu_match_id=match.osu_id,
                reason=reason.value,
            )
            return reason
        match.rejection_reason = reason.value
        AUTOMATION_REJECTIONS.labels(entity="match", reason=reason.value).inc()
        return reason

    def check_match_tree(self, match: MatchORM) -> RejectionReason:
        """Cascade score -> game -> match over one full match graph."""
        rejected_games = rejected_scores = 0
        for game in match.games:
            for score in game.scores:
                if not self.check_score(score):
                    rejected_scores += 1
            if not self.check_game(game):
                rejected_games += 1

        reason = self.check_match(match)
        logger.info(
            "automation_checks_completed",
            osu_match_id=match.osu_id,
            games=len(match.games),
            rejected_games=rejected_games,
            rejected_scores=rejected_scores,
            reason=reason.value,
        )
        return reason
