"""Match-level automation checks. Game verdicts must already be recorded."""
from __future__ import annotations

from typing import Callable, Optional

from shared.models.enums import RejectionReason, VerificationStatus
from shared.models.orm import MatchORM

from verifier.lobby_name import is_lobby_name_valid


def check_match_has_games(match: MatchORM) -> Optional[RejectionReason]:
    if not match.games:
        return RejectionReason.NO_GAMES
    return None


def check_match_lobby_name(match: MatchORM) -> Optional[RejectionReason]:
    # Administrator verification already vouched for the lobby.
    if match.verification_status == VerificationStatus.VERIFIED.value:
        return None
    if not is_lobby_name_valid(match.name):
        return RejectionReason.INVALID_LOBBY_NAME
    return None


def check_match_games_pass(match: MatchORM) -> Optional[RejectionReason]:
    if any(g.verification_status == VerificationStatus.REJECTED.value for g in match.games):
        return RejectionReason.REJECTED_GAMES
    return None


MatchCheck = Callable[[MatchORM], Optional[RejectionReason]]

MATCH_CHECKS: tuple[MatchCheck, ...] = (
    check_match_has_games,
    check_match_lobby_name,
    check_match_games_pass,
)
