"""
Unit tests for the automation check engine: verdict recording, cascading,
first-failure determinism and the administrator-verified override.

Run: pytest backend/tests/test_engine.py -v
"""
from __future__ import annotations

from shared.models.enums import Mods, RejectionReason, ScoringType, VerificationStatus
from verifier.checks.scores import check_score_minimum, check_score_mods
from verifier.engine import AutomationCheckEngine
from verifier.state_machine import resolve_match

from conftest import make_game, make_match, make_score


# ── Score verdicts ──────────────────────────────────────────────────────

def test_is_valid_in_lockstep_with_reason() -> None:
    engine = AutomationCheckEngine()
    scores = [
        make_score(),
        make_score(score=10),
        make_score(mods=Mods.RELAX.value),
        make_score(mods=(Mods.HIDDEN | Mods.HARD_ROCK).value),
        make_score(score=999, mods=(Mods.EASY | Mods.HARD_ROCK).value),
    ]
    for score in scores:
        engine.check_score(score)
        assert score.is_valid == (score.rejection_reason == RejectionReason.NONE.value)
        expected_status = VerificationStatus.PRE_VERIFIED if score.is_valid else VerificationStatus.REJECTED
        assert score.verification_status == expected_status.value


def test_rejected_score_can_pass_on_reevaluation() -> None:
    engine = AutomationCheckEngine()
    score = make_score(score=10)
    assert engine.check_score(score) is False
    score.score = 50_000
    assert engine.check_score(score) is True
    assert score.is_valid is True
    assert score.rejection_reason == RejectionReason.NONE.value


def test_first_failure_is_deterministic() -> None:
    engine = AutomationCheckEngine()
    score = make_score(score=500, mods=(Mods.DOUBLE_TIME | Mods.HALF_TIME).value)
    reasons = set()
    for _ in range(5):
        engine.check_score(score)
        reasons.add(score.rejection_reason)
    assert reasons == {RejectionReason.INVALID_MODS.value}


def test_priority_order_decides_reason() -> None:
    reordered = AutomationCheckEngine(score_checks=(check_score_minimum, check_score_mods))
    score = make_score(score=500, mods=Mods.RELAX.value)
    reordered.check_score(score)
    assert score.rejection_reason == RejectionReason.SCORE_BELOW_MINIMUM.value


# ── Cascade ─────────────────────────────────────────────────────────────

class TestMatchTree:
    def test_all_passing(self) -> None:
        match = make_match([make_game(osu_id=1), make_game(osu_id=2)])
        reason = AutomationCheckEngine().check_match_tree(match)
        assert reason == RejectionReason.NONE
        assert all(g.verification_status == VerificationStatus.PRE_VERIFIED.value for g in match.games)
        assert resolve_match(VerificationStatus.PENDING, reason) == (
            VerificationStatus.PRE_VERIFIED,
            RejectionReason.NONE,
        )

    def test_invalid_mods_on_one_score_rejects_match(self) -> None:
        bad = make_score(player_id=1, mods=(Mods.EASY | Mods.HARD_ROCK).value)
        good = make_score(player_id=2)
        match = make_match([make_game(scores=[bad], osu_id=1), make_game(scores=[good], osu_id=2)])

        reason = AutomationCheckEngine().check_match_tree(match)

        assert bad.verification_status == VerificationStatus.REJECTED.value
        assert bad.rejection_reason == RejectionReason.INVALID_MODS.value
        assert bad.is_valid is False
        first, second = match.games
        assert first.verification_status == VerificationStatus.REJECTED.value
        assert first.rejection_reason == RejectionReason.REJECTED_SCORES.value
        assert second.verification_status == VerificationStatus.PRE_VERIFIED.value
        assert reason == RejectionReason.REJECTED_GAMES
        assert match.rejection_reason == RejectionReason.REJECTED_GAMES.value
        assert resolve_match(VerificationStatus.PENDING, reason)[0] == VerificationStatus.REJECTED

    def test_game_intrinsic_failure_with_passing_scores(self) -> None:
        match = make_match([make_game(scoring_type=ScoringType.ACCURACY)])
        reason = AutomationCheckEngine().check_match_tree(match)
        score = match.games[0].scores[0]
        assert score.verification_status == VerificationStatus.PRE_VERIFIED.value
        assert match.games[0].rejection_reason == RejectionReason.INVALID_SCORING_TYPE.value
        assert reason == RejectionReason.REJECTED_GAMES

    def test_invalid_lobby_name_with_passing_children(self) -> None:
        match = make_match([make_game()], name="osu! lobby")
        reason = AutomationCheckEngine().check_match_tree(match)
        assert match.games[0].verification_status == VerificationStatus.PRE_VERIFIED.value
        assert reason == RejectionReason.INVALID_LOBBY_NAME
        assert resolve_match(VerificationStatus.PENDING, reason) == (
            VerificationStatus.REJECTED,
            RejectionReason.INVALID_LOBBY_NAME,
        )

    def test_verified_match_is_not_downgraded(self) -> None:
        bad = make_score(mods=Mods.AUTOPLAY.value)
        match = make_match([make_game(scores=[bad])], verification=VerificationStatus.VERIFIED)

        reason = AutomationCheckEngine().check_match_tree(match)

        # Child verdicts are still recorded for audit.
        assert bad.rejection_reason == RejectionReason.INVALID_MODS.value
        assert match.games[0].verification_status == VerificationStatus.REJECTED.value
        assert reason == RejectionReason.REJECTED_GAMES
        assert match.rejection_reason == RejectionReason.NONE.value
        assert match.verification_status == VerificationStatus.VERIFIED.value
        assert resolve_match(VerificationStatus.VERIFIED, reason) == (
            VerificationStatus.VERIFIED,
            RejectionReason.NONE,
        )

    def test_match_without_games(self) -> None:
        match = make_match(games=[])
        assert AutomationCheckEngine().check_match_tree(match) == RejectionReason.NO_GAMES
