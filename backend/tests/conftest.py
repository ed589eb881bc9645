"""
Shared fixtures: an in-memory entity store, a scripted match source and
payload/entity factories in the osu! API v1 wire format.
"""
from __future__ import annotations

import itertools
from typing import Any, Iterable, Optional

import pytest

from shared.config import Settings
from shared.models.enums import (
    Mods,
    ProcessingStatus,
    RejectionReason,
    ScoringType,
    TeamType,
    VerificationStatus,
)
from shared.models.orm import BeatmapORM, GameORM, GameScoreORM, MatchORM

from ingest.requeue import reset_for_requeue
from ingest.sources.base import FetchStatus, MatchSource, SourceResult
from ingest.store.base import EntityStore, merge_match_graph
from verifier.state_machine import resolve_processing

VALID_LOBBY = "OWC2024: (United States) vs (Germany)"


# ── Wire payload factories ──────────────────────────────────────────────

def api_score(user_id: int, score: int = 500_000, mods: Optional[int] = None, slot: int = 0) -> dict[str, Any]:
    return {
        "slot": str(slot),
        "team": "1",
        "user_id": str(user_id),
        "score": str(score),
        "maxcombo": "812",
        "rank": "0",
        "count50": "1",
        "count100": "12",
        "count300": "640",
        "countmiss": "2",
        "countgeki": "120",
        "countkatu": "8",
        "perfect": "0",
        "pass": "1",
        "enabled_mods": None if mods is None else str(mods),
    }


def api_game(
    game_id: int,
    beatmap_id: int,
    scores: Iterable[dict[str, Any]] = (),
    mods: int = 0,
    scoring_type: ScoringType = ScoringType.SCORE_V2,
    team_type: TeamType = TeamType.TEAM_VS,
    minute: int = 0,
) -> dict[str, Any]:
    return {
        "game_id": str(game_id),
        "start_time": f"2024-06-01 18:{minute:02d}:00",
        "end_time": f"2024-06-01 18:{minute + 4:02d}:00",
        "beatmap_id": str(beatmap_id),
        "play_mode": "0",
        "match_type": "0",
        "scoring_type": str(scoring_type.value),
        "team_type": str(team_type.value),
        "mods": str(mods),
        "scores": list(scores),
    }


def api_match(match_id: int, games: Iterable[dict[str, Any]] = (), name: str = VALID_LOBBY) -> dict[str, Any]:
    return {
        "match": {
            "match_id": str(match_id),
            "name": name,
            "start_time": "2024-06-01 17:58:31",
            "end_time": "2024-06-01 19:02:10",
        },
        "games": list(games),
    }


def api_beatmap(beatmap_id: int) -> dict[str, Any]:
    return {
        "beatmap_id": str(beatmap_id),
        "beatmapset_id": str(beatmap_id // 10),
        "mode": "0",
        "artist": "xi",
        "title": "FREEDOM DiVE",
        "version": "FOUR DIMENSIONS",
        "creator": "Nakagawa-Kanon",
        "creator_id": "87065",
        "difficultyrating": "7.06",
        "bpm": "222.22",
        "diff_size": "4",
        "diff_approach": "9",
        "diff_drain": "7",
        "diff_overall": "8",
        "total_length": "257",
        "count_normal": "1300",
        "count_slider": "630",
        "count_spinner": "3",
        "max_combo": "2385",
    }


# ── Entity factories ────────────────────────────────────────────────────

def make_score(
    score: int = 500_000,
    mods: int = Mods.NONE.value,
    player_id: int = 1,
    status: VerificationStatus = VerificationStatus.PENDING,
) -> GameScoreORM:
    return GameScoreORM(
        player_id=player_id,
        player_osu_id=1000 + player_id,
        slot=0,
        team=0,
        score=score,
        max_combo=500,
        count_50=0,
        count_100=10,
        count_300=400,
        count_miss=1,
        count_katu=0,
        count_geki=0,
        perfect=False,
        passed=True,
        mods=mods,
        is_valid=True,
        verification_status=status.value,
        rejection_reason=RejectionReason.NONE.value,
    )


def make_game(
    scores: Optional[list[GameScoreORM]] = None,
    osu_id: int = 1,
    beatmap_id: Optional[int] = 1,
    scoring_type: ScoringType = ScoringType.SCORE_V2,
    team_type: TeamType = TeamType.TEAM_VS,
    mods: int = Mods.NONE.value,
    status: VerificationStatus = VerificationStatus.PENDING,
) -> GameORM:
    game = GameORM(
        osu_id=osu_id,
        beatmap_osu_id=osu_id * 10,
        beatmap_id=beatmap_id,
        ruleset=0,
        scoring_type=scoring_type.value,
        team_type=team_type.value,
        mods=mods,
        start_time=None,
        end_time=None,
        verification_status=status.value,
        rejection_reason=RejectionReason.NONE.value,
    )
    game.scores.extend(scores if scores is not None else [make_score()])
    return game


def make_match(
    games: Optional[list[GameORM]] = None,
    osu_id: int = 100,
    name: str = VALID_LOBBY,
    verification: VerificationStatus = VerificationStatus.PENDING,
    processing: ProcessingStatus = ProcessingStatus.NOT_PROCESSED,
) -> MatchORM:
    match = MatchORM(
        osu_id=osu_id,
        name=name,
        start_time=None,
        end_time=None,
        processing_status=processing.value,
        verification_status=verification.value,
        rejection_reason=RejectionReason.NONE.value,
        failure_count=0,
        claimed_at=None,
        tournament_id=None,
    )
    match.games.extend(games if games is not None else [make_game()])
    return match


# ── Fakes ───────────────────────────────────────────────────────────────

class FakeEntityStore(EntityStore):
    """In-memory store with the same idempotence rules as the SQL store."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.matches: dict[int, MatchORM] = {}
        self.beatmaps: dict[int, BeatmapORM] = {}
        self.players: dict[int, int] = {}
        self.insert_calls: list[list[int]] = []
        self.persist_calls = 0
        self.verdicts: list[tuple[int, ProcessingStatus, VerificationStatus, RejectionReason]] = []

    def add_match(
        self,
        osu_id: int,
        verification: VerificationStatus = VerificationStatus.PENDING,
        processing: ProcessingStatus = ProcessingStatus.NOT_PROCESSED,
    ) -> MatchORM:
        match = make_match(games=[], osu_id=osu_id, name="", verification=verification, processing=processing)
        match.id = next(self._ids)
        self.matches[osu_id] = match
        return match

    def add_beatmaps(self, osu_ids: Iterable[int]) -> None:
        for osu_id in osu_ids:
            self.beatmaps[osu_id] = BeatmapORM(id=next(self._ids), osu_id=osu_id)

    async def find_next_pending_match(self) -> Optional[MatchORM]:
        eligible = [
            m for m in self.matches.values()
            if ProcessingStatus(m.processing_status).is_pending
            and m.verification_status in (VerificationStatus.PENDING.value, VerificationStatus.VERIFIED.value)
        ]
        return min(eligible, key=lambda m: m.id, default=None)

    async def existing_beatmap_ids(self, osu_ids: Iterable[int]) -> set[int]:
        return set(osu_ids) & self.beatmaps.keys()

    async def insert_beatmaps(self, beatmaps: list[BeatmapORM]) -> int:
        self.insert_calls.append([b.osu_id for b in beatmaps])
        inserted = 0
        for beatmap in beatmaps:
            if beatmap.osu_id in self.beatmaps:
                continue
            beatmap.id = next(self._ids)
            self.beatmaps[beatmap.osu_id] = beatmap
            inserted += 1
        return inserted

    async def get_beatmap_ids(self, osu_ids: Iterable[int]) -> dict[int, int]:
        return {i: self.beatmaps[i].id for i in osu_ids if i in self.beatmaps}

    async def get_or_create_players(self, osu_ids: Iterable[int]) -> dict[int, int]:
        for osu_id in osu_ids:
            if osu_id not in self.players:
                self.players[osu_id] = next(self._ids)
        return {i: self.players[i] for i in osu_ids}

    def _assign_ids(self, match: MatchORM) -> None:
        for game in match.games:
            if game.id is None:
                game.id = next(self._ids)
            for score in game.scores:
                if score.id is None:
                    score.id = next(self._ids)
                score.game_id = game.id

    async def persist_match_graph(self, match: MatchORM) -> MatchORM:
        self.persist_calls += 1
        existing = self.matches.get(match.osu_id)
        if existing is None:
            match.id = next(self._ids)
            match.processing_status = resolve_processing(
                match.processing_status, ProcessingStatus.MATERIALIZED
            ).value
            self._assign_ids(match)
            self.matches[match.osu_id] = match
            return match

        existing.processing_status = resolve_processing(
            existing.processing_status, ProcessingStatus.MATERIALIZED
        ).value
        merge_match_graph(existing, match)
        self._assign_ids(existing)
        return existing

    async def update_verification_state(
        self,
        match: MatchORM,
        processing_status: ProcessingStatus,
        verification_status: VerificationStatus,
        rejection_reason: RejectionReason,
    ) -> None:
        match.processing_status = resolve_processing(match.processing_status, processing_status).value
        match.verification_status = verification_status.value
        match.rejection_reason = rejection_reason.value
        self.verdicts.append((match.osu_id, processing_status, verification_status, rejection_reason))

    async def mark_failed(self, match: MatchORM) -> None:
        match.processing_status = resolve_processing(match.processing_status, ProcessingStatus.FAILED).value
        match.failure_count = (match.failure_count or 0) + 1

    async def requeue_match(self, osu_id: int) -> bool:
        match = self.matches.get(osu_id)
        if match is None:
            return False
        reset_for_requeue(match)
        return True


class FakeMatchSource(MatchSource):
    """Serves canned payloads; unknown ids are NOT_FOUND, ids in `errors` are transient failures."""

    def __init__(
        self,
        matches: Optional[dict[int, Any]] = None,
        beatmaps: Optional[dict[int, Any]] = None,
        errors: Iterable[int] = (),
    ) -> None:
        super().__init__(name="fake")
        self.matches = matches or {}
        self.beatmaps = beatmaps or {}
        self.errors = set(errors)
        self.match_calls: list[int] = []
        self.beatmap_calls: list[int] = []

    async def _fetch_match(self, osu_match_id: int) -> SourceResult:
        self.match_calls.append(osu_match_id)
        if osu_match_id in self.errors:
            raise ConnectionError("connection reset by peer")
        if osu_match_id not in self.matches:
            return SourceResult.not_found()
        return SourceResult(status=FetchStatus.FOUND, data=self.matches[osu_match_id])

    async def _fetch_beatmap(self, osu_beatmap_id: int) -> SourceResult:
        self.beatmap_calls.append(osu_beatmap_id)
        if osu_beatmap_id in self.errors:
            raise ConnectionError("connection reset by peer")
        if osu_beatmap_id not in self.beatmaps:
            return SourceResult.not_found()
        return SourceResult(status=FetchStatus.FOUND, data=self.beatmaps[osu_beatmap_id])


# ── Fixtures ────────────────────────────────────────────────────────────

@pytest.fixture
def settings() -> Settings:
    return Settings(
        osu_api_key="test-key",
        worker_idle_interval_s=0.01,
        source_max_retries=1,
        metrics_enabled=False,
    )


@pytest.fixture
def store() -> FakeEntityStore:
    return FakeEntityStore()


@pytest.fixture
def source() -> FakeMatchSource:
    return FakeMatchSource()
