"""
Pydantic v2 models for osu! API v1 payloads.
These are the validated wire representations, not ORM models.
The v1 API sends every number as a string; lax-mode coercion handles that.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models.enums import Mods, Ruleset, ScoringType, TeamType


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, extra="ignore")


def _parse_api_datetime(value: Any) -> Any:
    """v1 timestamps look like '2024-06-01 18:04:12' and are UTC."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        value = value.replace(" ", "T", 1)
    return value


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Match ───────────────────────────────────────────────────────────────
class ApiMatch(DomainModel):
    match_id: int
    name: str
    start_time: datetime
    end_time: Optional[datetime] = None

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        return _parse_api_datetime(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)


class ApiScore(DomainModel):
    slot: int = 0
    team: int = 0
    user_id: int
    total_score: int = Field(alias="score")
    max_combo: int = Field(default=0, alias="maxcombo")
    count_50: int = Field(default=0, alias="count50")
    count_100: int = Field(default=0, alias="count100")
    count_300: int = Field(default=0, alias="count300")
    count_miss: int = Field(default=0, alias="countmiss")
    count_katu: int = Field(default=0, alias="countkatu")
    count_geki: int = Field(default=0, alias="countgeki")
    perfect: bool = False
    passed: bool = Field(default=True, alias="pass")
    enabled_mods: Optional[int] = None

    @field_validator("enabled_mods", mode="before")
    @classmethod
    def empty_mods(cls, v: Any) -> Any:
        return None if v in ("", None) else v


class ApiGame(DomainModel):
    game_id: int
    start_time: datetime
    end_time: Optional[datetime] = None
    beatmap_id: int
    play_mode: Ruleset = Ruleset.OSU
    scoring_type: ScoringType = ScoringType.SCORE
    team_type: TeamType = TeamType.HEAD_TO_HEAD
    mods: int = Mods.NONE.value
    scores: list[ApiScore] = Field(default_factory=list)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        return _parse_api_datetime(v)

    @field_validator("start_time", "end_time")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @field_validator("play_mode", "scoring_type", "team_type", mode="before")
    @classmethod
    def coerce_int_enum(cls, v: Any) -> Any:
        return int(v) if isinstance(v, str) else v


class MatchPayload(DomainModel):
    """Full get_match response."""
    match: ApiMatch
    games: list[ApiGame] = Field(default_factory=list)

    @property
    def beatmap_ids(self) -> set[int]:
        return {g.beatmap_id for g in self.games}

    @property
    def player_ids(self) -> set[int]:
        return {s.user_id for g in self.games for s in g.scores}


# ── Beatmap ─────────────────────────────────────────────────────────────
class ApiBeatmap(DomainModel):
    """One entry of the get_beatmaps response."""
    beatmap_id: int
    beatmapset_id: Optional[int] = None
    mode: Ruleset = Ruleset.OSU
    artist: str = ""
    title: str = ""
    version: str = ""
    creator: Optional[str] = None
    creator_id: Optional[int] = None
    difficultyrating: float = 0.0
    bpm: Optional[float] = None
    diff_size: float = 0.0
    diff_approach: float = 0.0
    diff_drain: float = 0.0
    diff_overall: float = 0.0
    total_length: float = 0.0
    count_normal: int = 0
    count_slider: int = 0
    count_spinner: int = 0
    max_combo: Optional[int] = None

    @field_validator("mode", mode="before")
    @classmethod
    def coerce_mode(cls, v: Any) -> Any:
        return int(v) if isinstance(v, str) else v

    @field_validator("bpm", "max_combo", "creator_id", "beatmapset_id", mode="before")
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        return None if v in ("", None) else v
