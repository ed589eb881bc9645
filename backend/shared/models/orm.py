"""
SQLAlchemy 2.0 ORM models for matches, games, scores, beatmaps and players.
External osu! identifiers are unique and act as the natural dedup keys.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from shared.models.enums import (
    Mods,
    ProcessingStatus,
    RejectionReason,
    Ruleset,
    ScoringType,
    TeamType,
    VerificationStatus,
)


class Base(DeclarativeBase):
    pass


class TournamentORM(Base):
    __tablename__ = "tournaments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    abbreviation: Mapped[str] = mapped_column(String(32), nullable=False)
    ruleset: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=Ruleset.OSU.value)
    team_size: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    matches: Mapped[list["MatchORM"]] = relationship(back_populates="tournament")


class PlayerORM(Base):
    __tablename__ = "players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    osu_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(32))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class BeatmapORM(Base):
    """Immutable once stored; a second fetch of the same osu_id is a no-op."""
    __tablename__ = "beatmaps"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    osu_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    beatmapset_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    ruleset: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=Ruleset.OSU.value)
    artist: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    title: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    diff_name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    mapper_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    mapper_name: Mapped[Optional[str]] = mapped_column(String(32))
    sr: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    bpm: Mapped[Optional[float]] = mapped_column(Float)
    cs: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    ar: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    hp: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    od: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    length: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    circle_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    slider_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    spinner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_combo: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class MatchORM(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    osu_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    processing_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProcessingStatus.NOT_PROCESSED.value, index=True
    )
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value
    )
    rejection_reason: Mapped[str] = mapped_column(String(30), nullable=False, default=RejectionReason.NONE.value)
    failure_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    tournament_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("tournaments.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    tournament: Mapped[Optional["TournamentORM"]] = relationship(back_populates="matches")
    games: Mapped[list["GameORM"]] = relationship(
        back_populates="match", order_by="GameORM.start_time", cascade="all, delete-orphan"
    )


class GameORM(Base):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    osu_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    match_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    beatmap_osu_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    beatmap_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("beatmaps.id"))
    ruleset: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=Ruleset.OSU.value)
    scoring_type: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=ScoringType.SCORE.value)
    team_type: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=TeamType.HEAD_TO_HEAD.value)
    mods: Mapped[int] = mapped_column(Integer, nullable=False, default=Mods.NONE.value)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value
    )
    rejection_reason: Mapped[str] = mapped_column(String(30), nullable=False, default=RejectionReason.NONE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    match: Mapped["MatchORM"] = relationship(back_populates="games")
    scores: Mapped[list["GameScoreORM"]] = relationship(
        back_populates="game", order_by="GameScoreORM.slot", cascade="all, delete-orphan"
    )


class GameScoreORM(Base):
    __tablename__ = "game_scores"
    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_game_score_player"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    game_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(Integer, ForeignKey("players.id"), nullable=False)
    player_osu_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    slot: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    team: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    max_combo: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_50: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_100: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_300: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_miss: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_katu: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    count_geki: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    perfect: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    mods: Mapped[int] = mapped_column(Integer, nullable=False, default=Mods.NONE.value)
    is_valid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    verification_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VerificationStatus.PENDING.value
    )
    rejection_reason: Mapped[str] = mapped_column(String(30), nullable=False, default=RejectionReason.NONE.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    game: Mapped["GameORM"] = relationship(back_populates="scores")

    @property
    def accuracy(self) -> float:
        """osu!standard accuracy as a percentage."""
        hits = self.count_300 + self.count_100 + self.count_50 + self.count_miss
        if hits == 0:
            return 0.0
        weighted = 300 * self.count_300 + 100 * self.count_100 + 50 * self.count_50
        return 100.0 * weighted / (300 * hits)
