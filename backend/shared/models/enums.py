"""Domain enumerations for match ingestion and verification."""
from __future__ import annotations

from enum import Enum, IntFlag


class ProcessingStatus(str, Enum):
    """Lifecycle of data population for a match."""
    NOT_PROCESSED = "not_processed"
    FETCHING = "fetching"
    MATERIALIZED = "materialized"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_pending(self) -> bool:
        return self in (ProcessingStatus.NOT_PROCESSED, ProcessingStatus.MATERIALIZED)


class VerificationStatus(str, Enum):
    """Trust classification shared by matches, games and scores."""
    PENDING = "pending"
    PRE_VERIFIED = "pre_verified"
    REJECTED = "rejected"
    VERIFIED = "verified"

    @property
    def is_trusted(self) -> bool:
        """Only trusted entities feed the rating computation."""
        return self in (VerificationStatus.PRE_VERIFIED, VerificationStatus.VERIFIED)


class RejectionReason(str, Enum):
    """The single rule that caused a rejection. Shared by matches, games and scores."""
    NONE = "none"
    # Score
    INVALID_MODS = "invalid_mods"
    SCORE_BELOW_MINIMUM = "score_below_minimum"
    # Game
    BEATMAP_MISSING = "beatmap_missing"
    INVALID_SCORING_TYPE = "invalid_scoring_type"
    INVALID_TEAM_TYPE = "invalid_team_type"
    NO_SCORES = "no_scores"
    REJECTED_SCORES = "rejected_scores"
    # Match
    NO_GAMES = "no_games"
    INVALID_LOBBY_NAME = "invalid_lobby_name"
    REJECTED_GAMES = "rejected_games"


class Ruleset(int, Enum):
    OSU = 0
    TAIKO = 1
    CATCH = 2
    MANIA = 3


class ScoringType(int, Enum):
    """Win condition used for a game."""
    SCORE = 0
    ACCURACY = 1
    COMBO = 2
    SCORE_V2 = 3


class TeamType(int, Enum):
    HEAD_TO_HEAD = 0
    TAG_COOP = 1
    TEAM_VS = 2
    TAG_TEAM_VS = 3


class Mods(IntFlag):
    """osu! API v1 mod bits."""
    NONE = 0
    NO_FAIL = 1
    EASY = 2
    TOUCH_DEVICE = 4
    HIDDEN = 8
    HARD_ROCK = 16
    SUDDEN_DEATH = 32
    DOUBLE_TIME = 64
    RELAX = 128
    HALF_TIME = 256
    NIGHTCORE = 512  # always sent together with DOUBLE_TIME
    FLASHLIGHT = 1024
    AUTOPLAY = 2048
    SPUN_OUT = 4096
    AUTOPILOT = 8192
    PERFECT = 16384  # always sent together with SUDDEN_DEATH
    KEY4 = 32768
    KEY5 = 65536
    KEY6 = 131072
    KEY7 = 262144
    KEY8 = 524288
    FADE_IN = 1048576
    RANDOM = 2097152
    CINEMA = 4194304
    TARGET = 8388608
    KEY9 = 16777216
    KEY_COOP = 33554432
    KEY1 = 67108864
    KEY3 = 134217728
    KEY2 = 268435456
    SCORE_V2 = 536870912
    MIRROR = 1073741824
