"""
Abstract base class for external match sources.
Defines the contract that every source connector must implement.
"""
from __future__ import annotations

import abc
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from shared.utils.logging import get_logger

logger = get_logger(__name__)


class FetchStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    TRANSIENT_ERROR = "transient_error"


@dataclass
class SourceResult:
    """Container for a source fetch with metadata. `data` is the raw JSON payload when found."""
    status: FetchStatus
    data: Any = None
    latency_ms: float = 0.0
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status == FetchStatus.FOUND and self.data is not None

    @classmethod
    def not_found(cls) -> "SourceResult":
        return cls(status=FetchStatus.NOT_FOUND)


class MatchSource(abc.ABC):
    """
    Abstract base class for external match data sources.

    Subclasses implement the raw fetches and own their rate limiting, which
    applies per HTTP request so that retries are throttled too. The base class
    records timing and converts exceptions into TRANSIENT_ERROR results so
    callers never see a raised fetch failure.
    """

    def __init__(self, name: str) -> None:
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    async def start(self) -> None:
        """Acquire network resources. No-op by default."""

    async def close(self) -> None:
        """Release network resources. No-op by default."""

    async def fetch_match(self, osu_match_id: int) -> SourceResult:
        """Fetch the raw multiplayer match payload."""
        return await self._timed("match", osu_match_id, self._fetch_match)

    async def fetch_beatmap(self, osu_beatmap_id: int) -> SourceResult:
        """Fetch the raw beatmap payload."""
        return await self._timed("beatmap", osu_beatmap_id, self._fetch_beatmap)

    async def _timed(self, kind: str, external_id: int, fetch: Any) -> SourceResult:
        start = time.perf_counter()
        try:
            result = await fetch(external_id)
        except Exception as exc:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "source_fetch_error",
                source=self._name,
                kind=kind,
                external_id=external_id,
                error=str(exc),
            )
            return SourceResult(status=FetchStatus.TRANSIENT_ERROR, latency_ms=latency_ms, error=str(exc))
        result.latency_ms = (time.perf_counter() - start) * 1000
        return result

    # ── Abstract methods (each source implements these) ─────────────────
    @abc.abstractmethod
    async def _fetch_match(self, osu_match_id: int) -> SourceResult:
        """Source-specific match fetch logic."""
        ...

    @abc.abstractmethod
    async def _fetch_beatmap(self, osu_beatmap_id: int) -> SourceResult:
        """Source-specific beatmap fetch logic."""
        ...
