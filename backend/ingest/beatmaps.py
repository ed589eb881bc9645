"""
Beatmap deduplication for incoming matches.
Only beatmaps missing from the store are fetched, and they are inserted in one bulk write.
"""
from __future__ import annotations

from typing import Iterable

from pydantic import ValidationError

from shared.models.domain import ApiBeatmap
from shared.models.orm import BeatmapORM
from shared.utils.logging import get_logger
from shared.utils.metrics import BEATMAPS_FETCHED, BEATMAPS_INSERTED

from ingest.sources.base import MatchSource
from ingest.store.base import EntityStore

logger = get_logger(__name__)


def beatmap_from_api(data: ApiBeatmap) -> BeatmapORM:
    return BeatmapORM(
        osu_id=data.beatmap_id,
        beatmapset_id=data.beatmapset_id,
        ruleset=data.mode.value,
        artist=data.artist,
        title=data.title,
        diff_name=data.version,
        mapper_id=data.creator_id,
        mapper_name=data.creator,
        sr=data.difficultyrating,
        bpm=data.bpm,
        cs=data.diff_size,
        ar=data.diff_approach,
        hp=data.diff_drain,
        od=data.diff_overall,
        length=data.total_length,
        circle_count=data.count_normal,
        slider_count=data.count_slider,
        spinner_count=data.count_spinner,
        max_combo=data.max_combo,
    )


class BeatmapDeduplicator:
    """Ensures every beatmap referenced by a match exists in the store exactly once."""

    def __init__(self, store: EntityStore, source: MatchSource) -> None:
        self._store = store
        self._source = source

    async def ensure_beatmaps(self, osu_beatmap_ids: Iterable[int]) -> int:
        """
        Fetch and insert the beatmaps that are not stored yet.

        A beatmap that cannot be fetched or parsed is logged and skipped; the
        rest of the batch still goes through. Returns the number inserted.
        """
        distinct = set(osu_beatmap_ids)
        if not distinct:
            return 0
        existing = await self._store.existing_beatmap_ids(distinct)
        missing = sorted(distinct - existing)

        fetched: list[BeatmapORM] = []
        for osu_id in missing:
            result = await self._source.fetch_beatmap(osu_id)
            if not result.found:
                BEATMAPS_FETCHED.labels(result=result.status.value).inc()
                logger.warning(
                    "beatmap_fetch_failed",
                    osu_beatmap_id=osu_id,
                    status=result.status.value,
                    error=result.error,
                )
                continue
            try:
                fetched.append(beatmap_from_api(ApiBeatmap.model_validate(result.data)))
            except ValidationError as exc:
                BEATMAPS_FETCHED.labels(result="invalid").inc()
                logger.warning("beatmap_payload_invalid", osu_beatmap_id=osu_id, error=str(exc))
                continue
            BEATMAPS_FETCHED.labels(result="found").inc()

        inserted = await self._store.insert_beatmaps(fetched) if fetched else 0
        BEATMAPS_INSERTED.inc(inserted)
        logger.debug(
            "beatmaps_ensured",
            referenced=len(distinct),
            already_stored=len(existing),
            fetched=len(fetched),
            inserted=inserted,
        )
        return inserted
