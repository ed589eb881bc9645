"""
Unit tests for beatmap deduplication.

Run: pytest backend/tests/test_beatmaps.py -v
"""
from __future__ import annotations

import pytest

from ingest.beatmaps import BeatmapDeduplicator

from conftest import FakeEntityStore, FakeMatchSource, api_beatmap


@pytest.mark.asyncio
async def test_only_missing_beatmaps_are_fetched_and_inserted(store: FakeEntityStore) -> None:
    # N=6 references, M=4 distinct ids, K=1 already stored.
    referenced = [10, 20, 20, 30, 40, 10]
    store.add_beatmaps([20])
    source = FakeMatchSource(beatmaps={i: api_beatmap(i) for i in (10, 20, 30, 40)})

    inserted = await BeatmapDeduplicator(store, source).ensure_beatmaps(referenced)

    assert sorted(source.beatmap_calls) == [10, 30, 40]
    assert store.insert_calls == [[10, 30, 40]]
    assert inserted == 3
    assert set(store.beatmaps) == {10, 20, 30, 40}


@pytest.mark.asyncio
async def test_all_stored_is_a_noop(store: FakeEntityStore) -> None:
    store.add_beatmaps([1, 2])
    source = FakeMatchSource()

    inserted = await BeatmapDeduplicator(store, source).ensure_beatmaps([1, 2, 2])

    assert inserted == 0
    assert source.beatmap_calls == []
    assert store.insert_calls == []


@pytest.mark.asyncio
async def test_failed_fetch_skips_only_that_beatmap(store: FakeEntityStore) -> None:
    source = FakeMatchSource(
        beatmaps={1: api_beatmap(1), 3: api_beatmap(3)},
        errors=[2],
    )

    inserted = await BeatmapDeduplicator(store, source).ensure_beatmaps([1, 2, 3, 4])

    assert sorted(source.beatmap_calls) == [1, 2, 3, 4]
    assert store.insert_calls == [[1, 3]]
    assert inserted == 2


@pytest.mark.asyncio
async def test_invalid_payload_is_skipped(store: FakeEntityStore) -> None:
    source = FakeMatchSource(beatmaps={1: {"title": "no id"}, 2: api_beatmap(2)})

    inserted = await BeatmapDeduplicator(store, source).ensure_beatmaps([1, 2])

    assert inserted == 1
    assert set(store.beatmaps) == {2}


@pytest.mark.asyncio
async def test_beatmap_attributes_are_mapped(store: FakeEntityStore) -> None:
    source = FakeMatchSource(beatmaps={75: api_beatmap(75)})

    await BeatmapDeduplicator(store, source).ensure_beatmaps([75])

    beatmap = store.beatmaps[75]
    assert beatmap.beatmapset_id == 7
    assert beatmap.diff_name == "FOUR DIMENSIONS"
    assert beatmap.mapper_id == 87065
    assert beatmap.sr == pytest.approx(7.06)
    assert beatmap.circle_count == 1300
    assert beatmap.max_combo == 2385


@pytest.mark.asyncio
async def test_empty_input(store: FakeEntityStore, source: FakeMatchSource) -> None:
    assert await BeatmapDeduplicator(store, source).ensure_beatmaps([]) == 0
    assert store.insert_calls == []
