#!/usr/bin/env python3
"""
Operator hook: put failed or rejected matches back on the worker queue.

Usage:
  python -m scripts.requeue_match OSU_MATCH_ID [OSU_MATCH_ID ...]

Each match is reset to not_processed / pending with no rejection reason.
Administrator-verified matches keep their verification. Exits 1 if any id
is unknown.
"""
from __future__ import annotations

import asyncio
import sys

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging

from ingest.store.base import EntityStore
from ingest.store.sql import SqlEntityStore

logger = get_logger(__name__)


async def requeue(store: EntityStore, osu_ids: list[int]) -> list[int]:
    """Re-queue every id; returns the ids that do not exist."""
    missing = []
    for osu_id in osu_ids:
        if not await store.requeue_match(osu_id):
            logger.warning("requeue_match_not_found", osu_match_id=osu_id)
            missing.append(osu_id)
    return missing


async def main(argv: list[str]) -> int:
    if not argv:
        print(__doc__.strip())
        return 2
    try:
        osu_ids = [int(a) for a in argv]
    except ValueError:
        print(f"match ids must be integers: {' '.join(argv)}")
        return 2

    setup_logging("requeue")
    db = DatabaseManager(get_settings())
    await db.connect()
    try:
        missing = await requeue(SqlEntityStore(db), osu_ids)
    finally:
        await db.disconnect()
    return 1 if missing else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main(sys.argv[1:])))
