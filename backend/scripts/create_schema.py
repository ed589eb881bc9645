#!/usr/bin/env python3
"""
Create missing tables in a development database.

Usage:
  python -m scripts.create_schema

Reads OTR_DATABASE_URL (or DATABASE_URL). Existing tables are left as they are.
"""
from __future__ import annotations

import asyncio

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import setup_logging


async def main() -> None:
    setup_logging("create_schema")
    db = DatabaseManager(get_settings())
    await db.connect()
    try:
        await db.create_schema()
    finally:
        await db.disconnect()


if __name__ == "__main__":
    asyncio.run(main())
