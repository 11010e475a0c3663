#!/usr/bin/env python3
"""
Create the meeting, occurrence and attendance tables.

Usage:
    python init_db.py            # create missing tables
    python init_db.py --reset    # drop everything first (asks for confirmation)
    python init_db.py --reset --yes
"""
import asyncio
import sys

from config import settings
from db import create_tables, drop_tables
from logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def init_db() -> None:
    """Create any missing tables."""
    tables = await create_tables()
    logger.info("database_tables_ready", database=settings.database_url.split("@")[-1], tables=tables)


async def reset_db(confirmed: bool = False) -> bool:
    """
    Drop and recreate all tables. Deletes every meeting, report and attendance row.

    Returns:
        False if the operator declined
    """
    if not confirmed:
        response = input("This deletes all meetings, reports and attendance. Continue? (yes/no): ")
        if response.strip().lower() != "yes":
            logger.info("database_reset_cancelled")
            return False

    await drop_tables()
    tables = await create_tables()
    logger.warning("database_reset", tables=tables)
    return True


if __name__ == "__main__":
    setup_logging(debug=settings.debug, json_logs=settings.json_logs)
    if "--reset" in sys.argv[1:]:
        asyncio.run(reset_db(confirmed="--yes" in sys.argv[1:]))
    else:
        asyncio.run(init_db())
