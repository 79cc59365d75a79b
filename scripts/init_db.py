#!/usr/bin/env python3
"""
Create the users / user_xp / user_xp_log tables if they do not exist.

Usage:
    python -m scripts.init_db
"""

import asyncio
import sys
from pathlib import Path

THIS_FILE = Path(__file__).resolve()
PROJECT_ROOT = THIS_FILE.parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from services.db_service import close_db_pool, init_db_pool
from services.schema_service import ensure_schema

configure_logging(service_name="script")
logger = get_logger()


async def main_async() -> None:
    await init_db_pool()
    try:
        await ensure_schema()
        logger.info("init_db_done")
    except Exception:
        logger.exception("init_db_failed")
        raise
    finally:
        await close_db_pool()


def main() -> None:
    with with_run_id():
        asyncio.run(main_async())


if __name__ == "__main__":
    main()
