# services/schema_service.py
"""
Idempotent DDL for the tables this service owns.

Run once per environment via ``python -m scripts.init_db`` or at API startup
when DB_ENSURE_SCHEMA=true.
"""

from __future__ import annotations

from typing import List

from app.core.logging import get_logger
from app.core.xp_config import DEFAULT_LEVEL, DEFAULT_XP
from services.db_service import execute_with_conn, run_in_transaction

logger = get_logger()

SCHEMA_STATEMENTS: List[str] = [
    # gen_random_uuid() is built in from PostgreSQL 13
    """
    CREATE TABLE IF NOT EXISTS users (
        id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
        external_id text NOT NULL UNIQUE,
        email text,
        name text,
        role text NOT NULL DEFAULT 'USER'
            CHECK (role IN ('USER', 'EMPLOYER', 'ADMIN')),
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS user_xp (
        user_id uuid PRIMARY KEY REFERENCES users (id),
        xp bigint NOT NULL DEFAULT {DEFAULT_XP} CHECK (xp >= 0),
        level bigint NOT NULL DEFAULT {DEFAULT_LEVEL} CHECK (level >= 1),
        created_at timestamptz NOT NULL DEFAULT now(),
        updated_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_xp_log (
        id bigserial PRIMARY KEY,
        user_id uuid NOT NULL REFERENCES users (id),
        amount integer NOT NULL CHECK (amount > 0),
        reason_tag text,
        level_before bigint NOT NULL,
        level_after bigint NOT NULL,
        created_at timestamptz NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS user_xp_log_user_id_created_at_idx
        ON user_xp_log (user_id, created_at DESC)
    """,
]


async def ensure_schema() -> None:
    async with run_in_transaction() as conn:
        for statement in SCHEMA_STATEMENTS:
            await execute_with_conn(conn, statement)
    logger.info("schema_ensured", statements=len(SCHEMA_STATEMENTS))
