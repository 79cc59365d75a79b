# services/xp_ledger_service.py
"""
XP ledger: per-user XP balance and level.

Each level L needs ``L * XP_PER_LEVEL`` XP to advance. An award crossing that
threshold bumps the level by exactly one and keeps the full XP balance (the
threshold is not subtracted). Lifetime XP is derived, never stored.
"""

from __future__ import annotations

import math
from numbers import Real
from typing import Any, Optional, Tuple
from uuid import UUID

import asyncpg

from app.core.errors import InvalidArgument, NotFound
from app.core.logging import get_logger
from app.core.xp_config import DEFAULT_LEVEL, DEFAULT_XP, MAX_AWARD_AMOUNT, XP_PER_LEVEL
from app.models.xp import AwardResult, LevelStatus
from services.db_service import (
    execute_with_conn,
    fetchrow,
    fetchrow_with_conn,
    run_in_transaction,
)

logger = get_logger()


# --------------------------------------------------------------------
# Level arithmetic (pure)
# --------------------------------------------------------------------

def xp_to_next_level(level: int) -> int:
    return level * XP_PER_LEVEL


def total_xp(xp: int, level: int) -> int:
    return xp + (level - 1) * XP_PER_LEVEL


def progress_percent(xp: int, level: int) -> float:
    # Unclamped: a balance carried over a level-up can exceed 100%
    return (xp / xp_to_next_level(level)) * 100


def apply_award(xp: int, level: int, amount: int) -> Tuple[int, int, bool]:
    """
    Apply one award to an ``(xp, level)`` pair.

    Returns ``(new_xp, new_level, leveled_up)``. Only the pre-award level's
    threshold is checked, so one award never raises the level by more than one.
    """
    new_xp = xp + amount
    if new_xp >= xp_to_next_level(level):
        return new_xp, level + 1, True
    return new_xp, level, False


def validate_amount(raw: Any) -> int:
    """
    Return ``raw`` as a positive int or raise InvalidArgument.

    Integral floats (``50.0``) are accepted; booleans, strings, fractional and
    non-finite numbers are not.
    """
    if raw is None or isinstance(raw, bool) or not isinstance(raw, Real):
        raise InvalidArgument("Valid XP amount is required")
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            raise InvalidArgument("Valid XP amount is required")
    amount = int(raw)
    if amount <= 0:
        raise InvalidArgument("Valid XP amount is required")
    if amount > MAX_AWARD_AMOUNT:
        raise InvalidArgument(f"XP amount must not exceed {MAX_AWARD_AMOUNT}")
    return amount


def build_status(xp: int, level: int) -> LevelStatus:
    return LevelStatus(
        xp=xp,
        level=level,
        total_xp=total_xp(xp, level),
        xp_to_next_level=xp_to_next_level(level),
        xp_progress_percent=progress_percent(xp, level),
    )


# --------------------------------------------------------------------
# Store operations
# --------------------------------------------------------------------

ENSURE_LEDGER_SQL = """
    INSERT INTO user_xp (user_id, xp, level, created_at, updated_at)
    VALUES ($1, $2, $3, now(), now())
    ON CONFLICT (user_id) DO NOTHING
"""

# Get-or-create in one statement. The second branch cannot see the row the
# first branch inserts, so exactly one of them yields a row.
GET_OR_CREATE_LEDGER_SQL = """
    WITH inserted AS (
        INSERT INTO user_xp (user_id, xp, level, created_at, updated_at)
        VALUES ($1, $2, $3, now(), now())
        ON CONFLICT (user_id) DO NOTHING
        RETURNING xp, level
    )
    SELECT xp, level FROM inserted
    UNION ALL
    SELECT xp, level FROM user_xp WHERE user_id = $1
    LIMIT 1
"""

READ_LEDGER_SQL = """
    SELECT xp, level
    FROM user_xp
    WHERE user_id = $1
"""

LOCK_LEDGER_SQL = """
    SELECT xp, level
    FROM user_xp
    WHERE user_id = $1
    FOR UPDATE
"""

UPDATE_LEDGER_SQL = """
    UPDATE user_xp
    SET xp = $2,
        level = $3,
        updated_at = now()
    WHERE user_id = $1
"""

LOG_AWARD_SQL = """
    INSERT INTO user_xp_log (user_id, amount, reason_tag, level_before, level_after, created_at)
    VALUES ($1, $2, $3, $4, $5, now())
"""


async def ensure_ledger(user_ref: UUID, conn: Optional[asyncpg.Connection] = None) -> None:
    """
    Create the default ledger entry for ``user_ref`` if it does not exist yet.

    Called by the user directory when it creates a user; safe to repeat.
    """
    try:
        if conn is not None:
            await execute_with_conn(conn, ENSURE_LEDGER_SQL, user_ref, DEFAULT_XP, DEFAULT_LEVEL)
        else:
            async with run_in_transaction() as tx_conn:
                await execute_with_conn(tx_conn, ENSURE_LEDGER_SQL, user_ref, DEFAULT_XP, DEFAULT_LEVEL)
    except asyncpg.ForeignKeyViolationError as exc:
        raise NotFound("User not found") from exc


async def get_status(user_ref: UUID) -> LevelStatus:
    try:
        row = await fetchrow(GET_OR_CREATE_LEDGER_SQL, user_ref, DEFAULT_XP, DEFAULT_LEVEL)
    except asyncpg.ForeignKeyViolationError as exc:
        raise NotFound("User not found") from exc

    if row is None:
        # A concurrent request created the entry after this statement's
        # snapshot was taken; read what it committed.
        row = await fetchrow(READ_LEDGER_SQL, user_ref)
    if row is None:
        xp, level = DEFAULT_XP, DEFAULT_LEVEL
    else:
        xp, level = int(row["xp"]), int(row["level"])
    return build_status(xp, level)


async def award_xp(user_ref: UUID, amount: Any, reason_tag: Optional[str] = None) -> AwardResult:
    """
    Add ``amount`` XP to the user's ledger entry and apply at most one level-up.

    Validation happens before any store access. The read-modify-write runs in
    one transaction holding the row lock, so concurrent awards for the same
    user are applied one after another.
    """
    amount = validate_amount(amount)

    async with run_in_transaction() as conn:
        await ensure_ledger(user_ref, conn=conn)
        row = await fetchrow_with_conn(conn, LOCK_LEDGER_SQL, user_ref)
        if row is None:
            raise NotFound("User not found")

        xp, level = int(row["xp"]), int(row["level"])
        new_xp, new_level, leveled_up = apply_award(xp, level, amount)

        await execute_with_conn(conn, UPDATE_LEDGER_SQL, user_ref, new_xp, new_level)
        await execute_with_conn(conn, LOG_AWARD_SQL, user_ref, amount, reason_tag, level, new_level)

    logger.info(
        "xp_awarded",
        user_id=str(user_ref),
        reason_tag=reason_tag,
        amount=amount,
        xp=new_xp,
        level=new_level,
        leveled_up=leveled_up,
    )
    if leveled_up:
        logger.info("xp_level_up", user_id=str(user_ref), level_before=level, level_after=new_level)

    return AwardResult(
        xp=new_xp,
        level=new_level,
        total_xp=total_xp(new_xp, new_level),
        xp_to_next_level=xp_to_next_level(new_level),
        xp_progress=progress_percent(new_xp, new_level),
        leveled_up=leveled_up,
        reason_tag=reason_tag,
        amount_added=amount,
    )
