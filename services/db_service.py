# services/db_service.py
from __future__ import annotations

import os
from typing import Any, AsyncIterator, Optional
import asyncio
from contextlib import asynccontextmanager
from time import monotonic
from urllib.parse import urlparse

import logging
import asyncpg

from app.config import require_database_url
from app.core.errors import StoreUnavailable


def normalize_database_url(raw_dsn: str) -> str:
    """
    Keep the DSN exactly as configured; only rewrite the SQLAlchemy-style
    scheme postgresql+asyncpg:// to postgresql:// so asyncpg accepts it.
    """
    raw_dsn = raw_dsn.strip()
    if raw_dsn.startswith("postgresql+asyncpg://"):
        raw_dsn = "postgresql://" + raw_dsn[len("postgresql+asyncpg://"):]
    return raw_dsn

logger = logging.getLogger(__name__)

APPLICATION_NAME = "bloompoint-backend"
STATEMENT_TIMEOUT_MS = int(os.getenv("STATEMENT_TIMEOUT_MS", "30000"))
IDLE_IN_TX_TIMEOUT_MS = int(os.getenv("IDLE_IN_TX_TIMEOUT_MS", "60000"))
LOCK_TIMEOUT_MS = int(os.getenv("LOCK_TIMEOUT_MS", "5000"))
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", "1"))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", "4"))
DEFAULT_QUERY_TIMEOUT_MS = int(os.getenv("DEFAULT_QUERY_TIMEOUT_MS", "30000"))
SLOW_QUERY_THRESHOLD_MS = 1_000  # 1 second

# Driver, network and timeout failures. Everything else is a programming error and propagates as-is.
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

# --------------------------------------------------------------------
# Lightweight asyncpg pool + helpers
# --------------------------------------------------------------------
_pool: asyncpg.Pool | None = None
_pool_lock = asyncio.Lock()

async def ensure_pool() -> asyncpg.Pool:
    global _pool
    if _pool is not None:
        return _pool

    async with _pool_lock:
        if _pool is not None:
            return _pool

        final_dsn = normalize_database_url(require_database_url())

        logger.info(
            "db_pool_initializing",
            extra={
                "dsn_host": urlparse(final_dsn).hostname,
                "dsn_port": urlparse(final_dsn).port,
                "application_name": APPLICATION_NAME,
            },
        )
        try:
            _pool = await asyncpg.create_pool(
                dsn=final_dsn,
                min_size=DB_POOL_MIN_SIZE,
                max_size=DB_POOL_MAX_SIZE,
                command_timeout=60,
                timeout=60,
                statement_cache_size=0,
                max_inactive_connection_lifetime=30,
                server_settings={
                    "application_name": APPLICATION_NAME,
                    "statement_timeout": str(STATEMENT_TIMEOUT_MS),
                    "idle_in_transaction_session_timeout": str(IDLE_IN_TX_TIMEOUT_MS),
                    "lock_timeout": str(LOCK_TIMEOUT_MS),
                },
            )
        except STORE_ERRORS as exc:
            logger.error("db_pool_init_failed", extra={"error": exc.__class__.__name__})
            raise StoreUnavailable("Database is unavailable") from exc
        return _pool

async def init_db_pool() -> asyncpg.Pool:
    # Safe to call multiple times
    return await ensure_pool()

async def close_db_pool() -> None:
    global _pool
    async with _pool_lock:
        if _pool is None:
            return
        await _pool.close()
        _pool = None
        logger.info("db_pool_closed")

async def _execute_with_timing(
    conn: asyncpg.Connection,
    method: str,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> Any:
    start_ms = monotonic() * 1000
    try:
        func = getattr(conn, method)
        effective_timeout = (
            timeout if timeout is not None else DEFAULT_QUERY_TIMEOUT_MS / 1000
        )
        return await func(query, *args, timeout=effective_timeout)
    except asyncpg.IntegrityConstraintViolationError:
        # Constraint violations describe the caller's data, not the store's health
        raise
    except STORE_ERRORS as exc:
        logger.warning(
            "db_query_failed",
            extra={
                "method": method,
                "error": exc.__class__.__name__,
                "query_snippet": query.strip().split("\n")[0][:200],
            },
        )
        raise StoreUnavailable("Database query failed") from exc
    finally:
        duration_ms = (monotonic() * 1000) - start_ms
        if duration_ms >= SLOW_QUERY_THRESHOLD_MS:
            logger.warning(
                "db_slow_query",
                extra={
                    "duration_ms": round(duration_ms, 2),
                    "method": method,
                    "arg_count": len(args),
                    "query_snippet": query.strip().split("\n")[0][:200],
                },
            )

@asynccontextmanager
async def connection() -> AsyncIterator[asyncpg.Connection]:
    pool = await ensure_pool()
    async with pool.acquire() as conn:
        yield conn

async def fetchrow(
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> Optional[asyncpg.Record]:
    async with connection() as conn:
        return await _execute_with_timing(
            conn, "fetchrow", query, *args, timeout=timeout
        )

@asynccontextmanager
async def run_in_transaction(
    *,
    isolation: Optional[str] = None,
    readonly: bool = False,
) -> AsyncIterator[asyncpg.Connection]:
    pool = await ensure_pool()
    async with pool.acquire() as conn:
        tx = conn.transaction(isolation=isolation, readonly=readonly)
        try:
            await tx.start()
        except STORE_ERRORS as exc:
            raise StoreUnavailable("Could not start transaction") from exc
        try:
            yield conn
        except Exception:
            await tx.rollback()
            raise
        else:
            try:
                await tx.commit()
            except STORE_ERRORS as exc:
                raise StoreUnavailable("Could not commit transaction") from exc

async def fetchrow_with_conn(
    conn: asyncpg.Connection,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> Optional[asyncpg.Record]:
    return await _execute_with_timing(
        conn, "fetchrow", query, *args, timeout=timeout
    )

async def execute_with_conn(
    conn: asyncpg.Connection,
    query: str,
    *args: Any,
    timeout: Optional[float] = None,
) -> str:
    return await _execute_with_timing(conn, "execute", query, *args, timeout=timeout)
