# tests/unit/test_db_service.py
from __future__ import annotations

import asyncio

import asyncpg
import pytest

from app.core.errors import StoreUnavailable
from services.db_service import _execute_with_timing, normalize_database_url


class _FakeConn:
    def __init__(self, exc: Exception | None = None, result: object = None) -> None:
        self.exc = exc
        self.result = result
        self.calls = []

    async def fetchrow(self, query, *args, timeout=None):
        self.calls.append((query, args, timeout))
        if self.exc is not None:
            raise self.exc
        return self.result


def test_normalize_database_url_rewrites_sqlalchemy_scheme():
    assert (
        normalize_database_url(" postgresql+asyncpg://u:p@db:5432/app ")
        == "postgresql://u:p@db:5432/app"
    )


def test_normalize_database_url_keeps_plain_dsn():
    dsn = "postgresql://u:p@db:5432/app?sslmode=require"
    assert normalize_database_url(dsn) == dsn


def test_execute_passes_through_result_and_default_timeout():
    conn = _FakeConn(result={"xp": 10})

    row = asyncio.run(_execute_with_timing(conn, "fetchrow", "SELECT 1", 42))

    assert row == {"xp": 10}
    query, args, timeout = conn.calls[0]
    assert args == (42,)
    assert timeout is not None and timeout > 0


@pytest.mark.parametrize(
    "exc",
    [OSError("connection refused"), asyncio.TimeoutError(), asyncpg.InterfaceError("closed")],
)
def test_execute_wraps_store_failures(exc):
    conn = _FakeConn(exc=exc)

    with pytest.raises(StoreUnavailable) as exc_info:
        asyncio.run(_execute_with_timing(conn, "fetchrow", "SELECT 1"))

    assert exc_info.value.__cause__ is exc


def test_execute_lets_constraint_violations_through():
    conn = _FakeConn(exc=asyncpg.ForeignKeyViolationError("user_xp_user_id_fkey"))

    with pytest.raises(asyncpg.ForeignKeyViolationError):
        asyncio.run(_execute_with_timing(conn, "fetchrow", "INSERT INTO user_xp ..."))


def test_execute_does_not_wrap_programming_errors():
    conn = _FakeConn(exc=ValueError("bad argument"))

    with pytest.raises(ValueError):
        asyncio.run(_execute_with_timing(conn, "fetchrow", "SELECT 1"))
