# services/user_directory_service.py
"""
User directory: maps an external identity (the identity provider's subject id)
to an internal user record.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional, Tuple

from app.core.errors import InvalidArgument, NotFound
from app.core.logging import get_logger
from app.models.users import UserRecord, UserRole
from services.db_service import fetchrow, fetchrow_with_conn, run_in_transaction
from services.xp_ledger_service import ensure_ledger

logger = get_logger()

DEFAULT_USER_NAME = "Unknown User"

_USER_COLUMNS = "id, external_id, email, name, role, created_at, updated_at"

FIND_USER_SQL = f"""
    SELECT {_USER_COLUMNS}
    FROM users
    WHERE external_id = $1
"""

GET_OR_CREATE_USER_SQL = f"""
    WITH inserted AS (
        INSERT INTO users (external_id, email, name, role, created_at, updated_at)
        VALUES ($1, $2, $3, $4, now(), now())
        ON CONFLICT (external_id) DO NOTHING
        RETURNING {_USER_COLUMNS}, true AS created
    )
    SELECT * FROM inserted
    UNION ALL
    SELECT {_USER_COLUMNS}, false AS created
    FROM users
    WHERE external_id = $1
    LIMIT 1
"""

SET_ROLE_SQL = f"""
    UPDATE users
    SET role = $2,
        updated_at = now()
    WHERE external_id = $1
    RETURNING {_USER_COLUMNS}
"""


def _to_user(row: Mapping[str, Any]) -> UserRecord:
    return UserRecord(
        id=row["id"],
        external_id=row["external_id"],
        email=row.get("email"),
        name=row.get("name"),
        role=row.get("role") or UserRole.USER,
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )


def display_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    return cleaned or DEFAULT_USER_NAME


async def find_user(external_id: str) -> Optional[UserRecord]:
    row = await fetchrow(FIND_USER_SQL, external_id)
    if row is None:
        return None
    return _to_user(dict(row))


async def get_or_create_user(
    external_id: str,
    *,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> Tuple[UserRecord, bool]:
    """
    Return ``(user, created)`` for an external identity, creating a minimal
    record (and its XP ledger entry) on first sight.
    """
    async with run_in_transaction() as conn:
        row = await fetchrow_with_conn(
            conn,
            GET_OR_CREATE_USER_SQL,
            external_id,
            email or None,
            display_name(name),
            UserRole.USER.value,
        )
        if row is None:
            # Lost an insert race; the winner has committed by now.
            row = await fetchrow_with_conn(conn, FIND_USER_SQL, external_id)
            if row is None:
                raise NotFound("User not found")
            created = False
        else:
            row = dict(row)
            created = bool(row.pop("created", False))

        user = _to_user(dict(row))
        if created:
            await ensure_ledger(user.id, conn=conn)

    if created:
        logger.info("user_created", user_id=str(user.id), external_id=external_id)
    return user, created


def parse_role(raw: Any) -> UserRole:
    if isinstance(raw, UserRole):
        return raw
    try:
        return UserRole(str(raw).strip().upper())
    except ValueError:
        allowed = ", ".join(r.value for r in UserRole)
        raise InvalidArgument(f"Invalid role '{raw}'. Allowed: {allowed}") from None


async def set_role(target_external_id: str, role: Any) -> UserRecord:
    new_role = parse_role(role)
    row = await fetchrow(SET_ROLE_SQL, target_external_id, new_role.value)
    if row is None:
        raise NotFound("Target user not found")
    user = _to_user(dict(row))
    logger.info("user_role_updated", user_id=str(user.id), role=new_role.value)
    return user
