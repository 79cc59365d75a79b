# app/deps/users.py
from __future__ import annotations

from fastapi import Depends

from app.core.errors import Forbidden, NotFound
from app.core.logging import logger
from app.deps.auth import Identity, get_current_identity
from app.models.users import UserRecord, UserRole
from services.user_directory_service import find_user


async def get_current_user(identity: Identity = Depends(get_current_identity)) -> UserRecord:
    """
    Resolve the caller to an existing internal user. Does not create one;
    GET /api/me is the entry point that does.
    """
    user = await find_user(identity.external_id)
    if user is None:
        raise NotFound("User not found")
    return user


def require_role(role: UserRole):
    async def _dependency(user: UserRecord = Depends(get_current_user)) -> UserRecord:
        if user.role != role:
            logger.info("auth_role_forbidden", user_id=str(user.id), required=role.value)
            raise Forbidden("Forbidden")
        return user
    return _dependency


require_admin = require_role(UserRole.ADMIN)
