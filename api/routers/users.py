# api/routers/users.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.logging import logger
from app.deps.users import require_admin
from app.models.users import RoleUpdateRequest, RoleUpdateResponse, UserRecord
from services.user_directory_service import set_role

router = APIRouter(prefix="/users", tags=["users"])


@router.patch("/role", response_model=RoleUpdateResponse)
async def update_user_role(
    body: RoleUpdateRequest,
    admin: UserRecord = Depends(require_admin),
):
    """
    Change another user's role. Admin only.
    """
    user = await set_role(body.target_external_id, body.new_role)
    logger.info("admin_role_change", admin_id=str(admin.id), target_id=str(user.id), role=user.role.value)
    return RoleUpdateResponse(message="Role updated", user=user)
