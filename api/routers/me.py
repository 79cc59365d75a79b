# api/routers/me.py
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from app.core.errors import InvalidArgument, NotFound
from app.core.logging import logger
from app.deps.auth import Identity, get_current_identity
from app.deps.users import get_current_user
from app.models.users import UserRecord
from app.models.xp import AwardResult, AwardXPRequest, LevelStatus
from services.user_directory_service import find_user, get_or_create_user
from services.xp_ledger_service import award_xp, get_status, validate_amount

router = APIRouter(prefix="/me", tags=["me"])


@router.get("", response_model=UserRecord)
async def get_me(identity: Identity = Depends(get_current_identity)):
    """
    Current user's record. Created (with an empty XP ledger) on first call.
    """
    user, _ = await get_or_create_user(
        identity.external_id,
        email=identity.email,
        name=identity.name,
    )
    return user


@router.get("/xp", response_model=LevelStatus)
async def get_my_xp(user: UserRecord = Depends(get_current_user)):
    """Current XP, level and progress towards the next level."""
    return await get_status(user.id)


@router.post(
    "/xp",
    response_model=AwardResult,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": AwardXPRequest.model_json_schema()}},
        }
    },
)
async def add_my_xp(
    request: Request,
    identity: Identity = Depends(get_current_identity),
):
    """
    Add XP for an action (job application, course start, ...).

    The body is read only after the caller is authenticated, and the amount is
    checked before the user lookup: 401, then 400, then 404.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw.decode("utf-8"))
    except ValueError:
        logger.info("xp_award_invalid_json", external_id=identity.external_id)
        raise InvalidArgument("Invalid request body") from None

    try:
        body = AwardXPRequest.model_validate(payload)
    except ValidationError:
        raise InvalidArgument("Invalid request body") from None

    amount = validate_amount(body.amount)

    user = await find_user(identity.external_id)
    if user is None:
        raise NotFound("User not found")

    return await award_xp(user.id, amount, body.action)
