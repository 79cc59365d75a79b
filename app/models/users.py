# app/models/users.py
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    USER = "USER"
    EMPLOYER = "EMPLOYER"
    ADMIN = "ADMIN"


class UserRecord(BaseModel):
    """Internal user record linked to one external identity."""

    model_config = ConfigDict(populate_by_name=True)

    id: UUID
    external_id: str = Field(alias="externalId")
    email: Optional[str] = None
    name: Optional[str] = None
    role: UserRole = UserRole.USER
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")


class RoleUpdateRequest(BaseModel):
    # targetClerkId is what the web client historically sent
    target_external_id: str = Field(
        validation_alias=AliasChoices("targetExternalId", "targetClerkId", "target_external_id"),
    )
    new_role: str = Field(validation_alias=AliasChoices("newRole", "new_role"))


class RoleUpdateResponse(BaseModel):
    message: str
    user: UserRecord
