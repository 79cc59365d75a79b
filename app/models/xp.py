# app/models/xp.py
from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LevelStatus(BaseModel):
    """Current XP/level snapshot for one user."""

    model_config = ConfigDict(populate_by_name=True)

    xp: int
    level: int
    total_xp: int = Field(alias="totalXP")
    xp_to_next_level: int = Field(alias="xpToNextLevel")
    xp_progress_percent: float = Field(alias="xpProgressPercent")


class AwardResult(BaseModel):
    """Outcome of a single XP award, computed with the post-award level."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = "XP added successfully"
    xp: int
    level: int
    total_xp: int = Field(alias="totalXP")
    xp_to_next_level: int = Field(alias="xpToNextLevel")
    xp_progress: float = Field(alias="xpProgress")
    leveled_up: bool = Field(alias="leveledUp")
    reason_tag: Optional[str] = Field(default=None, alias="reasonTag")
    amount_added: int = Field(alias="amountAdded")


class AwardXPRequest(BaseModel):
    """
    POST /api/me/xp body.

    ``amount`` is left untyped; validate_amount turns a missing or non-numeric
    value into the same 400 as a negative one.
    """

    amount: Any = None
    action: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("action", "reasonTag", "reason_tag"),
    )
