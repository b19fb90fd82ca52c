"""Pydantic schemas for progress, attempt recording and preset graphs."""
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RecordAttemptRequest(CamelSchema):
    """Record request. Kind-specific metrics (total, solved, correct, mistakes,
    time, won, success, stars, starLevel) pass through as extra fields and are
    read by the trainer adapter."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    trainer_id: str = Field(min_length=1)
    kind: Literal["column", "mental", "drill"]
    level: str = Field(min_length=1)
    attempt_id: str | None = None
    preset_id: str | None = None

    @field_validator("trainer_id", "level")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("attempt_id")
    @classmethod
    def _blank_token_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None

    def payload(self) -> dict[str, Any]:
        """Wire-shaped dict as stored in the attempt ledger."""
        return self.model_dump(by_alias=True, exclude_none=True)


class NewlyUnlockedAchievementSchema(CamelSchema):
    id: str
    title: str
    description: str
    icon_key: str
    unlocked_at: datetime


class TrainerProgressOutSchema(CamelSchema):
    trainer_id: str
    progress: dict[str, Any] | None = None


class RecordAttemptOutSchema(CamelSchema):
    trainer_id: str
    progress: dict[str, Any] | None = None
    duplicate: bool = False
    newly_unlocked_achievements: list[NewlyUnlockedAchievementSchema] = []


class PresetViewSchema(CamelSchema):
    id: str
    title: str
    description: str
    locked: bool
    completed: bool
    reason: str | None = None


class CrystalsSchema(CamelSchema):
    earned: int
    cap: int
    pre_race_done: bool


class TrainerPresetsOutSchema(CamelSchema):
    trainer_id: str
    title: str
    archetype: str
    unlock_policy: dict[str, Any]
    progress: dict[str, Any] | None = None
    presets: list[PresetViewSchema]
    crystals: CrystalsSchema
