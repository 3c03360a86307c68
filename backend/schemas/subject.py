from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator


MAX_WEEKLY_HOURS = 20


def _check_weekly_hours(v: dict[str, int] | None) -> dict[str, int] | None:
    if v is None:
        return v
    out: dict[str, int] = {}
    for k, hours in v.items():
        try:
            grade = int(k)
        except (TypeError, ValueError):
            raise ValueError(f"weekly_hours key {k!r} is not a grade")
        if not 1 <= grade <= 6:
            raise ValueError("weekly_hours grades must be between 1 and 6")
        if not 0 <= int(hours) <= MAX_WEEKLY_HOURS:
            raise ValueError(f"weekly_hours must be between 0 and {MAX_WEEKLY_HOURS}")
        out[str(grade)] = int(hours)
    return out


def _check_grades(v: list[int] | None) -> list[int] | None:
    if v is None:
        return v
    if any(not 1 <= int(g) <= 6 for g in v):
        raise ValueError("grades must be between 1 and 6")
    return sorted(set(int(g) for g in v))


class SubjectBase(BaseModel):
    name: str = Field(min_length=1)
    grades: list[int] = Field(default_factory=list)
    # {"1": 4, "2": 3}
    weekly_hours: dict[str, int] = Field(default_factory=dict)
    requires_special_classroom: bool = False
    classroom_type: str = Field(default="general", min_length=1)
    display_order: int = Field(default=1, ge=0)
    is_active: bool = True

    @field_validator("grades")
    @classmethod
    def _valid_grades(cls, v):
        return _check_grades(v)

    @field_validator("weekly_hours")
    @classmethod
    def _valid_weekly_hours(cls, v):
        return _check_weekly_hours(v)

    @model_validator(mode="after")
    def _special_room_type(self):
        if self.requires_special_classroom and self.classroom_type == "general":
            raise ValueError("a special classroom subject needs a non-general classroom_type")
        return self


class SubjectCreate(SubjectBase):
    pass


class SubjectUpdate(BaseModel):
    name: str | None = None
    grades: list[int] | None = None
    weekly_hours: dict[str, int] | None = None
    requires_special_classroom: bool | None = None
    classroom_type: str | None = None
    display_order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("grades")
    @classmethod
    def _valid_grades(cls, v):
        return _check_grades(v)

    @field_validator("weekly_hours")
    @classmethod
    def _valid_weekly_hours(cls, v):
        return _check_weekly_hours(v)


class SubjectOut(SubjectBase):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True
