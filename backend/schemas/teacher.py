from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class SlotRange(BaseModel):
    # 0=Mon .. 5=Sat; periods are 1-based.
    day: int = Field(ge=0, le=5)
    periods: list[int] = Field(default_factory=list)

    @field_validator("periods")
    @classmethod
    def _positive_periods(cls, v: list[int]) -> list[int]:
        if any(int(p) < 1 for p in v):
            raise ValueError("periods are 1-based")
        return sorted(set(int(p) for p in v))


class AssignmentRestriction(SlotRange):
    level: Literal["MANDATORY", "RECOMMENDED"] = "MANDATORY"


def _cells(ranges: list[SlotRange] | None) -> set[tuple[int, int]]:
    return {(r.day, p) for r in ranges or [] for p in r.periods}


def _blocked_cells(
    unavailable: list[SlotRange] | None, restrictions: list[AssignmentRestriction] | None
) -> set[tuple[int, int]]:
    # MANDATORY restrictions block a slot just like an unavailable slot.
    mandatory = [r for r in restrictions or [] if r.level == "MANDATORY"]
    return _cells(unavailable) | _cells(mandatory)


def _check_grades(v: list[int] | None) -> list[int] | None:
    if v is None:
        return v
    if any(not 1 <= int(g) <= 6 for g in v):
        raise ValueError("grades must be between 1 and 6")
    return sorted(set(int(g) for g in v))


class TeacherBase(BaseModel):
    name: str = Field(min_length=1)
    grades: list[int] = Field(default_factory=list)
    subject_ids: list[str] = Field(default_factory=list)
    assignment_restrictions: list[AssignmentRestriction] = Field(default_factory=list)
    preferred_slots: list[SlotRange] = Field(default_factory=list)
    unavailable_slots: list[SlotRange] = Field(default_factory=list)
    max_weekly_hours: int = Field(default=25, ge=0, le=60)
    display_order: int = Field(default=1, ge=0)
    is_active: bool = True

    @field_validator("grades")
    @classmethod
    def _valid_grades(cls, v):
        return _check_grades(v)

    @model_validator(mode="after")
    def _preferred_not_blocked(self):
        if _cells(self.preferred_slots) & _blocked_cells(self.unavailable_slots, self.assignment_restrictions):
            raise ValueError("preferred_slots overlap unavailable slots or MANDATORY restrictions")
        return self


class TeacherCreate(TeacherBase):
    pass


class TeacherUpdate(BaseModel):
    name: str | None = None
    grades: list[int] | None = None
    subject_ids: list[str] | None = None
    assignment_restrictions: list[AssignmentRestriction] | None = None
    preferred_slots: list[SlotRange] | None = None
    unavailable_slots: list[SlotRange] | None = None
    max_weekly_hours: int | None = Field(default=None, ge=0, le=60)
    display_order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("grades")
    @classmethod
    def _valid_grades(cls, v):
        return _check_grades(v)

    @model_validator(mode="after")
    def _preferred_not_blocked(self):
        # Only checkable here when both sides are in the payload; the route rechecks against stored values.
        if self.preferred_slots is None:
            return self
        if self.unavailable_slots is None and self.assignment_restrictions is None:
            return self
        if _cells(self.preferred_slots) & _blocked_cells(self.unavailable_slots, self.assignment_restrictions):
            raise ValueError("preferred_slots overlap unavailable slots or MANDATORY restrictions")
        return self


class TeacherOut(TeacherBase):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True
