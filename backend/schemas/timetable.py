from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


class GenerateTimetableRequest(BaseModel):
    # Range/format checks happen in the generation service so every bad input
    # surfaces as VALIDATION_ERROR.
    grade: int
    class_section: str


class GenerateAllRequest(BaseModel):
    grade: int | None = None


class TimetableSlotOut(BaseModel):
    day: int
    day_name: str
    period: int
    subject_id: str
    subject_name: str
    teacher_id: str
    teacher_name: str
    classroom_id: str | None = None
    classroom_name: str | None = None


class TimetableSummaryOut(BaseModel):
    id: str
    grade: int
    class_section: str
    generation_method: str
    assignment_rate: float
    total_slots: int
    assigned_slots: int
    statistics: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    class Config:
        from_attributes = True


class TimetableDetailOut(TimetableSummaryOut):
    slots: list[TimetableSlotOut] = Field(default_factory=list)


class TimetableListOut(BaseModel):
    items: list[TimetableSummaryOut]
    page: int
    limit: int
    total: int
    total_pages: int


class SectionFailureOut(BaseModel):
    grade: int
    class_section: str
    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    class Config:
        from_attributes = True


class BatchGenerationOut(BaseModel):
    generated: list[TimetableSummaryOut]
    failed: list[SectionFailureOut]
    requested: int


class ViolationOut(BaseModel):
    type: str
    severity: str
    message: str
    day: int | None = None
    period: int | None = None
    subject_id: str | None = None
    teacher_id: str | None = None
    classroom_id: str | None = None
    conflicting_sections: list[str] = Field(default_factory=list)


class TimetableValidationOut(BaseModel):
    timetable_id: str
    grade: int
    class_section: str
    is_valid: bool
    violations: list[ViolationOut]
    checked_constraints: list[str]
