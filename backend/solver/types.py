from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
WEEKDAY_COUNT = 5
SATURDAY = 5

GRADE_MIN = 1
GRADE_MAX = 6

MANDATORY = "MANDATORY"
RECOMMENDED = "RECOMMENDED"

GENERAL_CLASSROOM = "general"


def day_name(day: int) -> str:
    return DAY_NAMES[day] if 0 <= day < len(DAY_NAMES) else str(day)


@dataclass(frozen=True, order=True)
class SlotRef:
    day: int
    period: int


@dataclass(frozen=True)
class RestrictionRecord:
    day: int
    periods: tuple[int, ...]
    level: str = MANDATORY


@dataclass(frozen=True)
class TeacherRecord:
    id: str
    name: str
    grades: tuple[int, ...] = ()
    subject_ids: tuple[str, ...] = ()
    max_weekly_hours: int = 25
    preferred_slots: tuple[SlotRef, ...] = ()
    unavailable_slots: tuple[SlotRef, ...] = ()
    restrictions: tuple[RestrictionRecord, ...] = ()
    display_order: int = 1


@dataclass(frozen=True)
class SubjectRecord:
    id: str
    name: str
    grades: tuple[int, ...] = ()
    # ((grade, hours), ...) sorted by grade
    weekly_hours: tuple[tuple[int, int], ...] = ()
    requires_special_classroom: bool = False
    classroom_type: str = GENERAL_CLASSROOM
    display_order: int = 1

    def hours_for_grade(self, grade: int) -> int:
        for g, hours in self.weekly_hours:
            if g == grade:
                return int(hours)
        return 0


@dataclass(frozen=True)
class ClassroomRecord:
    id: str
    name: str
    classroom_type: str = GENERAL_CLASSROOM
    capacity: int | None = None
    features: tuple[str, ...] = ()
    display_order: int = 0


@dataclass(frozen=True)
class SchoolSettingsRecord:
    grade_classes: tuple[int, ...] = (4, 4, 3, 3, 3, 3)
    daily_periods: int = 6
    saturday_periods: int = 0

    def classes_for_grade(self, grade: int) -> int:
        if GRADE_MIN <= grade <= len(self.grade_classes):
            return int(self.grade_classes[grade - 1])
        return 0

    @property
    def saturday_enabled(self) -> bool:
        return self.saturday_periods > 0

    @property
    def total_weekly_slots(self) -> int:
        return self.daily_periods * WEEKDAY_COUNT + (self.saturday_periods if self.saturday_enabled else 0)


@dataclass
class Bookings:
    """Teacher/classroom occupancy committed outside the current search."""

    teacher_slots: dict[str, set[SlotRef]] = field(default_factory=dict)
    classroom_slots: dict[str, set[SlotRef]] = field(default_factory=dict)

    def book(self, *, teacher_id: str, classroom_id: str | None, slot: SlotRef) -> None:
        self.teacher_slots.setdefault(teacher_id, set()).add(slot)
        if classroom_id is not None:
            self.classroom_slots.setdefault(classroom_id, set()).add(slot)

    def add_placements(self, placements: "tuple[Placement, ...] | list[Placement]") -> None:
        for p in placements:
            self.book(teacher_id=p.teacher_id, classroom_id=p.classroom_id, slot=SlotRef(p.day, p.period))


# ---------- Constraint model ----------


@dataclass(frozen=True)
class Requirement:
    subject_id: str
    subject_name: str
    hours: int
    display_order: int
    # Candidate indices into ConstraintModel.teachers / .classrooms, in preference order.
    teacher_indices: tuple[int, ...]
    classroom_indices: tuple[int, ...]
    requires_special_classroom: bool = False
    classroom_type: str = GENERAL_CLASSROOM


@dataclass(frozen=True)
class TeacherAvailability:
    teacher_id: str
    name: str
    display_order: int
    # Bitsets aligned to ConstraintModel.slots (bit i == slots[i]).
    available_mask: int
    preferred_mask: int
    discouraged_mask: int
    weekly_capacity: int


@dataclass(frozen=True)
class ClassroomAvailability:
    classroom_id: str
    name: str
    classroom_type: str
    display_order: int
    available_mask: int


@dataclass(frozen=True)
class ConstraintModel:
    grade: int
    class_section: str
    slots: tuple[SlotRef, ...]
    requirements: tuple[Requirement, ...]
    teachers: tuple[TeacherAvailability, ...]
    classrooms: tuple[ClassroomAvailability, ...]

    @property
    def total_slots(self) -> int:
        return len(self.slots)

    @property
    def required_hours(self) -> int:
        return sum(r.hours for r in self.requirements)


# ---------- Search results ----------


class SearchState(str, Enum):
    UNPLACED = "UNPLACED"
    PARTIALLY_PLACED = "PARTIALLY_PLACED"
    BACKTRACK = "BACKTRACK"
    COMPLETE = "COMPLETE"
    EXHAUSTED = "EXHAUSTED"


@dataclass(frozen=True)
class Placement:
    slot_index: int
    day: int
    period: int
    subject_id: str
    subject_name: str
    teacher_id: str
    teacher_name: str
    classroom_id: str | None = None
    classroom_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "day_name": day_name(self.day),
            "period": self.period,
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher_name,
            "classroom_id": self.classroom_id,
            "classroom_name": self.classroom_name,
        }


@dataclass(frozen=True)
class Assignment:
    grade: int
    class_section: str
    placements: tuple[Placement, ...]
    steps: int
    backtracks: int
    preference_score: float
    state: SearchState = SearchState.COMPLETE

    def hours_by_subject(self) -> dict[str, int]:
        out: dict[str, int] = {}
        for p in self.placements:
            out[p.subject_id] = out.get(p.subject_id, 0) + 1
        return out


# ---------- Persisted results ----------


@dataclass(frozen=True)
class TimetableSummary:
    id: str
    grade: int
    class_section: str
    generation_method: str
    assignment_rate: float
    total_slots: int
    assigned_slots: int
    statistics: dict[str, Any]
    created_at: datetime


@dataclass(frozen=True)
class GeneratedTimetableRecord(TimetableSummary):
    slots: tuple[Placement, ...] = ()

    def summary(self) -> TimetableSummary:
        return TimetableSummary(
            id=self.id,
            grade=self.grade,
            class_section=self.class_section,
            generation_method=self.generation_method,
            assignment_rate=self.assignment_rate,
            total_slots=self.total_slots,
            assigned_slots=self.assigned_slots,
            statistics=self.statistics,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class SectionPlacement:
    """A saved placement together with the class-section that owns it."""

    grade: int
    class_section: str
    placement: Placement

    @property
    def label(self) -> str:
        return f"{self.grade}-{self.class_section}"


@dataclass(frozen=True)
class TimetableFilter:
    grade: int | None = None
    class_section: str | None = None
    limit: int = 20
    offset: int = 0
