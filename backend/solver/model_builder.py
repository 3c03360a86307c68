from __future__ import annotations

import re
from typing import Iterable, Sequence

from core.errors import ValidationError
from solver.types import (
    GENERAL_CLASSROOM,
    GRADE_MAX,
    GRADE_MIN,
    MANDATORY,
    RECOMMENDED,
    SATURDAY,
    WEEKDAY_COUNT,
    Bookings,
    ClassroomAvailability,
    ClassroomRecord,
    ConstraintModel,
    Requirement,
    SchoolSettingsRecord,
    SlotRef,
    SubjectRecord,
    TeacherAvailability,
    TeacherRecord,
)


SECTION_PATTERN = re.compile(r"^[A-Z]$")


def section_index(class_section: str) -> int:
    """1-based position of a section letter (A=1)."""
    return ord(class_section) - ord("A") + 1


def section_letters(count: int) -> list[str]:
    return [chr(ord("A") + i) for i in range(max(0, min(count, 26)))]


def validate_grade_section_format(grade: int, class_section: str) -> None:
    """Checks that need no school settings: grade range and section letter."""

    if isinstance(grade, bool) or not isinstance(grade, int):
        raise ValidationError("Grade must be an integer", details={"field": "grade", "value": repr(grade)})
    if not (GRADE_MIN <= grade <= GRADE_MAX):
        raise ValidationError(
            f"Grade must be between {GRADE_MIN} and {GRADE_MAX}",
            details={"field": "grade", "value": grade},
        )
    if not isinstance(class_section, str) or not SECTION_PATTERN.match(class_section):
        raise ValidationError(
            "Class section must be a single upper-case letter (A-Z)",
            details={"field": "class_section", "value": repr(class_section)},
        )


def validate_grade_section(grade: int, class_section: str, settings: SchoolSettingsRecord) -> None:
    validate_grade_section_format(grade, class_section)

    classes = settings.classes_for_grade(grade)
    if classes <= 0:
        raise ValidationError(
            f"Grade {grade} has no classes configured",
            details={"field": "grade", "value": grade, "classes": classes},
        )
    if section_index(class_section) > classes:
        raise ValidationError(
            f"Grade {grade} has only {classes} class(es); section {class_section} does not exist",
            details={"field": "class_section", "value": class_section, "classes": classes},
        )


def _validate_settings(settings: SchoolSettingsRecord) -> None:
    if int(settings.daily_periods) < 1:
        raise ValidationError(
            "Daily period count must be a positive integer",
            details={"field": "daily_periods", "value": settings.daily_periods},
        )
    if int(settings.saturday_periods) < 0:
        raise ValidationError(
            "Saturday period count must be a non-negative integer",
            details={"field": "saturday_periods", "value": settings.saturday_periods},
        )


def build_slot_grid(settings: SchoolSettingsRecord) -> tuple[SlotRef, ...]:
    slots: list[SlotRef] = []
    for day in range(WEEKDAY_COUNT):
        for period in range(1, int(settings.daily_periods) + 1):
            slots.append(SlotRef(day, period))
    if settings.saturday_enabled:
        for period in range(1, int(settings.saturday_periods) + 1):
            slots.append(SlotRef(SATURDAY, period))
    return tuple(slots)


def _mask(index_by_slot: dict[SlotRef, int], refs: Iterable[SlotRef]) -> int:
    m = 0
    for ref in refs:
        i = index_by_slot.get(ref)
        # Slots outside the configured grid (e.g. Saturday when disabled) are ignored.
        if i is not None:
            m |= 1 << i
    return m


def _restriction_refs(teacher: TeacherRecord, level: str) -> list[SlotRef]:
    out: list[SlotRef] = []
    for r in teacher.restrictions:
        if r.level != level:
            continue
        out.extend(SlotRef(r.day, p) for p in r.periods)
    return out


def required_hours(subject: SubjectRecord, grade: int) -> int:
    if subject.grades and grade not in subject.grades:
        return 0
    hours = subject.hours_for_grade(grade)
    if hours > 0:
        return hours
    # Listed for the grade without an explicit count.
    return 1 if grade in subject.grades else 0


def _teacher_is_eligible(teacher: TeacherRecord, subject: SubjectRecord, grade: int) -> bool:
    if subject.id not in teacher.subject_ids:
        return False
    return not teacher.grades or grade in teacher.grades


def _classroom_fits(classroom: ClassroomRecord, subject: SubjectRecord) -> bool:
    if subject.requires_special_classroom:
        return classroom.classroom_type == subject.classroom_type
    return classroom.classroom_type == GENERAL_CLASSROOM


def build_constraint_model(
    grade: int,
    class_section: str,
    teachers: Sequence[TeacherRecord],
    subjects: Sequence[SubjectRecord],
    classrooms: Sequence[ClassroomRecord],
    settings: SchoolSettingsRecord,
    committed: Bookings | None = None,
) -> ConstraintModel:
    """Normalize raw entities into the scheduling problem for one class-section.

    Pure transformation: identical inputs always yield an equal model.
    """

    _validate_settings(settings)
    validate_grade_section(grade, class_section, settings)
    committed = committed or Bookings()

    slots = build_slot_grid(settings)
    index_by_slot = {s: i for i, s in enumerate(slots)}
    full_mask = (1 << len(slots)) - 1

    ordered_subjects = sorted(subjects, key=lambda s: (s.display_order, s.name, s.id))
    applicable: list[tuple[SubjectRecord, int]] = []
    for subj in ordered_subjects:
        hours = required_hours(subj, grade)
        if hours > 0:
            applicable.append((subj, hours))

    # Only teachers able to teach something for this grade take part.
    ordered_teachers = sorted(teachers, key=lambda t: (t.display_order, t.name, t.id))
    relevant_teachers = [
        t for t in ordered_teachers if any(_teacher_is_eligible(t, subj, grade) for subj, _h in applicable)
    ]

    teacher_slots: list[TeacherAvailability] = []
    for t in relevant_teachers:
        busy = committed.teacher_slots.get(t.id, set())
        blocked = _mask(index_by_slot, t.unavailable_slots) | _mask(index_by_slot, _restriction_refs(t, MANDATORY))
        teacher_slots.append(
            TeacherAvailability(
                teacher_id=t.id,
                name=t.name,
                display_order=t.display_order,
                available_mask=full_mask & ~blocked & ~_mask(index_by_slot, busy),
                preferred_mask=_mask(index_by_slot, t.preferred_slots),
                discouraged_mask=_mask(index_by_slot, _restriction_refs(t, RECOMMENDED)),
                weekly_capacity=max(0, int(t.max_weekly_hours) - len(busy)),
            )
        )
    teacher_index = {t.teacher_id: i for i, t in enumerate(teacher_slots)}

    ordered_rooms = sorted(classrooms, key=lambda c: (c.display_order, c.name, c.id))
    room_slots = tuple(
        ClassroomAvailability(
            classroom_id=c.id,
            name=c.name,
            classroom_type=c.classroom_type,
            display_order=c.display_order,
            available_mask=full_mask & ~_mask(index_by_slot, committed.classroom_slots.get(c.id, set())),
        )
        for c in ordered_rooms
    )

    requirements: list[Requirement] = []
    for subj, hours in applicable:
        eligible = [teacher_index[t.id] for t in relevant_teachers if _teacher_is_eligible(t, subj, grade)]
        # Most constrained first: fewer free slots, then display order.
        eligible.sort(
            key=lambda i: (
                bin(teacher_slots[i].available_mask).count("1"),
                teacher_slots[i].display_order,
                teacher_slots[i].teacher_id,
            )
        )
        rooms = [i for i, c in enumerate(ordered_rooms) if _classroom_fits(c, subj)]
        requirements.append(
            Requirement(
                subject_id=subj.id,
                subject_name=subj.name,
                hours=hours,
                display_order=subj.display_order,
                teacher_indices=tuple(eligible),
                classroom_indices=tuple(rooms),
                requires_special_classroom=subj.requires_special_classroom,
                classroom_type=subj.classroom_type,
            )
        )

    # Deterministic priority: most hours first, then declared display order.
    requirements.sort(key=lambda r: (-r.hours, r.display_order, r.subject_name, r.subject_id))

    return ConstraintModel(
        grade=grade,
        class_section=class_section,
        slots=slots,
        requirements=tuple(requirements),
        teachers=tuple(teacher_slots),
        classrooms=room_slots,
    )
