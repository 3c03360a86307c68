from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Protocol, Sequence

from solver.model_builder import build_slot_grid, required_hours
from solver.types import (
    GENERAL_CLASSROOM,
    MANDATORY,
    ClassroomRecord,
    ConstraintModel,
    GeneratedTimetableRecord,
    Placement,
    SchoolSettingsRecord,
    SectionPlacement,
    SlotRef,
    SubjectRecord,
    TeacherRecord,
)


logger = logging.getLogger(__name__)


CRITICAL = "critical"
WARNING = "warning"

TEACHER_CONFLICT = "teacher_conflict"
CLASSROOM_CONFLICT = "classroom_conflict"
CELL_CONFLICT = "cell_conflict"
OUTSIDE_GRID = "outside_grid"
TEACHER_UNAVAILABLE = "teacher_unavailable"
TEACHER_NOT_ELIGIBLE = "teacher_not_eligible"
CLASSROOM_TYPE = "classroom_type"
SUBJECT_HOURS = "subject_hours"

CHECKED_CONSTRAINTS = (
    CELL_CONFLICT,
    TEACHER_CONFLICT,
    CLASSROOM_CONFLICT,
    OUTSIDE_GRID,
    TEACHER_UNAVAILABLE,
    TEACHER_NOT_ELIGIBLE,
    CLASSROOM_TYPE,
    SUBJECT_HOURS,
)

# Each violation costs this many points of quality score.
VIOLATION_PENALTY = 5.0


@dataclass(frozen=True)
class Violation:
    type: str
    severity: str
    message: str
    day: int | None = None
    period: int | None = None
    subject_id: str | None = None
    teacher_id: str | None = None
    classroom_id: str | None = None
    # Other class-sections involved, as "grade-section" labels.
    conflicting_sections: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["conflicting_sections"] = list(self.conflicting_sections)
        return out


@dataclass(frozen=True)
class ValidationReport:
    timetable_id: str
    grade: int
    class_section: str
    violations: tuple[Violation, ...] = ()
    checked_constraints: tuple[str, ...] = CHECKED_CONSTRAINTS

    @property
    def is_valid(self) -> bool:
        return not any(v.severity == CRITICAL for v in self.violations)

    @property
    def critical_count(self) -> int:
        return sum(1 for v in self.violations if v.severity == CRITICAL)


class TimetableSource(Protocol):
    def get_timetable(self, timetable_id: str) -> GeneratedTimetableRecord | None: ...

    def get_teachers(self) -> list[TeacherRecord]: ...

    def get_subjects(self) -> list[SubjectRecord]: ...

    def get_classrooms(self) -> list[ClassroomRecord]: ...

    def get_school_settings(self) -> SchoolSettingsRecord: ...

    def get_committed_placements(self, exclude: Iterable[tuple[int, str]] = ()) -> list[SectionPlacement]: ...


def quality_score(rate: float, violation_count: int) -> float:
    return round(max(0.0, float(rate) - violation_count * VIOLATION_PENALTY), 2)


def _cell_conflicts(slots: Sequence[Placement]) -> list[Violation]:
    by_cell: dict[tuple[int, int], list[Placement]] = defaultdict(list)
    for p in slots:
        by_cell[(p.day, p.period)].append(p)
    out: list[Violation] = []
    for (day, period), cell in sorted(by_cell.items()):
        if len(cell) > 1:
            out.append(
                Violation(
                    type=CELL_CONFLICT,
                    severity=CRITICAL,
                    message=f"{len(cell)} lessons share day {day} period {period}",
                    day=day,
                    period=period,
                )
            )
    return out


def _cross_section_conflicts(slots: Sequence[Placement], others: Sequence[SectionPlacement]) -> list[Violation]:
    teachers: dict[tuple[str, int, int], list[str]] = defaultdict(list)
    rooms: dict[tuple[str, int, int], list[str]] = defaultdict(list)
    for other in others:
        p = other.placement
        teachers[(p.teacher_id, p.day, p.period)].append(other.label)
        if p.classroom_id is not None:
            rooms[(p.classroom_id, p.day, p.period)].append(other.label)

    out: list[Violation] = []
    for p in slots:
        clash = teachers.get((p.teacher_id, p.day, p.period))
        if clash:
            out.append(
                Violation(
                    type=TEACHER_CONFLICT,
                    severity=CRITICAL,
                    message=f"{p.teacher_name} is also teaching {', '.join(clash)} on day {p.day} period {p.period}",
                    day=p.day,
                    period=p.period,
                    subject_id=p.subject_id,
                    teacher_id=p.teacher_id,
                    conflicting_sections=tuple(clash),
                )
            )
        if p.classroom_id is None:
            continue
        clash = rooms.get((p.classroom_id, p.day, p.period))
        if clash:
            out.append(
                Violation(
                    type=CLASSROOM_CONFLICT,
                    severity=CRITICAL,
                    message=f"{p.classroom_name} is also used by {', '.join(clash)} on day {p.day} period {p.period}",
                    day=p.day,
                    period=p.period,
                    subject_id=p.subject_id,
                    classroom_id=p.classroom_id,
                    conflicting_sections=tuple(clash),
                )
            )
    return out


def _blocked(teacher: TeacherRecord) -> set[SlotRef]:
    blocked = set(teacher.unavailable_slots)
    for r in teacher.restrictions:
        if r.level == MANDATORY:
            blocked.update(SlotRef(r.day, p) for p in r.periods)
    return blocked


def _entity_checks(
    record: GeneratedTimetableRecord,
    teachers: Sequence[TeacherRecord],
    subjects: Sequence[SubjectRecord],
    classrooms: Sequence[ClassroomRecord],
    settings: SchoolSettingsRecord,
) -> list[Violation]:
    grid = set(build_slot_grid(settings))
    teacher_by_id = {t.id: t for t in teachers}
    subject_by_id = {s.id: s for s in subjects}
    room_by_id = {c.id: c for c in classrooms}

    out: list[Violation] = []
    for p in record.slots:
        cell = SlotRef(p.day, p.period)
        if cell not in grid:
            out.append(
                Violation(
                    type=OUTSIDE_GRID,
                    severity=WARNING,
                    message=f"Day {p.day} period {p.period} is no longer part of the weekly grid",
                    day=p.day,
                    period=p.period,
                    subject_id=p.subject_id,
                )
            )

        teacher = teacher_by_id.get(p.teacher_id)
        subject = subject_by_id.get(p.subject_id)
        if teacher is None:
            out.append(
                Violation(
                    type=TEACHER_NOT_ELIGIBLE,
                    severity=WARNING,
                    message=f"{p.teacher_name} is no longer an active teacher",
                    day=p.day,
                    period=p.period,
                    subject_id=p.subject_id,
                    teacher_id=p.teacher_id,
                )
            )
        else:
            if cell in _blocked(teacher):
                out.append(
                    Violation(
                        type=TEACHER_UNAVAILABLE,
                        severity=CRITICAL,
                        message=f"{teacher.name} is unavailable on day {p.day} period {p.period}",
                        day=p.day,
                        period=p.period,
                        subject_id=p.subject_id,
                        teacher_id=p.teacher_id,
                    )
                )
            if p.subject_id not in teacher.subject_ids or (teacher.grades and record.grade not in teacher.grades):
                out.append(
                    Violation(
                        type=TEACHER_NOT_ELIGIBLE,
                        severity=CRITICAL,
                        message=f"{teacher.name} does not teach {p.subject_name} for grade {record.grade}",
                        day=p.day,
                        period=p.period,
                        subject_id=p.subject_id,
                        teacher_id=p.teacher_id,
                    )
                )

        if subject is not None:
            wanted = subject.classroom_type if subject.requires_special_classroom else GENERAL_CLASSROOM
            room = room_by_id.get(p.classroom_id) if p.classroom_id is not None else None
            if subject.requires_special_classroom and (room is None or room.classroom_type != wanted):
                out.append(
                    Violation(
                        type=CLASSROOM_TYPE,
                        severity=CRITICAL,
                        message=f"{p.subject_name} needs a '{wanted}' classroom",
                        day=p.day,
                        period=p.period,
                        subject_id=p.subject_id,
                        classroom_id=p.classroom_id,
                    )
                )

    placed: dict[str, int] = defaultdict(int)
    for p in record.slots:
        placed[p.subject_id] += 1
    for subject in subjects:
        needed = required_hours(subject, record.grade)
        have = placed.get(subject.id, 0)
        if needed != have:
            out.append(
                Violation(
                    type=SUBJECT_HOURS,
                    severity=WARNING,
                    message=f"{subject.name} has {have} hour(s) scheduled; {needed} required for grade {record.grade}",
                    subject_id=subject.id,
                )
            )
    return out


def find_violations(
    record: GeneratedTimetableRecord,
    *,
    teachers: Sequence[TeacherRecord],
    subjects: Sequence[SubjectRecord],
    classrooms: Sequence[ClassroomRecord],
    settings: SchoolSettingsRecord,
    others: Sequence[SectionPlacement] = (),
) -> ValidationReport:
    """Check a saved timetable against the current school data and the other sections' timetables."""

    violations: list[Violation] = []
    violations.extend(_cell_conflicts(record.slots))
    violations.extend(_cross_section_conflicts(record.slots, others))
    violations.extend(_entity_checks(record, teachers, subjects, classrooms, settings))
    return ValidationReport(
        timetable_id=record.id,
        grade=record.grade,
        class_section=record.class_section,
        violations=tuple(violations),
    )


def validate_timetable(source: TimetableSource, timetable_id: str) -> ValidationReport | None:
    """Validate a saved timetable. Returns None when it does not exist."""

    record = source.get_timetable(timetable_id)
    if record is None:
        return None
    report = find_violations(
        record,
        teachers=source.get_teachers(),
        subjects=source.get_subjects(),
        classrooms=source.get_classrooms(),
        settings=source.get_school_settings(),
        others=source.get_committed_placements(exclude=[(record.grade, record.class_section)]),
    )
    logger.info(
        "Validated timetable id=%s grade=%s section=%s valid=%s violations=%s",
        record.id,
        record.grade,
        record.class_section,
        report.is_valid,
        len(report.violations),
    )
    return report


def model_violations(model: ConstraintModel, placements: Sequence[Placement]) -> list[Violation]:
    """Re-check a search result against the hard constraints of the model it was built from."""

    out: list[Violation] = []
    out.extend(_cell_conflicts(placements))

    req_by_subject = {r.subject_id: r for r in model.requirements}
    teacher_index = {t.teacher_id: i for i, t in enumerate(model.teachers)}
    room_index = {c.classroom_id: i for i, c in enumerate(model.classrooms)}
    load: dict[int, int] = defaultdict(int)
    placed: dict[str, int] = defaultdict(int)

    for p in placements:
        placed[p.subject_id] += 1
        bit = 1 << p.slot_index
        req = req_by_subject.get(p.subject_id)
        ti = teacher_index.get(p.teacher_id)
        if req is None or ti is None or ti not in req.teacher_indices:
            out.append(
                Violation(
                    type=TEACHER_NOT_ELIGIBLE,
                    severity=CRITICAL,
                    message=f"{p.teacher_name} is not eligible for {p.subject_name}",
                    day=p.day,
                    period=p.period,
                    subject_id=p.subject_id,
                    teacher_id=p.teacher_id,
                )
            )
            continue
        load[ti] += 1
        if not model.teachers[ti].available_mask & bit:
            out.append(
                Violation(
                    type=TEACHER_UNAVAILABLE,
                    severity=CRITICAL,
                    message=f"{p.teacher_name} is not free on day {p.day} period {p.period}",
                    day=p.day,
                    period=p.period,
                    subject_id=p.subject_id,
                    teacher_id=p.teacher_id,
                )
            )
        if req.classroom_indices:
            ci = room_index.get(p.classroom_id) if p.classroom_id is not None else None
            fits = ci is not None and ci in req.classroom_indices
            if not fits or not model.classrooms[ci].available_mask & bit:
                out.append(
                    Violation(
                        type=CLASSROOM_CONFLICT if fits else CLASSROOM_TYPE,
                        severity=CRITICAL,
                        message=f"{p.subject_name} has no usable classroom on day {p.day} period {p.period}",
                        day=p.day,
                        period=p.period,
                        subject_id=p.subject_id,
                        classroom_id=p.classroom_id,
                    )
                )

    for ti, count in load.items():
        t = model.teachers[ti]
        if count > t.weekly_capacity:
            out.append(
                Violation(
                    type=TEACHER_UNAVAILABLE,
                    severity=CRITICAL,
                    message=f"{t.name} teaches {count} hours; only {t.weekly_capacity} left this week",
                    teacher_id=t.teacher_id,
                )
            )
    for req in model.requirements:
        if placed.get(req.subject_id, 0) != req.hours:
            out.append(
                Violation(
                    type=SUBJECT_HOURS,
                    severity=CRITICAL,
                    message=f"{req.subject_name} has {placed.get(req.subject_id, 0)} of {req.hours} hour(s)",
                    subject_id=req.subject_id,
                )
            )
    return out
