from __future__ import annotations

import pytest

from core.errors import ValidationError
from solver.model_builder import build_constraint_model, build_slot_grid, required_hours, section_letters
from solver.types import (
    Bookings,
    ClassroomRecord,
    RestrictionRecord,
    SchoolSettingsRecord,
    SlotRef,
    SubjectRecord,
    TeacherRecord,
)


SETTINGS = SchoolSettingsRecord(grade_classes=(4, 4, 3, 3, 3, 3), daily_periods=6, saturday_periods=4)

MATH = SubjectRecord(id="math", name="math", grades=(1,), weekly_hours=((1, 4),))
ART = SubjectRecord(id="art", name="art", grades=(2,), weekly_hours=((2, 2),))
ALICE = TeacherRecord(id="t-alice", name="Alice", grades=(1,), subject_ids=("math",))
ROOM = ClassroomRecord(id="r-101", name="Room 101")


def _build(grade=1, section="A", teachers=(ALICE,), subjects=(MATH,), classrooms=(ROOM,), settings=SETTINGS, committed=None):
    return build_constraint_model(grade, section, list(teachers), list(subjects), list(classrooms), settings, committed)


def test_slot_grid_includes_saturday_periods():
    slots = build_slot_grid(SETTINGS)
    assert len(slots) == 6 * 5 + 4
    assert slots[0] == SlotRef(0, 1)
    assert slots[-1] == SlotRef(5, 4)


def test_slot_grid_without_saturday():
    slots = build_slot_grid(SchoolSettingsRecord(daily_periods=6, saturday_periods=0))
    assert len(slots) == 30
    assert all(s.day < 5 for s in slots)


@pytest.mark.parametrize(
    "grade,section",
    [
        (0, "A"),
        (7, "A"),
        (-1, "A"),
        (1, "1"),
        (1, "a"),
        (1, "AB"),
        (1, ""),
        # grade 1 has 4 classes: A-D
        (1, "E"),
    ],
)
def test_invalid_grade_or_section_is_rejected(grade, section):
    with pytest.raises(ValidationError):
        _build(grade=grade, section=section)


def test_grade_without_classes_is_rejected():
    settings = SchoolSettingsRecord(grade_classes=(0, 4, 3, 3, 3, 3))
    with pytest.raises(ValidationError) as exc:
        _build(settings=settings)
    assert exc.value.code == "VALIDATION_ERROR"


def test_build_is_idempotent():
    assert _build() == _build()


def test_only_subjects_for_the_grade_are_required():
    model = _build(subjects=(MATH, ART))
    assert [r.subject_id for r in model.requirements] == ["math"]
    assert model.required_hours == 4
    assert model.total_slots == 34


def test_listed_grade_without_hours_needs_one_hour():
    music = SubjectRecord(id="music", name="music", grades=(1,))
    assert required_hours(music, 1) == 1
    assert required_hours(music, 2) == 0


def test_requirements_ordered_by_hours_then_display_order():
    pe = SubjectRecord(id="pe", name="pe", grades=(1,), weekly_hours=((1, 2),), display_order=0)
    reading = SubjectRecord(id="reading", name="reading", grades=(1,), weekly_hours=((1, 2),), display_order=5)
    teacher = TeacherRecord(id="t-1", name="T", subject_ids=("math", "pe", "reading"))
    model = _build(teachers=(teacher,), subjects=(reading, pe, MATH))
    assert [r.subject_id for r in model.requirements] == ["math", "pe", "reading"]


def test_unavailable_and_restricted_slots_are_blocked():
    teacher = TeacherRecord(
        id="t-bob",
        name="Bob",
        subject_ids=("math",),
        unavailable_slots=(SlotRef(0, 1),),
        restrictions=(
            RestrictionRecord(day=1, periods=(1, 2), level="MANDATORY"),
            RestrictionRecord(day=2, periods=(3,), level="RECOMMENDED"),
        ),
    )
    model = _build(teachers=(teacher,))
    t = model.teachers[0]
    index = {s: i for i, s in enumerate(model.slots)}

    assert not t.available_mask & (1 << index[SlotRef(0, 1)])
    assert not t.available_mask & (1 << index[SlotRef(1, 1)])
    assert not t.available_mask & (1 << index[SlotRef(1, 2)])
    # Recommended restrictions stay available but are discouraged.
    assert t.available_mask & (1 << index[SlotRef(2, 3)])
    assert t.discouraged_mask == 1 << index[SlotRef(2, 3)]


def test_teacher_outside_grade_is_not_eligible():
    grade2_only = TeacherRecord(id="t-carl", name="Carl", grades=(2,), subject_ids=("math",))
    model = _build(teachers=(grade2_only, ALICE))
    assert [t.teacher_id for t in model.teachers] == ["t-alice"]


def test_committed_bookings_reduce_availability_and_capacity():
    committed = Bookings()
    committed.book(teacher_id="t-alice", classroom_id="r-101", slot=SlotRef(0, 1))
    committed.book(teacher_id="t-alice", classroom_id=None, slot=SlotRef(0, 2))

    model = _build(committed=committed)
    t = model.teachers[0]
    assert not t.available_mask & 0b11
    assert t.weekly_capacity == 25 - 2
    assert not model.classrooms[0].available_mask & 0b1


def test_special_subject_only_matches_its_classroom_type():
    science = SubjectRecord(
        id="sci",
        name="science",
        grades=(1,),
        weekly_hours=((1, 2),),
        requires_special_classroom=True,
        classroom_type="lab",
    )
    lab = ClassroomRecord(id="r-lab", name="Lab", classroom_type="lab")
    teacher = TeacherRecord(id="t-1", name="T", subject_ids=("sci", "math"))
    model = _build(teachers=(teacher,), subjects=(MATH, science), classrooms=(ROOM, lab))

    by_subject = {r.subject_id: r for r in model.requirements}
    assert [model.classrooms[i].classroom_id for i in by_subject["sci"].classroom_indices] == ["r-lab"]
    assert [model.classrooms[i].classroom_id for i in by_subject["math"].classroom_indices] == ["r-101"]


def test_section_letters():
    assert section_letters(4) == ["A", "B", "C", "D"]
    assert section_letters(0) == []
