from __future__ import annotations

import uuid
from dataclasses import replace

import pytest

from core.config import settings
from services.result_aggregator import build_statistics
from services.timetable_generation import TimetableGenerationService
from services.timetable_validator import (
    CLASSROOM_CONFLICT,
    SUBJECT_HOURS,
    TEACHER_CONFLICT,
    TEACHER_UNAVAILABLE,
    model_violations,
    quality_score,
    validate_timetable,
)
from solver.backtracking import search
from solver.model_builder import build_constraint_model
from solver.types import ClassroomRecord, SchoolSettingsRecord, SubjectRecord, TeacherRecord


@pytest.fixture()
def service(repository):
    return TimetableGenerationService(repository, settings)


def test_generated_timetable_is_valid(service, repository, school):
    record = service.generate_timetable_for_class(1, "A").timetable

    report = validate_timetable(repository, record.id)
    assert report.is_valid
    assert report.violations == ()
    assert TEACHER_CONFLICT in report.checked_constraints
    assert record.statistics["constraint_violations"] == 0
    assert record.statistics["quality_score"] == record.assignment_rate


def test_copied_timetable_clashes_with_the_original(service, repository, school):
    first = service.generate_timetable_for_class(1, "A").timetable
    clone = replace(first, id=str(uuid.uuid4()), class_section="B")
    repository.save_timetable(clone)

    report = validate_timetable(repository, clone.id)
    assert not report.is_valid
    kinds = [v.type for v in report.violations]
    assert kinds.count(TEACHER_CONFLICT) == 4
    assert kinds.count(CLASSROOM_CONFLICT) == 4
    assert all(v.conflicting_sections == ("1-A",) for v in report.violations)


def test_teacher_made_unavailable_after_generation(service, repository, db_session, school):
    record = service.generate_timetable_for_class(1, "A").timetable
    school["teacher"].unavailable_slots = [{"day": 0, "periods": [1]}]
    db_session.commit()

    report = validate_timetable(repository, record.id)
    assert not report.is_valid
    [violation] = report.violations
    assert violation.type == TEACHER_UNAVAILABLE
    assert (violation.day, violation.period) == (0, 1)


def test_changed_weekly_hours_are_a_warning(service, repository, db_session, school):
    record = service.generate_timetable_for_class(1, "A").timetable
    school["math"].weekly_hours = {"1": 5}
    db_session.commit()

    report = validate_timetable(repository, record.id)
    assert report.is_valid
    assert [(v.type, v.severity) for v in report.violations] == [(SUBJECT_HOURS, "warning")]


def test_unknown_timetable_returns_none(repository, school):
    assert validate_timetable(repository, str(uuid.uuid4())) is None


def test_quality_score_is_penalized_per_violation():
    assert quality_score(80.0, 3) == 65.0
    assert quality_score(10.0, 5) == 0.0
    assert quality_score(11.764, 0) == 11.76


def test_tampered_assignment_counts_violations():
    week = SchoolSettingsRecord(grade_classes=(1, 0, 0, 0, 0, 0), daily_periods=6, saturday_periods=0)
    math = SubjectRecord(id="math", name="math", grades=(1,), weekly_hours=((1, 2),))
    teacher = TeacherRecord(id="alice", name="Alice", subject_ids=("math",))
    model = build_constraint_model(1, "A", [teacher], [math], [ClassroomRecord(id="r", name="R")], week)
    assignment = search(model)
    assert model_violations(model, assignment.placements) == []

    first = assignment.placements[0]
    doubled = replace(assignment, placements=(first, first))
    stats = build_statistics(model, doubled)
    # Both lessons sit in the same cell.
    assert stats["constraint_violations"] == 1
    assert stats["quality_score"] == max(0.0, round(stats["assignment_rate"] - 5, 2))
