from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from core.config import settings
from core.errors import InfeasibleError, PersistenceError, ValidationError
from models.classroom import Classroom
from models.generated_timetable import GeneratedTimetable
from models.subject import Subject
from models.teacher import Teacher
from services.timetable_generation import TimetableGenerationService
from services.timetable_query import list_timetables


@pytest.fixture()
def service(repository):
    return TimetableGenerationService(repository, settings)


def _stored_count(db) -> int:
    return db.execute(select(func.count()).select_from(GeneratedTimetable)).scalar_one()


def test_generate_for_class_persists_record(service, repository, school):
    result = service.generate_timetable_for_class(1, "A")
    record = result.timetable

    assert record.total_slots == 34
    assert record.assigned_slots == 4
    assert record.assignment_rate == 11.76
    assert record.statistics["unassigned_slots"] == 30
    assert record.statistics["generation_time_ms"] == result.generation_time_ms

    stored = repository.get_timetable(record.id)
    assert stored is not None
    assert stored.grade == 1 and stored.class_section == "A"
    assert [p.subject_name for p in stored.slots] == ["math"] * 4
    assert {p.teacher_id for p in stored.slots} == {str(school["teacher"].id)}


@pytest.mark.parametrize("grade,section", [(0, "A"), (1, "1"), (1, "Z")])
def test_invalid_input_never_searches_or_persists(service, db_session, school, grade, section):
    with pytest.raises(ValidationError):
        service.generate_timetable_for_class(grade, section)
    assert _stored_count(db_session) == 0


def test_saved_sections_block_teacher_slots(service, school):
    first = service.generate_timetable_for_class(1, "A").timetable
    second = service.generate_timetable_for_class(1, "B").timetable

    taken = {(p.day, p.period) for p in first.slots}
    assert taken.isdisjoint({(p.day, p.period) for p in second.slots})


def test_regenerating_a_section_ignores_its_own_previous_run(service, school):
    first = service.generate_timetable_for_class(1, "A").timetable
    again = service.generate_timetable_for_class(1, "A").timetable
    assert [(p.day, p.period) for p in first.slots] == [(p.day, p.period) for p in again.slots]


def test_persistence_failure_keeps_computed_record(service, db_session, school, monkeypatch):
    def _fail():
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db_session, "commit", _fail)
    with pytest.raises(PersistenceError) as exc:
        service.generate_timetable_for_class(1, "A")

    record = exc.value.record
    assert record is not None
    assert record.assigned_slots == 4
    assert exc.value.status_code == 503


def test_infeasible_generation_is_reported(service, db_session, school):
    school["teacher"].max_weekly_hours = 2
    db_session.commit()

    with pytest.raises(InfeasibleError) as exc:
        service.generate_timetable_for_class(1, "A")
    assert exc.value.subject_name == "math"
    assert exc.value.unmet_hours == 2
    assert _stored_count(db_session) == 0


def test_batch_generation_shares_teacher_occupancy(service, school):
    result = service.generate_timetables(grade=1)

    assert [t.class_section for t in result.generated] == ["A", "B", "C", "D"]
    assert result.failed == []
    bookings = [(p.teacher_id, p.day, p.period) for t in result.generated for p in t.slots]
    assert len(bookings) == 16
    assert len(bookings) == len(set(bookings))


def test_batch_generation_continues_past_infeasible_sections(service, db_session, school):
    teacher = db_session.get(Teacher, school["teacher"].id)
    teacher.max_weekly_hours = 10
    db_session.commit()

    result = service.generate_timetables(grade=1)
    assert [t.class_section for t in result.generated] == ["A", "B"]
    assert [(f.class_section, f.code) for f in result.failed] == [("C", "INFEASIBLE"), ("D", "INFEASIBLE")]
    assert result.requested == 4


def test_batch_generation_rejects_unknown_grade(service, school):
    with pytest.raises(ValidationError):
        service.generate_timetables(grade=9)


def test_listing_reports_full_filtered_total(service, repository, school):
    for _ in range(5):
        service.generate_timetable_for_class(1, "A")

    listed = list_timetables(repository, grade=1, limit=20)
    assert listed.total == 5
    assert len(listed.items) == 5
    created = [t.created_at for t in listed.items]
    assert created == sorted(created, reverse=True)

    page = list_timetables(repository, grade=1, limit=2, offset=4)
    assert page.total == 5
    assert len(page.items) == 1

    assert list_timetables(repository, grade=1, class_section="B").total == 0
    assert list_timetables(repository, grade=2).total == 0


def test_get_saved_timetables_uses_default_limit(service, school):
    service.generate_timetable_for_class(1, "A")
    saved = service.get_saved_timetables(grade=1, class_section="A")
    assert saved.total == 1
    assert saved.items[0].class_section == "A"


def test_batch_generation_never_double_books_a_shared_lab(service, db_session, school):
    science = Subject(
        name="science",
        grades=[1, 2],
        weekly_hours={"1": 3, "2": 3},
        requires_special_classroom=True,
        classroom_type="lab",
        display_order=2,
    )
    db_session.add(science)
    db_session.flush()
    lab = Classroom(name="Lab", classroom_type="lab")
    db_session.add_all(
        [
            lab,
            Teacher(name="Bea", grades=[1], subject_ids=[str(science.id)], max_weekly_hours=25),
            Teacher(name="Cal", grades=[2], subject_ids=[str(science.id)], max_weekly_hours=25),
        ]
    )
    db_session.commit()

    result = service.generate_timetables()
    assert result.failed == []

    lab_cells = [
        (p.classroom_id, p.day, p.period) for t in result.generated for p in t.slots if p.subject_name == "science"
    ]
    # Four sections in grade 1 and four in grade 2, three lab hours each.
    assert len(lab_cells) == 24
    assert {c for c, _d, _p in lab_cells} == {str(lab.id)}
    assert len(lab_cells) == len(set(lab_cells))

    rooms = [(p.classroom_id, p.day, p.period) for t in result.generated for p in t.slots if p.classroom_id]
    assert len(rooms) == len(set(rooms))


class _UnreachableRepository:
    """Every read fails as if the database were down."""

    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise PersistenceError("database unavailable")

        return _fail


@pytest.mark.parametrize("grade,section", [(0, "A"), (7, "A"), (1, "a"), (1, "AB")])
def test_malformed_input_is_rejected_before_loading(grade, section):
    service = TimetableGenerationService(_UnreachableRepository(), settings)
    with pytest.raises(ValidationError):
        service.generate_timetable_for_class(grade, section)


def test_well_formed_input_still_needs_the_database():
    service = TimetableGenerationService(_UnreachableRepository(), settings)
    with pytest.raises(PersistenceError):
        service.generate_timetable_for_class(1, "A")


def test_stored_slots_keep_their_grid_index(service, repository, school):
    service.generate_timetable_for_class(1, "A")
    second = service.generate_timetable_for_class(1, "B").timetable

    stored = repository.get_timetable(second.id)
    assert [(p.day, p.period) for p in stored.slots] == [(0, 5), (0, 6), (1, 1), (1, 2)]
    assert [p.slot_index for p in stored.slots] == [4, 5, 6, 7]
    assert [p.slot_index for p in stored.slots] == [p.slot_index for p in second.slots]
