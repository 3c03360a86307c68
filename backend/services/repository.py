from __future__ import annotations

import logging
import uuid
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import PersistenceError
from models.classroom import Classroom
from models.generated_timetable import GeneratedTimetable
from models.generation_conditions import CONDITIONS_ROW_ID, GenerationConditions
from models.school_settings import SETTINGS_ROW_ID, SchoolSettings
from models.subject import Subject
from models.teacher import Teacher
from models.timetable_slot import TimetableSlotEntry
from solver.types import (
    MANDATORY,
    Bookings,
    ClassroomRecord,
    GeneratedTimetableRecord,
    Placement,
    RestrictionRecord,
    SchoolSettingsRecord,
    SectionPlacement,
    SlotRef,
    SubjectRecord,
    TeacherRecord,
    TimetableFilter,
    TimetableSummary,
)


logger = logging.getLogger(__name__)


def _slot_refs(raw: Any) -> tuple[SlotRef, ...]:
    # [{"day": 0, "periods": [1, 2]}, ...]
    out: set[SlotRef] = set()
    for item in raw or []:
        day = int(item.get("day"))
        for p in item.get("periods") or []:
            out.add(SlotRef(day, int(p)))
    return tuple(sorted(out))


def _restrictions(raw: Any) -> tuple[RestrictionRecord, ...]:
    out: list[RestrictionRecord] = []
    for item in raw or []:
        out.append(
            RestrictionRecord(
                day=int(item.get("day")),
                periods=tuple(sorted(int(p) for p in item.get("periods") or [])),
                level=str(item.get("level") or MANDATORY).upper(),
            )
        )
    return tuple(out)


def _weekly_hours(raw: Any) -> tuple[tuple[int, int], ...]:
    pairs: list[tuple[int, int]] = []
    for k, v in (raw or {}).items():
        pairs.append((int(k), int(v or 0)))
    return tuple(sorted(pairs))


def teacher_record(t: Teacher) -> TeacherRecord:
    return TeacherRecord(
        id=str(t.id),
        name=t.name,
        grades=tuple(sorted(int(g) for g in t.grades or [])),
        subject_ids=tuple(str(s) for s in t.subject_ids or []),
        max_weekly_hours=int(t.max_weekly_hours),
        preferred_slots=_slot_refs(t.preferred_slots),
        unavailable_slots=_slot_refs(t.unavailable_slots),
        restrictions=_restrictions(t.assignment_restrictions),
        display_order=int(t.display_order),
    )


def subject_record(s: Subject) -> SubjectRecord:
    return SubjectRecord(
        id=str(s.id),
        name=s.name,
        grades=tuple(sorted(int(g) for g in s.grades or [])),
        weekly_hours=_weekly_hours(s.weekly_hours),
        requires_special_classroom=bool(s.requires_special_classroom),
        classroom_type=s.classroom_type,
        display_order=int(s.display_order),
    )


def classroom_record(c: Classroom) -> ClassroomRecord:
    return ClassroomRecord(
        id=str(c.id),
        name=c.name,
        classroom_type=c.classroom_type,
        capacity=c.capacity,
        features=tuple(str(f) for f in c.features or []),
        display_order=int(c.display_order),
    )


def settings_record(row: SchoolSettings | None) -> SchoolSettingsRecord:
    if row is None:
        return SchoolSettingsRecord()
    return SchoolSettingsRecord(
        grade_classes=(
            int(row.grade1_classes),
            int(row.grade2_classes),
            int(row.grade3_classes),
            int(row.grade4_classes),
            int(row.grade5_classes),
            int(row.grade6_classes),
        ),
        daily_periods=int(row.daily_periods),
        saturday_periods=int(row.saturday_periods),
    )


def _summary(row: GeneratedTimetable) -> TimetableSummary:
    return TimetableSummary(
        id=str(row.id),
        grade=int(row.grade),
        class_section=row.class_section,
        generation_method=row.generation_method,
        assignment_rate=float(row.assignment_rate),
        total_slots=int(row.total_slots),
        assigned_slots=int(row.assigned_slots),
        statistics=dict(row.statistics or {}),
        created_at=row.created_at,
    )


def _placement(entry: TimetableSlotEntry) -> Placement:
    return Placement(
        slot_index=int(entry.slot_index),
        day=int(entry.day),
        period=int(entry.period),
        subject_id=str(entry.subject_id),
        subject_name=entry.subject_name,
        teacher_id=str(entry.teacher_id),
        teacher_name=entry.teacher_name,
        classroom_id=str(entry.classroom_id) if entry.classroom_id is not None else None,
        classroom_name=entry.classroom_name,
    )


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


class TimetableRepository:
    """Storage adapter for the generation engine.

    Returns plain records from `solver.types`; every SQLAlchemy failure is surfaced
    as PersistenceError.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_teachers(self) -> list[TeacherRecord]:
        try:
            rows = (
                self.db.execute(
                    select(Teacher)
                    .where(Teacher.is_active.is_(True))
                    .order_by(Teacher.display_order.asc(), Teacher.name.asc())
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load teachers") from exc
        return [teacher_record(t) for t in rows]

    def get_subjects(self) -> list[SubjectRecord]:
        try:
            rows = (
                self.db.execute(
                    select(Subject)
                    .where(Subject.is_active.is_(True))
                    .order_by(Subject.display_order.asc(), Subject.name.asc())
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load subjects") from exc
        return [subject_record(s) for s in rows]

    def get_classrooms(self) -> list[ClassroomRecord]:
        try:
            rows = (
                self.db.execute(
                    select(Classroom)
                    .where(Classroom.is_active.is_(True))
                    .order_by(Classroom.display_order.asc(), Classroom.name.asc())
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load classrooms") from exc
        return [classroom_record(c) for c in rows]

    def get_school_settings(self) -> SchoolSettingsRecord:
        try:
            row = self.db.get(SchoolSettings, SETTINGS_ROW_ID)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load school settings") from exc
        return settings_record(row)

    def get_conditions(self) -> str:
        try:
            row = self.db.get(GenerationConditions, CONDITIONS_ROW_ID)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load generation conditions") from exc
        return row.conditions if row is not None else ""

    def save_timetable(self, record: GeneratedTimetableRecord) -> str:
        header = GeneratedTimetable(
            id=_as_uuid(record.id),
            grade=record.grade,
            class_section=record.class_section,
            generation_method=record.generation_method,
            assignment_rate=record.assignment_rate,
            total_slots=record.total_slots,
            assigned_slots=record.assigned_slots,
            statistics=dict(record.statistics),
            created_at=record.created_at,
        )
        entries = [
            TimetableSlotEntry(
                timetable_id=header.id,
                grade=record.grade,
                class_section=record.class_section,
                day=p.day,
                period=p.period,
                slot_index=p.slot_index,
                subject_id=_as_uuid(p.subject_id),
                subject_name=p.subject_name,
                teacher_id=_as_uuid(p.teacher_id),
                teacher_name=p.teacher_name,
                classroom_id=_as_uuid(p.classroom_id) if p.classroom_id is not None else None,
                classroom_name=p.classroom_name,
            )
            for p in record.slots
        ]
        try:
            self.db.add(header)
            # Header first so the slot foreign keys resolve on every backend.
            self.db.flush()
            self.db.add_all(entries)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Timetable write failed grade=%s section=%s", record.grade, record.class_section, exc_info=exc)
            raise PersistenceError("Failed to save generated timetable", record=record) from exc
        return str(header.id)

    def _filtered(self, stmt, flt: TimetableFilter):
        if flt.grade is not None:
            stmt = stmt.where(GeneratedTimetable.grade == int(flt.grade))
        if flt.class_section is not None:
            stmt = stmt.where(GeneratedTimetable.class_section == flt.class_section)
        return stmt

    def query_timetables(self, flt: TimetableFilter) -> tuple[list[TimetableSummary], int]:
        q = self._filtered(select(GeneratedTimetable), flt).order_by(
            GeneratedTimetable.created_at.desc(), GeneratedTimetable.id.asc()
        )
        q = q.offset(max(0, int(flt.offset))).limit(max(0, int(flt.limit)))
        q_count = self._filtered(select(func.count()).select_from(GeneratedTimetable), flt)
        try:
            rows = self.db.execute(q).scalars().all()
            total = int(self.db.execute(q_count).scalar_one())
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to query generated timetables") from exc
        return [_summary(r) for r in rows], total

    def get_timetable(self, timetable_id: str | uuid.UUID) -> GeneratedTimetableRecord | None:
        try:
            key = _as_uuid(timetable_id)
        except ValueError:
            return None
        try:
            row = self.db.get(GeneratedTimetable, key)
            if row is None:
                return None
            entries = (
                self.db.execute(
                    select(TimetableSlotEntry)
                    .where(TimetableSlotEntry.timetable_id == key)
                    .order_by(TimetableSlotEntry.day.asc(), TimetableSlotEntry.period.asc())
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load generated timetable") from exc

        summary = _summary(row)
        return GeneratedTimetableRecord(
            **summary.__dict__,
            slots=tuple(_placement(e) for e in entries),
        )

    def _latest_ids(self, exclude: Iterable[tuple[int, str]]) -> list[uuid.UUID]:
        skip = {(int(g), str(s)) for g, s in exclude}
        rows = self.db.execute(
            select(GeneratedTimetable.id, GeneratedTimetable.grade, GeneratedTimetable.class_section).order_by(
                GeneratedTimetable.created_at.desc()
            )
        ).all()
        seen: set[tuple[int, str]] = set()
        ids: list[uuid.UUID] = []
        for tid, grade, section in rows:
            key = (int(grade), str(section))
            if key in seen or key in skip:
                continue
            seen.add(key)
            ids.append(tid)
        return ids

    def _committed_entries(self, exclude: Iterable[tuple[int, str]]) -> list[TimetableSlotEntry]:
        try:
            ids = self._latest_ids(exclude)
            if not ids:
                return []
            return list(
                self.db.execute(
                    select(TimetableSlotEntry)
                    .where(TimetableSlotEntry.timetable_id.in_(ids))
                    .order_by(
                        TimetableSlotEntry.grade.asc(),
                        TimetableSlotEntry.class_section.asc(),
                        TimetableSlotEntry.slot_index.asc(),
                    )
                )
                .scalars()
                .all()
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load committed bookings") from exc

    def get_committed_bookings(self, exclude: Iterable[tuple[int, str]] = ()) -> Bookings:
        """Teacher/classroom occupancy of the latest saved timetable of every other class-section."""

        bookings = Bookings()
        for e in self._committed_entries(exclude):
            bookings.book(
                teacher_id=str(e.teacher_id),
                classroom_id=str(e.classroom_id) if e.classroom_id is not None else None,
                slot=SlotRef(int(e.day), int(e.period)),
            )
        return bookings

    def get_committed_placements(self, exclude: Iterable[tuple[int, str]] = ()) -> list[SectionPlacement]:
        """Same slots as get_committed_bookings, keeping which class-section owns each."""

        return [
            SectionPlacement(grade=int(e.grade), class_section=str(e.class_section), placement=_placement(e))
            for e in self._committed_entries(exclude)
        ]
