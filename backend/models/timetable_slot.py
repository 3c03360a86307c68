from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid

from models.base import Base


class TimetableSlotEntry(Base):
    __tablename__ = "generated_timetable_slots"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timetable_id = Column(Uuid(as_uuid=True), ForeignKey("generated_timetables.id", ondelete="CASCADE"), nullable=False)
    grade = Column(Integer, nullable=False)
    class_section = Column(Text, nullable=False)
    day = Column(Integer, nullable=False)
    period = Column(Integer, nullable=False)
    # Position in the weekly grid the timetable was generated against.
    slot_index = Column(Integer, nullable=False)

    subject_id = Column(Uuid(as_uuid=True), nullable=False)
    subject_name = Column(Text, nullable=False)
    teacher_id = Column(Uuid(as_uuid=True), nullable=False)
    teacher_name = Column(Text, nullable=False)
    classroom_id = Column(Uuid(as_uuid=True), nullable=True)
    classroom_name = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("day >= 0 and day <= 5", name="ck_generated_slots_day"),
        CheckConstraint("period >= 1", name="ck_generated_slots_period"),
        CheckConstraint("slot_index >= 0", name="ck_generated_slots_index"),
        UniqueConstraint("timetable_id", "day", "period", name="uq_generated_slots_cell"),
        Index("ix_generated_slots_timetable", "timetable_id"),
    )
