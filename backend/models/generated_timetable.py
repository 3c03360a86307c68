from __future__ import annotations

import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, Text, Uuid

from models.base import Base


class GeneratedTimetable(Base):
    __tablename__ = "generated_timetables"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    grade = Column(Integer, nullable=False)
    class_section = Column(Text, nullable=False)
    generation_method = Column(Text, nullable=False, default="backtracking")
    assignment_rate = Column(Float, nullable=False, default=0.0)
    total_slots = Column(Integer, nullable=False, default=0)
    assigned_slots = Column(Integer, nullable=False, default=0)
    statistics = Column(JSON, nullable=False, default=dict)
    # Set explicitly by the aggregator so the stored timestamp equals the returned one.
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_generated_timetables_grade_section", "grade", "class_section"),
        Index("ix_generated_timetables_created_at", "created_at"),
    )
