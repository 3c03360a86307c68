from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Integer, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)

    # Eligibility: empty grades means "any grade".
    grades = Column(JSON, nullable=False, default=list)
    subject_ids = Column(JSON, nullable=False, default=list)

    # [{"day": 0, "periods": [1, 2], "level": "MANDATORY" | "RECOMMENDED"}]
    assignment_restrictions = Column(JSON, nullable=False, default=list)
    # [{"day": 0, "periods": [1, 2]}]
    preferred_slots = Column(JSON, nullable=False, default=list)
    unavailable_slots = Column(JSON, nullable=False, default=list)

    max_weekly_hours = Column(Integer, nullable=False, default=25)
    display_order = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("max_weekly_hours >= 0", name="ck_teachers_max_weekly_hours"),
    )
