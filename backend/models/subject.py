from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base


GENERAL_CLASSROOM = "general"


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    grades = Column(JSON, nullable=False, default=list)
    # {"1": 4, "2": 3} -> weekly hours per grade
    weekly_hours = Column(JSON, nullable=False, default=dict)
    requires_special_classroom = Column(Boolean, nullable=False, default=False)
    classroom_type = Column(Text, nullable=False, default=GENERAL_CLASSROOM)
    display_order = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
