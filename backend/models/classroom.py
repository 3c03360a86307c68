from __future__ import annotations

import uuid

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Integer, Text, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Classroom(Base):
    __tablename__ = "classrooms"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    classroom_type = Column(Text, nullable=False, default="general")
    capacity = Column(Integer, nullable=True)
    features = Column(JSON, nullable=False, default=list)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("capacity is null or capacity >= 0", name="ck_classrooms_capacity"),
        UniqueConstraint("name", name="uq_classrooms_name"),
    )
