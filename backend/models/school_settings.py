from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, Integer
from sqlalchemy.sql import func

from models.base import Base


SETTINGS_ROW_ID = 1


class SchoolSettings(Base):
    __tablename__ = "school_settings"

    id = Column(Integer, primary_key=True, default=SETTINGS_ROW_ID)
    grade1_classes = Column(Integer, nullable=False, default=4)
    grade2_classes = Column(Integer, nullable=False, default=4)
    grade3_classes = Column(Integer, nullable=False, default=3)
    grade4_classes = Column(Integer, nullable=False, default=3)
    grade5_classes = Column(Integer, nullable=False, default=3)
    grade6_classes = Column(Integer, nullable=False, default=3)
    daily_periods = Column(Integer, nullable=False, default=6)
    saturday_periods = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("daily_periods >= 1 and daily_periods <= 10", name="ck_school_settings_daily_periods"),
        CheckConstraint("saturday_periods >= 0 and saturday_periods <= 8", name="ck_school_settings_saturday_periods"),
    )
