from __future__ import annotations

from sqlalchemy import Column, DateTime, Text
from sqlalchemy.sql import func

from models.base import Base


CONDITIONS_ROW_ID = "default"


class GenerationConditions(Base):
    """Free-text scheduling notes shared by every generation run."""

    __tablename__ = "generation_conditions"

    id = Column(Text, primary_key=True, default=CONDITIONS_ROW_ID)
    conditions = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
