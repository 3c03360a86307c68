from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class ClassroomBase(BaseModel):
    name: str = Field(min_length=1)
    classroom_type: str = Field(default="general", min_length=1)
    capacity: int | None = Field(default=None, ge=0)
    features: list[str] = Field(default_factory=list)
    display_order: int = Field(default=0, ge=0)
    is_active: bool = True


class ClassroomCreate(ClassroomBase):
    pass


class ClassroomUpdate(BaseModel):
    name: str | None = None
    classroom_type: str | None = None
    capacity: int | None = Field(default=None, ge=0)
    features: list[str] | None = None
    display_order: int | None = Field(default=None, ge=0)
    is_active: bool | None = None


class ClassroomOut(ClassroomBase):
    id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True
