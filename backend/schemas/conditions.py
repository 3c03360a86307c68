from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ConditionsPut(BaseModel):
    conditions: str = Field(default="", max_length=10_000)


class ConditionsOut(BaseModel):
    id: str
    conditions: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
