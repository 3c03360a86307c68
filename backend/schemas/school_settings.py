from __future__ import annotations

from pydantic import BaseModel, Field


class SchoolSettingsBase(BaseModel):
    grade1_classes: int = Field(default=4, ge=0, le=20)
    grade2_classes: int = Field(default=4, ge=0, le=20)
    grade3_classes: int = Field(default=3, ge=0, le=20)
    grade4_classes: int = Field(default=3, ge=0, le=20)
    grade5_classes: int = Field(default=3, ge=0, le=20)
    grade6_classes: int = Field(default=3, ge=0, le=20)
    daily_periods: int = Field(default=6, ge=1, le=10)
    saturday_periods: int = Field(default=0, ge=0, le=8)


class SchoolSettingsPut(SchoolSettingsBase):
    pass


class SchoolSettingsOut(SchoolSettingsBase):
    total_weekly_slots: int

    class Config:
        from_attributes = True
