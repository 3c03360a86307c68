from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from models.school_settings import SETTINGS_ROW_ID, SchoolSettings
from schemas.school_settings import SchoolSettingsOut, SchoolSettingsPut
from schemas.timetable import ApiResponse
from services.repository import settings_record


router = APIRouter()


def _out(row: SchoolSettings | None) -> SchoolSettingsOut:
    record = settings_record(row)
    data = {f"grade{i}_classes": n for i, n in enumerate(record.grade_classes, start=1)}
    return SchoolSettingsOut(
        **data,
        daily_periods=record.daily_periods,
        saturday_periods=record.saturday_periods,
        total_weekly_slots=record.total_weekly_slots,
    )


@router.get("/", response_model=ApiResponse[SchoolSettingsOut])
def get_school_settings(db: Session = Depends(get_db)) -> ApiResponse[SchoolSettingsOut]:
    # Absent row means defaults.
    return ApiResponse(data=_out(db.get(SchoolSettings, SETTINGS_ROW_ID)))


@router.put("/", response_model=ApiResponse[SchoolSettingsOut])
def put_school_settings(payload: SchoolSettingsPut, db: Session = Depends(get_db)) -> ApiResponse[SchoolSettingsOut]:
    row = db.get(SchoolSettings, SETTINGS_ROW_ID)
    if row is None:
        row = SchoolSettings(id=SETTINGS_ROW_ID)
        db.add(row)
    for k, v in payload.model_dump().items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return ApiResponse(data=_out(row))
