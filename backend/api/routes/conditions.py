from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from models.generation_conditions import CONDITIONS_ROW_ID, GenerationConditions
from schemas.conditions import ConditionsOut, ConditionsPut
from schemas.timetable import ApiResponse


router = APIRouter()


@router.get("/", response_model=ApiResponse[ConditionsOut])
def get_conditions(db: Session = Depends(get_db)) -> ApiResponse[ConditionsOut]:
    row = db.get(GenerationConditions, CONDITIONS_ROW_ID)
    if row is None:
        return ApiResponse(data=ConditionsOut(id=CONDITIONS_ROW_ID, conditions=""))
    return ApiResponse(data=ConditionsOut.model_validate(row))


@router.put("/", response_model=ApiResponse[ConditionsOut])
def put_conditions(payload: ConditionsPut, db: Session = Depends(get_db)) -> ApiResponse[ConditionsOut]:
    row = db.get(GenerationConditions, CONDITIONS_ROW_ID)
    if row is None:
        row = GenerationConditions(id=CONDITIONS_ROW_ID)
        db.add(row)
    row.conditions = payload.conditions.strip()
    db.commit()
    db.refresh(row)
    return ApiResponse(data=ConditionsOut.model_validate(row))
