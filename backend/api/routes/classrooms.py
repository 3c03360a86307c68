from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.db import get_db
from models.classroom import Classroom
from schemas.classroom import ClassroomCreate, ClassroomOut, ClassroomUpdate
from schemas.timetable import ApiResponse


router = APIRouter()


@router.get("/", response_model=ApiResponse[list[ClassroomOut]])
def list_classrooms(db: Session = Depends(get_db)) -> ApiResponse[list[ClassroomOut]]:
    q = select(Classroom).order_by(Classroom.display_order.asc(), Classroom.name.asc())
    rows = db.execute(q).scalars().all()
    return ApiResponse(data=[ClassroomOut.model_validate(r) for r in rows])


@router.post("/", response_model=ApiResponse[ClassroomOut])
def create_classroom(payload: ClassroomCreate, db: Session = Depends(get_db)) -> ApiResponse[ClassroomOut]:
    classroom = Classroom(**payload.model_dump(mode="json"))
    db.add(classroom)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="CLASSROOM_NAME_ALREADY_EXISTS")
    db.refresh(classroom)
    return ApiResponse(data=ClassroomOut.model_validate(classroom))


@router.patch("/{classroom_id}", response_model=ApiResponse[ClassroomOut])
def update_classroom(
    classroom_id: uuid.UUID,
    payload: ClassroomUpdate,
    db: Session = Depends(get_db),
) -> ApiResponse[ClassroomOut]:
    classroom = db.get(Classroom, classroom_id)
    if classroom is None:
        raise HTTPException(status_code=404, detail="CLASSROOM_NOT_FOUND")

    updates = payload.model_dump(mode="json", exclude_unset=True)
    for k, v in updates.items():
        setattr(classroom, k, v)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="CLASSROOM_NAME_ALREADY_EXISTS")
    db.refresh(classroom)
    return ApiResponse(data=ClassroomOut.model_validate(classroom))


@router.delete("/{classroom_id}", response_model=ApiResponse[dict])
def delete_classroom(classroom_id: uuid.UUID, db: Session = Depends(get_db)) -> ApiResponse[dict]:
    classroom = db.get(Classroom, classroom_id)
    if classroom is None:
        raise HTTPException(status_code=404, detail="CLASSROOM_NOT_FOUND")
    db.delete(classroom)
    db.commit()
    return ApiResponse(data={"id": str(classroom_id), "deleted": True})
