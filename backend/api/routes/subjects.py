from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from core.db import get_db
from models.subject import Subject
from models.teacher import Teacher
from schemas.subject import SubjectCreate, SubjectOut, SubjectUpdate
from schemas.timetable import ApiResponse


router = APIRouter()


@router.get("/", response_model=ApiResponse[list[SubjectOut]])
def list_subjects(db: Session = Depends(get_db)) -> ApiResponse[list[SubjectOut]]:
    q = select(Subject).order_by(Subject.display_order.asc(), Subject.name.asc())
    rows = db.execute(q).scalars().all()
    return ApiResponse(data=[SubjectOut.model_validate(r) for r in rows])


@router.post("/", response_model=ApiResponse[SubjectOut])
def create_subject(payload: SubjectCreate, db: Session = Depends(get_db)) -> ApiResponse[SubjectOut]:
    subject = Subject(**payload.model_dump(mode="json"))
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return ApiResponse(data=SubjectOut.model_validate(subject))


@router.patch("/{subject_id}", response_model=ApiResponse[SubjectOut])
def update_subject(
    subject_id: uuid.UUID,
    payload: SubjectUpdate,
    db: Session = Depends(get_db),
) -> ApiResponse[SubjectOut]:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise HTTPException(status_code=404, detail="SUBJECT_NOT_FOUND")

    updates = payload.model_dump(mode="json", exclude_unset=True)
    for k, v in updates.items():
        setattr(subject, k, v)

    if subject.requires_special_classroom and subject.classroom_type == "general":
        db.rollback()
        raise HTTPException(status_code=400, detail="SPECIAL_CLASSROOM_TYPE_REQUIRED")

    db.commit()
    db.refresh(subject)
    return ApiResponse(data=SubjectOut.model_validate(subject))


@router.delete("/{subject_id}", response_model=ApiResponse[dict])
def delete_subject(subject_id: uuid.UUID, db: Session = Depends(get_db)) -> ApiResponse[dict]:
    subject = db.get(Subject, subject_id)
    if subject is None:
        raise HTTPException(status_code=404, detail="SUBJECT_NOT_FOUND")

    # Teachers reference subjects by id inside a JSON list; drop the dangling id.
    key = str(subject_id)
    for teacher in db.execute(select(Teacher)).scalars().all():
        ids = [s for s in teacher.subject_ids or [] if str(s) != key]
        if len(ids) != len(teacher.subject_ids or []):
            teacher.subject_ids = ids

    db.delete(subject)
    db.commit()
    return ApiResponse(data={"id": key, "deleted": True})
