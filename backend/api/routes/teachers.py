from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from core.db import get_db
from models.subject import Subject
from models.teacher import Teacher
from schemas.teacher import TeacherCreate, TeacherOut, TeacherUpdate
from schemas.timetable import ApiResponse


router = APIRouter()


def _slot_cells(ranges) -> set[tuple[int, int]]:
    return {(int(r["day"]), int(p)) for r in ranges or [] for p in r.get("periods") or []}


def _blocked_slot_cells(teacher: Teacher) -> set[tuple[int, int]]:
    mandatory = [r for r in teacher.assignment_restrictions or [] if r.get("level", "MANDATORY") == "MANDATORY"]
    return _slot_cells(teacher.unavailable_slots) | _slot_cells(mandatory)


def _validate_subject_refs(db: Session, subject_ids: list[str]) -> None:
    if not subject_ids:
        return
    try:
        keys = {uuid.UUID(str(s)) for s in subject_ids}
    except ValueError:
        raise HTTPException(status_code=400, detail="INVALID_SUBJECT_ID")
    found = set(db.execute(select(Subject.id).where(Subject.id.in_(keys))).scalars().all())
    missing = sorted(str(k) for k in keys - found)
    if missing:
        raise HTTPException(status_code=400, detail={"code": "SUBJECT_NOT_FOUND", "subject_ids": missing})


@router.get("/", response_model=ApiResponse[list[TeacherOut]])
def list_teachers(db: Session = Depends(get_db)) -> ApiResponse[list[TeacherOut]]:
    q = select(Teacher).order_by(Teacher.display_order.asc(), Teacher.name.asc())
    rows = db.execute(q).scalars().all()
    return ApiResponse(data=[TeacherOut.model_validate(r) for r in rows])


@router.post("/", response_model=ApiResponse[TeacherOut])
def create_teacher(payload: TeacherCreate, db: Session = Depends(get_db)) -> ApiResponse[TeacherOut]:
    _validate_subject_refs(db, payload.subject_ids)

    teacher = Teacher(**payload.model_dump(mode="json"))
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    return ApiResponse(data=TeacherOut.model_validate(teacher))


@router.patch("/{teacher_id}", response_model=ApiResponse[TeacherOut])
def update_teacher(
    teacher_id: uuid.UUID,
    payload: TeacherUpdate,
    db: Session = Depends(get_db),
) -> ApiResponse[TeacherOut]:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise HTTPException(status_code=404, detail="TEACHER_NOT_FOUND")

    updates = payload.model_dump(mode="json", exclude_unset=True)
    if "subject_ids" in updates:
        _validate_subject_refs(db, updates["subject_ids"] or [])

    for k, v in updates.items():
        setattr(teacher, k, v)

    if {"preferred_slots", "unavailable_slots", "assignment_restrictions"}.intersection(updates.keys()):
        if _slot_cells(teacher.preferred_slots) & _blocked_slot_cells(teacher):
            db.rollback()
            raise HTTPException(status_code=400, detail="PREFERRED_SLOT_UNAVAILABLE")

    db.commit()
    db.refresh(teacher)
    return ApiResponse(data=TeacherOut.model_validate(teacher))


@router.delete("/{teacher_id}", response_model=ApiResponse[dict])
def delete_teacher(teacher_id: uuid.UUID, db: Session = Depends(get_db)) -> ApiResponse[dict]:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise HTTPException(status_code=404, detail="TEACHER_NOT_FOUND")
    db.delete(teacher)
    db.commit()
    return ApiResponse(data={"id": str(teacher_id), "deleted": True})
