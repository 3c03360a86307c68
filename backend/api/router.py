from __future__ import annotations

from fastapi import APIRouter, Depends

from api.deps import require_admin
from api.routes import classrooms, conditions, school_settings, subjects, teachers, timetables


api_router = APIRouter()

# Every route is admin-only; tokens are minted by the auth service.
_protected = [Depends(require_admin)]
api_router.include_router(teachers.router, prefix="/teachers", tags=["teachers"], dependencies=_protected)
api_router.include_router(subjects.router, prefix="/subjects", tags=["subjects"], dependencies=_protected)
api_router.include_router(classrooms.router, prefix="/classrooms", tags=["classrooms"], dependencies=_protected)
api_router.include_router(
    school_settings.router, prefix="/school-settings", tags=["school-settings"], dependencies=_protected
)
api_router.include_router(timetables.router, prefix="/timetables", tags=["timetables"], dependencies=_protected)
api_router.include_router(conditions.router, prefix="/conditions", tags=["conditions"], dependencies=_protected)
