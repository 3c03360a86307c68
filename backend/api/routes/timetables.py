from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from api.deps import get_generation_service, get_repository
from core.config import settings
from schemas.timetable import (
    ApiResponse,
    BatchGenerationOut,
    GenerateAllRequest,
    GenerateTimetableRequest,
    SectionFailureOut,
    TimetableDetailOut,
    TimetableListOut,
    TimetableSlotOut,
    TimetableSummaryOut,
    TimetableValidationOut,
    ViolationOut,
)
from services.repository import TimetableRepository
from services.timetable_generation import TimetableGenerationService
from services.timetable_query import get_timetable as query_timetable
from services.timetable_validator import validate_timetable
from solver.types import GeneratedTimetableRecord


router = APIRouter()


def _detail(record: GeneratedTimetableRecord) -> TimetableDetailOut:
    summary = TimetableSummaryOut.model_validate(record.summary())
    return TimetableDetailOut(
        **summary.model_dump(),
        slots=[TimetableSlotOut(**p.to_dict()) for p in record.slots],
    )


@router.post("/generate", response_model=ApiResponse[TimetableDetailOut])
def generate_timetable(
    payload: GenerateTimetableRequest,
    service: TimetableGenerationService = Depends(get_generation_service),
) -> ApiResponse[TimetableDetailOut]:
    # ValidationError / InfeasibleError / PersistenceError are rendered by the app-level handler.
    result = service.generate_timetable_for_class(payload.grade, payload.class_section)
    return ApiResponse(data=_detail(result.timetable))


@router.post("/generate-all", response_model=ApiResponse[BatchGenerationOut])
def generate_all_timetables(
    payload: GenerateAllRequest,
    service: TimetableGenerationService = Depends(get_generation_service),
) -> ApiResponse[BatchGenerationOut]:
    result = service.generate_timetables(payload.grade)
    return ApiResponse(
        data=BatchGenerationOut(
            generated=[TimetableSummaryOut.model_validate(r.summary()) for r in result.generated],
            failed=[SectionFailureOut.model_validate(f) for f in result.failed],
            requested=result.requested,
        )
    )


@router.get("/", response_model=ApiResponse[TimetableListOut])
def list_timetables(
    grade: int | None = Query(default=None),
    class_section: str | None = Query(default=None),
    limit: int = Query(default=settings.default_page_limit, ge=1, le=200),
    page: int = Query(default=1, ge=1),
    service: TimetableGenerationService = Depends(get_generation_service),
) -> ApiResponse[TimetableListOut]:
    result = service.get_saved_timetables(
        grade=grade,
        class_section=class_section,
        limit=limit,
        offset=(page - 1) * limit,
    )
    total_pages = (result.total + limit - 1) // limit
    return ApiResponse(
        data=TimetableListOut(
            items=[TimetableSummaryOut.model_validate(s) for s in result.items],
            page=page,
            limit=limit,
            total=result.total,
            total_pages=total_pages,
        )
    )


@router.get("/{timetable_id}", response_model=ApiResponse[TimetableDetailOut])
def get_timetable(
    timetable_id: str,
    service: TimetableGenerationService = Depends(get_generation_service),
) -> ApiResponse[TimetableDetailOut]:
    record = query_timetable(service.repository, timetable_id)
    if record is None:
        raise HTTPException(status_code=404, detail="TIMETABLE_NOT_FOUND")
    return ApiResponse(data=_detail(record))


@router.post("/{timetable_id}/validate", response_model=ApiResponse[TimetableValidationOut])
def validate_saved_timetable(
    timetable_id: str,
    repository: TimetableRepository = Depends(get_repository),
) -> ApiResponse[TimetableValidationOut]:
    report = validate_timetable(repository, timetable_id)
    if report is None:
        raise HTTPException(status_code=404, detail="TIMETABLE_NOT_FOUND")
    return ApiResponse(
        data=TimetableValidationOut(
            timetable_id=report.timetable_id,
            grade=report.grade,
            class_section=report.class_section,
            is_valid=report.is_valid,
            violations=[ViolationOut(**v.to_dict()) for v in report.violations],
            checked_constraints=list(report.checked_constraints),
        )
    )
