from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

from core.config import Settings
from core.errors import InfeasibleError, ValidationError
from services.repository import TimetableRepository
from services.result_aggregator import finalize
from services.timetable_query import TimetableListResult, list_timetables
from solver.backtracking import search
from solver.model_builder import (
    build_constraint_model,
    section_letters,
    validate_grade_section,
    validate_grade_section_format,
)
from solver.types import (
    GRADE_MAX,
    GRADE_MIN,
    Bookings,
    ClassroomRecord,
    GeneratedTimetableRecord,
    SchoolSettingsRecord,
    SubjectRecord,
    TeacherRecord,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    timetable: GeneratedTimetableRecord
    generation_time_ms: int


@dataclass(frozen=True)
class SectionFailure:
    grade: int
    class_section: str
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class BatchGenerationResult:
    generated: list[GeneratedTimetableRecord] = field(default_factory=list)
    failed: list[SectionFailure] = field(default_factory=list)

    @property
    def requested(self) -> int:
        return len(self.generated) + len(self.failed)


@dataclass(frozen=True)
class _Entities:
    teachers: list[TeacherRecord]
    subjects: list[SubjectRecord]
    classrooms: list[ClassroomRecord]
    settings: SchoolSettingsRecord
    conditions: str = ""


class TimetableGenerationService:
    """Builds, searches and persists timetables through an injected repository."""

    def __init__(self, repository: TimetableRepository, settings: Settings):
        self.repository = repository
        self.settings = settings

    def _load(self) -> _Entities:
        return _Entities(
            teachers=self.repository.get_teachers(),
            subjects=self.repository.get_subjects(),
            classrooms=self.repository.get_classrooms(),
            settings=self.repository.get_school_settings(),
            conditions=self.repository.get_conditions(),
        )

    def _generate(self, entities: _Entities, grade: int, class_section: str, committed: Bookings) -> GenerationResult:
        started = time.perf_counter()
        model = build_constraint_model(
            grade,
            class_section,
            entities.teachers,
            entities.subjects,
            entities.classrooms,
            entities.settings,
            committed=committed,
        )
        assignment = search(
            model,
            max_steps=self.settings.solver_max_steps,
            time_budget_seconds=self.settings.solver_time_budget_seconds,
        )
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        record = finalize(
            model,
            assignment,
            self.repository,
            generation_time_ms=elapsed_ms,
            conditions=entities.conditions,
        )
        logger.info(
            "Generated timetable grade=%s section=%s rate=%s steps=%s backtracks=%s time_ms=%s",
            grade,
            class_section,
            record.assignment_rate,
            assignment.steps,
            assignment.backtracks,
            elapsed_ms,
        )
        return GenerationResult(timetable=record, generation_time_ms=elapsed_ms)

    def generate_timetable_for_class(self, grade: int, class_section: str) -> GenerationResult:
        logger.info("Timetable generation started grade=%s section=%s", grade, class_section)
        # Reject malformed input before anything is read from the database.
        validate_grade_section_format(grade, class_section)
        entities = self._load()
        validate_grade_section(grade, class_section, entities.settings)

        committed = Bookings()
        if self.settings.respect_saved_timetables:
            committed = self.repository.get_committed_bookings(exclude=[(grade, class_section)])

        try:
            return self._generate(entities, grade, class_section, committed)
        except InfeasibleError as exc:
            logger.warning(
                "Timetable generation infeasible grade=%s section=%s subject=%s unmet=%s reason=%s",
                grade,
                class_section,
                exc.subject_name,
                exc.unmet_hours,
                exc.reason,
            )
            raise

    def generate_timetables(self, grade: int | None = None) -> BatchGenerationResult:
        """Generate every configured class-section of one grade (or of all grades).

        Teacher and classroom occupancy is shared across the run; an infeasible
        section is recorded and the run moves on.
        """

        if grade is not None and (isinstance(grade, bool) or not GRADE_MIN <= int(grade) <= GRADE_MAX):
            raise ValidationError(
                f"Grade must be between {GRADE_MIN} and {GRADE_MAX}",
                details={"field": "grade", "value": grade},
            )

        entities = self._load()
        grades = [int(grade)] if grade is not None else list(range(GRADE_MIN, GRADE_MAX + 1))
        targets = [(g, s) for g in grades for s in section_letters(entities.settings.classes_for_grade(g))]
        logger.info("Batch generation started grades=%s sections=%s", grades, len(targets))

        committed = Bookings()
        if self.settings.respect_saved_timetables:
            committed = self.repository.get_committed_bookings(exclude=targets)

        result = BatchGenerationResult()
        for g, section in targets:
            try:
                generated = self._generate(entities, g, section, committed)
            except InfeasibleError as exc:
                logger.warning("Batch section infeasible grade=%s section=%s: %s", g, section, exc.message)
                result.failed.append(
                    SectionFailure(grade=g, class_section=section, code=exc.code, message=exc.message, details=exc.details)
                )
                continue
            committed.add_placements(generated.timetable.slots)
            result.generated.append(generated.timetable)

        logger.info("Batch generation finished generated=%s failed=%s", len(result.generated), len(result.failed))
        return result

    def get_saved_timetables(
        self,
        grade: int | None = None,
        class_section: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> TimetableListResult:
        return list_timetables(
            self.repository,
            grade=grade,
            class_section=class_section,
            limit=self.settings.default_page_limit if limit is None else limit,
            offset=offset,
        )
