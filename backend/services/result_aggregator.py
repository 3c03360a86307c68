from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Protocol

from services.timetable_validator import model_violations, quality_score
from solver.types import Assignment, ConstraintModel, GeneratedTimetableRecord


logger = logging.getLogger(__name__)


GENERATION_METHOD = "backtracking"


class TimetableWriter(Protocol):
    def save_timetable(self, record: GeneratedTimetableRecord) -> str: ...


def assignment_rate(assigned: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(assigned * 100.0 / total, 2)


def build_statistics(
    model: ConstraintModel,
    assignment: Assignment,
    *,
    generation_time_ms: int = 0,
    conditions: str = "",
) -> dict[str, Any]:
    total = model.total_slots
    # One placement per cell, so the count of placements is the count of non-empty cells.
    assigned = len({p.slot_index for p in assignment.placements})
    rate = assignment_rate(assigned, total)
    violations = model_violations(model, assignment.placements)
    if violations:
        logger.warning(
            "Assignment for grade=%s section=%s breaks %s constraint(s): %s",
            model.grade,
            model.class_section,
            len(violations),
            "; ".join(v.message for v in violations[:5]),
        )
    stats = {
        "total_slots": total,
        "assigned_slots": assigned,
        "unassigned_slots": total - assigned,
        "assignment_rate": rate,
        "constraint_violations": len(violations),
        "quality_score": quality_score(rate, len(violations)),
        "backtrack_count": assignment.backtracks,
        "search_steps": assignment.steps,
        "preference_score": assignment.preference_score,
        "generation_time_ms": int(generation_time_ms),
        "hours_by_subject": assignment.hours_by_subject(),
    }
    if conditions:
        # The scheduling notes in force when this timetable was generated.
        stats["conditions"] = conditions
    return stats


def build_record(
    model: ConstraintModel,
    assignment: Assignment,
    *,
    method: str = GENERATION_METHOD,
    generation_time_ms: int = 0,
    conditions: str = "",
) -> GeneratedTimetableRecord:
    stats = build_statistics(model, assignment, generation_time_ms=generation_time_ms, conditions=conditions)
    return GeneratedTimetableRecord(
        id=str(uuid.uuid4()),
        grade=model.grade,
        class_section=model.class_section,
        generation_method=method,
        assignment_rate=stats["assignment_rate"],
        total_slots=stats["total_slots"],
        assigned_slots=stats["assigned_slots"],
        statistics=stats,
        created_at=datetime.now(timezone.utc),
        slots=tuple(sorted(assignment.placements, key=lambda p: p.slot_index)),
    )


def finalize(
    model: ConstraintModel,
    assignment: Assignment,
    repository: TimetableWriter,
    *,
    method: str = GENERATION_METHOD,
    generation_time_ms: int = 0,
    conditions: str = "",
) -> GeneratedTimetableRecord:
    """Compute statistics for a finished assignment and persist it.

    PersistenceError from the repository propagates with the computed record attached.
    """

    record = build_record(
        model, assignment, method=method, generation_time_ms=generation_time_ms, conditions=conditions
    )
    repository.save_timetable(record)
    logger.info(
        "Saved timetable id=%s grade=%s section=%s rate=%s",
        record.id,
        record.grade,
        record.class_section,
        record.assignment_rate,
    )
    return record
