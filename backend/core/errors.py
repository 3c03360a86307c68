from __future__ import annotations

from typing import Any


class TimetableError(RuntimeError):
    """Base class for failures surfaced to API clients as a code/message pair."""

    code = "TIMETABLE_ERROR"
    status_code = 500

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        return {
            "success": False,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(TimetableError):
    """Bad grade/class-section input; raised before any search or persistence."""

    code = "VALIDATION_ERROR"
    status_code = 400


class InfeasibleError(TimetableError):
    """No valid assignment exists within the search budget."""

    code = "INFEASIBLE"
    status_code = 409

    def __init__(
        self,
        message: str,
        *,
        grade: int,
        subject_id: str | None = None,
        subject_name: str | None = None,
        unmet_hours: int = 0,
        reason: str = "EXHAUSTED",
    ):
        super().__init__(
            message,
            details={
                "grade": grade,
                "subject_id": subject_id,
                "subject_name": subject_name,
                "unmet_hours": unmet_hours,
                "reason": reason,
            },
        )
        self.grade = grade
        self.subject_id = subject_id
        self.subject_name = subject_name
        self.unmet_hours = unmet_hours
        self.reason = reason


class PersistenceError(TimetableError):
    """Storage read/write failure. The computed record (if any) is kept for a retry."""

    code = "PERSISTENCE_ERROR"
    status_code = 503

    def __init__(self, message: str, *, record: Any | None = None):
        super().__init__(message)
        self.record = record
