from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from solver.types import GeneratedTimetableRecord, TimetableFilter, TimetableSummary


DEFAULT_LIMIT = 20


class TimetableReader(Protocol):
    def query_timetables(self, flt: TimetableFilter) -> tuple[list[TimetableSummary], int]: ...

    def get_timetable(self, timetable_id: str) -> GeneratedTimetableRecord | None: ...


@dataclass(frozen=True)
class TimetableListResult:
    items: list[TimetableSummary]
    # Full filtered count, independent of limit/offset.
    total: int


def list_timetables(
    repository: TimetableReader,
    grade: int | None = None,
    class_section: str | None = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> TimetableListResult:
    """Saved timetable summaries, newest first. Filters combine with AND."""

    flt = TimetableFilter(
        grade=grade,
        class_section=class_section or None,
        limit=max(0, int(limit)),
        offset=max(0, int(offset)),
    )
    items, total = repository.query_timetables(flt)
    return TimetableListResult(items=list(items), total=int(total))


def get_timetable(repository: TimetableReader, timetable_id: str) -> GeneratedTimetableRecord | None:
    return repository.get_timetable(timetable_id)
