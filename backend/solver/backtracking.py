from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from core.errors import InfeasibleError
from solver.types import Assignment, ConstraintModel, Placement, Requirement, SearchState


logger = logging.getLogger(__name__)


DEFAULT_MAX_STEPS = 200_000
# How often (in steps) the wall clock is consulted.
_CLOCK_CHECK_INTERVAL = 1024

# (slot index, teacher index, classroom index or None)
Option = tuple[int, int, "int | None"]


def _popcount(mask: int) -> int:
    return bin(mask).count("1")


@dataclass
class _Frame:
    """One choice point: the requirement placing an hour at this depth and its remaining options."""

    requirement: int
    options: list[Option]
    cursor: int = 0
    applied: Option | None = None
    # last_slot of the requirement before this frame's option was applied
    prev_last: int = -1


@dataclass
class _SearchState:
    grid_mask: int = 0
    teacher_busy: list[int] = field(default_factory=list)
    teacher_load: list[int] = field(default_factory=list)
    room_busy: list[int] = field(default_factory=list)
    placed: list[int] = field(default_factory=list)
    last_slot: list[int] = field(default_factory=list)


def _infeasible(model: ConstraintModel, req: Requirement, *, unmet: int, reason: str, message: str) -> InfeasibleError:
    return InfeasibleError(
        message,
        grade=model.grade,
        subject_id=req.subject_id,
        subject_name=req.subject_name,
        unmet_hours=unmet,
        reason=reason,
    )


def precheck(model: ConstraintModel) -> None:
    """Reject models that no amount of searching can satisfy."""

    total = model.total_slots
    for req in model.requirements:
        if req.hours > total:
            raise _infeasible(
                model,
                req,
                unmet=req.hours - total,
                reason="EXCEEDS_GRID",
                message=(
                    f"{req.subject_name} needs {req.hours} hours/week for grade {model.grade} "
                    f"but the weekly grid only has {total} slots"
                ),
            )

    cumulative = 0
    for req in model.requirements:
        cumulative += req.hours
        if cumulative > total:
            unmet = min(req.hours, cumulative - total)
            raise _infeasible(
                model,
                req,
                unmet=unmet,
                reason="EXCEEDS_GRID",
                message=(
                    f"Grade {model.grade} requires {model.required_hours} hours/week in total but the weekly grid "
                    f"only has {total} slots; {req.subject_name} cannot be placed"
                ),
            )

    for req in model.requirements:
        if not req.teacher_indices:
            raise _infeasible(
                model,
                req,
                unmet=req.hours,
                reason="NO_ELIGIBLE_TEACHER",
                message=f"No teacher is eligible to teach {req.subject_name} for grade {model.grade}",
            )
        if req.requires_special_classroom and not req.classroom_indices:
            raise _infeasible(
                model,
                req,
                unmet=req.hours,
                reason="NO_SPECIAL_CLASSROOM",
                message=f"{req.subject_name} requires a '{req.classroom_type}' classroom but none exists",
            )

        teacher_union = 0
        capacity = 0
        for ti in req.teacher_indices:
            t = model.teachers[ti]
            teacher_union |= t.available_mask
            capacity += t.weekly_capacity
        free = _popcount(teacher_union)
        if free < req.hours:
            raise _infeasible(
                model,
                req,
                unmet=req.hours - free,
                reason="TEACHER_UNAVAILABLE",
                message=(
                    f"Eligible teachers for {req.subject_name} are available in only {free} slot(s); "
                    f"{req.hours} needed"
                ),
            )
        if capacity < req.hours:
            raise _infeasible(
                model,
                req,
                unmet=req.hours - capacity,
                reason="TEACHER_CAPACITY",
                message=(
                    f"Eligible teachers for {req.subject_name} have only {capacity} weekly hour(s) left; "
                    f"{req.hours} needed"
                ),
            )

        if req.requires_special_classroom:
            room_union = 0
            for ci in req.classroom_indices:
                room_union |= model.classrooms[ci].available_mask
            rooms_free = _popcount(room_union)
            if rooms_free < req.hours:
                raise _infeasible(
                    model,
                    req,
                    unmet=req.hours - rooms_free,
                    reason="CLASSROOM_UNAVAILABLE",
                    message=(
                        f"'{req.classroom_type}' classrooms are free in only {rooms_free} slot(s); "
                        f"{req.subject_name} needs {req.hours}"
                    ),
                )


def _candidate_mask(model: ConstraintModel, state: _SearchState, ri: int) -> int:
    """Slots where requirement ``ri`` could take its next hour right now."""

    req = model.requirements[ri]
    # Hours of one subject are interchangeable; they take slots in increasing order.
    above = ~((1 << (state.last_slot[ri] + 1)) - 1)
    mask = ((1 << model.total_slots) - 1) & ~state.grid_mask & above

    teachers = 0
    for ti in req.teacher_indices:
        t = model.teachers[ti]
        if state.teacher_load[ti] < t.weekly_capacity:
            teachers |= t.available_mask & ~state.teacher_busy[ti]
    mask &= teachers

    if req.classroom_indices:
        rooms = 0
        for ci in req.classroom_indices:
            rooms |= model.classrooms[ci].available_mask & ~state.room_busy[ci]
        mask &= rooms
    return mask


def _capacity_left(model: ConstraintModel, state: _SearchState, req: Requirement) -> int:
    return sum(max(0, model.teachers[ti].weekly_capacity - state.teacher_load[ti]) for ti in req.teacher_indices)


def _select(model: ConstraintModel, state: _SearchState) -> tuple[int, int, bool]:
    """Pick the open requirement with the least slack.

    Returns ``(requirement index, candidate mask, dead_end)``. The index is -1 once
    every hour is placed; ``dead_end`` flags a requirement that can no longer be met.
    """

    best = -1
    best_mask = 0
    best_slack = 0
    for ri, req in enumerate(model.requirements):
        remaining = req.hours - state.placed[ri]
        if remaining <= 0:
            continue
        mask = _candidate_mask(model, state, ri)
        free = _popcount(mask)
        if free < remaining or _capacity_left(model, state, req) < remaining:
            return ri, mask, True
        slack = free - remaining
        if best < 0 or slack < best_slack:
            best, best_mask, best_slack = ri, mask, slack
    return best, best_mask, False


def _options_for(model: ConstraintModel, state: _SearchState, ri: int, mask: int) -> list[Option]:
    req = model.requirements[ri]

    # Most constrained teacher first, judged on what is still free right now.
    teachers: list[tuple[int, int, str, int]] = []
    for ti in req.teacher_indices:
        t = model.teachers[ti]
        if state.teacher_load[ti] >= t.weekly_capacity:
            continue
        free = t.available_mask & ~state.teacher_busy[ti] & ~state.grid_mask
        teachers.append((_popcount(free), t.display_order, t.teacher_id, ti))
    teachers.sort()

    options: list[Option] = []
    for si in range(model.total_slots):
        bit = 1 << si
        if not (mask & bit):
            continue
        # Free rooms of the right type are interchangeable: take the first one.
        room: int | None = None
        for ci in req.classroom_indices:
            if model.classrooms[ci].available_mask & bit and not (state.room_busy[ci] & bit):
                room = ci
                break
        for _free, _order, _tid, ti in teachers:
            t = model.teachers[ti]
            if not (t.available_mask & bit) or (state.teacher_busy[ti] & bit):
                continue
            options.append((si, ti, room))
    return options


def _apply(state: _SearchState, frame: _Frame, option: Option) -> None:
    si, ti, ci = option
    bit = 1 << si
    state.grid_mask |= bit
    state.teacher_busy[ti] |= bit
    state.teacher_load[ti] += 1
    if ci is not None:
        state.room_busy[ci] |= bit
    frame.prev_last = state.last_slot[frame.requirement]
    state.last_slot[frame.requirement] = si
    state.placed[frame.requirement] += 1
    frame.applied = option


def _undo(state: _SearchState, frame: _Frame) -> None:
    si, ti, ci = frame.applied
    bit = 1 << si
    state.grid_mask &= ~bit
    state.teacher_busy[ti] &= ~bit
    state.teacher_load[ti] -= 1
    if ci is not None:
        state.room_busy[ci] &= ~bit
    state.last_slot[frame.requirement] = frame.prev_last
    state.placed[frame.requirement] -= 1
    frame.applied = None


def preference_score(model: ConstraintModel, placements: list[tuple[int, int]]) -> float:
    """Share (0-100) of placements that respect the teacher's soft preferences.

    A placement counts as satisfied when it avoids the teacher's discouraged slots and,
    if the teacher declared preferred slots, lands in one of them.
    """

    if not placements:
        return 100.0
    ok = 0
    for si, ti in placements:
        t = model.teachers[ti]
        bit = 1 << si
        if t.discouraged_mask & bit:
            continue
        if t.preferred_mask and not (t.preferred_mask & bit):
            continue
        ok += 1
    return round(ok * 100.0 / len(placements), 2)


def search(
    model: ConstraintModel,
    *,
    max_steps: int = DEFAULT_MAX_STEPS,
    time_budget_seconds: float | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> Assignment:
    """Place every required (subject, hour) unit into the class-section grid.

    Depth-first search over an explicit stack of choice points. Each level places one
    hour of the requirement with the least slack left (fail-first), and a level is
    abandoned as soon as any open requirement has fewer candidate slots or teacher
    hours than it still needs. Raises InfeasibleError when the tree (or the step/time
    budget) is exhausted without a complete assignment.
    """

    precheck(model)

    if model.required_hours == 0:
        return Assignment(
            grade=model.grade,
            class_section=model.class_section,
            placements=(),
            steps=0,
            backtracks=0,
            preference_score=100.0,
            state=SearchState.COMPLETE,
        )

    state = _SearchState(
        teacher_busy=[0] * len(model.teachers),
        teacher_load=[0] * len(model.teachers),
        room_busy=[0] * len(model.classrooms),
        placed=[0] * len(model.requirements),
        last_slot=[-1] * len(model.requirements),
    )
    started = clock()
    steps = 0
    backtracks = 0
    # (hours placed when it happened, requirement index, unmet hours) of the deepest dead end.
    deepest_failure: tuple[int, int, int] | None = None
    stack: list[_Frame] = []

    def _note_failure(ri: int) -> None:
        nonlocal deepest_failure
        depth = sum(state.placed)
        if deepest_failure is None or depth > deepest_failure[0]:
            req = model.requirements[ri]
            deepest_failure = (depth, ri, req.hours - state.placed[ri])

    def _exhausted(reason: str) -> InfeasibleError:
        if deepest_failure is not None:
            _depth, ri, unmet = deepest_failure
        else:
            ri = stack[-1].requirement if stack else 0
            unmet = model.requirements[ri].hours - state.placed[ri]
        req = model.requirements[ri]
        logger.info(
            "search exhausted grade=%s section=%s subject=%s unmet=%s steps=%s backtracks=%s reason=%s",
            model.grade,
            model.class_section,
            req.subject_name,
            unmet,
            steps,
            backtracks,
            reason,
        )
        if reason == "EXHAUSTED":
            message = f"No valid placement for {req.subject_name} (grade {model.grade}); {unmet} hour(s) unmet"
        else:
            message = (
                f"Search budget exhausted before {req.subject_name} (grade {model.grade}) could be placed; "
                f"{unmet} hour(s) unmet"
            )
        return _infeasible(model, req, unmet=unmet, reason=reason, message=message)

    ri, mask, dead_end = _select(model, state)
    if dead_end:
        _note_failure(ri)
        raise _exhausted("EXHAUSTED")
    stack.append(_Frame(requirement=ri, options=_options_for(model, state, ri, mask)))
    phase = SearchState.PARTIALLY_PLACED

    while stack:
        frame = stack[-1]
        if frame.applied is not None:
            _undo(state, frame)

        if frame.cursor >= len(frame.options):
            stack.pop()
            backtracks += 1
            phase = SearchState.BACKTRACK
            continue

        steps += 1
        if steps > max_steps:
            raise _exhausted("STEP_BUDGET")
        if time_budget_seconds is not None and steps % _CLOCK_CHECK_INTERVAL == 0:
            if clock() - started > time_budget_seconds:
                raise _exhausted("TIME_BUDGET")

        option = frame.options[frame.cursor]
        frame.cursor += 1
        _apply(state, frame, option)
        phase = SearchState.PARTIALLY_PLACED

        ri, mask, dead_end = _select(model, state)
        if ri < 0:
            phase = SearchState.COMPLETE
            break
        if dead_end:
            _note_failure(ri)
            backtracks += 1
            phase = SearchState.BACKTRACK
            continue
        stack.append(_Frame(requirement=ri, options=_options_for(model, state, ri, mask)))

    if phase is not SearchState.COMPLETE:
        raise _exhausted("EXHAUSTED")

    placements: list[Placement] = []
    for frame in stack:
        si, ti, ci = frame.applied
        req = model.requirements[frame.requirement]
        slot = model.slots[si]
        teacher = model.teachers[ti]
        room = model.classrooms[ci] if ci is not None else None
        placements.append(
            Placement(
                slot_index=si,
                day=slot.day,
                period=slot.period,
                subject_id=req.subject_id,
                subject_name=req.subject_name,
                teacher_id=teacher.teacher_id,
                teacher_name=teacher.name,
                classroom_id=room.classroom_id if room else None,
                classroom_name=room.name if room else None,
            )
        )
    placements.sort(key=lambda p: p.slot_index)

    score = preference_score(model, [(f.applied[0], f.applied[1]) for f in stack])
    logger.debug(
        "search complete grade=%s section=%s placed=%s steps=%s backtracks=%s",
        model.grade,
        model.class_section,
        len(placements),
        steps,
        backtracks,
    )
    return Assignment(
        grade=model.grade,
        class_section=model.class_section,
        placements=tuple(placements),
        steps=steps,
        backtracks=backtracks,
        preference_score=score,
        state=SearchState.COMPLETE,
    )
