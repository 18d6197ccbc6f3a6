"""Bulk selection by criteria and the reward-maximizing schedule search."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from race_planner.core.calendar import Calendar
from race_planner.core.warnings import adds_warnings
from race_planner.domain.models import MAX_TURN, Event, SelectionState

logger = logging.getLogger(__name__)

# (occupied two turns back, occupied one turn back)
_Window = tuple[bool, bool]


@dataclass(frozen=True)
class BatchCriteria:
    """Event predicate; an empty set leaves that dimension unconstrained."""

    grades: frozenset[str] = frozenset()
    surfaces: frozenset[str] = frozenset()
    distances: frozenset[str] = frozenset()
    year_phases: frozenset[int] = frozenset()

    def matches(self, event: Event) -> bool:
        if self.grades and event.grade not in self.grades:
            return False
        if self.surfaces and event.surface not in self.surfaces:
            return False
        if self.distances and event.distance_category not in self.distances:
            return False
        if self.year_phases and event.year_phase not in self.year_phases:
            return False
        return True


@dataclass(frozen=True)
class BatchResult:
    state: SelectionState
    affected: tuple[str, ...]
    matched: int


@dataclass(frozen=True)
class OptimizerResult:
    event_ids: tuple[str, ...]
    total_reward: int


def batch_select(
    state: SelectionState,
    calendar: Calendar,
    mandatory: frozenset[str],
    criteria: BatchCriteria,
    visible: Sequence[Event],
    *,
    prevent_warning_additions: bool = True,
) -> BatchResult:
    """Add every visible matching event whose date is still free.

    With warning prevention on, an event is only added when it does not grow
    the warning set of the schedule built so far.
    """
    matching = [event for event in visible if criteria.matches(event)]
    chosen = set(state.chosen)
    occupied = set(calendar.occupied_slots(state.effective | mandatory))
    added: list[str] = []
    for event in matching:
        if event.slot is None or event.slot in occupied:
            continue
        current = state.auto_substituted | mandatory | chosen
        if prevent_warning_additions and adds_warnings(
            current, current | {event.event_id}, calendar, mandatory
        ):
            continue
        chosen.add(event.event_id)
        occupied.add(event.slot)
        added.append(event.event_id)
    logger.info("batch.select matched=%s added=%s", len(matching), len(added))
    return BatchResult(
        state=state.evolve(chosen=chosen), affected=tuple(added), matched=len(matching)
    )


def batch_unselect(
    state: SelectionState,
    mandatory: frozenset[str],
    criteria: BatchCriteria,
    visible: Sequence[Event],
) -> BatchResult:
    """Remove every visible matching non-mandatory event from the chosen set."""
    matching = [event for event in visible if criteria.matches(event)]
    targets = {event.event_id for event in matching} - mandatory
    removed = tuple(sorted(state.chosen & targets))
    logger.info("batch.unselect matched=%s removed=%s", len(matching), len(removed))
    return BatchResult(
        state=state.evolve(chosen=state.chosen - targets), affected=removed, matched=len(matching)
    )


def best_candidates_by_turn(
    candidates: Iterable[Event], mandatory_turns: Iterable[int]
) -> dict[int, Event]:
    """Highest-reward schedulable candidate on each free turn."""
    blocked = set(mandatory_turns)
    best: dict[int, Event] = {}
    for event in candidates:
        if event.slot is None or event.reward_first_place is None:
            continue
        turn = event.turn
        if not 1 <= turn <= MAX_TURN or turn in blocked:
            continue
        incumbent = best.get(turn)
        if incumbent is None or _outranks(event, incumbent):
            best[turn] = event
    return best


def maximize_reward(
    candidates: Iterable[Event],
    mandatory_turns: Iterable[int],
    *,
    prevent_warning_additions: bool = True,
) -> OptimizerResult:
    """Pick at most one event per turn maximizing total first-place reward.

    Dynamic program over turns 1..72 keyed by the occupancy of the two
    previous turns. Mandatory turns are always occupied and never receive a
    candidate. With warning prevention on, a chosen event may not be the third
    occupied turn in a row.
    """
    blocked = frozenset(mandatory_turns)
    by_turn = best_candidates_by_turn(candidates, blocked)
    frontier: dict[_Window, tuple[int, tuple[str, ...]]] = {(False, False): (0, ())}
    for turn in range(1, MAX_TURN + 1):
        step: dict[_Window, tuple[int, tuple[str, ...]]] = {}
        candidate = by_turn.get(turn)
        for window in sorted(frontier):
            reward, picked = frontier[window]
            two_back, one_back = window
            if turn in blocked:
                _offer(step, (one_back, True), reward, picked)
                continue
            _offer(step, (one_back, False), reward, picked)
            if candidate is None:
                continue
            if prevent_warning_additions and two_back and one_back:
                continue
            _offer(
                step,
                (one_back, True),
                reward + int(candidate.reward_first_place or 0),
                picked + (candidate.event_id,),
            )
        frontier = step
    best_window = max(sorted(frontier), key=lambda window: frontier[window][0])
    total, picked = frontier[best_window]
    logger.info(
        "optimizer.done candidates=%s mandatory_turns=%s picked=%s total_reward=%s",
        len(by_turn),
        len(blocked),
        len(picked),
        total,
    )
    return OptimizerResult(event_ids=picked, total_reward=total)


def apply_optimizer(
    state: SelectionState, mandatory: frozenset[str], result: OptimizerResult
) -> SelectionState:
    """Replace every optional race, substitutions included, with the optimizer picks."""
    return state.evolve(
        chosen=mandatory | frozenset(result.event_ids), auto_substituted=frozenset()
    )


def _offer(
    step: dict[_Window, tuple[int, tuple[str, ...]]],
    window: _Window,
    reward: int,
    picked: tuple[str, ...],
) -> None:
    incumbent = step.get(window)
    if incumbent is None or reward > incumbent[0]:
        step[window] = (reward, picked)


def _outranks(event: Event, incumbent: Event) -> bool:
    reward = int(event.reward_first_place or 0)
    current = int(incumbent.reward_first_place or 0)
    if reward != current:
        return reward > current
    return event.event_id < incumbent.event_id
