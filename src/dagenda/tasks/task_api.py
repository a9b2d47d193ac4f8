# src/dagenda/tasks/task_api.py

from __future__ import annotations

import logging
from dataclasses import replace

from ..core.state import AppState
from .dependencies import linearize
from .task_models import ScheduledInstance, SingleRecipe, TaskNotFoundError, Timespan
from .task_reducer import FinishTask, SetTask, StartTiming, StopTiming
from .task_scheduler import build_schedule, current_instance, lookahead_window

logger = logging.getLogger(__name__)


def agenda_for(state: AppState, root: str) -> list[str]:
    """Actionable order under `root`, minus tasks hidden this session."""
    return [uuid for uuid in linearize(root, state.tasks) if uuid not in state.ignored]


def next_actionable(state: AppState, root: str) -> str | None:
    agenda = agenda_for(state, root)
    return agenda[0] if agenda else None


def toggle_timer(state: AppState, uuid: str, *, now_ms: int | None = None) -> bool:
    """Start the work timer if stopped, stop it if running. Returns True when now running."""
    task = state.tasks.get(uuid)
    if task is not None and task.work_timer_start_timestamp is not None:
        state.dispatch(StopTiming(uuid), now_ms=now_ms)
        return False
    state.dispatch(StartTiming(uuid), now_ms=now_ms)
    return True


def _hide(state: AppState, uuid: str, now_ms: int | None) -> None:
    task = state.tasks.get(uuid)
    if task is not None and task.work_timer_start_timestamp is not None:
        state.dispatch(StopTiming(uuid), now_ms=now_ms)
    state.ignored.add(uuid)


def skip_actionable(state: AppState, root: str, *, now_ms: int | None = None) -> str | None:
    """
    Hide the current actionable task under `root` for this session.

    Returns the skipped uuid, or None when the agenda was already empty.
    """
    uuid = next_actionable(state, root)
    if uuid is None:
        return None
    _hide(state, uuid, now_ms)
    logger.debug("Skipped %s under %s", uuid, root)
    return uuid


def complete_actionable(state: AppState, root: str, *, now_ms: int | None = None) -> str | None:
    """Stop timing, hide and finish the current actionable task under `root`."""
    uuid = next_actionable(state, root)
    if uuid is None:
        return None
    _hide(state, uuid, now_ms)
    state.dispatch(FinishTask(uuid), now_ms=now_ms)
    logger.info("Completed %s under %s", uuid, root)
    return uuid


def schedule_single(state: AppState, uuid: str, *, time_from: int, time_until: int) -> list[str]:
    """Append a one-off recipe to an existing task."""
    task = state.tasks.get(uuid)
    if task is None:
        raise TaskNotFoundError(uuid)
    recipe = SingleRecipe(Timespan(int(time_from), int(time_until)))
    return state.dispatch(SetTask(replace(task, schedule_recipes=task.schedule_recipes + (recipe,))))


def upcoming(state: AppState, now_ms: int, lookahead_ms: int) -> list[ScheduledInstance]:
    return build_schedule(state.tasks, lookahead_window(now_ms, lookahead_ms))


def scheduled_now(state: AppState, now_ms: int, lookahead_ms: int) -> ScheduledInstance | None:
    """The instance that owns `now_ms`, i.e. what the agenda should be showing."""
    return current_instance(upcoming(state, now_ms, lookahead_ms), now_ms)
