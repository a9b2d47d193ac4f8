# src/dagenda/tasks/task_reducer.py

"""
Task store reducer.

reduce(store, action) -> (new_store, touched_uuids)

The reducer is a pure transition over a TaskStore snapshot:
- the input dict and the Task records in it are never modified,
- every changed record is a new Task built with dataclasses.replace,
- touched_uuids lists every uuid whose stored record changed (cascades
  included), so the caller can persist exactly those,
- a rejected action raises a TaskError and nothing observable changes.

Parent/child links only change through add_child / remove_child (and the
cascades of delete / create_child), which keeps both directions in sync and
the graph acyclic.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any, ClassVar, TypeAlias

from .dependencies import is_reachable
from .recipes import evaluate
from .task_models import (
    MalformedTaskError,
    Task,
    TaskCycleError,
    TaskEdgeError,
    TaskError,
    TaskNotFoundError,
    TaskStore,
    TaskTimerError,
    Timespan,
    make_task,
)

logger = logging.getLogger(__name__)


class ActionType(StrEnum):
    INIT = "tasks/init"
    CREATE = "tasks/create"
    SET = "tasks/set"
    DELETE = "tasks/delete"
    FINISH = "tasks/finish"
    START_TIMING = "tasks/start_timing"
    STOP_TIMING = "tasks/stop_timing"
    ADD_CHILD = "tasks/add_child"
    REMOVE_CHILD = "tasks/remove_child"
    AGENDA_FINISH = "tasks/agenda_finish"
    CREATE_CHILD = "tasks/create_child"


@dataclass(slots=True, frozen=True)
class InitStore:
    """Replace the whole store (e.g. after loading from persistence)."""

    type: ClassVar[ActionType] = ActionType.INIT
    payload: TaskStore


@dataclass(slots=True, frozen=True)
class CreateTask:
    """Create a task; missing fields come from DEFAULT_TASK."""

    type: ClassVar[ActionType] = ActionType.CREATE
    task: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class SetTask:
    """
    Create-or-replace a full record.

    Links are not edited here: the record must carry the same children and
    parents as the stored one (none for a new task).
    """

    type: ClassVar[ActionType] = ActionType.SET
    task: Task


@dataclass(slots=True, frozen=True)
class DeleteTask:
    type: ClassVar[ActionType] = ActionType.DELETE
    uuid: str


@dataclass(slots=True, frozen=True)
class FinishTask:
    """Mark a task done. Does nothing if the task does not exist."""

    type: ClassVar[ActionType] = ActionType.FINISH
    uuid: str


@dataclass(slots=True, frozen=True)
class StartTiming:
    type: ClassVar[ActionType] = ActionType.START_TIMING
    uuid: str


@dataclass(slots=True, frozen=True)
class StopTiming:
    type: ClassVar[ActionType] = ActionType.STOP_TIMING
    uuid: str


@dataclass(slots=True, frozen=True)
class AddChild:
    type: ClassVar[ActionType] = ActionType.ADD_CHILD
    parent: str
    child: str


@dataclass(slots=True, frozen=True)
class RemoveChild:
    type: ClassVar[ActionType] = ActionType.REMOVE_CHILD
    parent: str
    child: str


@dataclass(slots=True, frozen=True)
class AgendaFinish:
    """Retire the recipes of a task that are active right now."""

    type: ClassVar[ActionType] = ActionType.AGENDA_FINISH
    uuid: str


@dataclass(slots=True, frozen=True)
class CreateChild:
    type: ClassVar[ActionType] = ActionType.CREATE_CHILD
    parent: str
    child: Mapping[str, Any] = field(default_factory=dict)


TaskAction: TypeAlias = (
    InitStore
    | CreateTask
    | SetTask
    | DeleteTask
    | FinishTask
    | StartTiming
    | StopTiming
    | AddChild
    | RemoveChild
    | AgendaFinish
    | CreateChild
)


# ---- helpers working on the reducer's private copy of the store ----


def _require(store: TaskStore, uuid: str, role: str = "task") -> Task:
    task = store.get(uuid)
    if task is None:
        raise TaskNotFoundError(uuid, role)
    return task


def _without(items: tuple[str, ...], item: str) -> tuple[str, ...]:
    idx = items.index(item)
    return items[:idx] + items[idx + 1 :]


def _dedupe(uuids: list[str]) -> list[str]:
    return list(dict.fromkeys(uuids))


def _check_record(task: Task) -> None:
    for name in ("children", "parents", "schedule_recipes"):
        if getattr(task, name) is None:
            raise MalformedTaskError(f"Task {task.uuid!r} has no {name} list")
    for name in ("children", "parents"):
        links = getattr(task, name)
        if len(set(links)) != len(links):
            raise TaskEdgeError(f"Task {task.uuid!r} lists a duplicate in {name}")


def _put_new(store: TaskStore, task: Task) -> None:
    _check_record(task)
    if task.children or task.parents:
        raise TaskEdgeError(
            f"New task {task.uuid!r} cannot carry links; use add_child to connect it"
        )
    store[task.uuid] = task


def _add_child(store: TaskStore, parent_id: str, child_id: str) -> list[str]:
    parent = _require(store, parent_id, "parent")
    child = _require(store, child_id, "child")

    if child_id in parent.children:
        raise TaskEdgeError(f"{parent_id!r} is already a parent of {child_id!r}")
    if parent_id in child.parents:
        raise TaskEdgeError(f"{child_id!r} is already a child of {parent_id!r}")
    if is_reachable(child_id, parent_id, store):
        raise TaskCycleError(f"Linking {child_id!r} under {parent_id!r} would create a cycle")

    store[parent_id] = replace(parent, children=parent.children + (child_id,))
    store[child_id] = replace(child, parents=child.parents + (parent_id,))
    return [parent_id, child_id]


def _remove_child(store: TaskStore, parent_id: str, child_id: str) -> list[str]:
    parent = _require(store, parent_id, "parent")
    child = _require(store, child_id, "child")

    if child_id not in parent.children:
        raise TaskEdgeError(f"{parent_id!r} is not a parent of {child_id!r}")
    if parent_id not in child.parents:
        raise TaskEdgeError(f"{child_id!r} is not a child of {parent_id!r}")

    store[parent_id] = replace(parent, children=_without(parent.children, child_id))
    store[child_id] = replace(child, parents=_without(child.parents, parent_id))
    return [parent_id, child_id]


# ---- per-action transitions (store is already a private copy) ----


def _create(store: TaskStore, action: CreateTask, now: int) -> list[str]:
    task = make_task(**dict(action.task))
    _put_new(store, task)
    return [task.uuid]


def _set(store: TaskStore, action: SetTask, now: int) -> list[str]:
    task = action.task
    old = store.get(task.uuid)
    if old is None:
        _put_new(store, task)
    else:
        _check_record(task)
        same_links = sorted(old.children) == sorted(task.children) and sorted(
            old.parents
        ) == sorted(task.parents)
        if not same_links:
            raise TaskEdgeError(
                f"set cannot change links of {task.uuid!r}; use add_child / remove_child"
            )
        store[task.uuid] = task
    return [task.uuid]


def _delete(store: TaskStore, action: DeleteTask, now: int) -> list[str]:
    task = _require(store, action.uuid)
    touched = [action.uuid]
    for child_id in task.children:
        touched += _remove_child(store, action.uuid, child_id)
    for parent_id in task.parents:
        touched += _remove_child(store, parent_id, action.uuid)
    del store[action.uuid]
    return touched


def _start_timing(store: TaskStore, action: StartTiming, now: int) -> list[str]:
    task = _require(store, action.uuid)
    if task.work_timer_start_timestamp is not None:
        raise TaskTimerError(f"Task {action.uuid!r} is already being timed")
    store[action.uuid] = replace(task, work_timer_start_timestamp=now)
    return [action.uuid]


def _stop_timing(store: TaskStore, action: StopTiming, now: int) -> list[str]:
    task = _require(store, action.uuid)
    if task.work_timer_start_timestamp is None:
        raise TaskTimerError(f"Task {action.uuid!r} was not being timed")
    elapsed = max(now - task.work_timer_start_timestamp, 0)
    store[action.uuid] = replace(
        task,
        work_timer_start_timestamp=None,
        work_timer_total=task.work_timer_total + elapsed,
    )
    return [action.uuid]


def _finish(store: TaskStore, action: FinishTask, now: int) -> list[str]:
    task = store.get(action.uuid)
    if task is None:
        logger.debug("finish ignored for missing task %s", action.uuid)
        return []
    store[action.uuid] = replace(task, is_done=True)
    return [action.uuid]


def _agenda_finish(store: TaskStore, action: AgendaFinish, now: int) -> list[str]:
    # TODO: recurring recipes should move past the current instance instead of being dropped.
    task = _require(store, action.uuid)
    probe = Timespan(now, now)
    kept = tuple(r for r in task.schedule_recipes if not evaluate(r, probe))
    store[action.uuid] = replace(task, schedule_recipes=kept)
    return [action.uuid]


def _create_child(store: TaskStore, action: CreateChild, now: int) -> list[str]:
    _require(store, action.parent, "parent")
    child = make_task(**dict(action.child))
    _put_new(store, child)
    _add_child(store, action.parent, child.uuid)
    return [action.parent, child.uuid]


def _add_child_action(store: TaskStore, action: AddChild, now: int) -> list[str]:
    return _add_child(store, action.parent, action.child)


def _remove_child_action(store: TaskStore, action: RemoveChild, now: int) -> list[str]:
    return _remove_child(store, action.parent, action.child)


_HANDLERS: dict[ActionType, Callable[[TaskStore, Any, int], list[str]]] = {
    ActionType.CREATE: _create,
    ActionType.SET: _set,
    ActionType.DELETE: _delete,
    ActionType.FINISH: _finish,
    ActionType.START_TIMING: _start_timing,
    ActionType.STOP_TIMING: _stop_timing,
    ActionType.ADD_CHILD: _add_child_action,
    ActionType.REMOVE_CHILD: _remove_child_action,
    ActionType.AGENDA_FINISH: _agenda_finish,
    ActionType.CREATE_CHILD: _create_child,
}


def reduce(
        store: TaskStore,
        action: TaskAction,
        *,
        now_ms: int | None = None,
) -> tuple[TaskStore, list[str]]:
    """
    Apply `action` to `store` and return (new_store, touched_uuids).

    `now_ms` is the transition time used by timers and agenda_finish;
    defaults to the wall clock.
    """
    if action.type == ActionType.INIT:
        logger.debug("tasks/init with %d tasks", len(action.payload))
        return dict(action.payload), []

    handler = _HANDLERS.get(action.type)
    if handler is None:
        raise TypeError(f"Unknown task action {action!r}")

    now = int(time.time() * 1000) if now_ms is None else int(now_ms)
    new_store = dict(store)
    try:
        touched = _dedupe(handler(new_store, action, now))
    except TaskError as e:
        logger.info("%s rejected: %s", action.type.value, e)
        raise

    logger.debug("%s touched=%s", action.type.value, touched)
    return new_store, touched
