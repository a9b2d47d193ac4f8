# src/dagenda/tasks/task_models.py

from __future__ import annotations

import uuid as uuid_lib
from dataclasses import dataclass, fields, replace
from enum import StrEnum
from typing import Any, TypeAlias


class RecipeKind(StrEnum):
    """
    Discriminator for schedule recipe variants.

    Every kind must have an evaluator registered in tasks/recipes.py.
    """

    SINGLE = "single"


@dataclass(slots=True, frozen=True)
class Timespan:
    """Interval of absolute time in milliseconds since the Unix epoch."""

    time_from: int
    time_until: int

    def __post_init__(self) -> None:
        if self.time_from > self.time_until:
            raise ValueError(
                f"Timespan starts after it ends ({self.time_from} > {self.time_until})"
            )

    @property
    def duration(self) -> int:
        return self.time_until - self.time_from

    def contains(self, other: Timespan) -> bool:
        return self.time_from <= other.time_from and other.time_until <= self.time_until


@dataclass(slots=True, frozen=True)
class SingleRecipe:
    """Occupies exactly one interval, ever."""

    timespan: Timespan
    kind: RecipeKind = RecipeKind.SINGLE


# New variants join this union and register an evaluator.
ScheduleRecipe: TypeAlias = SingleRecipe


class TaskError(Exception):
    """Base class for rejected task operations."""


class TaskNotFoundError(TaskError, KeyError):
    def __init__(self, uuid: str, role: str = "task") -> None:
        super().__init__(f"{role} {uuid!r} does not exist")
        self.uuid = uuid
        self.role = role

    def __str__(self) -> str:
        return str(self.args[0])


class TaskEdgeError(TaskError):
    """A parent/child link request that does not match the current graph."""


class TaskCycleError(TaskEdgeError):
    """Linking would make a task its own descendant."""


class TaskTimerError(TaskError):
    """Work timer started twice or stopped while not running."""


class MalformedTaskError(TaskError):
    """Stored data that breaks the task record contract."""


INVALID_UUID = "-1"


@dataclass(slots=True, frozen=True)
class Task:
    uuid: str
    name: str
    description: str | None

    # Tasks which depend on this one.
    children: tuple[str, ...]
    # Tasks this one depends on.
    parents: tuple[str, ...]

    is_done: bool
    schedule_recipes: tuple[ScheduleRecipe, ...]

    # Set only while a work session is open.
    work_timer_start_timestamp: int | None = None
    # Finished sessions only, in milliseconds.
    work_timer_total: int = 0


# Local store of all tasks, keyed by uuid.
TaskStore: TypeAlias = dict[str, Task]


DEFAULT_TASK = Task(
    uuid=INVALID_UUID,
    name="New Task",
    description="",
    children=(),
    parents=(),
    is_done=False,
    schedule_recipes=(),
    work_timer_start_timestamp=None,
    work_timer_total=0,
)

_TASK_FIELDS = frozenset(f.name for f in fields(Task))
_SEQUENCE_FIELDS = ("children", "parents", "schedule_recipes")


def new_uuid() -> str:
    return str(uuid_lib.uuid4())


def make_task(**options: Any) -> Task:
    """
    Build a complete Task from a partial set of fields.

    Missing fields come from DEFAULT_TASK, except `uuid`, which is freshly
    generated when not supplied. Sequence fields are normalized to tuples;
    passing None for one raises MalformedTaskError.
    """
    unknown = set(options) - _TASK_FIELDS
    if unknown:
        raise TypeError(f"Unknown task field(s): {', '.join(sorted(unknown))}")

    values = dict(options)
    if values.get("uuid") is None:
        values["uuid"] = new_uuid()
    for name in _SEQUENCE_FIELDS:
        if name not in values:
            continue
        if values[name] is None:
            raise MalformedTaskError(f"Task field {name!r} must be a sequence, not None")
        values[name] = tuple(values[name])
    return replace(DEFAULT_TASK, **values)


def task_time_worked_on(task: Task, now_ms: int) -> int:
    """Total time spent on `task`, including a session still running at `now_ms`."""
    running = 0
    if task.work_timer_start_timestamp is not None:
        running = max(now_ms - task.work_timer_start_timestamp, 0)
    return task.work_timer_total + running


@dataclass(slots=True, frozen=True)
class ScheduledInstance:
    """A resolved occupancy of one task during one interval. Never persisted."""

    uuid: str
    during: Timespan
