# src/dagenda/tasks/recipes.py

from __future__ import annotations

"""
Schedule recipe evaluation.

A recipe is evaluated against a window and yields the timespans it claims
inside that window. Evaluators are looked up by `recipe.kind`; a new recipe
variant only needs a dataclass in task_models.py and an evaluator registered
here. Contract for every evaluator:
- each returned span lies inside the window,
- spans are sorted by start time,
- zero, one or many spans may be returned.
"""

import logging
from collections.abc import Callable
from typing import Any

from .task_models import (
    MalformedTaskError,
    RecipeKind,
    ScheduleRecipe,
    SingleRecipe,
    Task,
    Timespan,
)

logger = logging.getLogger(__name__)

# Far enough to stay inside float-safe integers on every client.
MIN_TIME = -(2**53 - 1)
MAX_TIME = 2**53 - 1

Evaluator = Callable[[Any, Timespan], list[Timespan]]

_EVALUATORS: dict[str, Evaluator] = {}


def register_evaluator(kind: str) -> Callable[[Evaluator], Evaluator]:
    def deco(fn: Evaluator) -> Evaluator:
        if kind in _EVALUATORS:
            logger.warning("Replacing evaluator for recipe kind %s", kind)
        _EVALUATORS[kind] = fn
        return fn

    return deco


def clip(span: Timespan, window: Timespan) -> Timespan | None:
    """Intersection of `span` and `window` (closed intervals), None when disjoint."""
    start = max(span.time_from, window.time_from)
    end = min(span.time_until, window.time_until)
    if start > end:
        return None
    return Timespan(start, end)


@register_evaluator(RecipeKind.SINGLE)
def _evaluate_single(recipe: SingleRecipe, window: Timespan) -> list[Timespan]:
    piece = clip(recipe.timespan, window)
    return [piece] if piece is not None else []


def evaluate(recipe: ScheduleRecipe, window: Timespan) -> list[Timespan]:
    kind = getattr(recipe, "kind", None)
    evaluator = _EVALUATORS.get(kind) if kind is not None else None
    if evaluator is None:
        raise MalformedTaskError(f"No evaluator for schedule recipe kind {kind!r}")
    return evaluator(recipe, window)


def get_task_schedule(task: Task, window: Timespan) -> list[Timespan]:
    """All timespans `task` claims within `window`, merged across recipes, sorted by start."""
    if task is None or task.schedule_recipes is None:
        raise MalformedTaskError("Task has no schedule recipe list")

    spans: list[Timespan] = []
    for recipe in task.schedule_recipes:
        spans.extend(evaluate(recipe, window))
    spans.sort(key=lambda s: s.time_from)
    return spans


def is_task_scheduled(task: Task, window: Timespan) -> bool:
    return len(get_task_schedule(task, window)) > 0


def soonest_scheduled_timespan(task: Task, starting_from: int = MIN_TIME) -> Timespan | None:
    """Earliest-starting span of `task` that still ends at or after `starting_from`."""
    spans = get_task_schedule(task, Timespan(starting_from, MAX_TIME))
    return spans[0] if spans else None


# ---- serialization (persistence collaborator) ----


def recipe_to_dict(recipe: ScheduleRecipe) -> dict[str, Any]:
    if recipe.kind == RecipeKind.SINGLE:
        return {
            "kind": recipe.kind.value,
            "timespan": {
                "time_from": recipe.timespan.time_from,
                "time_until": recipe.timespan.time_until,
            },
        }
    raise MalformedTaskError(f"Cannot serialize schedule recipe kind {recipe.kind!r}")


def recipe_from_dict(raw: dict[str, Any]) -> ScheduleRecipe:
    if not isinstance(raw, dict):
        raise MalformedTaskError(f"Schedule recipe must be an object, got {type(raw).__name__}")

    kind = raw.get("kind")
    if kind == RecipeKind.SINGLE:
        try:
            span = raw["timespan"]
            return SingleRecipe(Timespan(int(span["time_from"]), int(span["time_until"])))
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedTaskError(f"Bad single recipe: {raw!r}") from e
    raise MalformedTaskError(f"Unknown schedule recipe kind {kind!r}")
