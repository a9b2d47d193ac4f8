# tests/test_task_scheduler.py

from __future__ import annotations

import asyncio
import random
from dataclasses import replace

import pytest

from dagenda.core.state import AppState
from dagenda.tasks.recipes import evaluate
from dagenda.tasks.task_models import MalformedTaskError, ScheduledInstance, Timespan
from dagenda.tasks.task_scheduler import (
    build_schedule,
    collect_requests,
    current_instance,
    lookahead_window,
    now_ms,
    run_agenda_notifier,
)

from .fakes import FakeNotifier, InMemoryTaskRepo, build_store, single

WINDOW = Timespan(0, 10_000)


def inst(uuid: str, time_from: int, time_until: int) -> ScheduledInstance:
    return ScheduledInstance(uuid=uuid, during=Timespan(time_from, time_until))


def test_later_start_wins_the_overlap() -> None:
    store = build_store(["A", "B"], recipes={"A": [single(100, 200)], "B": [single(150, 250)]})
    assert build_schedule(store, WINDOW) == [inst("A", 100, 150), inst("B", 150, 250)]


def test_covered_middle_splits_the_earlier_request() -> None:
    store = build_store(["A", "B"], recipes={"A": [single(100, 400)], "B": [single(200, 300)]})
    assert build_schedule(store, WINDOW) == [
        inst("A", 100, 200),
        inst("B", 200, 300),
        inst("A", 300, 400),
    ]


def test_tail_piece_is_cut_again_by_later_requests() -> None:
    store = build_store(
        ["A", "B", "C"],
        recipes={"A": [single(0, 1000)], "B": [single(100, 200)], "C": [single(500, 600)]},
    )
    assert build_schedule(store, WINDOW) == [
        inst("A", 0, 100),
        inst("B", 100, 200),
        inst("A", 200, 500),
        inst("C", 500, 600),
        inst("A", 600, 1000),
    ]


def test_equal_start_goes_to_later_positioned_request() -> None:
    store = build_store(["A", "B"], recipes={"A": [single(100, 200)], "B": [single(100, 150)]})
    # Nothing of A lies before B, so A is dropped outright.
    assert build_schedule(store, WINDOW) == [inst("B", 100, 150)]

    swapped = build_store(["B", "A"], recipes={"A": [single(100, 200)], "B": [single(100, 150)]})
    assert build_schedule(swapped, WINDOW) == [inst("A", 100, 200)]


def test_request_after_a_dropped_one_is_still_resolved() -> None:
    store = build_store(
        ["A", "B", "C"],
        recipes={"A": [single(100, 200)], "B": [single(100, 300)], "C": [single(250, 400)]},
    )
    assert build_schedule(store, WINDOW) == [inst("B", 100, 250), inst("C", 250, 400)]


def test_zero_length_requests_survive_unless_covered() -> None:
    store = build_store(["A", "Z"], recipes={"A": [single(100, 200)], "Z": [single(200, 200)]})
    assert build_schedule(store, WINDOW) == [inst("A", 100, 200), inst("Z", 200, 200)]

    alone = build_store(["Z"], recipes={"Z": [single(50, 50)]})
    assert build_schedule(alone, WINDOW) == [inst("Z", 50, 50)]


def test_touching_requests_are_untouched() -> None:
    store = build_store(["A", "B"], recipes={"A": [single(0, 100)], "B": [single(100, 200)]})
    assert build_schedule(store, WINDOW) == [inst("A", 0, 100), inst("B", 100, 200)]


def test_requests_are_clipped_to_window() -> None:
    store = build_store(["A", "B"], recipes={"A": [single(-50, 50)], "B": [single(9_990, 20_000)]})
    assert build_schedule(store, WINDOW) == [inst("A", 0, 50), inst("B", 9_990, 10_000)]


def test_empty_store_gives_empty_schedule() -> None:
    assert build_schedule({}, WINDOW) == []


def _random_store(rng: random.Random):
    names = [f"t{i}" for i in range(rng.randint(1, 6))]
    recipes = {}
    for n in names:
        spans = []
        for _ in range(rng.randint(0, 3)):
            a, b = sorted((rng.randint(0, 1000), rng.randint(0, 1000)))
            spans.append(single(a, b))
        recipes[n] = spans
    return build_store(names, recipes=recipes)


@pytest.mark.parametrize("seed", range(40))
def test_schedule_properties_hold_for_random_stores(seed: int) -> None:
    rng = random.Random(seed)
    store = _random_store(rng)
    window = Timespan(200, 800)

    schedule = build_schedule(store, window)

    # Deterministic.
    assert build_schedule(store, window) == schedule

    starts = [i.during.time_from for i in schedule]
    assert starts == sorted(starts)

    for prev, nxt in zip(schedule, schedule[1:]):
        assert prev.during.time_until <= nxt.during.time_from

    for item in schedule:
        assert window.contains(item.during)
        wanted = [
            span
            for recipe in store[item.uuid].schedule_recipes
            for span in evaluate(recipe, window)
        ]
        assert any(span.contains(item.during) for span in wanted)


def test_collect_requests_is_stable_sorted() -> None:
    store = build_store(
        ["A", "B"],
        recipes={"A": [single(300, 400), single(100, 200)], "B": [single(100, 150)]},
    )
    assert collect_requests(store, WINDOW) == [
        inst("A", 100, 200),
        inst("B", 100, 150),
        inst("A", 300, 400),
    ]


def test_task_without_recipe_list_is_malformed() -> None:
    store = build_store(["A", "B"], recipes={"B": [single(100, 200)]})
    store["A"] = replace(store["A"], schedule_recipes=None)
    with pytest.raises(MalformedTaskError):
        build_schedule(store, WINDOW)


def test_lookahead_window_and_current_instance() -> None:
    assert lookahead_window(1_000, 500) == Timespan(1_000, 1_500)
    assert lookahead_window(1_000, -5) == Timespan(1_000, 1_000)

    schedule = [inst("A", 100, 150), inst("B", 150, 250)]
    assert current_instance(schedule, 120) == inst("A", 100, 150)
    assert current_instance(schedule, 150) == inst("B", 150, 250)
    assert current_instance(schedule, 250) is None
    assert current_instance(schedule, 50) is None


def _state_with_upcoming_task() -> AppState:
    start = now_ms() + 60_000
    store = build_store(["call"], recipes={"call": [single(start, start + 60_000)]})
    return AppState(settings=None, repo=InMemoryTaskRepo(store), tasks=store)


@pytest.mark.asyncio
async def test_notifier_announces_upcoming_instance_once() -> None:
    state = _state_with_upcoming_task()
    notifier = FakeNotifier()

    runner = asyncio.create_task(
        run_agenda_notifier(state, notifier, interval_seconds=0.01, lookahead_ms=10 * 60_000)
    )
    await asyncio.sleep(0.1)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert len(notifier.sent) == 1
    assert notifier.sent[0].uuid == "call"
    assert notifier.sent[0].title == "Task Start: call"


@pytest.mark.asyncio
async def test_notifier_retries_failed_delivery() -> None:
    state = _state_with_upcoming_task()
    notifier = FakeNotifier(fail_times=1)

    runner = asyncio.create_task(
        run_agenda_notifier(state, notifier, interval_seconds=0.01, lookahead_ms=10 * 60_000)
    )
    await asyncio.sleep(0.1)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert notifier.attempts >= 2
    assert len(notifier.sent) == 1


@pytest.mark.asyncio
async def test_notifier_skips_instances_outside_lookahead() -> None:
    state = _state_with_upcoming_task()
    notifier = FakeNotifier()

    runner = asyncio.create_task(
        run_agenda_notifier(state, notifier, interval_seconds=0.01, lookahead_ms=1_000)
    )
    await asyncio.sleep(0.05)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert notifier.sent == []
