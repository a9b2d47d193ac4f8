# src/dagenda/tasks/task_scheduler.py

from __future__ import annotations

"""
Agenda scheduler.

build_schedule() turns every task's recipes into one timeline without
overlaps: when two requests collide, the one that starts later gets the
contested time, and the earlier one keeps whatever lies before and after it.

run_agenda_notifier() is a small polling loop on top of it that announces
upcoming instances through an injected notifier port. How a notification is
delivered belongs to the notifier, not the scheduler.
"""

import asyncio
import logging
import time
from bisect import bisect_right
from dataclasses import replace
from typing import TYPE_CHECKING

from ..core.ports import Notifier
from .recipes import get_task_schedule
from .task_models import ScheduledInstance, TaskStore, Timespan

if TYPE_CHECKING:
    from ..core.state import AppState

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


def lookahead_window(now: int, lookahead_ms: int) -> Timespan:
    return Timespan(now, now + max(0, int(lookahead_ms)))


def _start(inst: ScheduledInstance) -> int:
    return inst.during.time_from


def _piece_before(span: Timespan, before: int) -> Timespan | None:
    if span.time_from >= before:
        return None
    return Timespan(span.time_from, min(before, span.time_until))


def _piece_after(span: Timespan, after: int) -> Timespan | None:
    if span.time_until <= after:
        return None
    return Timespan(max(after, span.time_from), span.time_until)


def collect_requests(store: TaskStore, window: Timespan) -> list[ScheduledInstance]:
    """Every timespan every task wants inside `window`, stably sorted by start."""
    requests: list[ScheduledInstance] = []
    for task in store.values():
        for span in get_task_schedule(task, window):
            requests.append(ScheduledInstance(uuid=task.uuid, during=span))
    requests.sort(key=_start)
    return requests


def resolve_overlaps(schedule: list[ScheduledInstance]) -> list[ScheduledInstance]:
    """
    Resolve overlaps in a start-sorted request list, in place.

    Scanning left to right, each request is cut by every later request that
    starts before it ends:

        before:  ----------- req ----------
                      --- later ---
        after:   -req-               -tail-
                      --- later ---

    The tail is re-inserted at its start position and scanned in turn. A
    request with nothing left before the later one is dropped. Equal starts
    keep sort order, so the later-positioned request wins the tie.
    """
    ind = 0
    while ind < len(schedule):
        req = schedule[ind]
        dropped = False

        ind2 = ind + 1
        while ind2 < len(schedule) and ind2 < bisect_right(
            schedule, req.during.time_until, key=_start
        ):
            later = schedule[ind2]
            head = _piece_before(req.during, later.during.time_from)
            tail = _piece_after(req.during, later.during.time_until)

            if head is None:
                del schedule[ind]
                dropped = True
                break

            req = replace(req, during=head)
            schedule[ind] = req

            if tail is not None:
                piece = ScheduledInstance(uuid=req.uuid, during=tail)
                schedule.insert(bisect_right(schedule, tail.time_from, key=_start), piece)

            ind2 += 1

        # After a drop the next request has slid into `ind`.
        if not dropped:
            ind += 1

    return schedule


def build_schedule(store: TaskStore, window: Timespan) -> list[ScheduledInstance]:
    """
    Conflict-free timeline of scheduled instances within `window`.

    Sorted by start time; no two instances overlap. Pure and deterministic
    for a given store and window.
    """
    schedule = resolve_overlaps(collect_requests(store, window))
    logger.debug(
        "Built schedule window=[%s, %s] instances=%d",
        window.time_from,
        window.time_until,
        len(schedule),
    )
    return schedule


def current_instance(schedule: list[ScheduledInstance], at: int) -> ScheduledInstance | None:
    """The instance whose span contains `at`, if any (first match in schedule order)."""
    for inst in schedule:
        if inst.during.time_from <= at < inst.during.time_until:
            return inst
        if inst.during.time_from > at:
            break
    return None


async def run_agenda_notifier(
        state: AppState,
        notifier: Notifier,
        *,
        interval_seconds: float = 30.0,
        lookahead_ms: int = 24 * 60 * 60 * 1000,
) -> None:
    """
    Simple polling notifier.

    Every interval_seconds:
    - rebuild the schedule from the current state.tasks snapshot
    - for each instance that starts in the future and was not announced yet,
      call notifier.notify(...)
    - a failed delivery is logged and retried on the next tick

    To stop the notifier, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    announced: set[tuple[str, int]] = set()

    while True:
        now = now_ms()
        store = state.tasks

        try:
            schedule = build_schedule(store, lookahead_window(now, lookahead_ms))
        except Exception:
            logger.exception("build_schedule failed")
            schedule = []

        live_keys: set[tuple[str, int]] = set()
        for inst in schedule:
            if inst.during.time_from <= now:
                continue
            key = (inst.uuid, inst.during.time_from)
            live_keys.add(key)
            if key in announced:
                continue

            task = store.get(inst.uuid)
            if task is None:
                continue

            try:
                await notifier.notify(
                    timestamp=inst.during.time_from,
                    title=f"Task Start: {task.name}",
                    body=task.description or "",
                    uuid=inst.uuid,
                )
                announced.add(key)
                logger.info("Announced task=%s at=%s", inst.uuid, inst.during.time_from)
            except Exception:
                logger.exception("notify failed task=%s", inst.uuid)

        # Forget instances that moved or vanished so a reschedule is announced again.
        announced &= live_keys

        await asyncio.sleep(sleep_s)
