# src/dagenda/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import cast

from ..core.state import AppState
from ..tasks.dependencies import order_subset
from ..tasks.task_api import (
    agenda_for,
    complete_actionable,
    schedule_single,
    scheduled_now,
    skip_actionable,
    toggle_timer,
    upcoming,
)
from ..tasks.task_models import TaskError, TaskNotFoundError, task_time_worked_on
from ..tasks.task_reducer import (
    AddChild,
    AgendaFinish,
    CreateChild,
    CreateTask,
    DeleteTask,
    FinishTask,
    RemoveChild,
)
from ..tasks.task_scheduler import now_ms

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

SHORT_ID = 8


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Rejected task operations come back as a one-line error reply.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except TaskError as e:
            return f"Error: {e}"
        except ValueError as e:
            return f"Bad argument: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


def resolve_ref(state: AppState, ref: str) -> str:
    """Accept a full uuid, an exact task name, or a unique uuid prefix (in that order)."""
    if ref in state.tasks:
        return ref
    for matches in (
        [u for u, t in state.tasks.items() if t.name == ref],
        [u for u in state.tasks if u.startswith(ref)],
    ):
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise ValueError(f"{ref!r} matches more than one task")
    raise TaskNotFoundError(ref)


def parse_time(raw: str, now: int) -> int:
    """
    "+90" (minutes from now), "+2h", or an ISO datetime in local time.
    Returns epoch milliseconds.
    """
    if raw.startswith("+"):
        body = raw[1:]
        unit = 60_000
        if body.endswith("h"):
            body, unit = body[:-1], 3_600_000
        elif body.endswith("m"):
            body = body[:-1]
        return now + int(body) * unit
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return int(dt.timestamp() * 1000)


def _fmt_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).astimezone().strftime("%Y-%m-%d %H:%M")


def _fmt_duration(ms: int) -> str:
    return str(timedelta(seconds=ms // 1000))


def _label(state: AppState, uuid: str) -> str:
    task = state.tasks.get(uuid)
    name = task.name if task is not None else "?"
    return f"{uuid[:SHORT_ID]} {name}"


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_tasks(state: AppState, args: list[str]) -> str:
    if not state.tasks:
        return "No tasks yet. Use /add <name>."
    now = now_ms()
    lines = [f"Tasks ({len(state.tasks)}):"]
    for uuid, task in state.tasks.items():
        flags = "x" if task.is_done else " "
        timer = " (timing)" if task.work_timer_start_timestamp is not None else ""
        spent = _fmt_duration(task_time_worked_on(task, now))
        kids = ", ".join(_label(state, c) for c in task.children)
        line = f"  [{flags}] {uuid[:SHORT_ID]} {task.name} spent={spent}{timer}"
        if kids:
            line += f" <- needs: {kids}"
        lines.append(line)
    return "\n".join(lines)


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <name>"
    uuid = state.dispatch(CreateTask({"name": " ".join(args)}))[0]
    return f"Created {_label(state, uuid)}"


def cmd_child(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /child <parent> <name>"
    parent = resolve_ref(state, args[0])
    touched = state.dispatch(CreateChild(parent, {"name": " ".join(args[1:])}))
    return f"Created {_label(state, touched[-1])} under {_label(state, parent)}"


def cmd_link(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /link <parent> <child>"
    parent, child = resolve_ref(state, args[0]), resolve_ref(state, args[1])
    state.dispatch(AddChild(parent, child))
    return f"{_label(state, parent)} now needs {_label(state, child)}"


def cmd_unlink(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /unlink <parent> <child>"
    parent, child = resolve_ref(state, args[0]), resolve_ref(state, args[1])
    state.dispatch(RemoveChild(parent, child))
    return f"Unlinked {_label(state, child)} from {_label(state, parent)}"


def cmd_rm(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /rm <task>"
    uuid = resolve_ref(state, args[0])
    label = _label(state, uuid)
    touched = state.dispatch(DeleteTask(uuid))
    return f"Deleted {label} ({len(touched)} records updated)"


def cmd_done(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /done <task>"
    uuid = resolve_ref(state, args[0])
    state.dispatch(FinishTask(uuid))
    return f"Done: {_label(state, uuid)}"


def cmd_timer(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /timer <task>"
    uuid = resolve_ref(state, args[0])
    running = toggle_timer(state, uuid)
    spent = _fmt_duration(task_time_worked_on(state.tasks[uuid], now_ms()))
    return f"Timer {'started' if running else 'stopped'} for {_label(state, uuid)} (spent {spent})"


def cmd_sched(state: AppState, args: list[str]) -> str:
    """
    /sched <task> <from> <until>
    times: +MIN, +Nh, or ISO datetime (2024-05-01T09:30)
    """
    if len(args) != 3:
        return "Usage: /sched <task> <from> <until>  (times: +30, +2h or 2024-05-01T09:30)"
    uuid = resolve_ref(state, args[0])
    now = now_ms()
    start, end = parse_time(args[1], now), parse_time(args[2], now)
    schedule_single(state, uuid, time_from=start, time_until=end)
    return f"Scheduled {_label(state, uuid)} {_fmt_ms(start)} - {_fmt_ms(end)}"


def cmd_agenda(state: AppState, args: list[str]) -> str:
    lookahead_ms = int(getattr(state.settings, "lookahead_ms", 24 * 60 * 60 * 1000))
    now = now_ms()
    instances = upcoming(state, now, lookahead_ms)
    if not instances:
        return "Nothing scheduled in the lookahead window."
    lines = ["Agenda:"]
    current = scheduled_now(state, now, lookahead_ms)
    if current is not None:
        until = _fmt_ms(current.during.time_until)
        lines[0] += f" now {_label(state, current.uuid)} until {until}"
    for inst in instances:
        lines.append(
            f"  {_fmt_ms(inst.during.time_from)} - {_fmt_ms(inst.during.time_until)}"
            f"  {_label(state, inst.uuid)}"
        )
    return "\n".join(lines)


def cmd_next(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /next <task>"
    root = resolve_ref(state, args[0])
    agenda = agenda_for(state, root)
    if not agenda:
        return "Agenda completed."
    lines = [f"Next up: {_label(state, agenda[0])}"]
    for uuid in agenda[1:]:
        lines.append(f"  then {_label(state, uuid)}")
    return "\n".join(lines)


def cmd_skip(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /skip <task>"
    root = resolve_ref(state, args[0])
    skipped = skip_actionable(state, root)
    return "Agenda completed." if skipped is None else f"Skipped {_label(state, skipped)}"


def cmd_complete(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /complete <task>"
    root = resolve_ref(state, args[0])
    finished = complete_actionable(state, root)
    return "Agenda completed." if finished is None else f"Completed {_label(state, finished)}"


def cmd_order(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /order <task> [<task> ...]"
    wanted = {resolve_ref(state, a) for a in args}
    return "\n".join(_label(state, u) for u in order_subset(wanted, state.tasks))


def cmd_finish_slot(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /finish-slot <task>"
    uuid = resolve_ref(state, args[0])
    before = len(state.tasks[uuid].schedule_recipes)
    state.dispatch(AgendaFinish(uuid))
    dropped = before - len(state.tasks[uuid].schedule_recipes)
    return f"Retired {dropped} active schedule(s) of {_label(state, uuid)}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("tasks", cmd_tasks, help_text="List all tasks.", aliases=["ls"])
registry.register("add", cmd_add, help_text="Create a task: /add <name>.")
registry.register("child", cmd_child, help_text="Create a subtask: /child <parent> <name>.")
registry.register("link", cmd_link, help_text="Make parent need child: /link <parent> <child>.")
registry.register("unlink", cmd_unlink, help_text="Remove a link: /unlink <parent> <child>.")
registry.register("rm", cmd_rm, help_text="Delete a task and its links: /rm <task>.")
registry.register("done", cmd_done, help_text="Mark a task done: /done <task>.")
registry.register("timer", cmd_timer, help_text="Start/stop the work timer: /timer <task>.")
registry.register("sched", cmd_sched, help_text="Schedule a one-off slot: /sched <task> <from> <until>.")
registry.register("agenda", cmd_agenda, help_text="Show the conflict-free schedule ahead.")
registry.register("next", cmd_next, help_text="Actionable order under a task: /next <task>.")
registry.register("skip", cmd_skip, help_text="Hide the current actionable task: /skip <task>.")
registry.register("complete", cmd_complete, help_text="Finish the current actionable task: /complete <task>.")
registry.register("order", cmd_order, help_text="Dependency order of tasks: /order <task> ...")
registry.register(
    "finish-slot", cmd_finish_slot, help_text="Retire the schedule active now: /finish-slot <task>."
)
