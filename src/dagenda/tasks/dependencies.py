# src/dagenda/tasks/dependencies.py

from __future__ import annotations

"""
Dependency ordering over the task DAG.

A task is always ordered after its (not done) `children`, so the head of a
linearization is something that can be acted on right now.

All traversal state is local to each call; traversals use explicit stacks so
deep graphs do not hit the interpreter recursion limit.
"""

from collections.abc import Iterable, Iterator

from .task_models import MalformedTaskError, Task, TaskNotFoundError, TaskStore, make_task

_END = object()


def _lookup(store: TaskStore, uuid: str, *, via: str | None) -> Task:
    task = store.get(uuid)
    if task is not None:
        return task
    if via is None:
        raise TaskNotFoundError(uuid, "linearization root")
    raise MalformedTaskError(f"Task {via!r} lists missing child {uuid!r}")


def linearize(root: str, store: TaskStore) -> list[str]:
    """
    Leaves-first linearization of the dependency DAG under `root`.

    Depth-first; a task is emitted once all of its children have been.
    Done tasks are neither emitted nor descended into, and each task appears
    at most once however many paths reach it.
    """
    explored: set[str] = set()
    out: list[str] = []
    stack: list[tuple[str, Iterator[str]]] = []

    def enter(uuid: str, via: str | None) -> None:
        if uuid in explored:
            return
        task = _lookup(store, uuid, via=via)
        if task.is_done:
            return
        explored.add(uuid)
        stack.append((uuid, iter(task.children)))

    enter(root, None)
    while stack:
        uuid, children = stack[-1]
        child = next(children, _END)
        if child is _END:
            stack.pop()
            out.append(uuid)
        else:
            enter(child, uuid)  # type: ignore[arg-type]
    return out


def find_sources(store: TaskStore) -> list[str]:
    """Tasks without parents, in store iteration order."""
    return [uuid for uuid, task in store.items() if not task.parents]


def order_subset(subset: Iterable[str], store: TaskStore) -> list[str]:
    """
    Order `subset` consistently with one linearization of the whole graph.

    Every source is hung under a synthetic root, the extended graph is
    linearized, and the result is filtered down to `subset`. `store` itself
    is left untouched.
    """
    wanted = set(subset)
    root = make_task(name="(root)", children=find_sources(store))
    extended = dict(store)
    extended[root.uuid] = root
    return [uuid for uuid in linearize(root.uuid, extended) if uuid in wanted]


def is_reachable(start: str, target: str, store: TaskStore) -> bool:
    """True when `target` is `start` or lies below it through `children` links."""
    if start == target:
        return True
    seen: set[str] = {start}
    pending = [start]
    while pending:
        task = store.get(pending.pop())
        if task is None:
            continue
        for child in task.children:
            if child == target:
                return True
            if child not in seen:
                seen.add(child)
                pending.append(child)
    return False
