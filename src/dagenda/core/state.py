# src/dagenda/core/state.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..tasks.task_models import TaskStore
from ..tasks.task_reducer import InitStore, TaskAction, reduce
from .ports import TaskRepo

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """
    The one place that holds the current task snapshot.

    Components that need the tasks get this object passed in; nothing reads
    a module-level store. `tasks` is replaced, never mutated, on every
    transition, so a snapshot taken by a reader stays valid.
    """

    # Store Settings on the state for easy access in other modules later.
    settings: Any
    repo: TaskRepo

    tasks: TaskStore = field(default_factory=dict)

    # Agenda entries hidden for this session (skipped or completed).
    ignored: set[str] = field(default_factory=set)

    def dispatch(self, action: TaskAction, *, now_ms: int | None = None) -> list[str]:
        """
        Run `action` through the reducer, publish the new snapshot, then
        persist exactly the touched records.

        Reducer errors propagate and leave `tasks` unchanged. A persistence
        failure is logged; the in-memory transition stands.
        """
        new_store, touched = reduce(self.tasks, action, now_ms=now_ms)
        self.tasks = new_store

        if touched:
            try:
                self.repo.apply_changes(new_store, touched)
            except Exception:
                logger.exception("Persisting %s failed touched=%s", action.type.value, touched)
        return touched

    def load(self) -> int:
        """Initialise `tasks` from the repo. Returns the number of tasks loaded."""
        store = self.repo.load_all()
        self.dispatch(InitStore(payload=store))
        logger.info("Loaded %d tasks", len(self.tasks))
        return len(self.tasks)
