# src/dagenda/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage and notification backends swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Awaitable, Iterable, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import Task, TaskStore


class TaskRepo(Protocol):
    """
    Durable storage for task records, keyed by uuid.

    Must return every field exactly as saved.
    """

    def load(self, uuid: str) -> Task: ...
    def load_all(self) -> TaskStore: ...
    def save(self, uuid: str, task: Task) -> None: ...
    def delete(self, uuid: str) -> None: ...
    def list_all_uuids(self) -> list[str]: ...

    # Reducer middleware API
    def apply_changes(self, store: TaskStore, touched: Iterable[str]) -> None: ...


class Notifier(Protocol):
    """
    Delivery side of agenda notifications.

    The notifier decides how (and whether) a notification reaches the user;
    the agenda notifier loop only decides what and when.
    """

    def notify(
            self,
            *,
            timestamp: int,
            title: str,
            body: str,
            uuid: str,
    ) -> Awaitable[None]: ...
