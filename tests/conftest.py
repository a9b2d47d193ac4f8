# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from dagenda.core.state import AppState
from dagenda.tasks.task_store import SQLiteTaskRepo

from .fakes import InMemoryTaskRepo


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI commands.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="dagenda-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        lookahead_ms=24 * 60 * 60 * 1000,
        notify_interval_seconds=0.01,
    )


@pytest.fixture()
def repo() -> InMemoryTaskRepo:
    return InMemoryTaskRepo()


@pytest.fixture()
def state(settings: SimpleNamespace, repo: InMemoryTaskRepo) -> AppState:
    return AppState(settings=settings, repo=repo)


@pytest.fixture()
def sqlite_repo(settings: SimpleNamespace) -> SQLiteTaskRepo:
    """Real SQLite repo in a per-test directory; its round trip is part of what we test."""
    return SQLiteTaskRepo(settings.tasks_db_path)
