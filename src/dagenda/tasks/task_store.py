# src/dagenda/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .recipes import recipe_from_dict, recipe_to_dict
from .task_models import MalformedTaskError, Task, TaskNotFoundError, TaskStore, make_task

logger = logging.getLogger(__name__)


def task_to_dict(task: Task) -> dict[str, Any]:
    return {
        "uuid": task.uuid,
        "name": task.name,
        "description": task.description,
        "children": list(task.children),
        "parents": list(task.parents),
        "is_done": task.is_done,
        "schedule_recipes": [recipe_to_dict(r) for r in task.schedule_recipes],
        "work_timer_start_timestamp": task.work_timer_start_timestamp,
        "work_timer_total": task.work_timer_total,
    }


def task_from_dict(raw: dict[str, Any]) -> Task:
    """
    Rebuild a Task from task_to_dict() output.

    Missing fields fall back to DEFAULT_TASK; unknown keys are ignored so
    records written by newer versions still load.
    """
    if not isinstance(raw, dict) or not raw.get("uuid"):
        raise MalformedTaskError(f"Task record without uuid: {raw!r}")

    start = raw.get("work_timer_start_timestamp")
    values: dict[str, Any] = {"uuid": str(raw["uuid"])}
    if "name" in raw:
        values["name"] = str(raw["name"])
    if "description" in raw:
        values["description"] = raw["description"]
    if "children" in raw:
        values["children"] = [str(c) for c in raw["children"] or []]
    if "parents" in raw:
        values["parents"] = [str(p) for p in raw["parents"] or []]
    if "is_done" in raw:
        values["is_done"] = bool(raw["is_done"])
    if "schedule_recipes" in raw:
        values["schedule_recipes"] = [recipe_from_dict(r) for r in raw["schedule_recipes"] or []]
    values["work_timer_start_timestamp"] = int(start) if start is not None else None
    if "work_timer_total" in raw:
        values["work_timer_total"] = int(raw["work_timer_total"] or 0)
    return make_task(**values)


class SQLiteTaskRepo:
    """
    SQLite task repository.

    One row per task, the record itself stored as JSON. The schema is
    intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("SQLiteTaskRepo ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    uuid TEXT PRIMARY KEY,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    data TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("SQLiteTaskRepo migration: added column %s", name)

            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        try:
            raw = json.loads(row["data"])
        except json.JSONDecodeError as e:
            raise MalformedTaskError(f"Stored task {row['uuid']!r} is not valid JSON") from e
        return task_from_dict(raw)

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def list_all_uuids(self) -> list[str]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT uuid FROM tasks ORDER BY created_at ASC, uuid ASC")
            return [str(row["uuid"]) for row in cur.fetchall()]
        finally:
            conn.close()

    def load(self, uuid: str) -> Task:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT uuid, data FROM tasks WHERE uuid = ?", (str(uuid),))
            row = cur.fetchone()
        finally:
            conn.close()
        if row is None:
            raise TaskNotFoundError(uuid)
        return self._row_to_task(row)

    def load_all(self) -> TaskStore:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT uuid, data FROM tasks ORDER BY created_at ASC, uuid ASC")
            rows = cur.fetchall()
        finally:
            conn.close()

        out: TaskStore = {}
        for row in rows:
            task = self._row_to_task(row)
            out[task.uuid] = task
        logger.debug("Loaded %d tasks from %s", len(out), self._db_path)
        return out

    def save(self, uuid: str, task: Task) -> None:
        if uuid != task.uuid:
            raise ValueError(f"uuid mismatch: key {uuid!r} vs record {task.uuid!r}")

        now = time.time()
        data = json.dumps(task_to_dict(task), ensure_ascii=False)
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO tasks(uuid, created_at, updated_at, data)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(uuid) DO UPDATE SET
                    updated_at = excluded.updated_at,
                    data = excluded.data
                """,
                (str(uuid), now, now, data),
            )
            conn.commit()
        finally:
            conn.close()
        logger.debug("Task saved uuid=%s", uuid)

    def delete(self, uuid: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE uuid = ?", (str(uuid),))
            conn.commit()
        finally:
            conn.close()
        logger.debug("Task deleted uuid=%s", uuid)

    def apply_changes(self, store: TaskStore, touched: Iterable[str]) -> None:
        """
        Sync the records a reducer transition touched.

        Present in `store` -> saved, absent -> deleted.
        """
        for uuid in touched:
            task = store.get(uuid)
            if task is None:
                self.delete(uuid)
            else:
                self.save(uuid, task)
