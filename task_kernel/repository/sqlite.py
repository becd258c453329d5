"""
SQLite task repository — durable storage behind the repository contract.

Each task is stored as its full JSON record plus a few indexed columns used
by the list queries. Saves are upserts keyed by task id.
"""

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, List, Optional, TypeVar

from task_kernel.models.task import Task, TaskStatus
from task_kernel.repository.base import ChangeNotifier, TaskRepository

T = TypeVar("T")


class SqliteTaskRepository(TaskRepository):
    """
    SQLite-backed repository.
    Queries run in a worker thread; one connection guarded by a lock.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._db_lock = threading.Lock()
        self._changes = ChangeNotifier()
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the tasks table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                intent_name TEXT NOT NULL,
                status TEXT NOT NULL,
                is_terminal INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                save_seq INTEGER NOT NULL,
                record_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_terminal_updated
            ON tasks(is_terminal, updated_at, save_seq)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)
        """)
        self._conn.commit()

    async def _run(self, fn: Callable[[], T]) -> T:
        def locked() -> T:
            with self._db_lock:
                return fn()
        return await asyncio.to_thread(locked)

    async def save(self, task: Task) -> None:
        def write() -> None:
            self._conn.execute(
                """
                INSERT INTO tasks (
                    id, intent_name, status, is_terminal,
                    created_at, updated_at, save_seq, record_json
                ) VALUES (
                    ?, ?, ?, ?, ?, ?,
                    (SELECT COALESCE(MAX(save_seq), 0) + 1 FROM tasks),
                    ?
                )
                ON CONFLICT(id) DO UPDATE SET
                    intent_name = excluded.intent_name,
                    status = excluded.status,
                    is_terminal = excluded.is_terminal,
                    updated_at = excluded.updated_at,
                    save_seq = excluded.save_seq,
                    record_json = excluded.record_json
                """,
                (
                    task.id,
                    task.intent.full_name,
                    task.status.value,
                    int(task.is_terminal),
                    _timestamp(task.created_at),
                    _timestamp(task.updated_at),
                    task.model_dump_json(),
                ),
            )
            self._conn.commit()

        await self._run(write)
        self._changes.notify()

    def _deserialize(self, row: sqlite3.Row) -> Task:
        return Task.model_validate_json(row["record_json"])

    async def get_by_id(self, task_id: str) -> Optional[Task]:
        row = await self._run(lambda: self._conn.execute(
            "SELECT record_json FROM tasks WHERE id = ?", (task_id,)
        ).fetchone())
        return self._deserialize(row) if row else None

    async def get_active_tasks(self) -> List[Task]:
        rows = await self._run(lambda: self._conn.execute(
            "SELECT record_json FROM tasks WHERE is_terminal = 0 "
            "ORDER BY updated_at DESC, save_seq DESC"
        ).fetchall())
        return [self._deserialize(r) for r in rows]

    async def get_history(self, limit: int = 50) -> List[Task]:
        rows = await self._run(lambda: self._conn.execute(
            "SELECT record_json FROM tasks WHERE is_terminal = 1 "
            "ORDER BY updated_at DESC, save_seq DESC LIMIT ?",
            (limit,),
        ).fetchall())
        return [self._deserialize(r) for r in rows]

    async def get_by_status(self, *statuses: TaskStatus) -> List[Task]:
        """Tasks in any of the given statuses, newest first."""
        if not statuses:
            return []
        placeholders = ", ".join("?" for _ in statuses)
        rows = await self._run(lambda: self._conn.execute(
            f"SELECT record_json FROM tasks WHERE status IN ({placeholders}) "
            "ORDER BY updated_at DESC, save_seq DESC",
            tuple(s.value for s in statuses),
        ).fetchall())
        return [self._deserialize(r) for r in rows]

    async def delete(self, task_id: str) -> None:
        def remove() -> int:
            cursor = self._conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            self._conn.commit()
            return cursor.rowcount

        if await self._run(remove):
            self._changes.notify()

    async def clear_old_tasks(self, before: datetime) -> int:
        def remove() -> int:
            cursor = self._conn.execute(
                "DELETE FROM tasks WHERE is_terminal = 1 AND updated_at < ?",
                (_timestamp(before),),
            )
            self._conn.commit()
            return cursor.rowcount

        deleted = await self._run(remove)
        if deleted:
            self._changes.notify()
        return deleted

    def observe_task(self, task_id: str) -> AsyncIterator[Optional[Task]]:
        return self._changes.watch(lambda: self.get_by_id(task_id))

    def observe_active_tasks(self) -> AsyncIterator[List[Task]]:
        return self._changes.watch(self.get_active_tasks)

    def count(self) -> int:
        """Total number of stored tasks."""
        with self._db_lock:
            row = self._conn.execute("SELECT COUNT(*) AS cnt FROM tasks").fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        with self._db_lock:
            self._conn.close()


def _timestamp(value: datetime) -> str:
    # Fixed-width UTC text so lexical order matches time order.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%f")
