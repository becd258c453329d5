"""In-memory task repository for tests, prototypes and single-process use."""

import asyncio
import itertools
from datetime import datetime
from typing import AsyncIterator, Dict, List, Optional, Tuple

from task_kernel.models.task import Task
from task_kernel.repository.base import ChangeNotifier, TaskRepository


class InMemoryTaskRepository(TaskRepository):
    """
    Dict-backed repository.
    Production deployments would plug in a persistent implementation.
    """

    def __init__(self):
        self._tasks: Dict[str, Tuple[int, Task]] = {}
        self._seq = itertools.count(1)
        self._lock = asyncio.Lock()
        self._changes = ChangeNotifier()

    async def save(self, task: Task) -> None:
        async with self._lock:
            self._tasks[task.id] = (next(self._seq), task)
        self._changes.notify()

    async def get_by_id(self, task_id: str) -> Optional[Task]:
        entry = self._tasks.get(task_id)
        return entry[1] if entry else None

    async def get_active_tasks(self) -> List[Task]:
        return self._newest_first(terminal=False)

    async def get_history(self, limit: int = 50) -> List[Task]:
        return self._newest_first(terminal=True)[:limit]

    async def delete(self, task_id: str) -> None:
        async with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed:
            self._changes.notify()

    async def clear_old_tasks(self, before: datetime) -> int:
        async with self._lock:
            stale = [
                task_id for task_id, (_, task) in self._tasks.items()
                if task.is_terminal and task.updated_at < before
            ]
            for task_id in stale:
                del self._tasks[task_id]
        if stale:
            self._changes.notify()
        return len(stale)

    def observe_task(self, task_id: str) -> AsyncIterator[Optional[Task]]:
        return self._changes.watch(lambda: self.get_by_id(task_id))

    def observe_active_tasks(self) -> AsyncIterator[List[Task]]:
        return self._changes.watch(self.get_active_tasks)

    def count(self) -> int:
        return len(self._tasks)

    def _newest_first(self, terminal: bool) -> List[Task]:
        entries = [
            (seq, task) for seq, task in self._tasks.values()
            if task.is_terminal == terminal
        ]
        entries.sort(key=lambda e: (e[1].updated_at, e[0]), reverse=True)
        return [task for _, task in entries]
