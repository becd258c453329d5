"""
Task Repository — the persistence contract the engine depends on.

The engine never assumes a storage technology. Implementations must treat
``save`` as an upsert keyed by task id and return tasks newest-first by
``updated_at`` from the list queries.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Set, TypeVar

from task_kernel.models.task import Task

T = TypeVar("T")

_UNSET = object()


class ChangeNotifier:
    """
    Wakes observers after a write.

    Streams built on it are conflated: an observer that falls behind only
    sees the latest value, never a backlog, so a slow observer cannot hold
    up writers.
    """

    def __init__(self):
        self._waiters: Set[asyncio.Event] = set()

    def notify(self) -> None:
        for waiter in self._waiters:
            waiter.set()

    async def watch(self, snapshot: Callable[[], Awaitable[T]]) -> AsyncIterator[T]:
        """Yield the current snapshot, then each distinct value after a change."""
        changed = asyncio.Event()
        self._waiters.add(changed)
        try:
            last = _UNSET
            while True:
                value = await snapshot()
                if last is _UNSET or value != last:
                    last = value
                    yield value
                await changed.wait()
                changed.clear()
        finally:
            self._waiters.discard(changed)


class TaskRepository(ABC):
    """Minimal persistence interface for tasks."""

    @abstractmethod
    async def save(self, task: Task) -> None:
        """Insert or replace the task with the same id."""

    @abstractmethod
    async def get_by_id(self, task_id: str) -> Optional[Task]:
        ...

    @abstractmethod
    async def get_active_tasks(self) -> List[Task]:
        """Non-terminal tasks, newest first."""

    @abstractmethod
    async def get_history(self, limit: int = 50) -> List[Task]:
        """Terminal tasks, newest first."""

    @abstractmethod
    async def delete(self, task_id: str) -> None:
        ...

    @abstractmethod
    async def clear_old_tasks(self, before: datetime) -> int:
        """Delete terminal tasks last updated before ``before``. Returns the count."""

    @abstractmethod
    def observe_task(self, task_id: str) -> AsyncIterator[Optional[Task]]:
        """Stream of the task's latest stored value (None while absent)."""

    @abstractmethod
    def observe_active_tasks(self) -> AsyncIterator[List[Task]]:
        """Stream of the active task list."""
