"""Lifecycle events published by the Task Manager."""

from datetime import datetime
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from task_kernel.models.task import Task, TaskError, utcnow


class TaskEventType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    NEEDS_INPUT = "needs_input"
    READY = "ready"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskEvent(BaseModel):
    """Base event. Always carries the task as it was committed."""

    model_config = ConfigDict(frozen=True)

    type: TaskEventType
    task: Task
    emitted_at: datetime = Field(default_factory=utcnow)

    @property
    def task_id(self) -> str:
        return self.task.id


class TaskCreated(TaskEvent):
    type: TaskEventType = TaskEventType.CREATED


class TaskUpdated(TaskEvent):
    type: TaskEventType = TaskEventType.UPDATED


class TaskNeedsInput(TaskEvent):
    type: TaskEventType = TaskEventType.NEEDS_INPUT
    missing_slots: List[str]


class TaskReady(TaskEvent):
    type: TaskEventType = TaskEventType.READY


class TaskExecuting(TaskEvent):
    type: TaskEventType = TaskEventType.EXECUTING


class TaskCompleted(TaskEvent):
    type: TaskEventType = TaskEventType.COMPLETED


class TaskFailed(TaskEvent):
    type: TaskEventType = TaskEventType.FAILED
    error: TaskError


class TaskCancelled(TaskEvent):
    type: TaskEventType = TaskEventType.CANCELLED
