"""Task kernel data models."""

from task_kernel.models.engine import EngineConfig, SweeperConfig
from task_kernel.models.events import (
    TaskCancelled,
    TaskCompleted,
    TaskCreated,
    TaskEvent,
    TaskEventType,
    TaskExecuting,
    TaskFailed,
    TaskNeedsInput,
    TaskReady,
    TaskUpdated,
)
from task_kernel.models.intent import Intent
from task_kernel.models.slot import DynamicValue, Slot, SlotConstraints, SlotType
from task_kernel.models.task import (
    ConversationRole,
    ConversationTurn,
    InputSource,
    Task,
    TaskContext,
    TaskError,
    TaskResult,
    TaskStatus,
)

__all__ = [
    "ConversationRole",
    "ConversationTurn",
    "DynamicValue",
    "EngineConfig",
    "InputSource",
    "Intent",
    "Slot",
    "SlotConstraints",
    "SlotType",
    "SweeperConfig",
    "Task",
    "TaskCancelled",
    "TaskCompleted",
    "TaskContext",
    "TaskCreated",
    "TaskError",
    "TaskEvent",
    "TaskEventType",
    "TaskExecuting",
    "TaskFailed",
    "TaskNeedsInput",
    "TaskReady",
    "TaskResult",
    "TaskStatus",
    "TaskUpdated",
]
