"""Task — the aggregate root of the lifecycle engine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from task_kernel.models.intent import Intent
from task_kernel.models.slot import DynamicValue, Slot


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return uuid4().hex


class TaskStatus(str, Enum):
    PENDING = "pending"            # Created, not yet advanced
    NEEDS_INPUT = "needs_input"    # Waiting for the user to fill slots
    READY = "ready"                # All required slots resolved
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal_states(cls) -> Set["TaskStatus"]:
        """States with no outgoing transitions."""
        return {cls.COMPLETED, cls.FAILED, cls.CANCELLED}


class InputSource(str, Enum):
    VOICE = "voice"
    TEXT = "text"
    GESTURE = "gesture"
    AUTOMATION = "automation"


class ConversationRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ConversationRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class TaskContext(BaseModel):
    """Where a task came from and the conversation that led to it."""

    model_config = ConfigDict(frozen=True)

    source: InputSource = InputSource.TEXT
    raw_input: Optional[str] = None
    session_id: Optional[str] = None
    parent_task_id: Optional[str] = None
    conversation_history: List[ConversationTurn] = []


class TaskError(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    recoverable: bool = False
    details: Dict[str, str] = {}


class TaskResult(BaseModel):
    """Outcome reported by whoever executed the task."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Dict[str, DynamicValue] = {}
    error: Optional[TaskError] = None
    executed_at: datetime = Field(default_factory=utcnow)


class Task(BaseModel):
    """
    A unit of user intent tracked through its lifecycle.

    Tasks are immutable values. Every change produces a copy with a fresh
    ``updated_at``; the repository holds the authoritative version.
    Readiness and terminality are derived from the current fields on each
    access and are never stored.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_task_id)
    intent: Intent
    status: TaskStatus = TaskStatus.PENDING
    slots: Dict[str, Slot] = {}
    context: TaskContext = TaskContext()
    result: Optional[TaskResult] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def missing_slots(self) -> List[str]:
        """Required slots not yet resolved, in slot order."""
        return [
            name for name, slot in self.slots.items()
            if slot.required and not slot.resolved
        ]

    @property
    def is_ready(self) -> bool:
        return not self.missing_slots

    @property
    def is_terminal(self) -> bool:
        return self.status in TaskStatus.terminal_states()

    def with_status(self, status: TaskStatus) -> "Task":
        return self.model_copy(update={"status": status, "updated_at": utcnow()})

    def with_slot_value(self, slot_name: str, value: DynamicValue) -> "Task":
        """Set one slot. Unknown slot names leave the task untouched."""
        slot = self.slots.get(slot_name)
        if slot is None:
            return self
        slots = dict(self.slots)
        slots[slot_name] = slot.with_value(value)
        return self.model_copy(update={"slots": slots, "updated_at": utcnow()})

    def with_result(self, result: TaskResult) -> "Task":
        """Attach an execution result; status follows ``result.success``."""
        status = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
        return self.model_copy(
            update={"result": result, "status": status, "updated_at": utcnow()}
        )
