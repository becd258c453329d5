"""
Error taxonomy for the task kernel.

All failures are recoverable from the caller's point of view. They are raised
to the caller of a command and never published on the event bus; a command
that raises has persisted nothing and emitted nothing.
"""

from typing import List, Optional


class TaskKernelError(Exception):
    """Base class for all task kernel failures."""
    pass


class TaskNotFoundError(TaskKernelError):
    """Raised when a command names a task id the repository does not know."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class InvalidTransitionError(TaskKernelError):
    """Raised when the state machine rejects a requested or implied move."""

    def __init__(self, from_status, to_status, task_id: str):
        self.from_status = from_status
        self.to_status = to_status
        self.task_id = task_id
        super().__init__(
            f"Invalid task state transition: {_name(from_status)} -> "
            f"{_name(to_status)} for task {task_id}"
        )


class TaskNotReadyError(TaskKernelError):
    """Raised when mark_ready is called while required slots are unresolved."""

    def __init__(self, task_id: str, missing_slots: List[str]):
        self.task_id = task_id
        self.missing_slots = list(missing_slots)
        super().__init__(
            f"Cannot mark task {task_id} ready - missing slots: {self.missing_slots}"
        )


class MalformedResponseError(TaskKernelError):
    """Raised when no structurally valid task can be extracted from model output."""

    def __init__(self, raw_text: str, reason: str):
        self.raw_text = raw_text
        self.reason = reason
        super().__init__(f"Malformed task response: {reason}")


class SlotNotFoundError(TaskKernelError):
    """Raised when a prompt is requested for a slot the task does not declare."""

    def __init__(self, task_id: str, slot_name: str):
        self.task_id = task_id
        self.slot_name = slot_name
        super().__init__(f"Slot not found: {slot_name} (task {task_id})")


class CompletionError(TaskKernelError):
    """Raised when the completion service fails or returns nothing usable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def _name(status) -> str:
    return getattr(status, "name", str(status))
