"""
Task State Machine — pure transition rules over the Task model.

Behavioral Contract:
- Holds no state. Every function takes a Task and returns a Task or a verdict.
- ``transition`` only applies moves listed in VALID_TRANSITIONS.
- ``advance`` only infers the data-driven states (NEEDS_INPUT / READY).
  EXECUTING, COMPLETED, FAILED and CANCELLED are reached by explicit commands.

States:
  PENDING → (NEEDS_INPUT ⇄ READY) → EXECUTING → (COMPLETED | FAILED)
  Any non-terminal state may be CANCELLED.
"""

from typing import Dict, FrozenSet, Optional

from task_kernel.errors import InvalidTransitionError
from task_kernel.models.task import Task, TaskStatus

VALID_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({
        TaskStatus.NEEDS_INPUT,
        TaskStatus.READY,
        TaskStatus.CANCELLED,
    }),
    TaskStatus.NEEDS_INPUT: frozenset({
        TaskStatus.READY,
        TaskStatus.NEEDS_INPUT,     # Re-entered on partial fill
        TaskStatus.CANCELLED,
    }),
    TaskStatus.READY: frozenset({
        TaskStatus.EXECUTING,
        TaskStatus.NEEDS_INPUT,     # Rollback on late validation failure
        TaskStatus.CANCELLED,
    }),
    TaskStatus.EXECUTING: frozenset({
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.CANCELLED,
    }),
    # Terminal
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.CANCELLED: frozenset(),
}


def is_valid_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    return to_status in VALID_TRANSITIONS.get(from_status, frozenset())


def valid_next_states(status: TaskStatus) -> FrozenSet[TaskStatus]:
    return VALID_TRANSITIONS.get(status, frozenset())


def is_terminal(status: TaskStatus) -> bool:
    """A status is terminal when nothing can follow it. Unknown statuses count as terminal."""
    return not VALID_TRANSITIONS.get(status)


def transition(task: Task, to_status: TaskStatus) -> Task:
    """
    Move a task to ``to_status``.

    Raises InvalidTransitionError if the table does not allow the move.
    The given task is never modified.
    """
    if not is_valid_transition(task.status, to_status):
        raise InvalidTransitionError(task.status, to_status, task.id)
    return task.with_status(to_status)


def try_transition(task: Task, to_status: TaskStatus) -> Optional[Task]:
    if not is_valid_transition(task.status, to_status):
        return None
    return task.with_status(to_status)


def compute_next_state(task: Task) -> TaskStatus:
    """
    Infer the status implied by the task's slots.

    Only PENDING and NEEDS_INPUT are re-evaluated; every other status is
    returned unchanged.
    """
    if task.status in (TaskStatus.PENDING, TaskStatus.NEEDS_INPUT):
        return TaskStatus.READY if task.is_ready else TaskStatus.NEEDS_INPUT
    return task.status


def advance(task: Task) -> Task:
    """Apply the inferred status when it differs and is allowed. Idempotent."""
    next_status = compute_next_state(task)
    if next_status != task.status and is_valid_transition(task.status, next_status):
        return task.with_status(next_status)
    return task


def can_cancel(task: Task) -> bool:
    return is_valid_transition(task.status, TaskStatus.CANCELLED)
