"""
Task Manager — the single orchestration point of the task kernel.

Owns the focused-task pointer and the event bus, serializes commands per task
id, applies the state machine and persists every change before announcing it.

Behavioral Contract:
- Creation and slot updates always end with ``advance``: NEEDS_INPUT and READY
  are inferred from slot data, never set directly.
- EXECUTING, COMPLETED, FAILED and CANCELLED only result from explicit commands.
- Commands on the same task id are mutually exclusive; different ids run freely.
- For one task id, events are published in commit order, and only after the
  repository accepted the change.
- Failures are raised to the caller and never published as events.
- ``current_task`` is always the just-persisted value, replaced by one assignment.
"""

import logging
from datetime import datetime
from typing import AsyncIterator, List, Optional

from task_kernel.engine import state_machine
from task_kernel.engine.events import TaskEventBus, TaskEventSubscription
from task_kernel.engine.locks import KeyedLock
from task_kernel.errors import InvalidTransitionError, TaskNotFoundError, TaskNotReadyError
from task_kernel.log import log_task_transition
from task_kernel.models.engine import EngineConfig
from task_kernel.models.events import (
    TaskCancelled,
    TaskCompleted,
    TaskCreated,
    TaskEvent,
    TaskExecuting,
    TaskFailed,
    TaskNeedsInput,
    TaskReady,
    TaskUpdated,
)
from task_kernel.models.intent import Intent
from task_kernel.models.slot import DynamicValue, Slot
from task_kernel.models.task import (
    Task,
    TaskContext,
    TaskError,
    TaskResult,
    TaskStatus,
    utcnow,
)
from task_kernel.repository.base import TaskRepository

logger = logging.getLogger(__name__)


class TaskManager:
    """Drives tasks through their lifecycle and reports every step."""

    def __init__(
        self,
        repository: TaskRepository,
        config: Optional[EngineConfig] = None,
        event_bus: Optional[TaskEventBus] = None,
    ):
        self.repository = repository
        self.config = config or EngineConfig()
        self.events = event_bus or TaskEventBus(max_queue_size=self.config.event_queue_size)
        self._locks = KeyedLock()
        self._current_task: Optional[Task] = None

    # --- Focus ---

    @property
    def current_task(self) -> Optional[Task]:
        """The task in focus, or None."""
        return self._current_task

    async def focus(self, task_id: str) -> Task:
        """Put a stored task in focus. The pointer is read back from the repository."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            self._current_task = task
            return task

    def clear_focus(self) -> None:
        self._current_task = None

    def _refresh_focus(self, task: Task) -> None:
        current = self._current_task
        if current is not None and current.id == task.id:
            self._current_task = task

    def _release_focus(self, task: Task) -> None:
        current = self._current_task
        if current is not None and current.id == task.id:
            self._current_task = None

    # --- Events ---

    def subscribe(self, maxsize: Optional[int] = None) -> TaskEventSubscription:
        """Attach a new event consumer."""
        return self.events.subscribe(maxsize)

    def _emit(self, event: TaskEvent) -> None:
        self.events.publish(event)

    # --- Commands ---

    async def create_task(
        self,
        intent: Intent,
        slots=None,
        context: Optional[TaskContext] = None,
    ) -> Task:
        """
        Create a PENDING task, advance it from its slots and put it in focus.

        ``slots`` maps slot names to Slots (or is a list of Slots). Emits Created, then
        NeedsInput when required slots are still missing.
        """
        task = Task(
            intent=intent,
            slots=_keyed_slots(slots or {}),
            context=context or TaskContext(),
            status=TaskStatus.PENDING,
        )
        return await self._register(task)

    async def submit_task(self, task: Task) -> Task:
        """
        Register a task built elsewhere (normally by the response parser).

        The task always enters the lifecycle as PENDING. A task whose id is
        already stored is rejected with InvalidTransitionError; stored tasks
        only change through the other commands.
        """
        if task.status != TaskStatus.PENDING:
            task = task.model_copy(update={"status": TaskStatus.PENDING, "updated_at": utcnow()})
        return await self._register(task)

    async def _register(self, task: Task) -> Task:
        async with self._locks.hold(task.id):
            stored = await self.repository.get_by_id(task.id)
            if stored is not None:
                raise InvalidTransitionError(stored.status, TaskStatus.PENDING, task.id)

            logger.info("Creating task %s with intent %s", task.id, task.intent.full_name)
            await self.repository.save(task)

            advanced = state_machine.advance(task)
            if advanced.status != task.status:
                await self.repository.save(advanced)
                log_task_transition(task.id, task.status, advanced.status)

            self._current_task = advanced

            self._emit(TaskCreated(task=advanced))
            if advanced.status == TaskStatus.NEEDS_INPUT:
                self._emit(TaskNeedsInput(task=advanced, missing_slots=advanced.missing_slots))
            return advanced

    async def update_slot(self, task_id: str, slot_name: str, value: DynamicValue) -> Task:
        """
        Set one slot value and re-advance the task.

        A non-null value resolves the slot; None un-resolves it. An unknown
        slot name is a no-op: the stored task is returned unchanged and no
        event is emitted.
        """
        async with self._locks.hold(task_id):
            task = await self._load(task_id)

            if slot_name not in task.slots:
                logger.warning("Ignoring update of unknown slot '%s' on task %s", slot_name, task_id)
                return task

            logger.debug("Updating slot '%s' in task %s", slot_name, task_id)
            updated = state_machine.advance(task.with_slot_value(slot_name, value))
            if updated.status != task.status:
                log_task_transition(task_id, task.status, updated.status)

            await self.repository.save(updated)
            self._refresh_focus(updated)

            if updated.status == TaskStatus.READY:
                self._emit(TaskReady(task=updated))
            elif updated.status == TaskStatus.NEEDS_INPUT:
                self._emit(TaskNeedsInput(task=updated, missing_slots=updated.missing_slots))
            else:
                self._emit(TaskUpdated(task=updated))
            return updated

    async def mark_ready(self, task_id: str) -> Task:
        """Explicitly move a fully resolved task to READY."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            if not task.is_ready:
                raise TaskNotReadyError(task_id, task.missing_slots)

            ready = state_machine.transition(task, TaskStatus.READY)
            await self.repository.save(ready)
            log_task_transition(task_id, task.status, ready.status)

            self._refresh_focus(ready)
            self._emit(TaskReady(task=ready))
            return ready

    async def begin_execution(self, task_id: str) -> Task:
        """Move a READY task to EXECUTING. Callers decide when, e.g. after confirmation."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            executing = state_machine.transition(task, TaskStatus.EXECUTING)
            await self.repository.save(executing)
            log_task_transition(task_id, task.status, executing.status)

            self._refresh_focus(executing)
            self._emit(TaskExecuting(task=executing))
            return executing

    async def complete(self, task_id: str, result: TaskResult) -> Task:
        """
        Attach an execution result.

        ``result.success`` decides between COMPLETED and FAILED. An unsuccessful
        result is a failure and emits Failed, never Completed.
        """
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            target = TaskStatus.COMPLETED if result.success else TaskStatus.FAILED
            if not state_machine.is_valid_transition(task.status, target):
                raise InvalidTransitionError(task.status, target, task_id)

            if not result.success and result.error is None:
                result = result.model_copy(update={"error": TaskError(
                    code="execution_failed",
                    message="Task failed without error details",
                )})

            finished = task.with_result(result)
            await self.repository.save(finished)
            log_task_transition(task_id, task.status, finished.status)
            logger.info("Task %s completed: success=%s", task_id, result.success)

            self._release_focus(finished)
            if result.success:
                self._emit(TaskCompleted(task=finished))
            else:
                logger.error("Task %s failed: %s", task_id, result.error.message)
                self._emit(TaskFailed(task=finished, error=result.error))
            return finished

    async def fail(self, task_id: str, error: TaskError) -> Task:
        """Fail an executing task with ``error``."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            if not state_machine.is_valid_transition(task.status, TaskStatus.FAILED):
                raise InvalidTransitionError(task.status, TaskStatus.FAILED, task_id)

            failed = task.with_result(TaskResult(success=False, error=error))
            await self.repository.save(failed)
            log_task_transition(task_id, task.status, failed.status)
            logger.error("Task %s failed: %s", task_id, error.message)

            self._release_focus(failed)
            self._emit(TaskFailed(task=failed, error=error))
            return failed

    async def cancel(self, task_id: str) -> Task:
        """Cancel a non-terminal task."""
        async with self._locks.hold(task_id):
            task = await self._load(task_id)
            if not state_machine.can_cancel(task):
                raise InvalidTransitionError(task.status, TaskStatus.CANCELLED, task_id)

            cancelled = state_machine.transition(task, TaskStatus.CANCELLED)
            await self.repository.save(cancelled)
            log_task_transition(task_id, task.status, cancelled.status)

            self._release_focus(cancelled)
            self._emit(TaskCancelled(task=cancelled))
            return cancelled

    async def cancel_stale(self, task_id: str, updated_before: datetime) -> Optional[Task]:
        """
        Cancel a task only if it has not been touched since ``updated_before``.

        Returns None when the task is gone, terminal, or was updated in the
        meantime. Used by the stale-task sweeper.
        """
        async with self._locks.hold(task_id):
            task = await self.repository.get_by_id(task_id)
            if task is None or task.updated_at >= updated_before or not state_machine.can_cancel(task):
                return None

            cancelled = state_machine.transition(task, TaskStatus.CANCELLED)
            await self.repository.save(cancelled)
            log_task_transition(task_id, task.status, cancelled.status)

            self._release_focus(cancelled)
            self._emit(TaskCancelled(task=cancelled))
            return cancelled

    # --- Queries ---

    async def get_task(self, task_id: str) -> Optional[Task]:
        return await self.repository.get_by_id(task_id)

    async def get_history(self, limit: Optional[int] = None) -> List[Task]:
        return await self.repository.get_history(limit or self.config.history_limit)

    async def get_active_tasks(self) -> List[Task]:
        return await self.repository.get_active_tasks()

    def observe_task(self, task_id: str) -> AsyncIterator[Optional[Task]]:
        return self.repository.observe_task(task_id)

    def observe_active_tasks(self) -> AsyncIterator[List[Task]]:
        return self.repository.observe_active_tasks()

    async def _load(self, task_id: str) -> Task:
        task = await self.repository.get_by_id(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task


def _keyed_slots(slots) -> dict:
    """Accept a name-keyed mapping or a list of Slots; plain dicts become Slots."""
    if isinstance(slots, (list, tuple)):
        slots = {slot.name: slot for slot in slots}
    keyed = {}
    for key, slot in slots.items():
        if not isinstance(slot, Slot):
            slot = Slot.model_validate({"name": key, **slot})
        keyed[key] = slot
    return keyed
