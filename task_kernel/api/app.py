"""
Task Kernel API — FastAPI endpoints.

Exposes the Task Manager's command and query surface over REST:
- Task creation (structured, or from raw completion-service output)
- Slot filling
- Explicit lifecycle commands (ready, execute, complete, fail, cancel)
- Current / active / history queries
"""

from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from task_kernel.engine.manager import TaskManager
from task_kernel.errors import (
    InvalidTransitionError,
    MalformedResponseError,
    TaskNotFoundError,
    TaskNotReadyError,
)
from task_kernel.log import preview
from task_kernel.models.intent import Intent
from task_kernel.models.slot import DynamicValue, Slot
from task_kernel.models.task import Task, TaskContext, TaskError, TaskResult
from task_kernel.parsing.parser import TaskParser
from task_kernel.repository.base import TaskRepository
from task_kernel.repository.memory import InMemoryTaskRepository


# --- Request Models ---

class TaskCreateRequest(BaseModel):
    intent: Intent
    slots: List[Slot] = []
    context: TaskContext = TaskContext()


class TaskParseRequest(BaseModel):
    raw: str
    context: TaskContext = TaskContext()


class SlotValueRequest(BaseModel):
    value: DynamicValue = None


class CompleteRequest(BaseModel):
    success: bool
    data: Dict[str, DynamicValue] = {}
    error: Optional[TaskError] = None


def _dump(task: Optional[Task]) -> Optional[dict]:
    return task.model_dump(mode="json") if task is not None else None


# --- Application Factory ---

def create_app(
    manager: Optional[TaskManager] = None,
    repository: Optional[TaskRepository] = None,
    parser: Optional[TaskParser] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Task Kernel API",
        description="Conversational task lifecycle engine",
        version="0.1.0",
    )

    if manager is None:
        manager = TaskManager(repository or InMemoryTaskRepository())
    parser = parser or TaskParser()

    app.state.manager = manager
    app.state.parser = parser

    # === ERROR MAPPING ===

    @app.exception_handler(TaskNotFoundError)
    async def not_found(request: Request, exc: TaskNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc), "task_id": exc.task_id})

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError):
        return JSONResponse(status_code=409, content={
            "detail": str(exc),
            "task_id": exc.task_id,
            "from_status": getattr(exc.from_status, "value", str(exc.from_status)),
            "to_status": getattr(exc.to_status, "value", str(exc.to_status)),
        })

    @app.exception_handler(TaskNotReadyError)
    async def not_ready(request: Request, exc: TaskNotReadyError):
        return JSONResponse(status_code=409, content={
            "detail": str(exc),
            "task_id": exc.task_id,
            "missing_slots": exc.missing_slots,
        })

    @app.exception_handler(MalformedResponseError)
    async def malformed(request: Request, exc: MalformedResponseError):
        return JSONResponse(status_code=422, content={
            "detail": str(exc),
            "reason": exc.reason,
            "raw_text": preview(exc.raw_text),
        })

    # === TASK CREATION ===

    @app.post("/tasks", status_code=201)
    async def create_task(req: TaskCreateRequest):
        """Create a task from a structured intent and slots."""
        task = await manager.create_task(req.intent, req.slots, req.context)
        return _dump(task)

    @app.post("/tasks/parse", status_code=201)
    async def parse_task(req: TaskParseRequest):
        """Create a task from raw completion-service output."""
        task = parser.parse(req.raw, req.context)
        return _dump(await manager.submit_task(task))

    # === QUERIES ===

    @app.get("/tasks/current")
    def current_task():
        """The focused task, or null."""
        return {"task": _dump(manager.current_task)}

    @app.get("/tasks/active")
    async def active_tasks():
        return [_dump(t) for t in await manager.get_active_tasks()]

    @app.get("/tasks/history")
    async def history(limit: Optional[int] = Query(default=None, ge=1)):
        return [_dump(t) for t in await manager.get_history(limit)]

    @app.get("/tasks/{task_id}")
    async def get_task(task_id: str):
        task = await manager.get_task(task_id)
        if task is None:
            raise HTTPException(404, "Task not found")
        return _dump(task)

    # === COMMANDS ===

    @app.put("/tasks/{task_id}/slots/{slot_name}")
    async def update_slot(task_id: str, slot_name: str, req: SlotValueRequest):
        """Fill (or clear, with null) one slot."""
        return _dump(await manager.update_slot(task_id, slot_name, req.value))

    @app.post("/tasks/{task_id}/ready")
    async def mark_ready(task_id: str):
        return _dump(await manager.mark_ready(task_id))

    @app.post("/tasks/{task_id}/execute")
    async def begin_execution(task_id: str):
        return _dump(await manager.begin_execution(task_id))

    @app.post("/tasks/{task_id}/complete")
    async def complete(task_id: str, req: CompleteRequest):
        result = TaskResult(success=req.success, data=req.data, error=req.error)
        return _dump(await manager.complete(task_id, result))

    @app.post("/tasks/{task_id}/fail")
    async def fail(task_id: str, req: TaskError):
        return _dump(await manager.fail(task_id, req))

    @app.post("/tasks/{task_id}/cancel")
    async def cancel(task_id: str):
        return _dump(await manager.cancel(task_id))

    return app
