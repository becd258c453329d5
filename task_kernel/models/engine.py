"""Engine and sweeper configuration."""

from typing import Optional

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Configuration for the Task Manager."""

    event_queue_size: int = Field(ge=1, default=256)   # Per subscriber, oldest dropped on overflow
    history_limit: int = Field(ge=1, default=50)


class SweeperConfig(BaseModel):
    """Caller-level timeout and retention policy for the stale-task sweeper."""

    interval_seconds: int = 60
    needs_input_timeout_seconds: Optional[int] = 600   # None disables
    ready_timeout_seconds: Optional[int] = 900
    retention_days: Optional[int] = 30
    retention_schedule: Optional[str] = None           # Cron expression; None purges every sweep
