"""Environment-driven settings for processes embedding the task kernel."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from task_kernel.models.engine import EngineConfig, SweeperConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASK_KERNEL_",
        env_file=".env",
        extra="ignore",
    )

    # Completion service
    llm_api_key: Optional[str] = None
    llm_base_url: str = "https://api.openai.com/v1"
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.3
    llm_timeout_seconds: float = 30.0

    log_level: str = "INFO"

    # Engine
    event_queue_size: int = 256
    history_limit: int = 50

    # Sweeper
    sweep_interval_seconds: int = 60
    needs_input_timeout_seconds: Optional[int] = 600
    ready_timeout_seconds: Optional[int] = 900
    retention_days: Optional[int] = 30
    retention_schedule: Optional[str] = None

    def engine_config(self) -> EngineConfig:
        return EngineConfig(
            event_queue_size=self.event_queue_size,
            history_limit=self.history_limit,
        )

    def sweeper_config(self) -> SweeperConfig:
        return SweeperConfig(
            interval_seconds=self.sweep_interval_seconds,
            needs_input_timeout_seconds=self.needs_input_timeout_seconds,
            ready_timeout_seconds=self.ready_timeout_seconds,
            retention_days=self.retention_days,
            retention_schedule=self.retention_schedule,
        )
