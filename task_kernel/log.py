"""Logging setup and shared log helpers."""

import logging
from typing import Optional

LOGGER_NAME = "task_kernel"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_transitions = logging.getLogger(f"{LOGGER_NAME}.transitions")


def configure_logging(level: str = "INFO", handler: Optional[logging.Handler] = None) -> logging.Logger:
    """Attach a single handler to the package logger. Safe to call repeatedly."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger


def log_task_transition(task_id: str, from_status, to_status) -> None:
    _transitions.info(
        "Task [%s] transition: %s -> %s",
        task_id,
        getattr(from_status, "name", from_status),
        getattr(to_status, "name", to_status),
    )


def preview(text: str, limit: int = 200) -> str:
    """Truncate long payloads for log lines."""
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
