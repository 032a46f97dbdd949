# Initialize logging configuration for the scheduler process
from app.infra.logging_config import LoggingConfig
from app.tasks.scheduled_actions_task import (
    process_due_closes,
    process_due_suspends,
    run_scheduled_actions,
    scheduled_actions_loop,
)

LoggingConfig()  # Initialize logging

__all__ = [
    "process_due_closes",
    "process_due_suspends",
    "run_scheduled_actions",
    "scheduled_actions_loop",
]
