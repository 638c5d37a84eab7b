"""SQLModel exports for the care plan engine."""

from .task_models import (
    DailyTaskRecord,
    LegacyTask,
    Priority,
    SyncState,
    TaskCategory,
    TaskTemplate,
    TimeBlock,
    state_after_local_write,
)

__all__ = [
    "TaskTemplate",
    "DailyTaskRecord",
    "LegacyTask",
    "TimeBlock",
    "TaskCategory",
    "Priority",
    "SyncState",
    "state_after_local_write",
]
