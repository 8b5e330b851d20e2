"""Background task execution with submission-time de-duplication."""

from .service import SchedulingService
from .task import MatchResult, Task, TaskState

__all__ = ["MatchResult", "SchedulingService", "Task", "TaskState"]
