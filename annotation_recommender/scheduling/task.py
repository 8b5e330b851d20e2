"""Base class of background tasks."""

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum

from ..exceptions import TaskCancelledError
from ..recommendation.models import Project

logger = logging.getLogger(__name__)

_task_ids = itertools.count(1)


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class MatchResult(Enum):
    """How a newly submitted task relates to one that is already pending."""

    NO_MATCH = "no_match"
    # Drop the new task, the pending one does the same work
    DISCARD_OR_QUEUE_THIS = "discard_or_queue_this"
    # Drop the pending task and queue the new one in its place
    UNQUEUE_EXISTING_AND_QUEUE_THIS = "unqueue_existing_and_queue_this"


class Task(ABC):
    """A unit of background work for one user in one project."""

    def __init__(self, user: str, project: Project, trigger: str):
        self.id = next(_task_ids)
        self.user = user
        self.project = project
        self.trigger = trigger
        self.state = TaskState.PENDING
        self.error: Exception | None = None
        self._cancelled = threading.Event()

    @property
    def title(self) -> str:
        return type(self).__name__

    def matches(self, other: "Task") -> MatchResult:
        """Classify this task against a pending one before it is queued."""
        return MatchResult.NO_MATCH

    @abstractmethod
    def execute(self) -> None:
        """Do the work. Exceptions mark the task as failed."""

    def run(self) -> None:
        """Execute the task and record its outcome, never raising."""
        if self.is_cancelled:
            self.state = TaskState.CANCELLED
            return

        self.state = TaskState.RUNNING
        logger.debug(f"{self} started")
        try:
            self.execute()
        except TaskCancelledError:
            self.state = TaskState.CANCELLED
            logger.info(f"{self} cancelled")
        except Exception as e:
            self.state = TaskState.FAILED
            self.error = e
            logger.exception(f"{self} failed")
        else:
            self.state = TaskState.COMPLETED
            logger.debug(f"{self} completed")

    def cancel(self) -> None:
        self._cancelled.set()
        if self.state == TaskState.PENDING:
            self.state = TaskState.CANCELLED

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def check_cancelled(self) -> None:
        """Stop a running task between two units of work once cancelled."""
        if self.is_cancelled:
            raise TaskCancelledError(f"{self} was cancelled")

    def __repr__(self) -> str:
        return (
            f"{self.title}[{self.id}](user={self.user!r}, "
            f"project={self.project.name!r}, trigger={self.trigger!r})"
        )
