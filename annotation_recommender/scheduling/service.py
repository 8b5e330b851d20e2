"""Bounded worker pool running queued tasks."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from .task import MatchResult, Task

logger = logging.getLogger(__name__)


class SchedulingService:
    """Runs tasks on a thread pool, collapsing redundant submissions.

    Before a task is queued it is compared with every pending task through
    ``Task.matches``. Running tasks are never affected by a new submission.
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="recommender"
        )
        self._pending: list[Task] = []
        self._running: list[Task] = []
        self._lock = threading.Condition()
        self._shutdown = False

    def enqueue(self, task: Task) -> bool:
        """Queue a task unless an equivalent one is already pending.

        Returns:
            True if the task was queued, False if it was discarded
        """
        with self._lock:
            if self._shutdown:
                logger.warning(f"Scheduler is shut down, discarding {task}")
                return False

            for pending in list(self._pending):
                match task.matches(pending):
                    case MatchResult.DISCARD_OR_QUEUE_THIS:
                        logger.debug(f"Discarding {task}, {pending} is already queued")
                        return False
                    case MatchResult.UNQUEUE_EXISTING_AND_QUEUE_THIS:
                        logger.debug(f"Replacing {pending} with {task}")
                        self._pending.remove(pending)
                        pending.cancel()
                        self._pending.append(task)
                        # The worker submitted for the replaced task runs this one
                        return True
                    case MatchResult.NO_MATCH:
                        pass

            self._pending.append(task)

        logger.debug(f"Queued {task}")
        self._executor.submit(self._run_next)
        return True

    def _run_next(self) -> None:
        with self._lock:
            if not self._pending:
                return
            task = self._pending.pop(0)
            self._running.append(task)

        try:
            task.run()
        finally:
            with self._lock:
                self._running.remove(task)
                self._lock.notify_all()

    def cancel(self, user: str, project_id: int | None = None) -> int:
        """Cancel pending and running tasks of a user, optionally of one project."""
        cancelled = 0
        with self._lock:
            for task in self._pending + self._running:
                if task.user != user:
                    continue
                if project_id is not None and task.project.id != project_id:
                    continue
                task.cancel()
                cancelled += 1
            self._pending = [t for t in self._pending if not t.is_cancelled]
            self._lock.notify_all()
        return cancelled

    @property
    def pending_tasks(self) -> list[Task]:
        with self._lock:
            return list(self._pending)

    @property
    def running_tasks(self) -> list[Task]:
        with self._lock:
            return list(self._running)

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until no task is pending or running.

        Returns:
            True if the scheduler became idle, False on timeout
        """
        with self._lock:
            return self._lock.wait_for(
                lambda: not self._pending and not self._running, timeout=timeout
            )

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._shutdown = True
            for task in self._pending:
                task.cancel()
            self._pending.clear()
            self._lock.notify_all()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "SchedulingService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()
