"""Shared behaviour of the pipeline stages."""

import logging
from typing import TYPE_CHECKING

from ..events import RecommenderTaskNotificationEvent
from ..exceptions import RecommenderNotFoundError
from ..recommendation.engine import RecommendationEngineFactory
from ..recommendation.models import Project, Recommender
from ..scheduling.task import MatchResult, Task

if TYPE_CHECKING:
    from ..recommendation.service import RecommendationService

logger = logging.getLogger(__name__)


class RecommendationTask(Task):
    """A pipeline stage for one user in one project.

    A new stage is dropped while an identical one is still waiting in the
    queue: the queued run will see the same data.
    """

    def __init__(
        self,
        service: "RecommendationService",
        user: str,
        project: Project,
        trigger: str,
    ):
        super().__init__(user, project, trigger)
        self.service = service

    def matches(self, other: Task) -> MatchResult:
        if (
            type(other) is type(self)
            and other.user == self.user
            and other.project.id == self.project.id
        ):
            return MatchResult.DISCARD_OR_QUEUE_THIS
        return MatchResult.NO_MATCH

    def resolve_recommender(
        self, stale: Recommender, notify: bool = False
    ) -> tuple[Recommender, RecommendationEngineFactory] | None:
        """Re-read a recommender and find its factory.

        Returns None when the recommender should be skipped in this run
        because it was deleted, disabled or no longer fits its layer.
        """
        prefix = f"[{self.title}][{self.user}][{stale.name}]"
        try:
            recommender = self.service.get_recommender(stale.id)
        except RecommenderNotFoundError:
            logger.info(f"{prefix} Recommender no longer exists, skipping")
            return None

        if not recommender.enabled:
            logger.debug(f"{prefix} Recommender is disabled, skipping")
            return None

        factory = self.service.get_recommender_factory(recommender)
        if factory is None:
            message = (
                f"No factory found for tool [{recommender.tool}] of recommender "
                f"[{recommender.name}]"
            )
            logger.error(f"{prefix} {message}, skipping")
            if notify:
                self.notify(message, recommender, level="error")
            return None

        if not factory.accepts(recommender.layer, recommender.feature):
            message = (
                f"Recommender [{recommender.name}] configured with invalid layer "
                f"[{recommender.layer.display_name}] or feature [{recommender.feature}]"
            )
            logger.info(f"{prefix} {message}, skipping")
            if notify:
                self.notify(message, recommender, level="warning")
            return None

        return recommender, factory

    def notify(
        self, message: str, recommender: Recommender | None = None, level: str = "info"
    ) -> None:
        self.service.events.publish(
            RecommenderTaskNotificationEvent(
                user=self.user,
                project_id=self.project.id,
                recommender_id=recommender.id if recommender else None,
                message=message,
                level=level,
            )
        )
