"""Prediction stage: compute fresh suggestions for all documents."""

import logging
from typing import TYPE_CHECKING

from ..recommendation.models import Project
from ..recommendation.predictions import Predictions
from ..scheduling.task import MatchResult, Task
from .base import RecommendationTask

if TYPE_CHECKING:
    from ..recommendation.service import RecommendationService

logger = logging.getLogger(__name__)


class PredictionTask(RecommendationTask):
    """Runs the active recommenders and stores the result as incoming predictions.

    Unlike the other stages, a new prediction run replaces a queued one.
    An isolated run neither inherits from nor replaces the stored predictions,
    its result is only available on the task.
    """

    def __init__(
        self,
        service: "RecommendationService",
        user: str,
        project: Project,
        trigger: str,
        data_owner: str | None = None,
        isolated: bool = False,
    ):
        super().__init__(service, user, project, trigger)
        self.data_owner = data_owner or user
        self.isolated = isolated
        self.predictions: Predictions | None = None

    def matches(self, other: Task) -> MatchResult:
        if super().matches(other) == MatchResult.NO_MATCH:
            return MatchResult.NO_MATCH
        return MatchResult.UNQUEUE_EXISTING_AND_QUEUE_THIS

    def execute(self) -> None:
        documents = self.service.documents.list_source_documents(self.project)
        predecessor = None if self.isolated else self._predecessor()

        self.predictions = self.service.compute_predictions(
            self.user,
            self.project,
            documents,
            predecessor=predecessor,
            data_owner=self.data_owner,
        )
        logger.info(
            f"[{self.title}][{self.user}] Prediction complete: "
            f"{self.predictions.size} suggestions, "
            f"{self.predictions.added_count} new"
        )

        if not self.isolated:
            self.service.put_incoming_predictions(
                self.user, self.project, self.predictions
            )

    def _predecessor(self) -> Predictions | None:
        incoming = self.service.get_incoming_predictions(self.user, self.project)
        if incoming is not None:
            return incoming
        return self.service.get_predictions(self.user, self.project)
