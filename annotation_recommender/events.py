"""Domain events published by the pipeline for audit and observability."""

import logging
import threading
from collections.abc import Callable
from datetime import datetime

from pydantic import BaseModel, Field

from .recommendation.evaluation import EvaluationResult
from .recommendation.models import LearningRecordType
from .recommendation.suggestion import AnnotationSuggestion

logger = logging.getLogger(__name__)


class PipelineEvent(BaseModel):
    """Common fields of all pipeline events."""

    user: str
    project_id: int
    timestamp: datetime = Field(default_factory=datetime.now)


class RecommenderEvaluationResultEvent(PipelineEvent):
    """Outcome of evaluating one recommender during selection."""

    recommender_id: int
    recommender_name: str
    result: EvaluationResult | None = None
    score: float | None = None
    threshold: float
    duration_ms: int = Field(ge=0)
    active: bool


class RecommenderTaskNotificationEvent(PipelineEvent):
    """A message about a recommender that should reach the user."""

    recommender_id: int | None = None
    message: str
    level: str = "info"


class ActiveLearningRecommendationEvent(PipelineEvent):
    """A user decision made on a suggestion in active learning."""

    suggestion: AnnotationSuggestion
    action: LearningRecordType
    label: str | None = None
    alternatives: list[AnnotationSuggestion] = Field(default_factory=list)


class PredictionsSwitchedEvent(PipelineEvent):
    """Incoming predictions became the active predictions."""

    generation: int
    size: int


Listener = Callable[[PipelineEvent], None]


class EventPublisher:
    """Delivers events to subscribed listeners.

    Publishing never fails because of a listener: listener errors are logged
    and the remaining listeners still receive the event.
    """

    def __init__(self) -> None:
        self._listeners: list[tuple[type[PipelineEvent], Listener]] = []
        self._lock = threading.Lock()

    def subscribe(
        self, listener: Listener, event_type: type[PipelineEvent] = PipelineEvent
    ) -> None:
        with self._lock:
            self._listeners.append((event_type, listener))

    def unsubscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners = [
                (t, fn) for t, fn in self._listeners if fn != listener
            ]

    def publish(self, event: PipelineEvent) -> None:
        with self._lock:
            listeners = [fn for t, fn in self._listeners if isinstance(event, t)]

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    f"Event listener failed on {type(event).__name__} "
                    f"for user [{event.user}]"
                )
