"""Contract between the pipeline and pluggable recommendation engines."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from .context import RecommenderContext
from .evaluation import EvaluationResult
from .models import AnnotationLayer, Recommender, SourceDocument
from .splitter import DataSplitter
from .suggestion import AnnotationSuggestion

if TYPE_CHECKING:
    from ..interfaces import AnnotationCas

logger = logging.getLogger(__name__)


class TrainingCapability(str, Enum):
    """How an engine relates to training."""

    TRAINING_NOT_SUPPORTED = "training_not_supported"
    TRAINING_SUPPORTED = "training_supported"
    TRAINING_REQUIRED = "training_required"


class RecommendationEngine(ABC):
    """A recommender instance bound to one layer and feature."""

    def __init__(self, recommender: Recommender):
        self.recommender = recommender

    @property
    def training_capability(self) -> TrainingCapability:
        return TrainingCapability.TRAINING_SUPPORTED

    def new_context(self, user: str | None = None) -> RecommenderContext:
        return RecommenderContext.empty(user)

    @abstractmethod
    def train(
        self, context: RecommenderContext, casses: Sequence["AnnotationCas"]
    ) -> None:
        """Update the context from the annotated documents."""

    @abstractmethod
    def predict(
        self,
        context: RecommenderContext,
        cas: "AnnotationCas",
        document: SourceDocument,
    ) -> list[AnnotationSuggestion]:
        """Produce suggestions for one document.

        Returned suggestions carry ``NEW_ID``; ids are assigned by the
        predictions container.
        """

    @abstractmethod
    def evaluate(
        self, casses: Sequence["AnnotationCas"], splitter: DataSplitter
    ) -> EvaluationResult:
        """Train on one part of the data and measure on the other.

        Insufficient data is reported as a skipped result, not an exception.
        """

    def is_ready_for_prediction(self, context: RecommenderContext) -> bool:
        return context.ready

    def estimate_sample_count(self, casses: Sequence["AnnotationCas"]) -> int:
        """Number of annotated instances available for training."""
        return sum(
            cas.count_annotations(self.recommender.layer.name, self.recommender.feature)
            for cas in casses
        )


class RecommendationEngineFactory(ABC):
    """Builds engines for one tool id."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Tool id under which recommenders refer to this factory."""

    @property
    def name(self) -> str:
        return self.id

    @abstractmethod
    def accepts(self, layer: AnnotationLayer, feature: str) -> bool:
        """Check whether engines of this factory can fill the layer feature."""

    @property
    def is_evaluable(self) -> bool:
        return True

    @abstractmethod
    def build(self, recommender: Recommender) -> RecommendationEngine:
        """Create an engine for the recommender."""


class RecommenderFactoryRegistry:
    """Engine factories keyed by tool id."""

    def __init__(self, factories: Sequence[RecommendationEngineFactory] = ()):
        self._factories: dict[str, RecommendationEngineFactory] = {}
        for factory in factories:
            self.register(factory)

    def register(self, factory: RecommendationEngineFactory) -> None:
        if factory.id in self._factories:
            logger.warning(f"Replacing engine factory for tool [{factory.id}]")
        self._factories[factory.id] = factory

    def get_factory(self, tool: str) -> RecommendationEngineFactory | None:
        return self._factories.get(tool)

    def list_factories(self) -> list[RecommendationEngineFactory]:
        return list(self._factories.values())

    def factories_for(
        self, layer: AnnotationLayer, feature: str
    ) -> list[RecommendationEngineFactory]:
        """Factories whose engines can fill the given layer feature."""
        return [f for f in self._factories.values() if f.accepts(layer, feature)]
