"""Learning curves: evaluation scores over growing training sets."""

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from .engine import RecommendationEngine
from .evaluation import EvaluationResult
from .models import Recommender
from .splitter import IncrementalSplitter

if TYPE_CHECKING:
    from ..interfaces import AnnotationCas

logger = logging.getLogger(__name__)


class LearningCurvePoint(BaseModel):
    training_size: int = Field(ge=0)
    result: EvaluationResult


class LearningCurve(BaseModel):
    """Evaluation results of one recommender, one per training set size."""

    recommender_id: int
    points: list[LearningCurvePoint] = Field(default_factory=list)

    @property
    def training_sizes(self) -> list[int]:
        return [p.training_size for p in self.points]

    @property
    def scores(self) -> list[float | None]:
        """F1 per step, None where the step was skipped."""
        return [None if p.result.skipped else p.result.f1 for p in self.points]

    @property
    def evaluated_points(self) -> list[LearningCurvePoint]:
        return [p for p in self.points if not p.result.skipped]


def estimate_dataset_size(
    casses: Sequence["AnnotationCas"], recommender: Recommender
) -> int:
    """Number of annotations a recommender could learn from."""
    return sum(
        cas.count_annotations(recommender.layer.name, recommender.feature)
        for cas in casses
    )


def compute_learning_curve(
    engine: RecommendationEngine,
    casses: Sequence["AnnotationCas"],
    splitter: IncrementalSplitter,
    estimated_size: int | None = None,
) -> LearningCurve:
    """Evaluate the engine once per step of the incremental splitter.

    A failing step is recorded as skipped and does not stop the remaining
    steps.
    """
    recommender = engine.recommender
    if estimated_size is None:
        estimated_size = engine.estimate_sample_count(casses)

    curve = LearningCurve(recommender_id=recommender.id)
    for step in splitter.step_splitters(estimated_size):
        try:
            result = engine.evaluate(casses, step)
        except Exception as e:
            logger.exception(
                f"[{recommender.name}] Evaluation failed at training size "
                f"{step.training_size}"
            )
            result = EvaluationResult.skipped_result(f"Evaluation failed: {e}")
        curve.points.append(
            LearningCurvePoint(training_size=step.training_size, result=result)
        )

    logger.debug(
        f"[{recommender.name}] Learning curve with {len(curve.points)} steps "
        f"for estimated size {estimated_size}"
    )
    return curve
