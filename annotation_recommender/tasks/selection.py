"""Selection stage: decide which recommenders are good enough to run."""

import logging
import time

from ..events import RecommenderEvaluationResultEvent
from ..interfaces import AnnotationCas
from ..recommendation.engine import RecommendationEngineFactory
from ..recommendation.evaluation import EvaluationResult
from ..recommendation.models import EvaluatedRecommender, Recommender
from ..recommendation.splitter import PercentageBasedSplitter
from ..utils.lazy import Lazy
from .base import RecommendationTask
from .training import TrainingTask

logger = logging.getLogger(__name__)


class SelectionTask(RecommendationTask):
    """Evaluates every recommender of the project and activates the good ones.

    A recommender is activated when its F1 score reaches its threshold, or
    unconditionally when it is always selected or cannot be evaluated. If any
    recommender ends up active, a training run is queued.
    """

    def execute(self) -> None:
        casses: Lazy[list[AnnotationCas]] = Lazy(self._read_casses)
        activated = False

        for layer in self.service.schema.list_annotation_layers(self.project):
            if not layer.enabled:
                continue

            recommenders = self.service.list_recommenders(layer)
            if not recommenders:
                continue

            evaluated: list[EvaluatedRecommender] = []
            for recommender in recommenders:
                self.check_cancelled()
                try:
                    decision = self._evaluate(recommender, casses)
                except Exception:
                    logger.exception(
                        f"[{self.title}][{self.user}][{recommender.name}] "
                        f"Evaluation failed"
                    )
                    continue

                if decision is None:
                    continue
                evaluated.append(decision)
                activated = activated or decision.active

            self.service.set_evaluated_recommenders(self.user, layer, evaluated)

        if not activated:
            logger.debug(
                f"[{self.title}][{self.user}] No active recommenders in project "
                f"[{self.project.name}], not starting training"
            )
            return

        self.service.scheduler.enqueue(
            TrainingTask(
                self.service,
                self.user,
                self.project,
                f"Selection complete ({self.trigger})",
            )
        )

    def _read_casses(self) -> list[AnnotationCas]:
        casses = []
        for document in self.service.documents.list_source_documents(self.project):
            try:
                casses.append(
                    self.service.documents.read_annotation_cas(document, self.user)
                )
            except (OSError, ValueError) as e:
                logger.error(
                    f"[{self.title}][{self.user}] Cannot read annotations of "
                    f"document [{document.name}]: {e}"
                )
        return casses

    def _evaluate(
        self, stale: Recommender, casses: Lazy[list[AnnotationCas]]
    ) -> EvaluatedRecommender | None:
        resolved = self.resolve_recommender(stale, notify=True)
        if resolved is None:
            return None
        recommender, factory = resolved
        prefix = f"[{self.title}][{self.user}][{recommender.name}]"

        start = time.monotonic()
        if recommender.always_selected:
            logger.debug(f"{prefix} Always active")
            decision = EvaluatedRecommender.activated(
                recommender,
                EvaluationResult.skipped_result("Recommender is always selected"),
            )
        elif not factory.is_evaluable:
            logger.debug(f"{prefix} Not evaluable, always active")
            decision = EvaluatedRecommender.activated(
                recommender,
                EvaluationResult.skipped_result("Recommender is not evaluable"),
            )
        else:
            decision = self._evaluate_with_engine(recommender, factory, casses)
        duration_ms = int((time.monotonic() - start) * 1000)

        result = decision.evaluation_result
        score = None if result is None or result.skipped else result.f1
        self.service.events.publish(
            RecommenderEvaluationResultEvent(
                user=self.user,
                project_id=self.project.id,
                recommender_id=recommender.id,
                recommender_name=recommender.name,
                result=result,
                score=score,
                threshold=recommender.threshold,
                duration_ms=duration_ms,
                active=decision.active,
            )
        )
        return decision

    def _evaluate_with_engine(
        self,
        recommender: Recommender,
        factory: RecommendationEngineFactory,
        casses: Lazy[list[AnnotationCas]],
    ) -> EvaluatedRecommender:
        prefix = f"[{self.title}][{self.user}][{recommender.name}]"
        settings = self.service.settings
        splitter = PercentageBasedSplitter(
            settings.train_fraction, settings.min_test_size
        )

        logger.info(f"{prefix} Evaluating")
        engine = factory.build(recommender)
        result = engine.evaluate(casses.get(), splitter)

        if result.skipped:
            logger.info(f"{prefix} Evaluation skipped: {result.skip_reason}")
            return EvaluatedRecommender.deactivated(
                recommender, f"Evaluation skipped: {result.skip_reason}", result
            )

        if result.f1 >= recommender.threshold:
            logger.info(
                f"{prefix} Activated (score {result.f1:.4f} >= threshold "
                f"{recommender.threshold:.4f})"
            )
            return EvaluatedRecommender.activated(recommender, result)

        logger.info(
            f"{prefix} Not activated (score {result.f1:.4f} < threshold "
            f"{recommender.threshold:.4f})"
        )
        return EvaluatedRecommender.deactivated(
            recommender,
            f"Score {result.f1:.4f} below threshold {recommender.threshold:.4f}",
            result,
        )
