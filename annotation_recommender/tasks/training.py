"""Training stage: rebuild the context of every active recommender."""

import logging
from typing import NamedTuple

from ..interfaces import AnnotationCas
from ..recommendation.engine import TrainingCapability
from ..recommendation.models import (
    AnnotationDocumentState,
    Recommender,
    SourceDocument,
)
from ..utils.lazy import Lazy
from .base import RecommendationTask
from .prediction import PredictionTask

logger = logging.getLogger(__name__)


class TrainingDocument(NamedTuple):
    document: SourceDocument
    state: AnnotationDocumentState | None
    cas: AnnotationCas


class TrainingTask(RecommendationTask):
    """Trains active recommenders on a copy of their current context.

    The copy is only published after training closed it, so a prediction run
    reading the previous context is never affected. A prediction run is
    always queued afterwards.
    """

    def execute(self) -> None:
        documents: Lazy[list[TrainingDocument]] = Lazy(self._read_documents)

        for layer in self.service.schema.list_annotation_layers(self.project):
            if not layer.enabled:
                continue

            for evaluated in self.service.get_active_recommenders(self.user, layer):
                self.check_cancelled()
                recommender = evaluated.recommender
                try:
                    self._train(recommender, documents)
                except Exception:
                    logger.exception(
                        f"[{self.title}][{self.user}][{recommender.name}] "
                        f"Training failed"
                    )

        self.service.scheduler.enqueue(
            PredictionTask(
                self.service,
                self.user,
                self.project,
                f"Training complete ({self.trigger})",
            )
        )

    def _read_documents(self) -> list[TrainingDocument]:
        documents = []
        all_documents = self.service.documents.list_all_documents(
            self.project, self.user
        )
        for document, state in all_documents.items():
            try:
                cas = self.service.documents.read_annotation_cas(document, self.user)
            except (OSError, ValueError) as e:
                logger.error(
                    f"[{self.title}][{self.user}] Cannot read annotations of "
                    f"document [{document.name}]: {e}"
                )
                continue
            documents.append(TrainingDocument(document, state, cas))
        return documents

    def _train(
        self, stale: Recommender, documents: Lazy[list[TrainingDocument]]
    ) -> None:
        resolved = self.resolve_recommender(stale)
        if resolved is None:
            return
        recommender, factory = resolved
        prefix = f"[{self.title}][{self.user}][{recommender.name}]"

        engine = factory.build(recommender)
        previous = self.service.get_context(self.user, recommender)
        context = previous.copy() if previous else engine.new_context(self.user)

        if engine.training_capability == TrainingCapability.TRAINING_NOT_SUPPORTED:
            logger.debug(f"{prefix} Training not supported, context marked ready")
            context.mark_ready()
            context.close()
            self.service.put_context(self.user, recommender, context)
            return

        casses = [
            training_document.cas
            for training_document in documents.get()
            if training_document.state not in recommender.states_ignored_for_training
            and training_document.cas.count_annotations(recommender.layer.name) > 0
        ]

        if (
            not casses
            and engine.training_capability == TrainingCapability.TRAINING_REQUIRED
        ):
            logger.info(
                f"{prefix} No annotated documents on layer "
                f"[{recommender.layer.display_name}], training skipped"
            )
            return

        logger.info(f"{prefix} Training on {len(casses)} documents")
        engine.train(context, casses)
        if not context.closed:
            context.mark_ready()
        context.close()

        if not engine.is_ready_for_prediction(context):
            logger.info(
                f"{prefix} Not ready for prediction after training, "
                f"previous context kept"
            )
            return

        self.service.put_context(self.user, recommender, context)
