"""Per user and project state of the recommendation pipeline."""

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from ..config import PipelineSettings
from ..events import EventPublisher, PredictionsSwitchedEvent
from ..exceptions import RecommenderNotFoundError
from ..interfaces import (
    AnnotationCas,
    AnnotationSchemaService,
    DocumentService,
    LearningRecordService,
    RecommenderRepository,
)
from ..scheduling.service import SchedulingService
from ..tasks import PredictionTask, SelectionTask, TrainingTask
from .context import RecommenderContext
from .engine import RecommendationEngineFactory, RecommenderFactoryRegistry
from .models import (
    AnnotationLayer,
    EvaluatedRecommender,
    LearningRecord,
    LearningRecordType,
    Preferences,
    Project,
    Recommender,
    SourceDocument,
)
from .predictions import Predictions
from .suggestion import AnnotationSuggestion, HideFlag, SuggestionGroup

logger = logging.getLogger(__name__)


def hide_rejected_or_skipped(
    suggestions: Iterable[AnnotationSuggestion],
    records: Sequence[LearningRecord],
    include_skipped: bool = True,
) -> int:
    """Hide visible suggestions the user already rejected or skipped.

    Suggestions that are already hidden are left alone. Every matching record
    adds its flag. Returns the number of suggestions that were hidden.
    """
    flags = {LearningRecordType.REJECTED: HideFlag.REJECTED}
    if include_skipped:
        flags[LearningRecordType.SKIPPED] = HideFlag.SKIPPED

    relevant = [r for r in records if r.action in flags]
    hidden = 0
    for suggestion in suggestions:
        if not suggestion.visible:
            continue
        for record in relevant:
            if (
                record.layer_id == suggestion.layer_id
                and record.feature == suggestion.feature
                and record.matches(
                    suggestion.document_id, suggestion.position, suggestion.label
                )
            ):
                suggestion.hide(flags[record.action])
        if not suggestion.visible:
            hidden += 1
    return hidden


def limit_per_position(
    suggestions: Iterable[AnnotationSuggestion], max_recommendations: int
) -> list[AnnotationSuggestion]:
    """Keep the best scored suggestions at every position."""
    kept = []
    for group in SuggestionGroup.group(suggestions):
        kept.extend(list(group)[:max_recommendations])
    return kept


@dataclass
class RecommendationState:
    """Everything the pipeline remembers for one user in one project."""

    preferences: Preferences = field(default_factory=Preferences)
    evaluated_recommenders: dict[int, list[EvaluatedRecommender]] = field(
        default_factory=dict
    )
    contexts: dict[int, RecommenderContext] = field(default_factory=dict)
    active_predictions: Predictions | None = None
    incoming_predictions: Predictions | None = None
    training_count: int = 0


class RecommendationService:
    """Owns recommender state and runs the pipeline stages.

    State is kept per (user, project) and guarded by a single lock. Contexts
    are replaced as a whole, never changed in place.
    """

    def __init__(
        self,
        repository: RecommenderRepository,
        registry: RecommenderFactoryRegistry,
        documents: DocumentService,
        schema: AnnotationSchemaService,
        learning_records: LearningRecordService,
        events: EventPublisher | None = None,
        settings: PipelineSettings | None = None,
        scheduler: SchedulingService | None = None,
    ):
        self.repository = repository
        self.registry = registry
        self.documents = documents
        self.schema = schema
        self.learning_records = learning_records
        self.events = events or EventPublisher()
        self.settings = settings or PipelineSettings()
        self.scheduler = scheduler or SchedulingService(self.settings.max_workers)

        self._states: dict[tuple[str, int], RecommendationState] = {}
        self._lock = threading.RLock()

    def _state(self, user: str, project_id: int) -> RecommendationState:
        with self._lock:
            return self._states.setdefault((user, project_id), RecommendationState())

    # Configuration

    def get_recommender(self, recommender_id: int) -> Recommender:
        return self.repository.get_recommender(recommender_id)

    def list_recommenders(self, layer: AnnotationLayer) -> list[Recommender]:
        return self.repository.list_recommenders(layer)

    def list_enabled_recommenders(self, layer: AnnotationLayer) -> list[Recommender]:
        return [r for r in self.list_recommenders(layer) if r.enabled]

    def get_recommender_factory(
        self, recommender: Recommender
    ) -> RecommendationEngineFactory | None:
        return self.registry.get_factory(recommender.tool)

    # Evaluation state

    def set_evaluated_recommenders(
        self,
        user: str,
        layer: AnnotationLayer,
        evaluated: Sequence[EvaluatedRecommender],
    ) -> None:
        with self._lock:
            state = self._state(user, layer.project_id)
            state.evaluated_recommenders[layer.id] = list(evaluated)

    def get_evaluated_recommenders(
        self, user: str, layer: AnnotationLayer
    ) -> list[EvaluatedRecommender]:
        with self._lock:
            state = self._state(user, layer.project_id)
            return list(state.evaluated_recommenders.get(layer.id, []))

    def get_active_recommenders(
        self, user: str, layer: AnnotationLayer
    ) -> list[EvaluatedRecommender]:
        return [e for e in self.get_evaluated_recommenders(user, layer) if e.active]

    def has_active_recommenders(self, user: str, project: Project) -> bool:
        with self._lock:
            state = self._state(user, project.id)
            return any(
                e.active
                for evaluated in state.evaluated_recommenders.values()
                for e in evaluated
            )

    # Contexts

    def get_context(
        self, user: str, recommender: Recommender
    ) -> RecommenderContext | None:
        with self._lock:
            return self._state(user, recommender.project_id).contexts.get(
                recommender.id
            )

    def put_context(
        self, user: str, recommender: Recommender, context: RecommenderContext
    ) -> None:
        """Publish a trained context, replacing the previous one."""
        if not context.closed:
            raise ValueError(
                f"Context of recommender [{recommender.name}] must be closed "
                f"before it is published"
            )
        with self._lock:
            self._state(user, recommender.project_id).contexts[recommender.id] = context

    # Predictions

    def get_predictions(self, user: str, project: Project) -> Predictions | None:
        with self._lock:
            return self._state(user, project.id).active_predictions

    def get_incoming_predictions(
        self, user: str, project: Project
    ) -> Predictions | None:
        with self._lock:
            return self._state(user, project.id).incoming_predictions

    def put_incoming_predictions(
        self, user: str, project: Project, predictions: Predictions
    ) -> None:
        with self._lock:
            self._state(user, project.id).incoming_predictions = predictions

    def switch_predictions(self, user: str, project: Project) -> bool:
        """Make the incoming predictions the active ones.

        Returns:
            True if there were incoming predictions to switch to
        """
        with self._lock:
            state = self._state(user, project.id)
            incoming = state.incoming_predictions
            if incoming is None:
                return False
            state.active_predictions = incoming
            state.incoming_predictions = None

        self.events.publish(
            PredictionsSwitchedEvent(
                user=user,
                project_id=project.id,
                generation=incoming.generation,
                size=incoming.size,
            )
        )
        return True

    def get_preferences(self, user: str, project: Project) -> Preferences:
        with self._lock:
            return self._state(user, project.id).preferences

    def set_preferences(
        self, user: str, project: Project, preferences: Preferences
    ) -> None:
        with self._lock:
            self._state(user, project.id).preferences = preferences

    def compute_predictions(
        self,
        user: str,
        project: Project,
        documents: Sequence[SourceDocument],
        predecessor: Predictions | None = None,
        data_owner: str | None = None,
    ) -> Predictions:
        """Run all active recommenders over the documents.

        Suggestions of a recommender that cannot predict in this run (context
        not ready, engine failure) and of documents that cannot be read are
        carried over from ``predecessor``. The result keeps the ids of
        suggestions that already existed in ``predecessor``.
        """
        data_owner = data_owner or user
        predictions = Predictions(user, project, predecessor, data_owner)

        active: list[Recommender] = []
        for layer in self.schema.list_annotation_layers(project):
            if layer.enabled:
                active.extend(
                    e.recommender for e in self.get_active_recommenders(user, layer)
                )

        if not active:
            logger.debug(f"[{user}] No active recommenders in [{project.name}]")
            predictions.log("No active recommenders")
            return predictions

        for document in documents:
            try:
                cas = self.documents.read_annotation_cas(document, data_owner)
            except (OSError, ValueError) as e:
                logger.error(
                    f"[{user}] Cannot read annotations of document "
                    f"[{document.name}]: {e}"
                )
                predictions.log(f"Cannot read document [{document.name}]")
                if predecessor is not None:
                    predictions.carry_over(
                        predecessor.get_suggestions_by_document(document.id)
                    )
                continue

            for recommender in active:
                self._predict_document(
                    user, predictions, predecessor, recommender, document, cas
                )
            predictions.mark_document_as_predicted(document.id)

        records = self.learning_records.list_records(user, data_owner, project.id)
        hide_rejected_or_skipped(predictions.get_all_suggestions(), records)

        if predecessor is not None:
            predictions.inherit_suggestions(predecessor)

        return predictions

    def _predict_document(
        self,
        user: str,
        predictions: Predictions,
        predecessor: Predictions | None,
        stale: Recommender,
        document: SourceDocument,
        cas: AnnotationCas,
    ) -> None:
        prefix = f"[{user}][{stale.name}]"

        def carry_over(reason: str) -> None:
            logger.debug(f"{prefix} {reason}, keeping previous suggestions")
            if predecessor is not None:
                predictions.carry_over(
                    predecessor.get_suggestions_by_recommender_and_document(
                        stale.id, document.id
                    )
                )

        try:
            recommender = self.get_recommender(stale.id)
        except RecommenderNotFoundError:
            logger.info(f"{prefix} Recommender no longer exists, skipping")
            return

        if not recommender.enabled:
            logger.debug(f"{prefix} Recommender is disabled, skipping")
            return

        factory = self.get_recommender_factory(recommender)
        if factory is None:
            logger.error(f"{prefix} No factory found for tool [{recommender.tool}]")
            return

        context = self.get_context(user, recommender)
        if context is None or not context.ready:
            carry_over("Context not ready")
            return

        engine = factory.build(recommender)
        if not engine.is_ready_for_prediction(context):
            carry_over("Engine not ready for prediction")
            return

        try:
            suggestions = engine.predict(context, cas, document)
        except Exception:
            logger.exception(
                f"{prefix} Prediction failed on document [{document.name}]"
            )
            predictions.log(f"Recommender [{recommender.name}] failed")
            carry_over("Prediction failed")
            return

        predictions.put_suggestions(
            limit_per_position(suggestions, recommender.max_recommendations)
        )

    # User decisions

    def _record(
        self,
        user: str,
        data_owner: str,
        project: Project,
        suggestion: AnnotationSuggestion,
        action: LearningRecordType,
        label: str | None,
    ) -> LearningRecord:
        record = LearningRecord(
            user=user,
            data_owner=data_owner,
            project_id=project.id,
            document_id=suggestion.document_id,
            layer_id=suggestion.layer_id,
            recommender_id=suggestion.recommender_id,
            feature=suggestion.feature,
            position=suggestion.position,
            annotation=label,
            action=action,
        )
        self.learning_records.log_record(record)
        return record

    def _hide(
        self,
        user: str,
        project: Project,
        suggestion: AnnotationSuggestion,
        flag: HideFlag,
    ) -> None:
        suggestion.hide(flag)
        for predictions in (
            self.get_predictions(user, project),
            self.get_incoming_predictions(user, project),
        ):
            if predictions is None:
                continue
            stored = predictions.get_suggestion_by_id(
                suggestion.document_id, suggestion.id
            )
            if stored is not None and stored.identity == suggestion.identity:
                stored.hide(flag)

    def accept_suggestion(
        self,
        user: str,
        project: Project,
        document: SourceDocument,
        suggestion: AnnotationSuggestion,
        label: str | None = None,
        data_owner: str | None = None,
    ) -> int:
        """Turn a suggestion into an annotation of the data owner.

        Accepting with a different label is a correction: the original label
        is additionally recorded as rejected so it is not suggested again.

        Returns:
            Id of the created annotation
        """
        data_owner = data_owner or user
        corrected = label is not None and not suggestion.label_equals(label)
        final_label = label if corrected else suggestion.label

        cas = self.documents.read_annotation_cas(document, data_owner)
        annotation_id = self.schema.create_annotation(cas, suggestion, final_label)
        self.documents.write_annotation_cas(cas, document, data_owner)

        if corrected:
            decisions = [
                (LearningRecordType.REJECTED, suggestion.label),
                (LearningRecordType.CORRECTED, final_label),
            ]
            flag = HideFlag.TRANSIENT_CORRECTED
        else:
            decisions = [(LearningRecordType.ACCEPTED, final_label)]
            flag = HideFlag.TRANSIENT_ACCEPTED

        for action, record_label in decisions:
            self._record(user, data_owner, project, suggestion, action, record_label)
        self._hide(user, project, suggestion, flag)

        logger.info(
            f"[{user}] {'Corrected' if corrected else 'Accepted'} suggestion "
            f"[{suggestion.id}] on document [{document.name}] as [{final_label}]"
        )
        return annotation_id

    def correct_suggestion(
        self,
        user: str,
        project: Project,
        document: SourceDocument,
        suggestion: AnnotationSuggestion,
        label: str | None,
        data_owner: str | None = None,
    ) -> int:
        return self.accept_suggestion(
            user, project, document, suggestion, label, data_owner
        )

    def reject_suggestion(
        self,
        user: str,
        project: Project,
        suggestion: AnnotationSuggestion,
        data_owner: str | None = None,
    ) -> LearningRecord:
        record = self._record(
            user,
            data_owner or user,
            project,
            suggestion,
            LearningRecordType.REJECTED,
            suggestion.label,
        )
        self._hide(user, project, suggestion, HideFlag.REJECTED)
        return record

    def skip_suggestion(
        self,
        user: str,
        project: Project,
        suggestion: AnnotationSuggestion,
        data_owner: str | None = None,
    ) -> LearningRecord:
        record = self._record(
            user,
            data_owner or user,
            project,
            suggestion,
            LearningRecordType.SKIPPED,
            suggestion.label,
        )
        self._hide(user, project, suggestion, HideFlag.SKIPPED)
        return record

    # Triggers

    def trigger_prediction(self, user: str, project: Project, trigger: str) -> bool:
        return self.scheduler.enqueue(PredictionTask(self, user, project, trigger))

    def trigger_training_and_prediction(
        self, user: str, project: Project, trigger: str
    ) -> bool:
        """Queue training, or a full selection run every few trainings.

        Selection also runs whenever no recommender is currently active.
        """
        with self._lock:
            state = self._state(user, project.id)
            count = state.training_count
            state.training_count += 1

        if (
            count % self.settings.trainings_per_selection == 0
            or not self.has_active_recommenders(user, project)
        ):
            return self.scheduler.enqueue(SelectionTask(self, user, project, trigger))
        return self.scheduler.enqueue(TrainingTask(self, user, project, trigger))

    def trigger_selection_training_and_prediction(
        self, user: str, project: Project, trigger: str
    ) -> bool:
        return self.scheduler.enqueue(SelectionTask(self, user, project, trigger))

    # Lifecycle

    def on_recommender_deleted(self, recommender: Recommender) -> None:
        """Forget everything derived from a deleted recommender."""
        with self._lock:
            for (_, project_id), state in self._states.items():
                if project_id != recommender.project_id:
                    continue
                state.contexts.pop(recommender.id, None)
                layer_evaluated = state.evaluated_recommenders.get(
                    recommender.layer.id
                )
                if layer_evaluated is not None:
                    state.evaluated_recommenders[recommender.layer.id] = [
                        e for e in layer_evaluated if e.recommender.id != recommender.id
                    ]
                for predictions in (
                    state.active_predictions,
                    state.incoming_predictions,
                ):
                    if predictions is not None:
                        predictions.remove_predictions(recommender.id)
        logger.info(f"Dropped state of deleted recommender [{recommender.name}]")

    def clear_state(self, user: str) -> None:
        """Drop all state of a user and cancel their queued work."""
        self.scheduler.cancel(user)
        with self._lock:
            for key in [k for k in self._states if k[0] == user]:
                del self._states[key]
        logger.debug(f"[{user}] Cleared recommendation state")
