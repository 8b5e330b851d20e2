"""Active learning on top of the current predictions."""

import logging
from dataclasses import dataclass, field

from ..events import ActiveLearningRecommendationEvent, EventPublisher
from ..interfaces import LearningRecordService
from ..recommendation.models import (
    AnnotationLayer,
    LearningRecordType,
    Project,
    SourceDocument,
)
from ..recommendation.service import RecommendationService, hide_rejected_or_skipped
from ..recommendation.suggestion import AnnotationSuggestion, Delta, SuggestionGroup
from .strategy import ActiveLearningStrategy, UncertaintySamplingStrategy

logger = logging.getLogger(__name__)


@dataclass
class ActiveLearningUserState:
    """Active learning session of one user on one layer."""

    project: Project
    layer: AnnotationLayer
    strategy: ActiveLearningStrategy = field(
        default_factory=UncertaintySamplingStrategy
    )
    suggestions: list[SuggestionGroup] = field(default_factory=list)
    current_delta: Delta | None = None
    session_active: bool = True

    @property
    def suggestion(self) -> AnnotationSuggestion | None:
        return self.current_delta.first if self.current_delta else None


def remove_duplicates(group: SuggestionGroup) -> SuggestionGroup:
    """Keep one suggestion per recommender, label and document.

    Suggestions come out of the group best first, so the best scored
    duplicate survives.
    """
    clean = SuggestionGroup()
    seen: set[tuple] = set()
    for suggestion in group:
        key = (suggestion.recommender_name, suggestion.label, suggestion.document_id)
        if key in seen:
            continue
        seen.add(key)
        clean.add(suggestion)
    return clean


def remove_hidden(group: SuggestionGroup) -> SuggestionGroup:
    return SuggestionGroup(s for s in group if s.visible)


class ActiveLearningService:
    def __init__(
        self,
        recommendation_service: RecommendationService,
        learning_records: LearningRecordService,
        events: EventPublisher | None = None,
    ):
        self.recommendation_service = recommendation_service
        self.learning_records = learning_records
        self.events = events or recommendation_service.events

    def get_suggestions(
        self, user: str, project: Project, layer: AnnotationLayer
    ) -> list[SuggestionGroup]:
        """Current suggestion groups of a layer across all documents."""
        predictions = self.recommendation_service.get_predictions(user, project)
        if predictions is None:
            return []
        return predictions.get_grouped_predictions_by_layer(layer.id)

    def refresh_suggestions(self, user: str, state: ActiveLearningUserState) -> None:
        state.suggestions = self.get_suggestions(user, state.project, state.layer)

    def has_skipped_suggestions(
        self, user: str, data_owner: str, layer: AnnotationLayer
    ) -> bool:
        records = self.learning_records.list_records(
            user, data_owner, layer.project_id, layer.id
        )
        return any(r.action == LearningRecordType.SKIPPED for r in records)

    def hide_rejected_or_skipped_annotations(
        self,
        user: str,
        data_owner: str,
        layer: AnnotationLayer,
        filter_skipped: bool,
        groups: list[SuggestionGroup],
    ) -> int:
        """Hide suggestions the user already decided on.

        Hidden suggestions stay hidden until the next prediction run, even if
        the record that hid them is deleted.
        """
        records = self.learning_records.list_records(
            user, data_owner, layer.project_id, layer.id
        )
        return hide_rejected_or_skipped(
            (s for group in groups for s in group),
            records,
            include_skipped=filter_skipped,
        )

    def generate_next_suggestion(
        self, user: str, data_owner: str, state: ActiveLearningUserState
    ) -> Delta | None:
        """Choose the next suggestion to present and remember it on the state."""
        groups = [remove_duplicates(group) for group in state.suggestions]
        self.hide_rejected_or_skipped_annotations(
            user, data_owner, state.layer, True, groups
        )
        groups = [remove_hidden(group) for group in groups]
        groups = [group for group in groups if len(group)]

        preferences = self.recommendation_service.get_preferences(
            data_owner, state.project
        )
        state.current_delta = state.strategy.generate_next_suggestion(
            preferences, groups
        )

        if state.current_delta is None:
            logger.debug(f"[{user}] No more suggestions on [{state.layer.name}]")
        return state.current_delta

    def _alternatives(
        self, user: str, project: Project, suggestion: AnnotationSuggestion
    ) -> list[AnnotationSuggestion]:
        predictions = self.recommendation_service.get_predictions(user, project)
        if predictions is None:
            return []
        return predictions.get_alternative_suggestions(suggestion)

    def _publish(
        self,
        user: str,
        data_owner: str,
        project: Project,
        suggestion: AnnotationSuggestion,
        action: LearningRecordType,
        label: str | None,
    ) -> None:
        self.events.publish(
            ActiveLearningRecommendationEvent(
                user=data_owner,
                project_id=project.id,
                suggestion=suggestion,
                action=action,
                label=label,
                alternatives=self._alternatives(user, project, suggestion),
            )
        )

    def accept_suggestion(
        self,
        user: str,
        data_owner: str,
        project: Project,
        document: SourceDocument,
        suggestion: AnnotationSuggestion,
        label: str | None = None,
    ) -> int:
        """Create an annotation from the suggestion, with a corrected label if given.

        Returns:
            Id of the created annotation
        """
        final_label = suggestion.label if label is None else label
        action = (
            LearningRecordType.ACCEPTED
            if suggestion.label_equals(final_label)
            else LearningRecordType.CORRECTED
        )

        annotation_id = self.recommendation_service.accept_suggestion(
            user, project, document, suggestion, final_label, data_owner
        )
        self._publish(
            user,
            data_owner,
            project,
            suggestion.with_label(final_label),
            action,
            final_label,
        )
        return annotation_id

    def reject_suggestion(
        self,
        user: str,
        data_owner: str,
        project: Project,
        suggestion: AnnotationSuggestion,
    ) -> None:
        self.recommendation_service.reject_suggestion(
            user, project, suggestion, data_owner
        )
        self._publish(
            user,
            data_owner,
            project,
            suggestion,
            LearningRecordType.REJECTED,
            suggestion.label,
        )

    def skip_suggestion(
        self,
        user: str,
        data_owner: str,
        project: Project,
        suggestion: AnnotationSuggestion,
    ) -> None:
        self.recommendation_service.skip_suggestion(
            user, project, suggestion, data_owner
        )
        self._publish(
            user,
            data_owner,
            project,
            suggestion,
            LearningRecordType.SKIPPED,
            suggestion.label,
        )
