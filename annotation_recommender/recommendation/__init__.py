"""Recommendation data model, engine contract and prediction service."""

from .evaluation import EvaluationResult
from .models import (
    AnnotationDocumentState,
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
from .suggestion import (
    NEW_ID,
    AnnotationSuggestion,
    AutoAcceptMode,
    Delta,
    HideFlag,
    RelationPosition,
    SpanPosition,
    SuggestionGroup,
    relation_suggestion,
    span_suggestion,
)

__all__ = [
    "NEW_ID",
    "AnnotationDocumentState",
    "AnnotationLayer",
    "AnnotationSuggestion",
    "AutoAcceptMode",
    "Delta",
    "EvaluatedRecommender",
    "EvaluationResult",
    "HideFlag",
    "LearningRecord",
    "LearningRecordType",
    "Predictions",
    "Preferences",
    "Project",
    "Recommender",
    "RelationPosition",
    "SourceDocument",
    "SpanPosition",
    "SuggestionGroup",
    "relation_suggestion",
    "span_suggestion",
]
