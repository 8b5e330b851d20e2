"""Pydantic models for projects, recommenders and learning records."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .evaluation import EvaluationResult
from .suggestion import Position, RelationPosition, SpanPosition


class AnnotationDocumentState(str, Enum):
    """Progress of a user's annotation work on a document."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    IGNORE = "ignore"


class LearningRecordType(str, Enum):
    """User decision on a suggestion."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SKIPPED = "skipped"
    CORRECTED = "corrected"
    SHOWN = "shown"


class Project(BaseModel):
    """An annotation project."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class SourceDocument(BaseModel):
    """A document of a project."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    project_id: int


class AnnotationLayer(BaseModel):
    """An annotation layer of a project."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    ui_name: str = ""
    project_id: int
    enabled: bool = True

    @property
    def display_name(self) -> str:
        return self.ui_name or self.name


class Recommender(BaseModel):
    """Configuration snapshot of a recommender bound to one layer and feature."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    layer: AnnotationLayer
    feature: str
    tool: str = Field(description="Identifier of the engine factory")
    enabled: bool = True
    always_selected: bool = False
    threshold: float = Field(default=0.0, ge=0.0, le=1.0)
    states_ignored_for_training: frozenset[AnnotationDocumentState] = Field(
        default=frozenset({AnnotationDocumentState.IGNORE})
    )
    max_recommendations: int = Field(default=3, ge=1)

    @property
    def project_id(self) -> int:
        return self.layer.project_id


class EvaluatedRecommender(BaseModel):
    """A recommender together with the evaluation that decided its status."""

    model_config = ConfigDict(frozen=True)

    recommender: Recommender
    evaluation_result: EvaluationResult | None = None
    active: bool
    reason: str | None = None

    @classmethod
    def activated(
        cls, recommender: Recommender, result: EvaluationResult
    ) -> "EvaluatedRecommender":
        return cls(recommender=recommender, evaluation_result=result, active=True)

    @classmethod
    def deactivated(
        cls,
        recommender: Recommender,
        reason: str,
        result: EvaluationResult | None = None,
    ) -> "EvaluatedRecommender":
        return cls(
            recommender=recommender,
            evaluation_result=result,
            active=False,
            reason=reason,
        )


class Preferences(BaseModel):
    """Per user and project recommendation preferences."""

    max_predictions: int = Field(default=3, ge=1)
    show_all_predictions: bool = False
    confidence_gap_threshold: float | None = Field(
        default=None,
        ge=0.0,
        description="Only present suggestions whose score gap to the next "
        "alternative is at most this value",
    )


class LearningRecord(BaseModel):
    """A user decision on a suggestion, appended to the learning history."""

    user: str = Field(description="Session owner who made the decision")
    data_owner: str = Field(description="User whose annotations were affected")
    project_id: int
    document_id: int
    layer_id: int
    recommender_id: int | None = None
    feature: str
    position: Position
    annotation: str | None = Field(description="Label the decision applies to")
    action: LearningRecordType
    changed_at: datetime = Field(default_factory=datetime.now)

    @property
    def suggestion_kind(self) -> str:
        return self.position.kind

    def matches(
        self,
        document_id: int,
        position: SpanPosition | RelationPosition,
        label: str | None,
    ) -> bool:
        """Check whether this record applies to a suggestion location and label."""
        return (
            self.document_id == document_id
            and self.position == position
            and self.annotation == label
        )
