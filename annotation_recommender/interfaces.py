"""Collaborators the pipeline consumes but does not implement."""

from collections.abc import Mapping, Sequence
from typing import Protocol

from .recommendation.models import (
    AnnotationDocumentState,
    AnnotationLayer,
    LearningRecord,
    Project,
    Recommender,
    SourceDocument,
)
from .recommendation.suggestion import AnnotationSuggestion


class AnnotationCas(Protocol):
    """Annotated document of one user."""

    @property
    def text(self) -> str: ...

    def count_annotations(self, layer_name: str, feature: str | None = None) -> int:
        """Number of annotations on the layer, optionally with the feature set."""
        ...


class DocumentService(Protocol):
    def list_source_documents(self, project: Project) -> list[SourceDocument]: ...

    def list_all_documents(
        self, project: Project, user: str
    ) -> Mapping[SourceDocument, AnnotationDocumentState | None]:
        """All documents with the user's annotation state, ``None`` if not started."""
        ...

    def read_annotation_cas(self, document: SourceDocument, user: str) -> AnnotationCas:
        """Load the user's annotations of a document.

        Raises:
            OSError: If the document cannot be read
            ValueError: If the stored annotations cannot be parsed
        """
        ...

    def write_annotation_cas(
        self, cas: AnnotationCas, document: SourceDocument, user: str
    ) -> None: ...


class AnnotationSchemaService(Protocol):
    def list_annotation_layers(self, project: Project) -> list[AnnotationLayer]: ...

    def create_annotation(
        self, cas: AnnotationCas, suggestion: AnnotationSuggestion, label: str | None
    ) -> int:
        """Materialize a suggestion in the CAS and return the new annotation id."""
        ...


class RecommenderRepository(Protocol):
    def list_recommenders(self, layer: AnnotationLayer) -> list[Recommender]: ...

    def get_recommender(self, recommender_id: int) -> Recommender:
        """Fetch the latest configuration of a recommender.

        Raises:
            RecommenderNotFoundError: If the recommender was deleted
        """
        ...


class LearningRecordService(Protocol):
    def log_record(self, record: LearningRecord) -> None: ...

    def list_records(
        self,
        user: str,
        data_owner: str,
        project_id: int,
        layer_id: int | None = None,
    ) -> Sequence[LearningRecord]: ...
