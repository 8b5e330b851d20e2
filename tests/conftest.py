"""Test configuration, fixtures and fake collaborators."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from annotation_recommender.config import PipelineSettings
from annotation_recommender.events import EventPublisher, PipelineEvent
from annotation_recommender.exceptions import RecommenderNotFoundError
from annotation_recommender.recommendation.context import RecommenderContext
from annotation_recommender.recommendation.engine import (
    RecommendationEngine,
    RecommendationEngineFactory,
    RecommenderFactoryRegistry,
    TrainingCapability,
)
from annotation_recommender.recommendation.evaluation import EvaluationResult
from annotation_recommender.recommendation.models import (
    AnnotationDocumentState,
    AnnotationLayer,
    LearningRecord,
    Project,
    Recommender,
    SourceDocument,
)
from annotation_recommender.recommendation.service import RecommendationService
from annotation_recommender.recommendation.splitter import DataSplitter
from annotation_recommender.recommendation.suggestion import (
    AnnotationSuggestion,
    span_suggestion,
)
from annotation_recommender.scheduling.task import Task


@dataclass
class FakeCas:
    """Annotated document holding (layer name, label) pairs."""

    document_id: int
    annotations: list[tuple[str, str | None]] = field(default_factory=list)
    text: str = ""
    created: list[tuple[AnnotationSuggestion, str | None]] = field(
        default_factory=list
    )

    def count_annotations(self, layer_name: str, feature: str | None = None) -> int:
        return sum(
            1
            for layer, label in self.annotations
            if layer == layer_name and (feature is None or label is not None)
        )


class FakeDocumentService:
    def __init__(self, documents: Sequence[SourceDocument]):
        self.documents = list(documents)
        self.casses: dict[int, FakeCas] = {d.id: FakeCas(d.id) for d in documents}
        self.states: dict[int, AnnotationDocumentState | None] = {}
        self.unreadable: set[int] = set()
        self.written: list[int] = []
        self.reads: list[int] = []

    def list_source_documents(self, project: Project) -> list[SourceDocument]:
        return [d for d in self.documents if d.project_id == project.id]

    def list_all_documents(self, project: Project, user: str):
        return {
            d: self.states.get(d.id, AnnotationDocumentState.IN_PROGRESS)
            for d in self.list_source_documents(project)
        }

    def read_annotation_cas(self, document: SourceDocument, user: str) -> FakeCas:
        self.reads.append(document.id)
        if document.id in self.unreadable:
            raise OSError(f"Cannot read document {document.id}")
        return self.casses[document.id]

    def write_annotation_cas(
        self, cas: FakeCas, document: SourceDocument, user: str
    ) -> None:
        self.written.append(document.id)


class FakeSchemaService:
    def __init__(self, layers: Sequence[AnnotationLayer]):
        self.layers = list(layers)

    def list_annotation_layers(self, project: Project) -> list[AnnotationLayer]:
        return [layer for layer in self.layers if layer.project_id == project.id]

    def create_annotation(
        self, cas: FakeCas, suggestion: AnnotationSuggestion, label: str | None
    ) -> int:
        cas.created.append((suggestion, label))
        return len(cas.created)


class FakeRepository:
    def __init__(self, recommenders: Sequence[Recommender] = ()):
        self.recommenders: dict[int, Recommender] = {r.id: r for r in recommenders}

    def list_recommenders(self, layer: AnnotationLayer) -> list[Recommender]:
        return [r for r in self.recommenders.values() if r.layer.id == layer.id]

    def get_recommender(self, recommender_id: int) -> Recommender:
        if recommender_id not in self.recommenders:
            raise RecommenderNotFoundError(recommender_id)
        return self.recommenders[recommender_id]

    def update(self, recommender_id: int, **changes) -> Recommender:
        updated = self.recommenders[recommender_id].model_copy(update=changes)
        self.recommenders[recommender_id] = updated
        return updated


class InMemoryLearningRecords:
    def __init__(self) -> None:
        self.records: list[LearningRecord] = []

    def log_record(self, record: LearningRecord) -> None:
        self.records.append(record)

    def list_records(
        self,
        user: str,
        data_owner: str,
        project_id: int,
        layer_id: int | None = None,
    ) -> list[LearningRecord]:
        return [
            r
            for r in self.records
            if r.user == user
            and r.data_owner == data_owner
            and r.project_id == project_id
            and (layer_id is None or r.layer_id == layer_id)
        ]


class RecordingScheduler:
    """Collects enqueued tasks instead of running them."""

    def __init__(self) -> None:
        self.tasks: list[Task] = []
        self.cancelled_users: list[str] = []

    def enqueue(self, task: Task) -> bool:
        self.tasks.append(task)
        return True

    def cancel(self, user: str, project_id: int | None = None) -> int:
        self.cancelled_users.append(user)
        return 0

    def of_type(self, task_type: type) -> list[Task]:
        return [t for t in self.tasks if isinstance(t, task_type)]


Predictor = Callable[[Recommender, SourceDocument], list[AnnotationSuggestion]]


class FakeEngine(RecommendationEngine):
    def __init__(self, recommender: Recommender, factory: "FakeFactory"):
        super().__init__(recommender)
        self.factory = factory

    @property
    def training_capability(self) -> TrainingCapability:
        return self.factory.capability

    def train(self, context: RecommenderContext, casses: Sequence[FakeCas]) -> None:
        self.factory.trained.append(
            (self.recommender.id, [cas.document_id for cas in casses])
        )
        if self.factory.train_error is not None:
            raise self.factory.train_error
        context.put("model", len(casses))

    def is_ready_for_prediction(self, context: RecommenderContext) -> bool:
        return self.factory.ready and super().is_ready_for_prediction(context)

    def predict(
        self, context: RecommenderContext, cas: FakeCas, document: SourceDocument
    ) -> list[AnnotationSuggestion]:
        self.factory.predicted.append((self.recommender.id, document.id))
        if self.factory.predict_error is not None:
            raise self.factory.predict_error
        return self.factory.predictor(self.recommender, document)

    def evaluate(
        self, casses: Sequence[FakeCas], splitter: DataSplitter
    ) -> EvaluationResult:
        self.factory.evaluated.append(self.recommender.id)
        if self.factory.evaluate_error is not None:
            raise self.factory.evaluate_error
        return self.factory.results.get(
            self.recommender.id, self.factory.default_result
        )


def _no_predictions(
    recommender: Recommender, document: SourceDocument
) -> list[AnnotationSuggestion]:
    return []


class FakeFactory(RecommendationEngineFactory):
    def __init__(
        self,
        tool: str = "fake",
        accepts: bool = True,
        evaluable: bool = True,
        capability: TrainingCapability = TrainingCapability.TRAINING_SUPPORTED,
    ):
        self._tool = tool
        self.accepting = accepts
        self.evaluable = evaluable
        self.capability = capability
        self.ready = True
        self.default_result = EvaluationResult(true_positives=1)
        self.results: dict[int, EvaluationResult] = {}
        self.predictor: Predictor = _no_predictions
        self.train_error: Exception | None = None
        self.predict_error: Exception | None = None
        self.evaluate_error: Exception | None = None
        self.trained: list[tuple[int, list[int]]] = []
        self.predicted: list[tuple[int, int]] = []
        self.evaluated: list[int] = []

    @property
    def id(self) -> str:
        return self._tool

    def accepts(self, layer: AnnotationLayer, feature: str) -> bool:
        return self.accepting

    @property
    def is_evaluable(self) -> bool:
        return self.evaluable

    def build(self, recommender: Recommender) -> FakeEngine:
        return FakeEngine(recommender, self)


def result_with_f1(f1: float) -> EvaluationResult:
    """Build an evaluation result with precision == recall == f1."""
    hits = round(f1 * 100)
    return EvaluationResult(
        true_positives=hits,
        false_positives=100 - hits,
        false_negatives=100 - hits,
    )


def make_suggestion(
    recommender: Recommender,
    document_id: int,
    begin: int,
    end: int,
    label: str | None,
    score: float = 0.5,
    **fields,
) -> AnnotationSuggestion:
    return span_suggestion(
        begin=begin,
        end=end,
        recommender_id=recommender.id,
        recommender_name=recommender.name,
        layer_id=recommender.layer.id,
        feature=recommender.feature,
        document_id=document_id,
        label=label,
        score=score,
        **fields,
    )


@pytest.fixture
def project() -> Project:
    return Project(id=1, name="test-project")


@pytest.fixture
def layer(project: Project) -> AnnotationLayer:
    return AnnotationLayer(
        id=10, name="NamedEntity", ui_name="Named entity", project_id=project.id
    )


@pytest.fixture
def recommender(layer: AnnotationLayer) -> Recommender:
    return Recommender(
        id=100, name="ner", layer=layer, feature="value", tool="fake", threshold=0.7
    )


@pytest.fixture
def documents(project: Project) -> list[SourceDocument]:
    return [
        SourceDocument(id=i, name=f"doc{i}.txt", project_id=project.id)
        for i in range(1, 4)
    ]


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory()


@pytest.fixture
def repository(recommender: Recommender) -> FakeRepository:
    return FakeRepository([recommender])


@pytest.fixture
def document_service(documents: list[SourceDocument]) -> FakeDocumentService:
    return FakeDocumentService(documents)


@pytest.fixture
def learning_records() -> InMemoryLearningRecords:
    return InMemoryLearningRecords()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def published() -> list[PipelineEvent]:
    return []


@pytest.fixture
def service(
    repository: FakeRepository,
    factory: FakeFactory,
    document_service: FakeDocumentService,
    layer: AnnotationLayer,
    learning_records: InMemoryLearningRecords,
    scheduler: RecordingScheduler,
    published: list[PipelineEvent],
    tmp_path: Path,
) -> RecommendationService:
    events = EventPublisher()
    events.subscribe(published.append)
    return RecommendationService(
        repository=repository,
        registry=RecommenderFactoryRegistry([factory]),
        documents=document_service,
        schema=FakeSchemaService([layer]),
        learning_records=learning_records,
        events=events,
        settings=PipelineSettings(data_dir=tmp_path / "data"),
        scheduler=scheduler,
    )


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Create temporary data directory structure."""
    data_dir = tmp_path / "data"
    (data_dir / "learning_records").mkdir(parents=True)
    return data_dir
