"""Test the training stage."""

import pytest

from annotation_recommender.recommendation.context import RecommenderContext
from annotation_recommender.recommendation.engine import TrainingCapability
from annotation_recommender.recommendation.evaluation import EvaluationResult
from annotation_recommender.recommendation.models import (
    AnnotationDocumentState,
    EvaluatedRecommender,
)
from annotation_recommender.scheduling.task import TaskState
from annotation_recommender.tasks import PredictionTask, TrainingTask

USER = "alice"


@pytest.fixture
def task(service, project, layer, recommender) -> TrainingTask:
    service.set_evaluated_recommenders(
        USER, layer, [EvaluatedRecommender.activated(recommender, EvaluationResult())]
    )
    return TrainingTask(service, USER, project, "Annotation created")


@pytest.fixture
def annotated(document_service, layer):
    """Give the first two documents annotations on the layer."""
    for document_id in (1, 2):
        document_service.casses[document_id].annotations.append((layer.name, "PER"))
    return document_service


class TestTrainingTask:
    """Test context training and hand-over to prediction."""

    def test_trains_on_annotated_documents(
        self, task, service, recommender, factory, annotated, scheduler
    ):
        task.run()

        assert task.state == TaskState.COMPLETED
        assert factory.trained == [(recommender.id, [1, 2])]
        context = service.get_context(USER, recommender)
        assert context.ready
        assert context.closed
        assert context.get("model") == 2
        (prediction,) = scheduler.tasks
        assert isinstance(prediction, PredictionTask)

    def test_ignored_document_states_are_excluded(
        self, task, recommender, factory, annotated
    ):
        annotated.states[1] = AnnotationDocumentState.IGNORE

        task.run()

        assert factory.trained == [(recommender.id, [2])]

    def test_training_not_supported_marks_context_ready(
        self, task, service, recommender, factory, scheduler
    ):
        factory.capability = TrainingCapability.TRAINING_NOT_SUPPORTED

        task.run()

        assert factory.trained == []
        assert service.get_context(USER, recommender).ready
        assert len(scheduler.of_type(PredictionTask)) == 1

    def test_training_required_without_data_is_skipped(
        self, task, service, recommender, factory, scheduler
    ):
        factory.capability = TrainingCapability.TRAINING_REQUIRED

        task.run()

        assert factory.trained == []
        assert service.get_context(USER, recommender) is None
        assert len(scheduler.of_type(PredictionTask)) == 1

    def test_training_supported_without_data_still_trains(
        self, task, service, recommender, factory
    ):
        task.run()

        assert factory.trained == [(recommender.id, [])]
        assert service.get_context(USER, recommender).ready

    def test_previous_context_is_not_modified(
        self, task, service, recommender, annotated
    ):
        """Test that training works on a copy of the published context."""
        previous = RecommenderContext(USER)
        previous.put("model", "old")
        previous.mark_ready()
        previous.close()
        service.put_context(USER, recommender, previous)

        task.run()

        current = service.get_context(USER, recommender)
        assert current is not previous
        assert current.get("model") == 2
        assert previous.get("model") == "old"

    def test_failing_training_keeps_previous_context(
        self, task, service, recommender, factory, annotated, scheduler
    ):
        previous = RecommenderContext(USER)
        previous.mark_ready()
        previous.close()
        service.put_context(USER, recommender, previous)
        factory.train_error = RuntimeError("diverged")

        task.run()

        assert task.state == TaskState.COMPLETED
        assert service.get_context(USER, recommender) is previous
        assert len(scheduler.of_type(PredictionTask)) == 1

    def test_unready_engine_keeps_previous_context(
        self, task, service, recommender, factory, annotated, scheduler
    ):
        """Test that a model the engine cannot use never replaces a good one."""
        previous = RecommenderContext(USER)
        previous.put("model", 1)
        previous.mark_ready()
        previous.close()
        service.put_context(USER, recommender, previous)
        factory.ready = False

        task.run()

        assert task.state == TaskState.COMPLETED
        assert factory.trained == [(recommender.id, [1, 2])]
        assert service.get_context(USER, recommender) is previous
        assert len(scheduler.of_type(PredictionTask)) == 1

    def test_only_active_recommenders_are_trained(
        self, service, project, layer, recommender, factory, annotated
    ):
        service.set_evaluated_recommenders(
            USER, layer, [EvaluatedRecommender.deactivated(recommender, "too weak")]
        )

        TrainingTask(service, USER, project, "Annotation created").run()

        assert factory.trained == []

    def test_unreadable_documents_are_skipped(
        self, task, recommender, factory, annotated
    ):
        annotated.unreadable.add(1)

        task.run()

        assert factory.trained == [(recommender.id, [2])]
