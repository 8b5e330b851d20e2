"""Test prediction containers and suggestion inheritance."""

import pytest
from conftest import make_suggestion

from annotation_recommender.recommendation.models import Project, Recommender
from annotation_recommender.recommendation.predictions import Predictions
from annotation_recommender.recommendation.suggestion import NEW_ID, HideFlag


def _ids(predictions: Predictions, document_id: int) -> list[int]:
    return sorted(s.id for s in predictions.get_suggestions_by_document(document_id))


class TestPredictions:
    """Test storage and lookups of Predictions."""

    def test_put_assigns_sequential_ids(self, project: Project, recommender):
        """Test that new suggestions receive ids from the instance counter."""
        predictions = Predictions("alice", project)
        predictions.put_suggestions(
            [
                make_suggestion(recommender, 1, 0, 5, "PER"),
                make_suggestion(recommender, 1, 6, 9, "LOC"),
                make_suggestion(recommender, 2, 0, 5, "PER"),
            ]
        )

        assert _ids(predictions, 1) == [0, 1]
        assert _ids(predictions, 2) == [2]
        assert predictions.size == 3
        assert all(
            s.generation == predictions.generation
            for s in predictions.get_all_suggestions()
        )

    def test_successor_continues_counter(self, project: Project, recommender):
        """Test that a successor never reuses ids of its predecessor."""
        first = Predictions("alice", project)
        first.put_suggestions([make_suggestion(recommender, 1, 0, 5, "PER")])

        second = Predictions("alice", project, predecessor=first)
        second.put_suggestions([make_suggestion(recommender, 1, 6, 9, "LOC")])

        assert second.generation == first.generation + 1
        assert _ids(second, 1) == [1]

    def test_lookups(self, project: Project, recommender: Recommender):
        other = recommender.model_copy(update={"id": 101, "name": "other"})
        predictions = Predictions("alice", project)
        predictions.put_suggestions(
            [
                make_suggestion(recommender, 1, 0, 5, "PER"),
                make_suggestion(other, 1, 0, 5, "ORG"),
                make_suggestion(recommender, 1, 30, 35, "LOC"),
            ]
        )

        by_recommender = predictions.get_suggestions_by_recommender_and_document(
            other.id, 1
        )
        per = predictions.get_suggestion_by_id(1, 0)

        assert [s.label for s in by_recommender] == ["ORG"]
        assert per is not None and per.label == "PER"
        assert predictions.get_suggestion_by_id(1, 99) is None
        assert [s.label for s in predictions.get_alternative_suggestions(per)] == [
            "ORG"
        ]
        assert len(predictions.get_grouped_predictions(1, recommender.layer.id)) == 2
        assert (
            len(predictions.get_grouped_predictions(1, recommender.layer.id, 0, 10))
            == 1
        )

    def test_remove_predictions(self, project: Project, recommender: Recommender):
        other = recommender.model_copy(update={"id": 101, "name": "other"})
        predictions = Predictions("alice", project)
        predictions.put_suggestions(
            [
                make_suggestion(recommender, 1, 0, 5, "PER"),
                make_suggestion(other, 1, 0, 5, "ORG"),
            ]
        )

        removed = predictions.remove_predictions(recommender.id)

        assert removed == 1
        assert [s.recommender_id for s in predictions.get_all_suggestions()] == [
            other.id
        ]

    def test_carry_over_ages_suggestions(self, project: Project, recommender):
        """Test that carried over suggestions keep their id and get older."""
        first = Predictions("alice", project)
        first.put_suggestions([make_suggestion(recommender, 1, 0, 5, "PER")])

        second = Predictions("alice", project, predecessor=first)
        second.carry_over(first.get_suggestions_by_document(1))

        (carried,) = second.get_suggestions_by_document(1)
        assert carried.id == 0
        assert carried.age == 1

    def test_carry_over_requires_ids(self, project: Project, recommender):
        predictions = Predictions("alice", project)

        with pytest.raises(ValueError):
            predictions.carry_over([make_suggestion(recommender, 1, 0, 5, "PER")])

    def test_prediction_markers_and_log(self, project: Project):
        predictions = Predictions("alice", project)
        predictions.mark_document_as_predicted(3)
        predictions.log("done")

        assert predictions.has_run_prediction_on_document(3)
        assert not predictions.has_run_prediction_on_document(4)
        assert predictions.messages[0].endswith("done")
        assert predictions.is_empty()


class TestInheritSuggestions:
    """Test that identical suggestions keep their id across runs."""

    def _old_with_id_seven(self, project: Project, recommender: Recommender):
        """Previous run holding LOC with id 3 and PER with id 7."""
        old = Predictions("alice", project)
        old.put_suggestions(
            [
                make_suggestion(recommender, 1, 0, 5, "LOC", id=3),
                make_suggestion(recommender, 1, 10, 20, "PER", id=7),
            ]
        )
        return old

    def test_matching_suggestion_keeps_old_id(self, project: Project, recommender):
        """Test that a re-predicted suggestion gets its previous id back."""
        old = self._old_with_id_seven(project, recommender)
        new = Predictions("alice", project, predecessor=old)
        new.put_suggestions(
            [make_suggestion(recommender, 1, 10, 20, "PER", score=0.95)]
        )
        assert _ids(new, 1) == [8]

        new.inherit_suggestions(old)

        (survivor,) = new.get_suggestions_by_document(1)
        assert survivor.id == 7
        assert survivor.score == 0.95
        assert survivor.age == 1
        assert new.aged_count == 1
        assert new.removed_count == 1

    def test_unmatched_suggestion_gets_unique_id(self, project: Project, recommender):
        """Test that new suggestions never collide with inherited ids."""
        old = self._old_with_id_seven(project, recommender)
        new = Predictions("alice", project, predecessor=old)
        new.put_suggestions(
            [
                make_suggestion(recommender, 1, 10, 20, "PER"),
                make_suggestion(recommender, 1, 10, 20, "ORG"),
                make_suggestion(recommender, 1, 40, 45, "PER"),
            ]
        )

        new.inherit_suggestions(old)

        ids = _ids(new, 1)
        assert 7 in ids
        assert len(ids) == len(set(ids)) == 3
        assert 3 not in ids
        assert new.added_count == 2

    def test_different_label_is_not_a_match(self, project: Project, recommender):
        """Test that identity includes the label."""
        old = self._old_with_id_seven(project, recommender)
        new = Predictions("alice", project, predecessor=old)
        new.put_suggestions([make_suggestion(recommender, 1, 10, 20, "ORG")])

        new.inherit_suggestions(old)

        (suggestion,) = new.get_suggestions_by_document(1)
        assert suggestion.id != 7

    def test_carried_over_suggestions_are_kept(self, project: Project, recommender):
        """Test that inheriting does not age carried over suggestions twice."""
        old = self._old_with_id_seven(project, recommender)
        new = Predictions("alice", project, predecessor=old)
        new.carry_over(old.get_suggestions_by_document(1))

        new.inherit_suggestions(old)

        assert _ids(new, 1) == [3, 7]
        assert all(s.age == 1 for s in new.get_all_suggestions())

    def test_hiding_flags_are_not_shared(self, project: Project, recommender):
        """Test that hiding an inherited suggestion leaves the old one visible."""
        old = self._old_with_id_seven(project, recommender)
        new = Predictions("alice", project, predecessor=old)
        new.put_suggestions([make_suggestion(recommender, 1, 10, 20, "PER")])
        new.inherit_suggestions(old)

        new.get_suggestion_by_id(1, 7).hide(HideFlag.REJECTED)

        assert old.get_suggestion_by_id(1, 7).visible

    def test_new_id_constant(self, recommender):
        assert make_suggestion(recommender, 1, 0, 1, "X").id == NEW_ID

    def test_explicit_ids_advance_counter(self, project: Project, recommender):
        old = self._old_with_id_seven(project, recommender)

        assert old.next_id == 8

    def test_ids_unique_across_documents_without_predecessor(
        self, project: Project, recommender
    ):
        """Test that a fresh run never reuses an id handed out by the old one."""
        old = Predictions("alice", project)
        old.put_suggestions([make_suggestion(recommender, 2, 0, 5, "PER")])

        new = Predictions("alice", project)
        new.put_suggestions(
            [
                make_suggestion(recommender, 1, 0, 5, "X"),
                make_suggestion(recommender, 2, 0, 5, "PER"),
            ]
        )
        assert _ids(new, 1) == [0]

        new.inherit_suggestions(old)

        ids = [s.id for s in new.get_all_suggestions()]
        assert sorted(ids) == [0, 2]
        assert new.get_suggestion_by_id(2, 0).label == "PER"
        assert new.get_suggestion_by_id(1, 2).label == "X"
        assert new.added_count == 1
        assert new.aged_count == 1
