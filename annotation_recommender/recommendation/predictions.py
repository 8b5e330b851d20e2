"""Versioned suggestion sets of one user in one project."""

import logging
import threading
from collections.abc import Iterable
from datetime import datetime

from .models import Project
from .suggestion import NEW_ID, AnnotationSuggestion, SuggestionGroup

logger = logging.getLogger(__name__)


class Predictions:
    """All suggestions produced by one prediction run.

    Suggestions are stored per document and keyed by id, so a document never
    holds two suggestions with the same id. Every instance continues the id
    counter of its predecessor, which keeps ids unique across runs.
    """

    def __init__(
        self,
        session_owner: str,
        project: Project,
        predecessor: "Predictions | None" = None,
        data_owner: str | None = None,
    ):
        self.session_owner = session_owner
        self.data_owner = data_owner or session_owner
        self.project = project
        self.generation = predecessor.generation + 1 if predecessor else 1
        self._next_id = predecessor._next_id if predecessor else 0

        self._by_document: dict[int, dict[int, AnnotationSuggestion]] = {}
        self._predicted_documents: set[int] = set()
        self._messages: list[str] = []
        self._lock = threading.RLock()

        self.added_count = 0
        self.aged_count = 0
        self.removed_count = 0

    def _take_id(self) -> int:
        suggestion_id = self._next_id
        self._next_id += 1
        return suggestion_id

    def _store(self, suggestion: AnnotationSuggestion) -> None:
        self._by_document.setdefault(suggestion.document_id, {})[suggestion.id] = (
            suggestion
        )

    def put_suggestions(self, suggestions: Iterable[AnnotationSuggestion]) -> None:
        """Add freshly predicted suggestions, assigning ids to new ones."""
        with self._lock:
            for suggestion in suggestions:
                if suggestion.id == NEW_ID:
                    suggestion = suggestion.with_changes(
                        id=self._take_id(), generation=self.generation
                    )
                else:
                    self._next_id = max(self._next_id, suggestion.id + 1)
                self._store(suggestion)

    def carry_over(self, suggestions: Iterable[AnnotationSuggestion]) -> None:
        """Keep suggestions of a previous run, one generation older."""
        with self._lock:
            for suggestion in suggestions:
                if suggestion.id == NEW_ID:
                    raise ValueError(
                        "Only suggestions with an assigned id can be carried over"
                    )
                self._store(suggestion.with_changes(age=suggestion.age + 1))
                self._next_id = max(self._next_id, suggestion.id + 1)

    def inherit_suggestions(self, previous: "Predictions") -> None:
        """Give suggestions that already existed in ``previous`` their old id.

        Two suggestions are the same when document, recommender, position and
        label agree. A suggestion without a counterpart keeps its id unless
        that id was handed out by ``previous`` or is taken by an inherited
        suggestion, in which case it gets a fresh one.
        """
        with self._lock:
            previous_suggestions = previous.get_all_suggestions()
            reserved_below = previous.next_id
            self._next_id = max(self._next_id, reserved_below)

            old_by_identity: dict[tuple, AnnotationSuggestion] = {}
            for old in previous_suggestions:
                old_by_identity.setdefault(old.identity, old)

            aged = 0
            matched: dict[int, list[AnnotationSuggestion]] = {}
            unmatched: dict[int, list[AnnotationSuggestion]] = {}
            for document_id, suggestions in self._by_document.items():
                matched[document_id] = []
                unmatched[document_id] = []
                for suggestion in suggestions.values():
                    old = old_by_identity.pop(suggestion.identity, None)
                    if old is None:
                        unmatched[document_id].append(suggestion)
                        continue
                    aged += 1
                    if suggestion.id == old.id and suggestion.generation == (
                        old.generation
                    ):
                        # Already carried over from the previous run
                        matched[document_id].append(suggestion)
                    else:
                        matched[document_id].append(
                            suggestion.with_changes(
                                id=old.id, generation=old.generation, age=old.age + 1
                            )
                        )

            # Inherited ids go first so a fresh suggestion yields on collision
            used_ids: set[int] = set()
            merged: dict[int, dict[int, AnnotationSuggestion]] = {}
            for document_id, suggestions in matched.items():
                merged[document_id] = {}
                for suggestion in suggestions:
                    if suggestion.id not in merged[document_id]:
                        merged[document_id][suggestion.id] = suggestion
                        used_ids.add(suggestion.id)

            added = 0
            for document_id, suggestions in unmatched.items():
                for suggestion in suggestions:
                    if suggestion.id < reserved_below or suggestion.id in used_ids:
                        suggestion = suggestion.with_id(self._take_id())
                    merged[document_id][suggestion.id] = suggestion
                    used_ids.add(suggestion.id)
                    added += 1

            self._by_document = merged
            self.added_count = added
            self.aged_count = aged
            self.removed_count = len(old_by_identity)

        logger.debug(
            f"[{self.session_owner}] Inherited suggestions of generation "
            f"{previous.generation} into {self.generation}: {added} new, "
            f"{aged} aged, {self.removed_count} removed"
        )

    def get_all_suggestions(self) -> list[AnnotationSuggestion]:
        with self._lock:
            return [
                suggestion
                for suggestions in self._by_document.values()
                for suggestion in suggestions.values()
            ]

    def get_suggestions_by_document(
        self, document_id: int
    ) -> list[AnnotationSuggestion]:
        with self._lock:
            return list(self._by_document.get(document_id, {}).values())

    def get_suggestions_by_recommender_and_document(
        self, recommender_id: int, document_id: int
    ) -> list[AnnotationSuggestion]:
        return [
            s
            for s in self.get_suggestions_by_document(document_id)
            if s.recommender_id == recommender_id
        ]

    def get_suggestion_by_id(
        self, document_id: int, suggestion_id: int
    ) -> AnnotationSuggestion | None:
        with self._lock:
            return self._by_document.get(document_id, {}).get(suggestion_id)

    def get_predictions_by_layer(self, layer_id: int) -> list[AnnotationSuggestion]:
        return [s for s in self.get_all_suggestions() if s.layer_id == layer_id]

    def get_grouped_predictions(
        self,
        document_id: int,
        layer_id: int,
        window_begin: int = 0,
        window_end: int | None = None,
    ) -> list[SuggestionGroup]:
        """Groups of one document and layer, optionally limited to a text window."""
        suggestions = [
            s
            for s in self.get_suggestions_by_document(document_id)
            if s.layer_id == layer_id
            and (window_end is None or s.covered_by(window_begin, window_end))
        ]
        return SuggestionGroup.group(suggestions)

    def get_grouped_predictions_by_layer(self, layer_id: int) -> list[SuggestionGroup]:
        """Groups of a layer across all documents of the project."""
        return SuggestionGroup.group(self.get_predictions_by_layer(layer_id))

    def get_alternative_suggestions(
        self, suggestion: AnnotationSuggestion
    ) -> list[AnnotationSuggestion]:
        """Other suggestions at the same location of the same layer and feature."""
        return [
            s
            for s in self.get_suggestions_by_document(suggestion.document_id)
            if s.id != suggestion.id
            and s.layer_id == suggestion.layer_id
            and s.feature == suggestion.feature
            and s.position == suggestion.position
        ]

    def remove_predictions(self, recommender_id: int) -> int:
        """Drop all suggestions of a recommender and return how many were dropped."""
        removed = 0
        with self._lock:
            for document_id, suggestions in self._by_document.items():
                keep = {
                    i: s
                    for i, s in suggestions.items()
                    if s.recommender_id != recommender_id
                }
                removed += len(suggestions) - len(keep)
                self._by_document[document_id] = keep
        return removed

    def mark_document_as_predicted(self, document_id: int) -> None:
        with self._lock:
            self._predicted_documents.add(document_id)

    def has_run_prediction_on_document(self, document_id: int) -> bool:
        with self._lock:
            return document_id in self._predicted_documents

    def log(self, message: str) -> None:
        stamp = datetime.now().strftime("%H:%M:%S")
        with self._lock:
            self._messages.append(f"{stamp} {message}")

    @property
    def messages(self) -> list[str]:
        with self._lock:
            return list(self._messages)

    @property
    def next_id(self) -> int:
        return self._next_id

    @property
    def size(self) -> int:
        with self._lock:
            return sum(len(s) for s in self._by_document.values())

    def is_empty(self) -> bool:
        return self.size == 0

    def __repr__(self) -> str:
        return (
            f"Predictions(user={self.session_owner!r}, project={self.project.id}, "
            f"generation={self.generation}, size={self.size})"
        )
