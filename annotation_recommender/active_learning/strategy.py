"""Strategies choosing the next suggestion to present."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..recommendation.models import Preferences
from ..recommendation.suggestion import Delta, SuggestionGroup


class ActiveLearningStrategy(ABC):
    @abstractmethod
    def generate_next_suggestion(
        self, preferences: Preferences, groups: Sequence[SuggestionGroup]
    ) -> Delta | None:
        """Pick the next suggestion, or None when nothing is left to review."""


class UncertaintySamplingStrategy(ActiveLearningStrategy):
    """Presents the suggestion whose recommender was least sure about it.

    Uncertainty is the score gap between a recommender's best label and its
    best alternative at the same position. When the preferences set a
    confidence gap threshold, suggestions with a larger gap are not presented.
    """

    def generate_next_suggestion(
        self, preferences: Preferences, groups: Sequence[SuggestionGroup]
    ) -> Delta | None:
        threshold = preferences.confidence_gap_threshold

        best: Delta | None = None
        for group in groups:
            for delta in group.top_deltas(preferences):
                if not delta.first.visible:
                    continue
                if threshold is not None and delta.delta > threshold:
                    continue
                # Strict comparison keeps the earliest position on ties
                if best is None or delta.delta < best.delta:
                    best = delta
        return best
