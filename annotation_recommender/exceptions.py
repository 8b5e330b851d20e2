"""Exception hierarchy for the recommendation pipeline."""


class RecommendationError(Exception):
    """Base class for all recommendation pipeline errors."""


class RecommenderNotFoundError(RecommendationError):
    """Raised when a recommender no longer exists in the configuration."""

    def __init__(self, recommender_id: int):
        super().__init__(f"Recommender [{recommender_id}] not found")
        self.recommender_id = recommender_id


class RecommendationEngineError(RecommendationError):
    """Raised by engines when training, prediction or evaluation fails."""


class ContextClosedError(RecommendationError):
    """Raised when a closed recommender context is modified."""


class TaskCancelledError(RecommendationError):
    """Raised inside a running task after it has been cancelled."""
