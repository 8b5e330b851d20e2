"""Interactive loop presenting one suggestion at a time."""

from .service import ActiveLearningService, ActiveLearningUserState
from .strategy import ActiveLearningStrategy, UncertaintySamplingStrategy

__all__ = [
    "ActiveLearningService",
    "ActiveLearningStrategy",
    "ActiveLearningUserState",
    "UncertaintySamplingStrategy",
]
