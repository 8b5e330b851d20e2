"""Selection, training and prediction stages of the recommendation pipeline."""

from .base import RecommendationTask
from .prediction import PredictionTask
from .selection import SelectionTask
from .training import TrainingTask

__all__ = ["PredictionTask", "RecommendationTask", "SelectionTask", "TrainingTask"]
