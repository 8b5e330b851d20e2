"""File based persistence of learning records."""

from .learning_records import LearningRecordStore

__all__ = ["LearningRecordStore"]
