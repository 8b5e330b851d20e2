"""Deterministic train/test partitioning for recommender evaluation."""

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class DataSplit(Generic[T]):
    """A training set and a test set drawn from the same pool."""

    training_set: list[T] = field(default_factory=list)
    test_set: list[T] = field(default_factory=list)
    skip_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skip_reason is not None


class DataSplitter(ABC):
    """Partitions a pool of documents or instances into train and test data."""

    @abstractmethod
    def split(self, pool: Sequence[T]) -> DataSplit[T]:
        """Split the pool, keeping the pool order within both sets."""


def _validate_fraction(train_fraction: float) -> None:
    if not 0.0 < train_fraction < 1.0:
        raise ValueError(
            f"Training fraction must be between 0 and 1 (exclusive), "
            f"got {train_fraction}"
        )


class PercentageBasedSplitter(DataSplitter):
    """Uses the first share of the pool for training and the rest for testing."""

    def __init__(self, train_fraction: float, min_test_size: int):
        _validate_fraction(train_fraction)
        if min_test_size < 0:
            raise ValueError(f"Minimum test size must not be negative: {min_test_size}")
        self.train_fraction = train_fraction
        self.min_test_size = min_test_size

    def split(self, pool: Sequence[T]) -> DataSplit[T]:
        items = list(pool)
        train_size = round(len(items) * self.train_fraction)
        training_set, test_set = items[:train_size], items[train_size:]

        if len(test_set) < self.min_test_size:
            return DataSplit(
                training_set,
                test_set,
                skip_reason=f"Not enough evaluation data: test set has "
                f"{len(test_set)} items but at least {self.min_test_size} are "
                f"required",
            )

        return DataSplit(training_set, test_set)

    def __repr__(self) -> str:
        return (
            f"PercentageBasedSplitter(train_fraction={self.train_fraction}, "
            f"min_test_size={self.min_test_size})"
        )


class TrainingSizeLimitedSplitter(DataSplitter):
    """One step of an incremental split: a capped training set and a fixed test set."""

    def __init__(
        self, train_fraction: float, training_size: int, low_sample_threshold: int
    ):
        _validate_fraction(train_fraction)
        self.train_fraction = train_fraction
        self.training_size = training_size
        self.low_sample_threshold = low_sample_threshold

    def split(self, pool: Sequence[T]) -> DataSplit[T]:
        items = list(pool)
        boundary = training_limit(len(items), self.train_fraction)
        training_set = items[:boundary][: self.training_size]
        test_set = items[boundary:]

        if len(training_set) < self.low_sample_threshold:
            return DataSplit(
                training_set,
                test_set,
                skip_reason=f"Training set has {len(training_set)} items, below the "
                f"low sample threshold of {self.low_sample_threshold}",
            )

        if not test_set:
            return DataSplit(training_set, test_set, skip_reason="No test data")

        return DataSplit(training_set, test_set)


def training_limit(size: int, train_fraction: float) -> int:
    """Largest training set size allowed for a pool of the given size."""
    # Rounding first keeps e.g. 0.7 * 10 from landing on 6.9999...
    return math.floor(round(size * train_fraction, 9))


class IncrementalSplitter:
    """Grows the training set step by step to produce a learning curve.

    The test set stays fixed at the tail of the pool while the training set
    grows by ``step_size`` instances per step, up to ``train_fraction`` of the
    estimated dataset size. Steps whose training set would be smaller than
    ``low_sample_threshold`` are skipped.
    """

    def __init__(
        self, train_fraction: float, step_size: int, low_sample_threshold: int = 0
    ):
        _validate_fraction(train_fraction)
        if step_size < 1:
            raise ValueError(f"Step size must be positive: {step_size}")
        self.train_fraction = train_fraction
        self.step_size = step_size
        self.low_sample_threshold = low_sample_threshold

    def training_sizes(self, estimated_size: int) -> Iterator[int]:
        """Yield the training set size of every step that is not skipped."""
        limit = training_limit(estimated_size, self.train_fraction)
        size = 0
        while size < limit:
            size = min(size + self.step_size, limit)
            if size < self.low_sample_threshold:
                logger.debug(
                    f"Skipping step with {size} training instances "
                    f"(threshold {self.low_sample_threshold})"
                )
                continue
            yield size

    def step_splitters(
        self, estimated_size: int
    ) -> Iterator[TrainingSizeLimitedSplitter]:
        """Yield one splitter per step, for engines that split their own data."""
        for size in self.training_sizes(estimated_size):
            yield TrainingSizeLimitedSplitter(
                self.train_fraction, size, self.low_sample_threshold
            )

    def splits(self, pool: Sequence[T]) -> Iterator[DataSplit[T]]:
        """Yield the (train, test) partition of every step over a known pool."""
        for splitter in self.step_splitters(len(pool)):
            yield splitter.split(pool)

    def __repr__(self) -> str:
        return (
            f"IncrementalSplitter(train_fraction={self.train_fraction}, "
            f"step_size={self.step_size}, "
            f"low_sample_threshold={self.low_sample_threshold})"
        )
