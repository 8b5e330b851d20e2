"""Evaluation results of recommenders."""

from collections.abc import Collection, Iterable

from pydantic import BaseModel, ConfigDict, Field


class EvaluationResult(BaseModel):
    """Confusion counts of an evaluation run, or the reason it was skipped."""

    model_config = ConfigDict(frozen=True)

    true_positives: int = Field(default=0, ge=0)
    false_positives: int = Field(default=0, ge=0)
    false_negatives: int = Field(default=0, ge=0)
    true_negatives: int = Field(default=0, ge=0)
    training_set_size: int = Field(default=0, ge=0)
    test_set_size: int = Field(default=0, ge=0)
    skipped: bool = False
    skip_reason: str | None = None

    @classmethod
    def skipped_result(
        cls, reason: str, training_set_size: int = 0, test_set_size: int = 0
    ) -> "EvaluationResult":
        return cls(
            skipped=True,
            skip_reason=reason,
            training_set_size=training_set_size,
            test_set_size=test_set_size,
        )

    @classmethod
    def from_label_pairs(
        cls,
        pairs: Iterable[tuple[str | None, str | None]],
        ignore_labels: Collection[str | None] = (None,),
        training_set_size: int = 0,
        test_set_size: int = 0,
    ) -> "EvaluationResult":
        """Count micro-averaged outcomes from (gold, predicted) label pairs.

        Labels in ``ignore_labels`` mean "no annotation": a pair where both
        sides are ignored counts as a true negative.
        """
        tp = fp = fn = tn = 0
        for gold, predicted in pairs:
            gold_ignored = gold in ignore_labels
            predicted_ignored = predicted in ignore_labels
            if gold_ignored and predicted_ignored:
                tn += 1
            elif gold == predicted:
                tp += 1
            else:
                if not predicted_ignored:
                    fp += 1
                if not gold_ignored:
                    fn += 1

        return cls(
            true_positives=tp,
            false_positives=fp,
            false_negatives=fn,
            true_negatives=tn,
            training_set_size=training_set_size,
            test_set_size=test_set_size,
        )

    @property
    def total(self) -> int:
        return (
            self.true_positives
            + self.false_positives
            + self.false_negatives
            + self.true_negatives
        )

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return (self.true_positives + self.true_negatives) / self.total

    @property
    def precision(self) -> float:
        predicted = self.true_positives + self.false_positives
        if predicted == 0:
            return 0.0
        return self.true_positives / predicted

    @property
    def recall(self) -> float:
        relevant = self.true_positives + self.false_negatives
        if relevant == 0:
            return 0.0
        return self.true_positives / relevant

    @property
    def f1(self) -> float:
        precision = self.precision
        recall = self.recall
        if precision + recall == 0:
            return 0.0
        return 2 * precision * recall / (precision + recall)
