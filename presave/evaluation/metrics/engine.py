# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Classification metrics for the test split.

Evaluation accumulates a confusion matrix batch by batch and derives the
headline numbers from it:

  - accuracy: correct predictions / all predictions
  - precision: mean over classes of tp / (tp + fp), skipping classes the
    model never predicted
  - recall: mean over classes of tp / (tp + fn), skipping classes that never
    occur in the labels
  - F1: harmonic mean of the averaged precision and recall

Everything is computed from counts, so feeding the same batches in any
order gives the same result.
"""

import torch

SCORES_RULE = "=" * 26 + "Scores" + "=" * 40
CLOSING_RULE = "=" * 72


class Evaluation:
    """
    Running confusion matrix for a `num_classes`-way classifier.

    Rows are actual classes, columns are predicted classes.

    Args:
        num_classes: Number of possible outcomes.

    Raises:
        ValueError: If num_classes < 2.
    """

    def __init__(self, num_classes: int) -> None:
        if num_classes < 2:
            raise ValueError(f"num_classes must be >= 2, got {num_classes}")
        self.num_classes = num_classes
        self.confusion_matrix = torch.zeros((num_classes, num_classes), dtype=torch.long)

    def eval(self, labels: torch.Tensor, output: torch.Tensor) -> None:
        """
        Add one batch of predictions.

        Args:
            labels: One-hot rows (N, K) or class indices (N,).
            output: Scores per class (N, K): probabilities or logits.
                The predicted class is the argmax.

        Raises:
            ValueError: On shape mismatches, one-hot rows that don't sum to 1,
                or out-of-range label indices.
        """
        k = self.num_classes
        output = output.detach().cpu()
        labels = labels.detach().cpu()

        if output.dim() != 2 or output.shape[1] != k:
            raise ValueError(f"Output must have shape (N, {k}), got {tuple(output.shape)}")

        if labels.dim() == 2:
            if labels.shape != output.shape:
                raise ValueError(
                    f"Labels shape {tuple(labels.shape)} does not match output shape {tuple(output.shape)}"
                )
            if labels.numel() and not torch.all((labels.sum(dim=1) - 1).abs() < 1e-6):
                raise ValueError("One-hot label rows must each sum to 1")
            actual = labels.argmax(dim=1)
        elif labels.dim() == 1:
            if labels.shape[0] != output.shape[0]:
                raise ValueError(
                    f"{labels.shape[0]} labels but {output.shape[0]} output rows"
                )
            actual = labels.to(torch.long)
            if actual.numel() and (actual.min() < 0 or actual.max() >= k):
                raise ValueError(f"Label indices must be in [0, {k})")
        else:
            raise ValueError(f"Labels must be 1-D or 2-D, got shape {tuple(labels.shape)}")

        if actual.numel() == 0:
            return

        predicted = output.argmax(dim=1)
        flat = actual * k + predicted
        self.confusion_matrix += torch.bincount(flat, minlength=k * k).reshape(k, k)

    def merge(self, other: "Evaluation") -> None:
        """Fold another Evaluation's counts into this one."""
        if other.num_classes != self.num_classes:
            raise ValueError(
                f"Cannot merge a {other.num_classes}-class evaluation into a {self.num_classes}-class one"
            )
        self.confusion_matrix += other.confusion_matrix

    @property
    def num_examples(self) -> int:
        return int(self.confusion_matrix.sum())

    def true_positives(self) -> torch.Tensor:
        return self.confusion_matrix.diagonal()

    def accuracy(self) -> float:
        total = self.num_examples
        if total == 0:
            return 0.0
        return float(self.true_positives().sum()) / total

    def class_precision(self, class_index: int) -> float | None:
        """tp / (tp + fp) for one class, or None if it was never predicted."""
        predicted = int(self.confusion_matrix[:, class_index].sum())
        if predicted == 0:
            return None
        return int(self.confusion_matrix[class_index, class_index]) / predicted

    def class_recall(self, class_index: int) -> float | None:
        """tp / (tp + fn) for one class, or None if it never occurs."""
        actual = int(self.confusion_matrix[class_index, :].sum())
        if actual == 0:
            return None
        return int(self.confusion_matrix[class_index, class_index]) / actual

    def precision(self) -> float:
        values = [
            p for p in (self.class_precision(c) for c in range(self.num_classes)) if p is not None
        ]
        return sum(values) / len(values) if values else 0.0

    def recall(self) -> float:
        values = [
            r for r in (self.class_recall(c) for c in range(self.num_classes)) if r is not None
        ]
        return sum(values) / len(values) if values else 0.0

    def f1(self) -> float:
        precision = self.precision()
        recall = self.recall()
        if precision + recall == 0.0:
            return 0.0
        return 2.0 * precision * recall / (precision + recall)

    def stats(self) -> str:
        """Human-readable confusion summary followed by the score block."""
        lines: list[str] = []

        if self.num_examples == 0:
            lines.append("No examples evaluated")
        else:
            for actual in range(self.num_classes):
                for predicted in range(self.num_classes):
                    count = int(self.confusion_matrix[actual, predicted])
                    if count > 0:
                        lines.append(
                            f"Examples labeled as {actual} classified by model as "
                            f"{predicted}: {count} times"
                        )

        lines.extend(
            [
                "",
                SCORES_RULE,
                f" # of classes:    {self.num_classes}",
                f" Accuracy:        {self.accuracy():.4f}",
                f" Precision:       {self.precision():.4f}",
                f" Recall:          {self.recall():.4f}",
                f" F1 Score:        {self.f1():.4f}",
                CLOSING_RULE,
            ]
        )
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "num_classes": self.num_classes,
            "num_examples": self.num_examples,
            "accuracy": self.accuracy(),
            "precision": self.precision(),
            "recall": self.recall(),
            "f1": self.f1(),
            "confusion_matrix": self.confusion_matrix.tolist(),
        }
