"""Confusion-matrix based evaluation for binary classifiers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np
import pandas as pd

DEFAULT_THRESHOLD = 0.5


def _rate(num: int, den: int) -> float:
    return float(num) / den if den else float("nan")


@dataclass(frozen=True)
class ConfusionMatrix:
    """Counts of a binary prediction against the truth (positive class = 1)."""

    tp: int
    fp: int
    tn: int
    fn: int

    @classmethod
    def from_predictions(cls, y_true, y_pred) -> "ConfusionMatrix":
        truth = np.asarray(y_true).ravel()
        pred = np.asarray(y_pred).ravel()
        if truth.shape != pred.shape:
            raise ValueError(
                f"y_true and y_pred must have the same length ({truth.size} != {pred.size})"
            )
        for name, values in (("y_true", truth), ("y_pred", pred)):
            unexpected = set(np.unique(values).tolist()) - {0, 1}
            if unexpected:
                raise ValueError(f"{name} must be binary (0/1), found {sorted(unexpected)}")

        truth = truth.astype(int)
        pred = pred.astype(int)
        return cls(
            tp=int(np.sum((truth == 1) & (pred == 1))),
            fp=int(np.sum((truth == 0) & (pred == 1))),
            tn=int(np.sum((truth == 0) & (pred == 0))),
            fn=int(np.sum((truth == 1) & (pred == 0))),
        )

    @property
    def total(self) -> int:
        return self.tp + self.fp + self.tn + self.fn

    @property
    def sensitivity(self) -> float:
        """True positive rate."""
        return _rate(self.tp, self.tp + self.fn)

    @property
    def specificity(self) -> float:
        """True negative rate."""
        return _rate(self.tn, self.tn + self.fp)

    @property
    def accuracy(self) -> float:
        return _rate(self.tp + self.tn, self.total)

    @property
    def precision(self) -> float:
        return _rate(self.tp, self.tp + self.fp)

    @property
    def error_rate(self) -> float:
        return _rate(self.fp + self.fn, self.total)

    def to_array(self) -> np.ndarray:
        """2x2 array, rows = actual (0, 1), columns = predicted (0, 1)."""
        return np.array([[self.tn, self.fp], [self.fn, self.tp]])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.to_array(),
            index=pd.Index(["normal", "abnormal"], name="actual"),
            columns=pd.Index(["normal", "abnormal"], name="predicted"),
        )

    def summary(self) -> Dict[str, float]:
        out = {k: int(v) for k, v in asdict(self).items()}
        out.update(
            {
                "sensitivity": self.sensitivity,
                "specificity": self.specificity,
                "accuracy": self.accuracy,
                "precision": self.precision,
            }
        )
        return out


def classify(probabilities, threshold: float = DEFAULT_THRESHOLD) -> np.ndarray:
    """Label 1 where the predicted probability exceeds the cutoff."""
    if not 0 <= threshold <= 1:
        raise ValueError(f"threshold must be in [0, 1], got {threshold}")
    return (np.asarray(probabilities, dtype=float) > threshold).astype(int)


def classification_summary(y_true, y_pred, prefix: str = "") -> Dict[str, float]:
    cm = ConfusionMatrix.from_predictions(y_true, y_pred)
    return {f"{prefix}{k}": v for k, v in cm.summary().items()}
