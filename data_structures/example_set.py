from __future__ import annotations

from typing import Any, Iterable, Iterator, Sequence

import numpy as np


class ExampleSet:
    """Parallel lists of labels and feature vectors."""

    def __init__(
        self,
        labels: Iterable[Any] | None = None,
        features: Iterable[Any] | None = None,
    ) -> None:
        self.labels: list[Any] = list(labels) if labels is not None else []
        self.features: list[Any] = list(features) if features is not None else []
        if len(self.labels) != len(self.features):
            raise ValueError("labels and features must have the same length")

    @classmethod
    def from_arrays(cls, X: np.ndarray, y: np.ndarray) -> ExampleSet:
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y)
        if X.ndim != 2:
            raise ValueError("X must be a 2D array")
        if y.ndim != 1 or y.shape[0] != X.shape[0]:
            raise ValueError("y must be a 1D array with the same number of rows as X")
        return cls(labels=y.tolist(), features=list(X))

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[tuple[Any, Any]]:
        return zip(self.labels, self.features)

    def append(self, label: Any, x: Any) -> None:
        self.labels.append(label)
        self.features.append(x)

    def subset(self, indices: Sequence[int]) -> ExampleSet:
        out = ExampleSet()
        for i in indices:
            self.push_to(out, int(i))
        return out

    def push_to(self, dest: ExampleSet, i: int) -> None:
        dest.append(self.labels[i], self.features[i])

    def clear(self) -> None:
        self.labels = []
        self.features = []
