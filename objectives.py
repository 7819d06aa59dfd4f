from __future__ import annotations

from typing import Any, Callable, Sequence

import numpy as np


def _class_proportions(labels: Sequence[Any]) -> np.ndarray:
    _, counts = np.unique(np.asarray(labels), return_counts=True)
    return counts / float(counts.sum())


def entropy(labels: Sequence[Any]) -> float:
    """Shannon entropy (bits) of the label distribution; 0.0 for no labels."""
    if len(labels) == 0:
        return 0.0
    p = _class_proportions(labels)
    return float(-np.sum(p * np.log2(p)))


def gini(labels: Sequence[Any]) -> float:
    if len(labels) == 0:
        return 0.0
    p = _class_proportions(labels)
    return float(1.0 - np.sum(p * p))


def variance(labels: Sequence[Any]) -> float:
    if len(labels) == 0:
        return 0.0
    return float(np.var(np.asarray(labels, dtype=np.float64)))


_OBJECTIVES: dict[str, Callable[[Sequence[Any]], float]] = {
    "entropy": entropy,
    "gini": gini,
    "variance": variance,
}


def get_objective(name: str) -> Callable[[Sequence[Any]], float]:
    try:
        return _OBJECTIVES[name]
    except KeyError:
        raise ValueError(
            f"Unsupported objective: {name} (one of: {', '.join(sorted(_OBJECTIVES))})"
        ) from None
