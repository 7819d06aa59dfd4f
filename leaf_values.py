from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Sequence

import numpy as np

from serialization import MalformedModelError


@dataclass
class ClassVoteLeaf:
    """Class histogram of the labels that reached a leaf.

    Labels are integer class ids. The ensemble result is a hard majority vote:
    every non-empty leaf votes for its most frequent class, and ties go to the
    smallest class id.
    """

    counts: dict[int, int] = field(default_factory=dict)

    @classmethod
    def from_labels(cls, labels: Sequence[Any]) -> ClassVoteLeaf:
        return cls(counts=dict(Counter(int(label) for label in labels)))

    @property
    def n(self) -> int:
        return sum(self.counts.values())

    def majority(self) -> int | None:
        if not self.counts:
            return None
        return min(self.counts, key=lambda label: (-self.counts[label], label))

    def proba(self, label: int) -> float:
        n = self.n
        return self.counts.get(int(label), 0) / n if n else 0.0

    def serialize(self) -> str:
        return ",".join(f"{label}:{count}" for label, count in sorted(self.counts.items()))

    @classmethod
    def deserialize(cls, payload: str) -> ClassVoteLeaf:
        counts: dict[int, int] = {}
        if payload:
            try:
                for item in payload.split(","):
                    label, count = item.split(":")
                    counts[int(label)] = int(count)
            except ValueError as exc:
                raise MalformedModelError(f"Invalid class vote leaf: {payload!r}") from exc
        return cls(counts=counts)

    @classmethod
    def reduce(cls, values: Sequence[ClassVoteLeaf]) -> int:
        votes = Counter(v.majority() for v in values if v.counts)
        if not votes:
            raise ValueError("Cannot reduce leaves that hold no labels")
        return min(votes, key=lambda label: (-votes[label], label))


@dataclass
class MeanLeaf:
    """Mean of the real-valued labels that reached a leaf."""

    mean: float = 0.0
    n: int = 0

    @classmethod
    def from_labels(cls, labels: Sequence[Any]) -> MeanLeaf:
        if len(labels) == 0:
            return cls()
        return cls(mean=float(np.mean(np.asarray(labels, dtype=np.float64))), n=len(labels))

    def serialize(self) -> str:
        return f"{self.mean!r}:{self.n}"

    @classmethod
    def deserialize(cls, payload: str) -> MeanLeaf:
        try:
            mean, n = payload.split(":")
            return cls(mean=float(mean), n=int(n))
        except ValueError as exc:
            raise MalformedModelError(f"Invalid mean leaf: {payload!r}") from exc

    @classmethod
    def reduce(cls, values: Sequence[MeanLeaf]) -> float:
        means = [v.mean for v in values if v.n > 0]
        if not means:
            raise ValueError("Cannot reduce leaves that hold no labels")
        return float(np.mean(means))
