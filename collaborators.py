"""Capabilities the tree engine expects from caller-supplied types."""
from __future__ import annotations

from typing import Any, Protocol, Sequence, TypeVar

import numpy as np

ST = TypeVar("ST", bound="SplitTest")
LV = TypeVar("LV", bound="LeafValue")


class ExampleSetLike(Protocol):
    labels: list[Any]
    features: list[Any]

    def __len__(self) -> int: ...

    def append(self, label: Any, x: Any) -> None: ...

    def subset(self, indices: Sequence[int]) -> "ExampleSetLike": ...

    def push_to(self, dest: "ExampleSetLike", i: int) -> None: ...


class SplitTest(Protocol):
    """Routing predicate: ``True`` sends a feature vector to the right child."""

    def __call__(self, x: Any) -> bool: ...

    def randomized(self: ST, rng: np.random.Generator) -> ST: ...

    def serialize(self) -> str: ...

    def deserialize(self: ST, payload: str) -> ST: ...


class LeafValue(Protocol):
    """Summary of the labels that reached a leaf.

    ``from_labels``, ``deserialize`` and ``reduce`` are called on the leaf type
    itself, so implementations provide them as classmethods.
    """

    @classmethod
    def from_labels(cls: type[LV], labels: Sequence[Any]) -> LV: ...

    @classmethod
    def deserialize(cls: type[LV], payload: str) -> LV: ...

    @classmethod
    def reduce(cls, values: Sequence[Any]) -> Any: ...

    def serialize(self) -> str: ...


class ObjectiveFunction(Protocol):
    def __call__(self, labels: Sequence[Any]) -> float: ...
