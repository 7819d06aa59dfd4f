from __future__ import annotations

from collections import deque
from dataclasses import dataclass
import logging
from typing import Any, Iterable, Iterator

import numpy as np

from collaborators import ExampleSetLike, LeafValue, ObjectiveFunction, SplitTest
from data_structures import ExampleSet
from serialization import decode_node, encode_node, pop_line, read_lines, write_lines

logger = logging.getLogger(__name__)


@dataclass
class TreeTrainingParameters:
    # Growth stops once impurity <= objfunc_th or #examples <= nexamples_th.
    objfunc_th: float = 0.0
    objfunc_restart_th: float = 0.1
    nexamples_th: int = 1
    nexamples_restart_th: int = 500
    nsamplings: int = 300
    chatty: bool = False

    def __post_init__(self) -> None:
        if not self.objfunc_th < self.objfunc_restart_th:
            raise ValueError("objfunc_th must be < objfunc_restart_th")
        if not self.nexamples_th < self.nexamples_restart_th:
            raise ValueError("nexamples_th must be < nexamples_restart_th")
        if self.nsamplings <= 0:
            raise ValueError("nsamplings must be positive")


@dataclass
class TreeTrainingMetrics:
    nodes_visited: int = 0
    nodes_split: int = 0
    leaves_created: int = 0
    degenerate_splits: int = 0
    candidates_evaluated: int = 0

    def merge(self, other: TreeTrainingMetrics) -> None:
        self.nodes_visited += other.nodes_visited
        self.nodes_split += other.nodes_split
        self.leaves_created += other.leaves_created
        self.degenerate_splits += other.degenerate_splits
        self.candidates_evaluated += other.candidates_evaluated


@dataclass
class Leaf:
    value: LeafValue | None = None


@dataclass
class Internal:
    test: SplitTest
    right: Tree
    left: Tree


def _partition(data: ExampleSetLike, test: SplitTest) -> tuple[ExampleSet, ExampleSet]:
    right, left = ExampleSet(), ExampleSet()
    for i, x in enumerate(data.features):
        data.push_to(right if test(x) else left, i)
    return right, left


def _trace(params: TreeTrainingParameters, msg: str, *args: Any) -> None:
    logger.log(logging.INFO if params.chatty else logging.DEBUG, msg, *args)


class Tree:
    """Binary decision tree grown from randomized split candidates.

    A tree is either a ``Leaf`` or an ``Internal`` node owning two subtrees.
    True test outcomes route to the right subtree.
    """

    def __init__(
        self,
        dim: int,
        split_test: SplitTest,
        leaf_type: type,
        rng: np.random.Generator | None = None,
        random_state: int = 0,
    ) -> None:
        self.dim = dim
        self.split_test = split_test
        self.leaf_type = leaf_type
        self.rng = rng if rng is not None else np.random.default_rng(random_state)

        self.node: Leaf | Internal = Leaf()
        self.stock = ExampleSet()
        self.metrics = TreeTrainingMetrics()

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[str],
        dim: int,
        split_test: SplitTest,
        leaf_type: type,
    ) -> Tree:
        tree = cls(dim, split_test, leaf_type)
        tree.deserialize(deque(lines))
        return tree

    def _spawn(self) -> Tree:
        return Tree(self.dim, self.split_test, self.leaf_type, rng=self.rng)

    @property
    def is_leaf(self) -> bool:
        return isinstance(self.node, Leaf)

    def predict(self, x: Any) -> LeafValue:
        tree = self
        while isinstance(tree.node, Internal):
            tree = tree.node.right if tree.node.test(x) else tree.node.left

        if tree.node.value is None:
            raise RuntimeError("Tree must be trained before prediction")
        return tree.node.value

    def train(
        self,
        data: ExampleSetLike,
        objective: ObjectiveFunction,
        params: TreeTrainingParameters,
    ) -> TreeTrainingMetrics:
        metrics = TreeTrainingMetrics()
        stack: list[tuple[Tree, ExampleSetLike]] = [(self, data)]

        while stack:
            tree, node_data = stack.pop()
            children = tree._grow(node_data, objective, params, metrics)
            if children is None:
                continue
            (right, right_data), (left, left_data) = children
            stack.append((left, left_data))
            stack.append((right, right_data))

        self.metrics = metrics
        return metrics

    def _make_leaf(self, data: ExampleSetLike, metrics: TreeTrainingMetrics) -> None:
        self.node = Leaf(self.leaf_type.from_labels(list(data.labels)))
        metrics.leaves_created += 1

    def _grow(
        self,
        data: ExampleSetLike,
        objective: ObjectiveFunction,
        params: TreeTrainingParameters,
        metrics: TreeTrainingMetrics,
    ) -> tuple[tuple[Tree, ExampleSet], tuple[Tree, ExampleSet]] | None:
        metrics.nodes_visited += 1
        o = objective(data.labels)
        _trace(params, "#data = %d, o(data) = %g", len(data), o)

        if o <= params.objfunc_th or len(data) <= params.nexamples_th:
            self._make_leaf(data, metrics)
            _trace(params, "Leaf: %s", self.node.value)
            return None

        best_test: SplitTest | None = None
        best_split: tuple[ExampleSet, ExampleSet] | None = None
        min_e = float("inf")
        for _ in range(params.nsamplings):
            candidate = self.split_test.randomized(self.rng)
            right, left = _partition(data, candidate)
            e = len(right) * objective(right.labels) + len(left) * objective(left.labels)
            metrics.candidates_evaluated += 1
            if e < min_e:
                min_e = e
                best_test = candidate
                best_split = (right, left)

        if best_test is None or not len(best_split[0]) or not len(best_split[1]):
            metrics.degenerate_splits += 1
            self._make_leaf(data, metrics)
            _trace(params, "Cannot grow, Leaf: %s", self.node.value)
            return None

        right_data, left_data = best_split
        right_tree, left_tree = self._spawn(), self._spawn()
        self.node = Internal(test=best_test, right=right_tree, left=left_tree)
        self.stock = ExampleSet()
        metrics.nodes_split += 1
        return (right_tree, right_data), (left_tree, left_data)

    def train1(
        self,
        label: Any,
        x: Any,
        objective: ObjectiveFunction,
        params: TreeTrainingParameters,
    ) -> bool:
        """Feed one example; returns True if the reached leaf was regrown.

        Counters of an online regrowth are added to this tree's ``metrics``.
        """
        tree = self
        while isinstance(tree.node, Internal):
            tree = tree.node.right if tree.node.test(x) else tree.node.left

        tree.stock.append(label, x)
        if (
            len(tree.stock) < params.nexamples_restart_th
            or objective(tree.stock.labels) < params.objfunc_restart_th
        ):
            return False

        stock = tree.stock
        metrics = self.metrics
        grown = tree.train(stock, objective, params)
        metrics.merge(grown)
        self.metrics = metrics
        tree.stock = ExampleSet()
        return True

    def serialize_node(self) -> str:
        if isinstance(self.node, Internal):
            return encode_node(False, self.node.test.serialize())
        if self.node.value is None:
            raise RuntimeError("Cannot serialize an untrained tree")
        return encode_node(True, self.node.value.serialize())

    def serialize(self) -> list[str]:
        lines: list[str] = []
        stack: list[Tree] = [self]
        while stack:
            tree = stack.pop()
            lines.append(tree.serialize_node())
            if isinstance(tree.node, Internal):
                stack.append(tree.node.left)
                stack.append(tree.node.right)
        return lines

    def deserialize(self, lines: deque[str]) -> None:
        """Rebuild this tree from the front of ``lines``, consuming one subtree."""
        root = self._spawn()
        stack: list[Tree] = [root]
        while stack:
            tree = stack.pop()
            is_leaf, payload = decode_node(pop_line(lines))
            if is_leaf:
                tree.node = Leaf(self.leaf_type.deserialize(payload))
                continue
            right, left = tree._spawn(), tree._spawn()
            tree.node = Internal(test=self.split_test.deserialize(payload), right=right, left=left)
            stack.append(left)
            stack.append(right)

        self.node = root.node
        self.stock = ExampleSet()

    def save(self, filename: str) -> None:
        write_lines(filename, self.serialize())

    def load(self, filename: str) -> None:
        self.deserialize(read_lines(filename))

    def leaves(self) -> Iterator[Tree]:
        stack: list[Tree] = [self]
        while stack:
            tree = stack.pop()
            if isinstance(tree.node, Internal):
                stack.append(tree.node.left)
                stack.append(tree.node.right)
            else:
                yield tree

    def n_leaves(self) -> int:
        return sum(1 for _ in self.leaves())

    def n_nodes(self) -> int:
        return 2 * self.n_leaves() - 1

    def depth(self) -> int:
        max_depth = 0
        stack: list[tuple[Tree, int]] = [(self, 0)]
        while stack:
            tree, depth = stack.pop()
            max_depth = max(max_depth, depth)
            if isinstance(tree.node, Internal):
                stack.append((tree.node.left, depth + 1))
                stack.append((tree.node.right, depth + 1))
        return max_depth
