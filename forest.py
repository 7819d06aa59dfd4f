from __future__ import annotations

from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
import logging
from typing import Any, Sequence

import numpy as np

from collaborators import ExampleSetLike, ObjectiveFunction, SplitTest
from serialization import MalformedModelError, pop_line, read_lines, write_lines
from tree import Tree, TreeTrainingMetrics, TreeTrainingParameters

logger = logging.getLogger(__name__)


@dataclass
class ForestTrainingParameters:
    ntrees: int = 1
    tree_params: TreeTrainingParameters = field(default_factory=TreeTrainingParameters)
    n_jobs: int = 1
    random_state: int = 0

    def __post_init__(self) -> None:
        if self.ntrees <= 0:
            raise ValueError("ntrees must be positive")
        if self.n_jobs <= 0:
            raise ValueError("n_jobs must be positive")


def partition_indices(n: int, ntrees: int, rng: np.random.Generator) -> list[np.ndarray]:
    """Shuffle ``range(n)`` and cut it into ``ntrees`` disjoint blocks.

    Every block holds ``n // ntrees`` indices; the ``n % ntrees`` indices left at
    the end of the permutation are not assigned to any block.
    """
    idxs = rng.permutation(n)
    block = n // ntrees
    return [idxs[i * block:(i + 1) * block] for i in range(ntrees)]


class Forest:
    """Ensemble of independently trained trees sharing one split-test prototype."""

    def __init__(self, dim: int, split_test: SplitTest, leaf_type: type) -> None:
        self.dim = dim
        self.split_test = split_test
        self.leaf_type = leaf_type

        self._trees: list[Tree] = []
        self.metrics: dict = {}

    def __len__(self) -> int:
        return len(self._trees)

    @property
    def trees(self) -> tuple[Tree, ...]:
        return tuple(self._trees)

    def _new_tree(self, rng: np.random.Generator | None = None) -> Tree:
        return Tree(self.dim, self.split_test, self.leaf_type, rng=rng)

    def predict(self, x: Any) -> Any:
        if not self._trees:
            raise RuntimeError("Forest must be trained before prediction")
        return self.leaf_type.reduce([tree.predict(x) for tree in self._trees])

    def predict_batch(self, X: Sequence[Any]) -> list[Any]:
        return [self.predict(x) for x in X]

    def train(
        self,
        data: ExampleSetLike,
        objective: ObjectiveFunction,
        params: ForestTrainingParameters,
    ) -> Forest:
        rng = np.random.default_rng(params.random_state)
        blocks = partition_indices(len(data), params.ntrees, rng)
        subsets = [data.subset(block) for block in blocks]

        trees = [
            self._new_tree(np.random.default_rng(int(rng.integers(1, 2**31 - 1))))
            for _ in range(params.ntrees)
        ]

        with ThreadPoolExecutor(max_workers=params.n_jobs) as executor:
            futures = [
                executor.submit(tree.train, subset, objective, params.tree_params)
                for tree, subset in zip(trees, subsets)
            ]
            tree_metrics: list[TreeTrainingMetrics] = [f.result() for f in futures]

        # Trees and metrics are only replaced once every tree trained.
        n_used = sum(len(subset) for subset in subsets)
        self._trees = trees
        self.metrics = {
            "n_examples": len(data),
            "n_used": n_used,
            "n_dropped": len(data) - n_used,
            "nodes_split": sum(m.nodes_split for m in tree_metrics),
            "degenerate_splits": sum(m.degenerate_splits for m in tree_metrics),
            "tree_metrics": [
                {"tree_idx": i, **asdict(m)} for i, m in enumerate(tree_metrics)
            ],
        }
        logger.info(
            "Trained %d trees on %d of %d examples (%d dropped)",
            params.ntrees,
            n_used,
            len(data),
            len(data) - n_used,
        )
        return self

    def serialize(self) -> list[str]:
        lines = [str(len(self._trees))]
        for tree in self._trees:
            lines.extend(tree.serialize())
            lines.append("")
        return lines

    def deserialize(self, lines: deque[str]) -> None:
        lines = deque(line for line in lines if line != "")
        header = pop_line(lines)
        try:
            ntrees = int(header)
        except ValueError as exc:
            raise MalformedModelError(f"Invalid tree count: {header!r}") from exc
        if ntrees < 0:
            raise MalformedModelError(f"Invalid tree count: {header!r}")

        trees = []
        for _ in range(ntrees):
            tree = self._new_tree()
            tree.deserialize(lines)
            trees.append(tree)
        if lines:
            logger.debug("Ignoring %d lines after the last tree", len(lines))
        self._trees = trees

    def save(self, filename: str) -> None:
        write_lines(filename, self.serialize())

    def load(self, filename: str) -> None:
        self.deserialize(read_lines(filename, skip_blank=True))
