from collections import deque

import numpy as np
import pytest

from data_structures import ExampleSet
from forest import Forest, ForestTrainingParameters
from leaf_values import ClassVoteLeaf, MeanLeaf
from objectives import entropy, variance
from serialization import MalformedModelError, decode_node, encode_node
from split_tests import ObliqueTest, ThresholdTest
from tree import Tree, TreeTrainingParameters


def _trained_tree(seed=0, n=80):
    rng = np.random.default_rng(seed)
    X = rng.uniform(size=(n, 3))
    y = ((X[:, 0] > 0.4) & (X[:, 1] < 0.7)).astype(int)
    tree = Tree(3, ThresholdTest.from_data(X), ClassVoteLeaf, random_state=seed)
    tree.train(ExampleSet.from_arrays(X, y), entropy, TreeTrainingParameters(nsamplings=30))
    return tree


def _trained_forest(seed=0, ntrees=3):
    rng = np.random.default_rng(seed)
    X = rng.uniform(size=(90, 2))
    y = (X[:, 0] < X[:, 1]).astype(int)
    forest = Forest(2, ThresholdTest.from_data(X), ClassVoteLeaf)
    forest.train(
        ExampleSet.from_arrays(X, y),
        entropy,
        ForestTrainingParameters(
            ntrees=ntrees,
            tree_params=TreeTrainingParameters(nsamplings=20),
            random_state=seed,
        ),
    )
    return forest


def test_node_line_encoding():
    assert encode_node(True, "0:3") == "1\t0:3"
    assert encode_node(False, "2,0.5") == "0\t2,0.5"
    assert decode_node("1\t0:3\n") == (True, "0:3")
    assert decode_node("0\t2,0.5") == (False, "2,0.5")

    with pytest.raises(ValueError):
        encode_node(True, "a\tb")
    for bad in ["2\tx", "1 0:3", "", "leaf\t0:3"]:
        with pytest.raises(MalformedModelError):
            decode_node(bad)


def test_right_subtree_is_read_before_left():
    lines = ["0\t0,0.5", "1\t1:2", "0\t1,0.25", "1\t0:3", "1\t2:1"]
    tree = Tree.from_lines(lines, 2, ThresholdTest(dim=2), ClassVoteLeaf)

    assert tree.predict(np.array([0.9, 0.0])).counts == {1: 2}
    assert tree.predict(np.array([0.1, 0.9])).counts == {0: 3}
    assert tree.predict(np.array([0.1, 0.1])).counts == {2: 1}
    assert tree.serialize() == lines


def test_serialize_writes_preorder_right_first():
    tree = _trained_tree()
    lines = tree.serialize()

    assert len(lines) == tree.n_nodes()
    assert lines[0] == tree.serialize_node()
    assert lines[1] == tree.node.right.serialize_node()
    assert lines[len(tree.node.right.serialize()) + 1] == tree.node.left.serialize_node()


def test_tree_roundtrip_preserves_predictions():
    tree = _trained_tree(seed=3)
    restored = Tree(3, tree.split_test, ClassVoteLeaf)
    restored.deserialize(deque(tree.serialize()))

    sample = np.random.default_rng(11).uniform(size=(200, 3))
    for x in sample:
        assert restored.predict(x) == tree.predict(x)
    assert restored.serialize() == tree.serialize()


def test_tree_deserialize_consumes_exactly_one_subtree():
    tree = _trained_tree(seed=1)
    lines = deque(tree.serialize() + ["trailing"])

    Tree(3, tree.split_test, ClassVoteLeaf).deserialize(lines)

    assert list(lines) == ["trailing"]


def test_truncated_tree_raises_and_keeps_previous_state():
    tree = _trained_tree(seed=2)
    before = tree.serialize()
    assert len(before) > 1

    with pytest.raises(MalformedModelError):
        tree.deserialize(deque(before[:-1]))

    assert tree.serialize() == before


def test_tree_save_load(tmp_path):
    tree = _trained_tree(seed=4)
    path = tmp_path / "tree.txt"
    tree.save(str(path))

    assert path.read_text().splitlines() == tree.serialize()

    restored = Tree(3, tree.split_test, ClassVoteLeaf)
    restored.load(str(path))
    for x in np.random.default_rng(5).uniform(size=(50, 3)):
        assert restored.predict(x) == tree.predict(x)


def test_serializing_untrained_tree_raises():
    with pytest.raises(RuntimeError):
        Tree(1, ThresholdTest(dim=1), ClassVoteLeaf).serialize()


def test_mean_leaves_and_oblique_tests_roundtrip_exactly():
    rng = np.random.default_rng(6)
    X = rng.normal(size=(60, 3))
    y = X @ np.array([0.3, -1.2, 2.0]) + 0.1 * rng.normal(size=60)
    tree = Tree(3, ObliqueTest(dim=3, low=-2.0, high=2.0), MeanLeaf, random_state=6)
    tree.train(
        ExampleSet.from_arrays(X, y),
        variance,
        TreeTrainingParameters(objfunc_th=1e-3, objfunc_restart_th=1e-2, nexamples_th=3, nsamplings=20),
    )

    restored = Tree.from_lines(tree.serialize(), 3, ObliqueTest(dim=3), MeanLeaf)

    for x in rng.normal(size=(100, 3)):
        assert restored.predict(x).mean == tree.predict(x).mean


def test_forest_file_layout(tmp_path):
    forest = _trained_forest(ntrees=3)
    path = tmp_path / "forest.txt"
    forest.save(str(path))

    lines = path.read_text().split("\n")
    assert lines[0] == "3"
    assert lines[-1] == ""
    body = lines[1:-1]
    assert body.count("") == 3
    offset = 0
    for tree in forest.trees:
        tree_lines = tree.serialize()
        assert body[offset:offset + len(tree_lines)] == tree_lines
        assert body[offset + len(tree_lines)] == ""
        offset += len(tree_lines) + 1


def test_forest_save_load_roundtrip(tmp_path):
    forest = _trained_forest(seed=7, ntrees=4)
    path = tmp_path / "forest.txt"
    forest.save(str(path))

    restored = Forest(2, forest.split_test, ClassVoteLeaf)
    restored.load(str(path))

    assert len(restored) == 4
    sample = np.random.default_rng(8).uniform(size=(100, 2))
    assert restored.predict_batch(sample) == forest.predict_batch(sample)
    assert restored.serialize() == forest.serialize()


def test_forest_load_ignores_blank_lines(tmp_path):
    forest = _trained_forest(seed=1, ntrees=2)
    lines = forest.serialize()
    padded = ["", lines[0], "", ""] + [item for line in lines[1:] for item in (line, "")]
    path = tmp_path / "forest.txt"
    path.write_text("\n".join(padded) + "\n")

    restored = Forest(2, forest.split_test, ClassVoteLeaf)
    restored.load(str(path))

    assert restored.serialize() == forest.serialize()


def test_forest_load_rejects_malformed_files(tmp_path):
    forest = _trained_forest(seed=2, ntrees=2)
    lines = forest.serialize()
    restored = Forest(2, forest.split_test, ClassVoteLeaf)

    bad_header = tmp_path / "bad_header.txt"
    bad_header.write_text("two\n" + "\n".join(lines[1:]) + "\n")
    with pytest.raises(MalformedModelError):
        restored.load(str(bad_header))

    too_few = tmp_path / "too_few.txt"
    too_few.write_text("3\n" + "\n".join(lines[1:]) + "\n")
    with pytest.raises(MalformedModelError):
        restored.load(str(too_few))

    empty = tmp_path / "empty.txt"
    empty.write_text("")
    with pytest.raises(MalformedModelError):
        restored.load(str(empty))


def test_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        Forest(1, ThresholdTest(dim=1), ClassVoteLeaf).load(str(tmp_path / "missing.txt"))
    with pytest.raises(OSError):
        Tree(1, ThresholdTest(dim=1), ClassVoteLeaf).load(str(tmp_path / "missing.txt"))
    with pytest.raises(OSError):
        _trained_tree().save(str(tmp_path / "no_such_dir" / "tree.txt"))
