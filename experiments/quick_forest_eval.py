import argparse
import logging
import os
import sys
import tempfile
import time
from pathlib import Path

import numpy as np

# Allow running as: python experiments/quick_forest_eval.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from data_structures import ExampleSet
from forest import Forest, ForestTrainingParameters
from leaf_values import ClassVoteLeaf, MeanLeaf
from objectives import get_objective
from split_tests import ObliqueTest, ThresholdTest
from tree import TreeTrainingParameters


def make_dataset(name, n_samples, rng):
    X = rng.uniform(-1.0, 1.0, size=(n_samples, 4))
    if name == "synthetic_clf":
        y = ((X[:, 0] > 0.1) ^ (X[:, 1] + 0.5 * X[:, 2] > 0.0)).astype(int)
        return X, y, "classification"
    if name == "synthetic_reg":
        y = np.sin(3.0 * X[:, 0]) + 0.5 * X[:, 1] + 0.05 * rng.normal(size=n_samples)
        return X, y, "regression"
    raise ValueError(f"Unknown dataset: {name}")


def _train_test_split(X, y, test_size, rng):
    idx = rng.permutation(X.shape[0])
    n_test = max(1, int(round(X.shape[0] * test_size)))
    return X[idx[n_test:]], X[idx[:n_test]], y[idx[n_test:]], y[idx[:n_test]]


def _score(task, y_true, y_pred):
    y_pred = np.asarray(y_pred)
    if task == "classification":
        return {"accuracy": float(np.mean(y_pred == y_true))}
    return {"rmse": float(np.sqrt(np.mean((y_true - y_pred) ** 2)))}


def evaluate_one(X, y, task, split, ntrees, nsamplings, nexamples_th, n_jobs, random_state):
    rng = np.random.default_rng(random_state)
    X_train, X_test, y_train, y_test = _train_test_split(X, y, 0.25, rng)
    X_test, X_stream = X_test[: len(X_test) // 2], X_test[len(X_test) // 2:]
    y_test, y_stream = y_test[: len(y_test) // 2], y_test[len(y_test) // 2:]

    if split == "oblique":
        split_test = ObliqueTest(dim=X.shape[1], low=-1.0, high=1.0)
    else:
        split_test = ThresholdTest.from_data(X_train)

    if task == "classification":
        leaf_type, objective = ClassVoteLeaf, get_objective("entropy")
        objfunc_th, objfunc_restart_th = 0.0, 0.1
    else:
        leaf_type, objective = MeanLeaf, get_objective("variance")
        objfunc_th, objfunc_restart_th = 1e-3, 1e-2

    tree_params = TreeTrainingParameters(
        objfunc_th=objfunc_th,
        objfunc_restart_th=objfunc_restart_th,
        nexamples_th=nexamples_th,
        nexamples_restart_th=max(nexamples_th + 1, 4 * nexamples_th),
        nsamplings=nsamplings,
    )
    params = ForestTrainingParameters(
        ntrees=ntrees,
        tree_params=tree_params,
        n_jobs=n_jobs,
        random_state=random_state,
    )

    forest = Forest(dim=X.shape[1], split_test=split_test, leaf_type=leaf_type)
    t0 = time.perf_counter()
    forest.train(ExampleSet.from_arrays(X_train, y_train), objective, params)
    fit_time = time.perf_counter() - t0

    test_pred = forest.predict_batch(X_test)

    first = forest.trees[0]
    regrowths = 0
    for label, x in zip(y_stream.tolist(), X_stream):
        regrowths += int(first.train1(label, x, objective, tree_params))

    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "forest.txt")
        forest.save(path)
        restored = Forest(dim=X.shape[1], split_test=split_test, leaf_type=leaf_type)
        restored.load(path)
    roundtrip_ok = restored.predict_batch(X_test) == forest.predict_batch(X_test)

    return {
        "fit_time_sec": fit_time,
        "metrics": _score(task, y_test, test_pred),
        "n_dropped": forest.metrics["n_dropped"],
        "nodes_split": forest.metrics["nodes_split"],
        "degenerate_splits": forest.metrics["degenerate_splits"],
        "online_examples": len(y_stream),
        "online_regrowths": regrowths,
        "roundtrip_ok": roundtrip_ok,
    }


def main():
    parser = argparse.ArgumentParser(description="Quick random forest checks on synthetic data")
    parser.add_argument(
        "--datasets",
        type=str,
        default="synthetic_clf,synthetic_reg",
        help="Comma-separated: synthetic_clf, synthetic_reg",
    )
    parser.add_argument("--n-samples", type=int, default=600)
    parser.add_argument("--ntrees", type=int, default=8)
    parser.add_argument("--nsamplings", type=int, default=50)
    parser.add_argument("--nexamples-th", type=int, default=3)
    parser.add_argument("--split", choices=["threshold", "oblique"], default="threshold")
    parser.add_argument("--n-jobs", type=int, default=4)
    parser.add_argument("--random-state", type=int, default=42)
    parser.add_argument("--verbose", action="store_true", help="Log per-tree training summaries")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    datasets = [d.strip() for d in args.datasets.split(",") if d.strip()]
    if not datasets:
        raise ValueError("No datasets provided")

    for ds_name in datasets:
        X, y, task = make_dataset(ds_name, args.n_samples, np.random.default_rng(args.random_state))
        print(f"\nDataset={ds_name} task={task} n={X.shape[0]} d={X.shape[1]}")

        out = evaluate_one(
            X,
            y,
            task=task,
            split=args.split,
            ntrees=args.ntrees,
            nsamplings=args.nsamplings,
            nexamples_th=args.nexamples_th,
            n_jobs=args.n_jobs,
            random_state=args.random_state,
        )
        print(
            f"Forest[{args.split}]"
            f" time={out['fit_time_sec']:.3f}s"
            f" dropped={out['n_dropped']}"
            f" splits={out['nodes_split']}"
            f" degenerate={out['degenerate_splits']}"
            f" metrics={out['metrics']}"
        )
        print(
            "  online"
            f" examples={out['online_examples']}"
            f" regrowths={out['online_regrowths']}"
            f" roundtrip_ok={out['roundtrip_ok']}"
        )


if __name__ == "__main__":
    main()
