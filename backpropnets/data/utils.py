"""Splitting and preprocessing helpers shared by the dataset factories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

import numpy as np
from sklearn.preprocessing import LabelEncoder, PolynomialFeatures, StandardScaler

from ..core.types import Batch


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/validation/test partitions."""

    train: np.ndarray
    val: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {
            "train": int(self.train.size),
            "val": int(self.val.size),
            "test": int(self.test.size),
        }


def deterministic_split(
    n_samples: int,
    *,
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
) -> SplitIndices:
    """Return deterministic indices for the requested split ratios."""

    if not 0 <= val_split < 1:
        raise ValueError("val_split must be in [0, 1)")
    if not 0 <= test_split < 1:
        raise ValueError("test_split must be in [0, 1)")
    if val_split + test_split >= 1:
        raise ValueError("val_split + test_split must be < 1")

    indices = np.arange(n_samples)
    np.random.default_rng(seed).shuffle(indices)

    test_size = int(round(n_samples * test_split))
    val_size = int(round(n_samples * val_split))
    # At least one sample per requested split
    test_size = min(max(test_size, 1 if test_split > 0 else 0), n_samples)
    val_size = min(max(val_size, 1 if val_split > 0 else 0), n_samples - test_size)
    if n_samples - val_size - test_size <= 0:
        raise ValueError("Not enough samples for the requested splits")

    return SplitIndices(
        train=indices[test_size + val_size :],
        val=indices[test_size : test_size + val_size],
        test=indices[:test_size],
    )


def encode_labels(labels: np.ndarray, *, one_hot: bool = True) -> tuple[np.ndarray, list]:
    """Encode arbitrary labels as float targets; returns ``(targets, classes)``.

    Two classes always give a single 0/1 column and more classes a one-hot
    matrix. Class indices in one column would be read as a 0/1 indicator by
    the network, so ``one_hot=False`` is rejected for more than two classes.
    """

    encoder = LabelEncoder()
    encoded = encoder.fit_transform(np.asarray(labels).reshape(-1))
    classes = encoder.classes_.tolist()
    if len(classes) <= 2:
        return encoded.astype(np.float64).reshape(-1, 1), classes
    if not one_hot:
        raise ValueError(
            f"one_hot=False needs at most two classes, got {len(classes)}; "
            "multiclass targets must be one-hot encoded"
        )
    return np.eye(len(classes))[encoded], classes


def build_splits(
    features: np.ndarray,
    targets: np.ndarray,
    *,
    val_split: float = 0.1,
    test_split: float = 0.2,
    seed: int = 0,
    standardize: bool = False,
    standardize_targets: bool = False,
    polynomial_degree: int = 1,
) -> tuple[Dict[str, Batch], Dict[str, Any]]:
    """Split, then fit the preprocessing on the train rows and apply it to every split.

    Returns the ``train``/``val``/``test`` batches and the normalisation
    metadata recorded in :class:`~backpropnets.data.registry.DataSpec`.
    """

    X = np.asarray(features, dtype=np.float64)
    y = np.asarray(targets, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(-1, 1)
    indices = deterministic_split(X.shape[0], val_split=val_split, test_split=test_split, seed=seed)
    parts = {name: (X[idx], y[idx]) for name, idx in vars(indices).items()}
    normalization: Dict[str, Any] = {}

    if polynomial_degree > 1:
        poly = PolynomialFeatures(degree=int(polynomial_degree), include_bias=False)
        poly.fit(parts["train"][0])
        width = poly.n_output_features_
        parts = {
            name: (poly.transform(x) if len(x) else np.empty((0, width)), t)
            for name, (x, t) in parts.items()
        }
        normalization["polynomial_degree"] = int(polynomial_degree)
    if standardize:
        scaler = StandardScaler().fit(parts["train"][0])
        parts = {
            name: (scaler.transform(x) if len(x) else x, t) for name, (x, t) in parts.items()
        }
        normalization["inputs"] = {
            "mean": scaler.mean_.tolist(),
            "std": scaler.scale_.tolist(),
        }
    if standardize_targets:
        scaler = StandardScaler().fit(parts["train"][1])
        parts = {
            name: (x, scaler.transform(t) if len(t) else t) for name, (x, t) in parts.items()
        }
        normalization["targets"] = {
            "mean": scaler.mean_.tolist(),
            "std": scaler.scale_.tolist(),
        }

    splits = {
        name: Batch(inputs=np.ascontiguousarray(x), targets=np.ascontiguousarray(t))
        for name, (x, t) in parts.items()
    }
    return splits, normalization


__all__ = ["SplitIndices", "build_splits", "deterministic_split", "encode_labels"]
