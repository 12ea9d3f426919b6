"""In-memory synthetic datasets generated with scikit-learn and numpy."""

from __future__ import annotations

import numpy as np
from sklearn.datasets import make_blobs, make_moons

from .registry import DataSpec, DatasetSpec, register_dataset
from .utils import build_splits


def _classification_spec(
    name: str,
    X: np.ndarray,
    labels: np.ndarray,
    provenance: dict,
    *,
    val_split: float,
    test_split: float,
    seed: int,
    standardize: bool,
    polynomial_degree: int,
) -> DatasetSpec:
    splits, normalization = build_splits(
        X,
        labels.astype(np.float64).reshape(-1, 1),
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )
    provenance.update(
        {
            "type": "synthetic",
            "seed": seed,
            "val_split": val_split,
            "test_split": test_split,
            "standardize": standardize,
            "polynomial_degree": polynomial_degree,
        }
    )
    return DatasetSpec(
        name=name,
        splits=splits,
        data_spec=DataSpec(
            d_in=int(splits["train"].inputs.shape[1]),
            d_out=1,
            task_type="binary",
            num_classes=2,
            normalization=normalization,
        ),
        provenance=provenance,
    )


@register_dataset("blobs")
def make_blobs_dataset(
    *,
    n_samples: int = 200,
    cluster_std: float = 0.5,
    separation: float = 2.0,
    seed: int = 0,
    val_split: float = 0.1,
    test_split: float = 0.2,
    standardize: bool = False,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """Two Gaussian clusters centred at ``(-s, -s)`` and ``(s, s)``."""

    centers = [(-separation, -separation), (separation, separation)]
    X, labels = make_blobs(
        n_samples=n_samples, centers=centers, cluster_std=cluster_std, random_state=seed
    )
    return _classification_spec(
        "blobs",
        X,
        labels,
        {"n_samples": n_samples, "cluster_std": cluster_std, "separation": separation},
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )


@register_dataset("moons")
def make_moons_dataset(
    *,
    n_samples: int = 200,
    noise: float = 0.1,
    seed: int = 0,
    val_split: float = 0.1,
    test_split: float = 0.2,
    standardize: bool = True,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """Two interleaving half circles."""

    X, labels = make_moons(n_samples=n_samples, noise=noise, random_state=seed)
    return _classification_spec(
        "moons",
        X,
        labels,
        {"n_samples": n_samples, "noise": noise},
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )


@register_dataset("xor")
def make_xor_dataset(
    *,
    n_samples: int = 200,
    noise: float = 0.1,
    seed: int = 0,
    val_split: float = 0.1,
    test_split: float = 0.2,
    standardize: bool = False,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """Points around the four corners of the unit square labelled by XOR."""

    rng = np.random.default_rng(seed)
    corners = rng.integers(0, 2, size=(n_samples, 2))
    X = corners + noise * rng.standard_normal(size=(n_samples, 2))
    labels = np.logical_xor(corners[:, 0], corners[:, 1]).astype(int)
    return _classification_spec(
        "xor",
        X,
        labels,
        {"n_samples": n_samples, "noise": noise},
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )


@register_dataset("sine")
def make_sine_dataset(
    *,
    freq: float = 1.0,
    n_points: int = 256,
    noise: float = 0.05,
    seed: int = 0,
    val_split: float = 0.1,
    test_split: float = 0.2,
    standardize: bool = False,
    polynomial_degree: int = 1,
) -> DatasetSpec:
    """``sin(freq * pi * x)`` plus Gaussian noise on ``x`` in ``[-1, 1]``."""

    rng = np.random.default_rng(seed)
    x = np.linspace(-1.0, 1.0, n_points).reshape(-1, 1)
    y = np.sin(freq * np.pi * x) + noise * rng.standard_normal(size=x.shape)
    splits, normalization = build_splits(
        x,
        y,
        val_split=val_split,
        test_split=test_split,
        seed=seed,
        standardize=standardize,
        polynomial_degree=polynomial_degree,
    )
    provenance = {
        "type": "synthetic",
        "freq": freq,
        "n_points": n_points,
        "noise": noise,
        "seed": seed,
        "val_split": val_split,
        "test_split": test_split,
        "polynomial_degree": polynomial_degree,
    }
    return DatasetSpec(
        name="sine",
        splits=splits,
        data_spec=DataSpec(
            d_in=int(splits["train"].inputs.shape[1]),
            d_out=1,
            task_type="regression",
            normalization=normalization,
        ),
        provenance=provenance,
    )


__all__ = ["make_blobs_dataset", "make_moons_dataset", "make_sine_dataset", "make_xor_dataset"]
